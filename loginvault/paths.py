import os
from dataclasses import dataclass

from . import config


def get_default_data_dir() -> str:
    """Data directory: $LOGINVAULT_HOME if set, otherwise ~/.loginvault."""
    override = os.environ.get(config.DATA_DIR_ENV_VAR)
    if override:
        return override
    return os.path.join(os.path.expanduser("~"), config.CONFIG_DIR_NAME)


@dataclass(frozen=True)
class VaultPaths:
    """Locations of the artifacts belonging to one installation."""
    data_dir: str
    key_file: str
    accounts_file: str
    settings_file: str
    log_dir: str

    @classmethod
    def for_directory(cls, data_dir: str) -> 'VaultPaths':
        return cls(
            data_dir=data_dir,
            key_file=os.path.join(data_dir, config.KEY_FILE),
            accounts_file=os.path.join(data_dir, config.ACCOUNTS_FILE),
            settings_file=os.path.join(data_dir, config.SETTINGS_FILE),
            log_dir=os.path.join(data_dir, config.LOG_DIR_NAME),
        )

    @classmethod
    def default(cls) -> 'VaultPaths':
        return cls.for_directory(get_default_data_dir())

    def ensure_data_dir(self) -> None:
        os.makedirs(self.data_dir, exist_ok=True)
