"""
Backup and restore of a whole installation.

A backup is one JSON document holding the encrypted vault (Base64), the key
text and the settings JSON. The vault is useless without its key, so both
travel together.
"""

import os
import json
import base64
import binascii
import logging
import shutil
import datetime
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import config
from .errors import BackupFormatError, IOFailure, KeyCorrupt
from .keys import KeyManager
from .paths import VaultPaths
from .utils import atomic_write_bytes, atomic_write_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupBundle:
    """Contents of a backup file."""
    accounts_data: str = ""
    key_data: str = ""
    settings_data: str = ""
    backup_date: str = ""

    JSON_FIELDS = (
        ("accounts_data", "AccountsData"),
        ("key_data", "KeyData"),
        ("settings_data", "SettingsData"),
        ("backup_date", "BackupDate"),
    )

    @property
    def accounts_bytes(self) -> bytes:
        return base64.b64decode(self.accounts_data) if self.accounts_data else b""

    def validate(self) -> None:
        """
        Check field contents.

        Raises:
            BackupFormatError: If the vault is not Base64, the key is not a
                valid key, or the settings are not a JSON object
        """
        if self.accounts_data:
            try:
                base64.b64decode(self.accounts_data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise BackupFormatError("AccountsData is not valid Base64") from e
        if self.key_data:
            try:
                KeyManager.decode_key(self.key_data.strip(), source="KeyData")
            except KeyCorrupt as e:
                raise BackupFormatError(str(e)) from e
        if self.settings_data:
            try:
                settings = json.loads(self.settings_data)
            except ValueError as e:
                raise BackupFormatError("SettingsData is not valid JSON") from e
            if not isinstance(settings, dict):
                raise BackupFormatError("SettingsData is not a JSON object")

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for attr, key in self.JSON_FIELDS}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> 'BackupBundle':
        if not isinstance(data, dict):
            raise BackupFormatError("Backup must be a JSON object")
        kwargs = {}
        for attr, key in cls.JSON_FIELDS:
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise BackupFormatError(f"{key} must be a string")
            kwargs[attr] = value
        bundle = cls(**kwargs)
        bundle.validate()
        return bundle

    @classmethod
    def from_json(cls, text: str) -> 'BackupBundle':
        try:
            data = json.loads(text)
        except ValueError as e:
            raise BackupFormatError(f"Backup is not valid JSON: {e}") from e
        return cls.from_dict(data)


def _read_optional(path: str, binary: bool = False):
    if not os.path.exists(path):
        return b"" if binary else ""
    try:
        if binary:
            with open(path, 'rb') as f:
                return f.read()
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        raise IOFailure(f"Could not read {path}: {e}") from e


def create_backup(paths: VaultPaths, now: Optional[datetime.datetime] = None) -> BackupBundle:
    """Snapshot the artifacts on disk. Missing artifacts become empty fields."""
    now = now or datetime.datetime.now()
    vault = _read_optional(paths.accounts_file, binary=True)
    return BackupBundle(
        accounts_data=base64.b64encode(vault).decode('ascii') if vault else "",
        key_data=_read_optional(paths.key_file).strip(),
        settings_data=_read_optional(paths.settings_file),
        backup_date=now.strftime(config.BACKUP_DATE_FORMAT),
    )


def write_backup(paths: VaultPaths, destination: str) -> BackupBundle:
    bundle = create_backup(paths)
    atomic_write_text(destination, bundle.to_json(), secure=True)
    logger.info(f"Wrote backup to {destination}")
    return bundle


def read_backup(source: str) -> BackupBundle:
    try:
        with open(source, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise IOFailure(f"Could not read backup {source}: {e}") from e
    return BackupBundle.from_json(text)


def _preserve_current_key(paths: VaultPaths, now: datetime.datetime) -> Optional[str]:
    if not os.path.exists(paths.key_file):
        return None
    target = f"{paths.key_file}{config.PRE_RESTORE_SUFFIX}-{now.strftime('%Y%m%d_%H%M%S')}"
    try:
        shutil.copy2(paths.key_file, target)
    except OSError as e:
        raise IOFailure(f"Could not keep a copy of key {paths.key_file}: {e}") from e
    logger.info(f"Kept the current key at {target} before restoring")
    return target


def restore_backup(bundle: BackupBundle, paths: VaultPaths,
                   now: Optional[datetime.datetime] = None) -> None:
    """
    Write the artifacts of a bundle back to disk.

    Empty fields leave the existing artifact alone. A key that is about to be
    replaced is copied aside first, and put back if the vault cannot be
    written. The caller must reload its KeyManager and AccountStore afterwards.
    """
    bundle.validate()
    paths.ensure_data_dir()

    if bundle.accounts_data and not bundle.key_data:
        logger.warning("Backup has no key; the restored vault only opens with the current key.")

    previous_key = None
    if bundle.key_data:
        previous_key = _preserve_current_key(paths, now or datetime.datetime.now())
        atomic_write_text(paths.key_file, bundle.key_data.strip(), secure=True)
    if bundle.accounts_data:
        try:
            atomic_write_bytes(paths.accounts_file, bundle.accounts_bytes, secure=True)
        except IOFailure:
            if previous_key:
                logger.error(f"Vault restore failed; putting back the key from {previous_key}")
                atomic_write_text(paths.key_file, _read_optional(previous_key), secure=True)
            elif bundle.key_data:
                os.remove(paths.key_file)
            raise
    if bundle.settings_data:
        atomic_write_text(paths.settings_file, bundle.settings_data)
    logger.info(f"Restored backup dated {bundle.backup_date or 'unknown'} into {paths.data_dir}")
