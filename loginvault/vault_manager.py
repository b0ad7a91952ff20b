"""
Entry point for UI and automation code.

VaultManager wires the key, account and settings stores together and exposes
the small set of calls the rest of the application needs.
"""

import logging
from typing import Callable, List, Optional, Tuple

from .backup import read_backup, restore_backup, write_backup, BackupBundle
from .batch_import import BatchResult, parse_batch
from .crypto import CryptoManager
from .keys import KeyManager
from .paths import VaultPaths
from .settings import AppSettings, SettingsStore
from .storage import Account, AccountStore
from .totp import TotpGenerator

Listener = Callable[[Tuple[Account, ...]], None]


class VaultManager:
    """Facade over KeyManager, AccountStore, SettingsStore and TotpGenerator."""

    def __init__(self, paths: Optional[VaultPaths] = None,
                 totp: Optional[TotpGenerator] = None,
                 logger: Optional[logging.Logger] = None,
                 **store_options):
        """
        Args:
            paths: Artifact locations; defaults to the user data directory
            totp: Code generator; one with the system clock is created if omitted
            logger: Logger passed down to every component
            store_options: Extra keyword arguments for AccountStore (e.g. clock)
        """
        self.paths = paths or VaultPaths.default()
        self.paths.ensure_data_dir()
        self.logger = logger or logging.getLogger(__name__)
        self.key_manager = KeyManager(self.paths.key_file, vault_path=self.paths.accounts_file,
                                      logger=self.logger)
        self.store = AccountStore(self.paths.accounts_file, self.key_manager,
                                  crypto=CryptoManager(), logger=self.logger, **store_options)
        self.settings_store = SettingsStore(self.paths.settings_file, logger=self.logger)
        self.totp = totp or TotpGenerator(logger=self.logger)
        self._listeners: List[Listener] = []
        self._settings: Optional[AppSettings] = None
        self.store.load()

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with a snapshot after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        snapshot = tuple(self.store.get_accounts())
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Account listener failed")

    # Accounts

    @property
    def is_degraded(self) -> bool:
        """True when the vault file exists but could not be read."""
        return self.store.is_degraded

    def accounts(self) -> List[Account]:
        return self.store.get_accounts()

    def get(self, account_id: str) -> Optional[Account]:
        return self.store.get(account_id)

    def find(self, name_or_id: str) -> Optional[Account]:
        """Look an account up by id, then by exact name."""
        account = self.store.get(name_or_id)
        if account is not None:
            return account
        for account in self.store.get_accounts():
            if account.name == name_or_id:
                return account
        return None

    def upsert(self, account: Account) -> Account:
        stored = self.store.upsert(account)
        self._notify()
        return stored

    def delete(self, account_id: str) -> bool:
        deleted = self.store.delete(account_id)
        if deleted:
            self._notify()
        return deleted

    def touch_last_used(self, account_id: str) -> bool:
        touched = self.store.touch_last_used(account_id)
        if touched:
            self._notify()
        return touched

    def import_batch(self, text: str, default_group: Optional[str] = None) -> BatchResult:
        """Parse a pasted account list and store every valid line."""
        kwargs = {"default_group": default_group} if default_group else {}
        result = parse_batch(text, totp=self.totp, **kwargs)
        if result.accounts:
            self.store.add_all(result.accounts)
            self._notify()
        return result

    # Codes

    def current_totp(self, account: Account, wait_if_expiring: bool = False) -> str:
        """
        Current code for an account.

        Raises:
            InvalidSecret: If the account's secret is unusable
        """
        if wait_if_expiring:
            return self.totp.generate_totp_with_timing(account.otp_secret)
        return self.totp.generate_totp(account.otp_secret)

    def time_remaining(self) -> int:
        return self.totp.get_time_remaining()

    # Settings

    def settings(self) -> AppSettings:
        if self._settings is None:
            self._settings = self.settings_store.load()
        return self._settings

    def save_settings(self, settings: AppSettings) -> None:
        self.settings_store.save(settings)
        self._settings = settings

    # Backup

    def backup(self, destination: str) -> BackupBundle:
        return write_backup(self.paths, destination)

    def restore(self, source: str) -> List[Account]:
        """Restore a backup file and reload everything from it."""
        bundle = read_backup(source)
        restore_backup(bundle, self.paths)
        return self.reload()

    def reload(self) -> List[Account]:
        self.key_manager.reset()
        self._settings = None
        accounts = self.store.load()
        self._notify()
        return accounts
