"""
Encrypted storage of game accounts.

The whole account list is serialized to JSON, encrypted under the key from
KeyManager and rewritten after every change. There is no append log: a save
either leaves the previous file in place or fully replaces it.
"""

import os
import re
import json
import uuid
import shutil
import logging
import datetime
import threading
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional

from . import config
from .crypto import CryptoManager
from .errors import DecryptionFailure, IOFailure
from .keys import KeyManager
from .utils import atomic_write_bytes

NEVER_USED = datetime.datetime.min

_FRACTION = re.compile(r"\.(\d+)")


def parse_datetime(value: Any) -> datetime.datetime:
    """
    Parse an ISO-8601 timestamp as written by this package or by older
    .NET builds (up to 7 fractional digits, optional offset).

    Aware values are converted to naive local time. Empty values map to
    NEVER_USED.
    """
    if isinstance(value, datetime.datetime):
        return value
    if not value:
        return NEVER_USED
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        if parsed.year <= 1:
            return NEVER_USED
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_datetime(value: datetime.datetime) -> str:
    return value.isoformat()


@dataclass
class Account:
    """A single game account."""
    name: str = ""
    username: str = ""
    password: str = ""
    otp_secret: str = ""
    group: str = config.DEFAULT_GROUP
    server: int = config.DEFAULT_SERVER
    character: int = config.DEFAULT_CHARACTER
    last_character: int = config.DEFAULT_CHARACTER
    auto_select_server: bool = False
    auto_select_character: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    last_used: datetime.datetime = NEVER_USED
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # Persisted names, kept compatible with existing vault files.
    JSON_FIELDS = (
        ("id", "Id"),
        ("name", "Name"),
        ("username", "Username"),
        ("password", "Password"),
        ("otp_secret", "OtpSecret"),
        ("group", "Group"),
        ("server", "Server"),
        ("character", "Character"),
        ("last_character", "LastCharacter"),
        ("auto_select_server", "AutoSelectServer"),
        ("auto_select_character", "AutoSelectCharacter"),
        ("created_at", "CreatedAt"),
        ("last_used", "LastUsed"),
    )
    IMMUTABLE_FIELDS = ("id", "created_at")

    def __post_init__(self):
        if not self.group:
            self.group = config.DEFAULT_GROUP

    @property
    def has_been_used(self) -> bool:
        return self.last_used > NEVER_USED

    def copy(self) -> 'Account':
        clone = Account(**{f.name: getattr(self, f.name) for f in fields(self)})
        clone.extra = dict(self.extra)
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = dict(self.extra)
        for attr, key in self.JSON_FIELDS:
            value = getattr(self, attr)
            if isinstance(value, datetime.datetime):
                value = format_datetime(value)
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create from dictionary. Unknown keys are kept in `extra`."""
        if not isinstance(data, dict):
            raise ValueError(f"Account record must be an object, got {type(data).__name__}")

        known = {key for _, key in cls.JSON_FIELDS}
        account = cls(
            name=data.get("Name") or "",
            username=data.get("Username") or "",
            password=data.get("Password") or "",
            otp_secret=data.get("OtpSecret") or "",
            group=data.get("Group") or config.DEFAULT_GROUP,
            server=int(data.get("Server", config.DEFAULT_SERVER)),
            character=int(data.get("Character", config.DEFAULT_CHARACTER)),
            last_character=int(data.get("LastCharacter", config.DEFAULT_CHARACTER)),
            auto_select_server=bool(data.get("AutoSelectServer", False)),
            auto_select_character=bool(data.get("AutoSelectCharacter", False)),
            created_at=parse_datetime(data.get("CreatedAt")),
            last_used=parse_datetime(data.get("LastUsed")),
            extra={k: v for k, v in data.items() if k not in known},
        )
        if data.get("Id"):
            account.id = str(data["Id"])
        return account


class AccountStore:
    """Manages the encrypted account file."""

    def __init__(self, filepath: str, key_manager: KeyManager,
                 crypto: Optional[CryptoManager] = None,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the account store.
        Args:
            filepath: Path to the encrypted account file
            key_manager: Source of the encryption key
            crypto: Cipher implementation
            clock: Returns the current local time
            logger: Logger to report to; defaults to this module's logger
        """
        self.filepath = filepath
        self.key_manager = key_manager
        self.crypto = crypto or CryptoManager()
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._accounts: List[Account] = []
        self.last_load_error: Optional[Exception] = None

    @property
    def is_degraded(self) -> bool:
        """True when the last load found a vault file it could not read."""
        return self.last_load_error is not None

    def load(self) -> List[Account]:
        """
        Load accounts from disk.

        A missing file is a first run and yields an empty list. A file that
        cannot be read, decrypted or parsed is logged and also yields an
        empty list; `is_degraded` then reports the failure. A corrupt key
        is not recovered from and propagates as KeyCorrupt.
        """
        with self._lock:
            self.last_load_error = None
            if not os.path.exists(self.filepath):
                self._accounts = []
                return []

            key = self.key_manager.get_or_create_key()
            plaintext = bytearray()
            try:
                with open(self.filepath, 'rb') as f:
                    blob = f.read()
                plaintext = bytearray(self.crypto.decrypt(blob, key))
                records = json.loads(plaintext.decode('utf-8'))
                if records is None:
                    records = []
                if not isinstance(records, list):
                    raise ValueError("Vault content is not a list of accounts")
                self._accounts = self._dedupe([Account.from_dict(r) for r in records])
            except (OSError, DecryptionFailure, ValueError, TypeError) as e:
                self.logger.error(f"Could not read vault {self.filepath}: {e}", exc_info=True)
                self.last_load_error = e
                self._accounts = []
            finally:
                self.crypto.clear_bytes(plaintext)

            return [a.copy() for a in self._accounts]

    def _dedupe(self, accounts: List[Account]) -> List[Account]:
        seen = set()
        result = []
        for account in accounts:
            if account.id in seen:
                self.logger.warning(f"Dropping duplicate account id {account.id} ({account.name})")
                continue
            seen.add(account.id)
            result.append(account)
        return result

    def save(self, accounts: List[Account]) -> None:
        """Replace the whole collection and write it to disk."""
        ids = [a.id for a in accounts]
        if len(ids) != len(set(ids)):
            raise ValueError("Account ids must be unique")
        with self._lock:
            previous = self._accounts
            self._accounts = [a.copy() for a in accounts]
            self._commit(previous)

    def get_accounts(self) -> List[Account]:
        """Get copies of all accounts."""
        with self._lock:
            return [a.copy() for a in self._accounts]

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._find(account_id)
            return account.copy() if account else None

    def upsert(self, account: Account) -> Account:
        """
        Insert a new account, or update the one with the same id.

        On update every field except id and created_at is replaced.
        Returns a copy of the stored account.
        """
        with self._lock:
            previous = [a.copy() for a in self._accounts]
            existing = self._find(account.id)
            if existing is not None:
                for f in fields(Account):
                    if f.name not in Account.IMMUTABLE_FIELDS:
                        setattr(existing, f.name, getattr(account, f.name))
                existing.extra = dict(account.extra)
                stored = existing
            else:
                stored = account.copy()
                self._accounts.append(stored)
            self._commit(previous)
            return stored.copy()

    def add_all(self, accounts: List[Account]) -> None:
        """Append new accounts in a single save."""
        with self._lock:
            existing = {a.id for a in self._accounts}
            for account in accounts:
                if account.id in existing:
                    raise ValueError(f"Account id {account.id} already exists")
                existing.add(account.id)
            previous = self._accounts
            self._accounts = previous + [a.copy() for a in accounts]
            self._commit(previous)

    def delete(self, account_id: str) -> bool:
        """Delete an account. Returns False, without saving, if it is not present."""
        with self._lock:
            remaining = [a for a in self._accounts if a.id != account_id]
            if len(remaining) == len(self._accounts):
                return False
            previous = self._accounts
            self._accounts = remaining
            self._commit(previous)
            return True

    def touch_last_used(self, account_id: str) -> bool:
        """Record that an account was just used."""
        with self._lock:
            account = self._find(account_id)
            if account is None:
                return False
            previous = [a.copy() for a in self._accounts]
            account.last_used = self.clock()
            self._commit(previous)
            return True

    def _find(self, account_id: str) -> Optional[Account]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def _commit(self, previous: List[Account]) -> None:
        """Save, restoring the previous in-memory state if the save fails."""
        try:
            self._save()
        except Exception:
            self._accounts = previous
            raise

    def _preserve_unreadable(self) -> None:
        stamp = self.clock().strftime("%Y%m%d_%H%M%S")
        target = f"{self.filepath}{config.UNREADABLE_SUFFIX}-{stamp}"
        try:
            shutil.copy2(self.filepath, target)
        except OSError as e:
            raise IOFailure(f"Could not preserve unreadable vault {self.filepath}: {e}") from e
        self.logger.warning(f"Vault {self.filepath} could not be read earlier; kept a copy at {target}")

    def _save(self) -> None:
        """Save accounts to the encrypted file. Caller holds the lock."""
        if self.is_degraded and os.path.exists(self.filepath):
            self._preserve_unreadable()

        key = self.key_manager.get_or_create_key()
        plaintext = json.dumps(
            [a.to_dict() for a in self._accounts], indent=2, ensure_ascii=False
        ).encode('utf-8')
        blob = self.crypto.encrypt(plaintext, key)

        atomic_write_bytes(self.filepath, blob, secure=True)
        self.last_load_error = None
        self.logger.debug(f"Saved {len(self._accounts)} accounts to {self.filepath}")
