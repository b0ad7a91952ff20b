"""
Lifecycle of the vault encryption key.

The key is 32 random bytes stored as Base64 text next to the vault. It is
created once, on first access, and must never be replaced while a vault
encrypted under it exists.
"""

import os
import base64
import binascii
import logging
import tempfile
import threading
from typing import Optional

from . import config
from .errors import IOFailure, KeyCorrupt
from .utils import set_owner_only_permissions


class KeyManager:
    """Loads the persisted key, creating it on first use."""

    KEY_SIZE = config.KEY_SIZE

    def __init__(self, key_path: str, vault_path: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            key_path: Path of the Base64 key artifact
            vault_path: Vault encrypted under this key, only used to warn when
                a key has to be created for an existing vault
            logger: Logger to report to; defaults to this module's logger
        """
        self.key_path = key_path
        self.vault_path = vault_path
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._key: Optional[bytes] = None

    def get_or_create_key(self) -> bytes:
        """
        Return the active key.

        Raises:
            KeyCorrupt: If the key artifact exists but is not Base64 of 32 bytes
            IOFailure: If the artifact cannot be read or created
        """
        with self._lock:
            if self._key is None:
                if os.path.exists(self.key_path):
                    self._key = self._read_key()
                else:
                    self._key = self._create_key()
            return self._key

    def reset(self) -> None:
        """Forget the cached key so the next call re-reads the artifact."""
        with self._lock:
            self._key = None

    def _read_key(self) -> bytes:
        try:
            with open(self.key_path, 'r', encoding='utf-8') as f:
                text = f.read().strip()
        except UnicodeDecodeError as e:
            raise KeyCorrupt(f"Key file {self.key_path} is not text") from e
        except OSError as e:
            raise IOFailure(f"Could not read key file {self.key_path}: {e}") from e

        return self.decode_key(text, source=self.key_path)

    @classmethod
    def decode_key(cls, text: str, source: str = "key") -> bytes:
        """Decode Base64 key text, checking the length."""
        try:
            key = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise KeyCorrupt(f"{source} is not valid Base64") from e
        if len(key) != cls.KEY_SIZE:
            raise KeyCorrupt(f"{source} holds {len(key)} bytes, expected {cls.KEY_SIZE}")
        return key

    def _create_key(self) -> bytes:
        if self.vault_path and os.path.exists(self.vault_path):
            self.logger.warning(
                f"No key found at {self.key_path} but vault {self.vault_path} exists; "
                "the existing vault will not be readable with a new key."
            )

        key = os.urandom(self.KEY_SIZE)
        encoded = base64.b64encode(key)

        directory = os.path.dirname(self.key_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=directory or None,
                prefix=os.path.basename(self.key_path) + ".",
                suffix=config.TEMP_SUFFIX,
            )
        except OSError as e:
            raise IOFailure(f"Could not create key file {self.key_path}: {e}") from e

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(encoded)
                f.flush()
                os.fsync(f.fileno())
            set_owner_only_permissions(temp_path)
            # The link only succeeds if no key exists, and it publishes a complete file.
            os.link(temp_path, self.key_path)
        except FileExistsError:
            self.logger.info(f"Key file {self.key_path} appeared concurrently, using it.")
            return self._read_key()
        except OSError as e:
            self.logger.error(f"Error writing key file {self.key_path}: {e}", exc_info=True)
            raise IOFailure(f"Could not write key file {self.key_path}: {e}") from e
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

        self.logger.info(f"Created new encryption key at {self.key_path}")
        return key
