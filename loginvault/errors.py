"""
Exception types raised by the vault core.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class KeyCorrupt(VaultError):
    """The persisted key is unreadable or has the wrong length. The vault cannot be opened."""


class DecryptionFailure(VaultError):
    """An encrypted blob is truncated, badly padded, encrypted under another key or not text."""


class InvalidSecret(VaultError, ValueError):
    """A TOTP secret is empty or contains no usable Base32 characters."""


class IOFailure(VaultError):
    """Reading or writing a vault artifact failed."""


class BackupFormatError(VaultError):
    """A backup document does not match the expected schema."""
