"""
LoginVault
Local encrypted vault for game-account credentials with TOTP code generation.

Account data is encrypted with a random key kept on this device only. Use it
only for accounts you own.
"""

from .config import APP_VERSION as __version__
from .crypto import CryptoManager
from .errors import BackupFormatError, DecryptionFailure, InvalidSecret, IOFailure, KeyCorrupt, VaultError
from .keys import KeyManager
from .paths import VaultPaths
from .settings import AppSettings, SettingsStore
from .storage import Account, AccountStore
from .totp import TotpGenerator
from .vault_manager import VaultManager
