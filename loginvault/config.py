"""
Configuration constants for the LoginVault application.
"""

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "LoginVault"  # Use: Full name of the application. Type: str. Range: Any valid string.
APP_DESCRIPTION = "Encrypted game-account vault with TOTP codes"  # Use: One-line description shown by the command-line help. Type: str. Range: Any valid string.

# Security Settings
KEY_SIZE = 32  # Use: Size of the vault encryption key in bytes. Corresponds to AES-256. Type: int. Range: 32 bytes (256 bits).
IV_SIZE = 16  # Use: Size of the CBC initialization vector in bytes, prepended to every encrypted blob. Type: int. Range: 16 bytes (the AES block size).
BLOCK_SIZE_BITS = 128  # Use: AES block size in bits, used for PKCS7 padding. Type: int. Range: 128.

# TOTP Settings
TOTP_DIGITS = 6  # Use: Default number of digits in a generated code. Type: int. Range: 6 to 8.
TOTP_PERIOD = 30  # Use: Default TOTP time step in seconds. Type: int. Range: Positive integer, 30 is the RFC 6238 default.
TOTP_TOLERANCE = 1  # Use: Number of periods accepted on each side of "now" when verifying a code. Type: int. Range: 0 to 2.
TOTP_MIN_TIME_REMAINING = 2  # Use: If fewer seconds than this remain in the current window, timed generation waits for the next window. Type: int. Range: 0 to TOTP_PERIOD - 1.
TOTP_WAIT_MARGIN_SECONDS = 0.1  # Use: Extra time slept past a window boundary to be sure the new window has started. Type: float. Range: Small positive number.
BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"  # Use: RFC 4648 Base32 alphabet used for TOTP secrets. Type: str. Range: Fixed.

# Account Settings
DEFAULT_GROUP = "default"  # Use: Group label assigned to accounts without one. Type: str. Range: Any non-empty string.
DEFAULT_SERVER = 1  # Use: Server slot given to new accounts. Type: int. Range: SERVER_MIN to SERVER_MAX.
DEFAULT_CHARACTER = 1  # Use: Character slot given to new accounts. Type: int. Range: CHARACTER_MIN to CHARACTER_MAX.
SERVER_MIN = 0  # Use: Lowest valid server slot (0 means "game default position"). Type: int. Range: 0.
SERVER_MAX = 4  # Use: Highest valid server slot. Type: int. Range: Positive integer.
CHARACTER_MIN = 0  # Use: Lowest valid character slot (0 means "game default position"). Type: int. Range: 0.
CHARACTER_MAX = 15  # Use: Highest valid character slot. Type: int. Range: Positive integer.

# Batch Import Settings
BATCH_FIELD_SEPARATOR = "|"  # Use: Separator between fields of one batch import line. Type: str. Range: Single character.
BATCH_MIN_FIELDS = 4  # Use: Minimum fields per batch line (name, username, password, secret). Type: int. Range: 4.
BATCH_MAX_FIELDS = 9  # Use: Maximum fields per batch line. Type: int. Range: 9.

# Settings Defaults
DEFAULT_HOTKEY = "Home"  # Use: Default global hotkey name. Type: str. Range: Any key name understood by the UI layer.
DEFAULT_GAME_PATH = r"C:\Gravity\RagnarokZero\Ragexe.exe"  # Use: Default game executable path. Type: str. Range: Valid file path.
DEFAULT_GAME_ARGUMENTS = "1rag1"  # Use: Default game startup arguments. Type: str. Range: Any string.
DEFAULT_GAME_TITLES = ["Ragnarok", "Ragnarok : Zero"]  # Use: Window titles used when none are configured. Type: list[str]. Range: Non-empty list.

# File and Directory Names
CONFIG_DIR_NAME = ".loginvault"  # Use: Name of the hidden directory within the user's home directory where the vault files live. Type: str. Range: Any valid directory name.
DATA_DIR_ENV_VAR = "LOGINVAULT_HOME"  # Use: Environment variable that overrides the data directory. Type: str. Range: Any valid variable name.
KEY_FILE = "key.dat"  # Use: Filename of the Base64 encryption key artifact. Type: str. Range: Any valid filename.
ACCOUNTS_FILE = "accounts.dat"  # Use: Filename of the encrypted account vault. Type: str. Range: Any valid filename.
SETTINGS_FILE = "settings.json"  # Use: Filename of the plain JSON settings. Type: str. Range: Any valid filename.
LOG_DIR_NAME = "Logs"  # Use: Sub-directory holding rotated log files. Type: str. Range: Any valid directory name.
LOG_FILE = "loginvault.log"  # Use: Base filename of the log file. Type: str. Range: Any valid filename.
LOG_BACKUP_COUNT = 7  # Use: Number of daily log files kept. Type: int. Range: Positive integer.
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"  # Use: Format of log records. Type: str. Range: Valid logging format string.
TEMP_SUFFIX = ".tmp"  # Use: Suffix of the temporary file written before an atomic replace. Type: str. Range: Any valid suffix.
UNREADABLE_SUFFIX = ".unreadable"  # Use: Suffix used when setting aside a vault that could not be decrypted. Type: str. Range: Any valid suffix.
PRE_RESTORE_SUFFIX = ".pre-restore"  # Use: Suffix of the copy of the current key kept before a restore replaces it. Type: str. Range: Any valid suffix.

# Backup Settings
BACKUP_FILE_EXTENSION = ".backup"  # Use: Extension of backup bundle files. Type: str. Range: Any valid extension.
BACKUP_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"  # Use: Format of the BackupDate field. Type: str. Range: Valid strftime format.
