"""
Time-based one-time passwords (RFC 6238) built on HOTP (RFC 4226).
"""

import time
import struct
import logging
from typing import Callable, Optional
from cryptography.hazmat.primitives import hashes, hmac, constant_time
from cryptography.hazmat.backends import default_backend

from . import config
from .errors import InvalidSecret

_BASE32_VALUES = {c: i for i, c in enumerate(config.BASE32_ALPHABET)}


class TotpGenerator:
    """Generates and verifies TOTP codes from Base32 secrets."""

    def __init__(self, clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            clock: Returns the current Unix time in seconds
            sleep: Used by generate_totp_with_timing to wait for a new window
            logger: Logger to report to; defaults to this module's logger
        """
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.backend = default_backend()

    @staticmethod
    def clean_secret(raw: Optional[str]) -> str:
        """
        Normalize a secret as typed or pasted by a user.

        The input is uppercased and every character outside the Base32
        alphabet is dropped, so separators, whitespace and the digits
        0, 1, 8 and 9 all disappear: "ab-cd_ef 12" becomes "ABCDEF2".
        """
        if not raw:
            return ""
        return "".join(c for c in raw.upper() if c in _BASE32_VALUES)

    @staticmethod
    def base32_decode(secret: str) -> bytes:
        """
        Decode an unpadded or padded Base32 string.

        Trailing bits that do not fill a whole byte are discarded.

        Raises:
            InvalidSecret: If a character is not in the Base32 alphabet
        """
        buffer = 0
        bits = 0
        out = bytearray()
        for c in secret.rstrip("="):
            value = _BASE32_VALUES.get(c)
            if value is None:
                raise InvalidSecret(f"Invalid Base32 character: {c!r}")
            buffer = (buffer << 5) | value
            bits += 5
            if bits >= 8:
                bits -= 8
                out.append((buffer >> bits) & 0xFF)
                buffer &= (1 << bits) - 1
        return bytes(out)

    def _secret_bytes(self, secret: str) -> bytes:
        cleaned = self.clean_secret(secret)
        if not cleaned:
            raise InvalidSecret("TOTP secret is empty or has no Base32 characters")
        key = self.base32_decode(cleaned)
        if not key:
            raise InvalidSecret("TOTP secret is too short to decode")
        return key

    def _hotp(self, key: bytes, counter: int, digits: int) -> str:
        h = hmac.HMAC(key, hashes.SHA1(), backend=self.backend)
        h.update(struct.pack('>Q', counter))
        digest = h.finalize()

        offset = digest[19] & 0x0F
        code = struct.unpack('>I', digest[offset:offset + 4])[0] & 0x7FFFFFFF
        return str(code % (10 ** digits)).zfill(digits)

    def _now(self) -> int:
        return int(self.clock())

    def generate_totp(self, secret: str, digits: int = config.TOTP_DIGITS,
                      period: int = config.TOTP_PERIOD,
                      timestamp: Optional[float] = None) -> str:
        """
        Generate the code for the window containing timestamp (default: now).

        Raises:
            InvalidSecret: If the secret has nothing usable after cleaning
        """
        key = self._secret_bytes(secret)
        if timestamp is None:
            timestamp = self._now()
        counter = int(timestamp) // period
        return self._hotp(key, counter, digits)

    def get_time_remaining(self, period: int = config.TOTP_PERIOD) -> int:
        """Seconds left in the current window, in [1, period]."""
        return period - (self._now() % period)

    def verify_totp(self, secret: str, input_code: str,
                    tolerance: int = config.TOTP_TOLERANCE,
                    digits: int = config.TOTP_DIGITS,
                    period: int = config.TOTP_PERIOD) -> bool:
        """
        Check a code against the windows around now.

        Codes from up to `tolerance` periods before or after the current
        window are accepted. An unusable secret, a bad period or any other
        failure while computing codes is reported as no match.
        """
        if period <= 0:
            self.logger.debug(f"TOTP verification with period {period} treated as mismatch")
            return False
        try:
            key = self._secret_bytes(secret)
            now = self._now()
            candidate = str(input_code).strip().encode('ascii')
            for step in range(-tolerance, tolerance + 1):
                counter = (now + step * period) // period
                if counter < 0:
                    continue
                expected = self._hotp(key, counter, digits).encode('ascii')
                if constant_time.bytes_eq(expected, candidate):
                    return True
        except (InvalidSecret, ValueError, TypeError, ArithmeticError, AttributeError, struct.error) as e:
            self.logger.debug(f"TOTP verification treated as mismatch: {e}")
        return False

    def generate_totp_with_timing(self, secret: str, digits: int = config.TOTP_DIGITS,
                                  period: int = config.TOTP_PERIOD,
                                  minimum_time_remaining: int = config.TOTP_MIN_TIME_REMAINING) -> str:
        """
        Generate a code that stays valid for at least a moment.

        If the current window is about to close, wait for the next one first.
        """
        remaining = self.get_time_remaining(period)
        if remaining <= minimum_time_remaining:
            self.logger.debug(f"Only {remaining}s left in TOTP window, waiting for the next one")
            self.sleep(remaining + config.TOTP_WAIT_MARGIN_SECONDS)
        return self.generate_totp(secret, digits=digits, period=period)
