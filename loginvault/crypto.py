"""
Cryptographic operations for the account vault.

Blobs are framed as IV || ciphertext, AES-256-CBC with PKCS7 padding. The
format carries no authentication tag, so tampering is only noticed when it
happens to break the padding.
"""

import os
from typing import Optional
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.backends import default_backend

from . import config
from .errors import DecryptionFailure, KeyCorrupt


class CryptoManager:
    """Handles all cryptographic operations for the vault."""

    KEY_SIZE = config.KEY_SIZE
    IV_SIZE = config.IV_SIZE
    BLOCK_SIZE_BITS = config.BLOCK_SIZE_BITS

    def __init__(self):
        """Initialize the crypto manager."""
        self.backend = default_backend()

    def generate_iv(self) -> bytes:
        """Generate a fresh random initialization vector."""
        return os.urandom(self.IV_SIZE)

    def _check_key(self, key: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != self.KEY_SIZE:
            raise KeyCorrupt(f"Encryption key must be {self.KEY_SIZE} bytes")

    def _cipher(self, key: bytes, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(bytes(key)), modes.CBC(iv), backend=self.backend)

    def encrypt(self, plaintext: bytes, key: bytes, iv: Optional[bytes] = None) -> bytes:
        """
        Encrypt data using AES-256-CBC.

        Args:
            plaintext: Data to encrypt
            key: 32-byte encryption key
            iv: Only for tests; a fresh random IV is used when omitted

        Returns:
            IV followed by the ciphertext
        """
        self._check_key(key)
        if iv is None:
            iv = self.generate_iv()

        padder = padding.PKCS7(self.BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()

        encryptor = self._cipher(key, iv).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return iv + ciphertext

    def decrypt(self, blob: bytes, key: bytes) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            DecryptionFailure: If the blob is truncated, not block aligned, or
                the padding is invalid (usually a wrong key or corruption)
            KeyCorrupt: If the key has the wrong length
        """
        self._check_key(key)
        if len(blob) < self.IV_SIZE:
            raise DecryptionFailure(
                f"Encrypted data is {len(blob)} bytes, shorter than the {self.IV_SIZE}-byte IV"
            )

        iv, ciphertext = blob[:self.IV_SIZE], blob[self.IV_SIZE:]
        block_bytes = self.BLOCK_SIZE_BITS // 8
        if not ciphertext or len(ciphertext) % block_bytes:
            raise DecryptionFailure(
                f"Ciphertext length {len(ciphertext)} is not a positive multiple of {block_bytes}"
            )

        try:
            decryptor = self._cipher(key, iv).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(self.BLOCK_SIZE_BITS).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionFailure(f"Decryption failed: {e}") from e

    def decrypt_text(self, blob: bytes, key: bytes) -> str:
        """Decrypt a blob and decode it as UTF-8."""
        plaintext = self.decrypt(blob, key)
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptionFailure("Decrypted data is not valid UTF-8") from e

    def clear_bytes(self, data: bytearray) -> None:
        """Attempt to clear sensitive bytes from memory."""
        if isinstance(data, bytearray):
            for i in range(len(data)):
                data[i] = 0
