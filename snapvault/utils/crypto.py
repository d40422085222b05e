"""
Encryption utilities for backup artifacts.

Key derivation (scrypt), AES-256-CBC encryption with a fresh random IV per
call, and SHA-256 checksums. The module-level functions are stateless;
CryptoManager binds a derived key to one explicitly supplied passphrase.
"""

import os
import hashlib
import binascii
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


DEFAULT_SALT = b'snapvault_backup_salt_v1'  # Version tagged for future rotation

KEY_LENGTH = 32
IV_LENGTH = 16

# scrypt cost parameters
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


class CryptoError(Exception):
    """Raised when key derivation, encryption or decryption fails."""
    pass


class IntegrityError(Exception):
    """Raised when restored plaintext does not match its recorded checksum."""
    pass


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """
    Derive a 256-bit key from a passphrase using scrypt.

    Args:
        passphrase: Long-lived secret (e.g. from BACKUP_ENCRYPTION_KEY)
        salt: Fixed salt

    Returns:
        32-byte key

    Raises:
        CryptoError: If the passphrase is empty or derivation fails
    """
    if not passphrase:
        raise CryptoError("Encryption passphrase must not be empty")

    try:
        kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
        return kdf.derive(passphrase.encode('utf-8'))
    except Exception as e:
        raise CryptoError(f"Key derivation failed: {e}")


def encrypt(plaintext: str, key: bytes) -> Tuple[str, str]:
    """
    Encrypt a string with AES-256-CBC.

    Args:
        plaintext: Text to encrypt
        key: 32-byte key from derive_key()

    Returns:
        Tuple of (hex ciphertext, hex IV)

    Raises:
        CryptoError: If encryption fails
    """
    iv = os.urandom(IV_LENGTH)

    try:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode('utf-8')) + padder.finalize()

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
    except Exception as e:
        raise CryptoError(f"Encryption failed: {e}")

    return ciphertext.hex(), iv.hex()


def decrypt(ciphertext_hex: str, iv_hex: str, key: bytes) -> str:
    """
    Decrypt hex ciphertext produced by encrypt().

    Args:
        ciphertext_hex: Hex-encoded ciphertext
        iv_hex: Hex-encoded 16-byte IV
        key: 32-byte key from derive_key()

    Returns:
        Decrypted plaintext string

    Raises:
        CryptoError: On malformed input, bad padding or a wrong key
    """
    try:
        ciphertext = bytes.fromhex(ciphertext_hex)
        iv = bytes.fromhex(iv_hex)
    except (TypeError, ValueError, binascii.Error) as e:
        raise CryptoError(f"Malformed ciphertext or IV: {e}")

    if len(iv) != IV_LENGTH:
        raise CryptoError(f"Invalid IV length: {len(iv)}")

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode('utf-8')
    except Exception as e:
        raise CryptoError(f"Decryption failed: {e}")


def calculate_checksum(data: Union[str, bytes]) -> str:
    """SHA-256 hex digest over the exact bytes (str is UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


class CryptoManager:
    """
    Handles encryption and decryption of backup artifacts.

    The key is derived once from the passphrase passed in. A manager built
    without a passphrase stays uninitialized and refuses every operation,
    so a missing secret never falls back to a known default.
    """

    def __init__(self, passphrase: Optional[str] = None, salt: Union[str, bytes] = DEFAULT_SALT):
        """
        Args:
            passphrase: Secret to derive the key from (None = uninitialized)
            salt: Fixed salt shared by every artifact written with this key
        """
        if isinstance(salt, str):
            salt = salt.encode('utf-8')

        self._salt = salt
        self._key = derive_key(passphrase, salt) if passphrase else None

    def encrypt(self, plaintext: str) -> Tuple[str, str]:
        """
        Encrypt a string.

        Returns:
            Tuple of (hex ciphertext, hex IV)

        Raises:
            CryptoError: If not initialized or encryption fails
        """
        if not self._key:
            raise CryptoError("CryptoManager not initialized. Set BACKUP_ENCRYPTION_KEY.")

        return encrypt(plaintext, self._key)

    def decrypt(self, ciphertext_hex: str, iv_hex: str) -> str:
        """
        Decrypt a string.

        Raises:
            CryptoError: If not initialized or decryption fails
        """
        if not self._key:
            raise CryptoError("CryptoManager not initialized. Set BACKUP_ENCRYPTION_KEY.")

        return decrypt(ciphertext_hex, iv_hex, self._key)

    @property
    def is_initialized(self) -> bool:
        """Check if a key has been derived."""
        return self._key is not None
