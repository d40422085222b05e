"""
Unit tests for cryptography module (snapvault/utils/crypto.py).

Tests key derivation, AES-256-CBC encryption, checksums and CryptoManager.
"""

import json

import pytest

from snapvault.utils.crypto import (
    CryptoManager,
    CryptoError,
    derive_key,
    encrypt,
    decrypt,
    calculate_checksum,
    DEFAULT_SALT
)


SNAPSHOT_TEXT = json.dumps({
    'timestamp': '2024-01-15T12:00:00+00:00',
    'owner_scope': 'p1',
    'type': 'manual',
    'files': {'appointments': {'a': 1}, 'messages': {'b': 2}}
}, indent=2)


@pytest.fixture(scope='module')
def key():
    return derive_key('module_passphrase', DEFAULT_SALT)


class TestKeyDerivation:
    """Test derive_key()."""

    def test_derive_key_length(self, key):
        """Test that the derived key is 32 bytes (AES-256)."""
        assert isinstance(key, bytes)
        assert len(key) == 32

    def test_derive_key_is_deterministic(self, key):
        """Test same passphrase and salt produce the same key."""
        assert derive_key('module_passphrase', DEFAULT_SALT) == key

    def test_derive_key_differs_by_passphrase(self, key):
        assert derive_key('other_passphrase', DEFAULT_SALT) != key

    def test_derive_key_differs_by_salt(self, key):
        assert derive_key('module_passphrase', b'another_salt') != key

    def test_derive_key_empty_passphrase_raises_error(self):
        with pytest.raises(CryptoError):
            derive_key('', DEFAULT_SALT)


class TestEncryption:
    """Test encrypt() and decrypt()."""

    def test_encrypt_returns_hex(self, key):
        """Test ciphertext and IV are hex text, IV is 16 bytes."""
        ciphertext, iv = encrypt(SNAPSHOT_TEXT, key)

        assert isinstance(ciphertext, str)
        assert isinstance(iv, str)
        assert len(bytes.fromhex(iv)) == 16
        # CBC output is a whole number of 16-byte blocks
        assert len(bytes.fromhex(ciphertext)) % 16 == 0
        assert ciphertext != SNAPSHOT_TEXT

    def test_encrypt_decrypt_round_trip(self, key):
        """Test decrypt(encrypt(x)) reproduces x byte for byte."""
        test_cases = [
            SNAPSHOT_TEXT,
            "",
            "exactly_16_bytes",
            "unicode_テスト_文字",
            "long_" * 1000,
        ]

        for plaintext in test_cases:
            ciphertext, iv = encrypt(plaintext, key)
            assert decrypt(ciphertext, iv, key) == plaintext, f"Failed for: {plaintext[:20]}"

    def test_encrypt_uses_fresh_iv(self, key):
        """Test encrypting the same plaintext twice gives different output."""
        ciphertext1, iv1 = encrypt(SNAPSHOT_TEXT, key)
        ciphertext2, iv2 = encrypt(SNAPSHOT_TEXT, key)

        assert iv1 != iv2
        assert ciphertext1 != ciphertext2

    def test_decrypt_with_wrong_key_raises_error(self, key):
        """Test that decrypting with an altered key raises CryptoError."""
        ciphertext, iv = encrypt(SNAPSHOT_TEXT, key)
        altered_key = bytes([key[0] ^ 0x01]) + key[1:]

        with pytest.raises(CryptoError):
            decrypt(ciphertext, iv, altered_key)

    def test_decrypt_with_invalid_hex_raises_error(self, key):
        with pytest.raises(CryptoError):
            decrypt("this_is_not_hex", "00" * 16, key)

    def test_decrypt_with_bad_iv_length_raises_error(self, key):
        ciphertext, _ = encrypt(SNAPSHOT_TEXT, key)

        with pytest.raises(CryptoError, match="IV length"):
            decrypt(ciphertext, "00" * 8, key)

    def test_decrypt_with_truncated_ciphertext_raises_error(self, key):
        ciphertext, iv = encrypt(SNAPSHOT_TEXT, key)

        with pytest.raises(CryptoError):
            decrypt(ciphertext[:-6], iv, key)


class TestChecksum:
    """Test calculate_checksum()."""

    def test_checksum_is_sha256_hex(self):
        checksum = calculate_checksum("abc")

        assert checksum == 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'

    def test_checksum_is_stable(self):
        assert calculate_checksum(SNAPSHOT_TEXT) == calculate_checksum(SNAPSHOT_TEXT)

    def test_checksum_str_and_utf8_bytes_match(self):
        assert calculate_checksum("ключ") == calculate_checksum("ключ".encode('utf-8'))

    def test_checksum_changes_on_single_byte(self):
        """Test that flipping any single character changes the digest."""
        original = calculate_checksum(SNAPSHOT_TEXT)

        for index in (0, len(SNAPSHOT_TEXT) // 2, len(SNAPSHOT_TEXT) - 1):
            changed = SNAPSHOT_TEXT[:index] + chr(ord(SNAPSHOT_TEXT[index]) ^ 1) + SNAPSHOT_TEXT[index + 1:]
            assert calculate_checksum(changed) != original


class TestCryptoManager:
    """Test CryptoManager."""

    def test_manager_without_passphrase_is_not_initialized(self, crypto_manager_uninitialized):
        assert crypto_manager_uninitialized.is_initialized is False

    def test_manager_with_passphrase_is_initialized(self, crypto_manager_initialized):
        assert crypto_manager_initialized.is_initialized is True

    def test_encrypt_without_initialization_raises_error(self, crypto_manager_uninitialized):
        """Test that a manager without a key refuses to encrypt."""
        with pytest.raises(CryptoError, match="not initialized"):
            crypto_manager_uninitialized.encrypt("test_data")

    def test_decrypt_without_initialization_raises_error(self, crypto_manager_uninitialized):
        with pytest.raises(CryptoError, match="not initialized"):
            crypto_manager_uninitialized.decrypt("00" * 16, "00" * 16)

    def test_manager_round_trip(self, crypto_manager_initialized):
        ciphertext, iv = crypto_manager_initialized.encrypt(SNAPSHOT_TEXT)

        assert crypto_manager_initialized.decrypt(ciphertext, iv) == SNAPSHOT_TEXT

    def test_manager_matches_module_functions(self, crypto_manager_initialized):
        """Test manager key is derive_key(passphrase, default salt)."""
        key = derive_key('test_passphrase_123', DEFAULT_SALT)
        ciphertext, iv = crypto_manager_initialized.encrypt(SNAPSHOT_TEXT)

        assert decrypt(ciphertext, iv, key) == SNAPSHOT_TEXT

    def test_manager_accepts_string_salt(self):
        cm = CryptoManager('test_passphrase_123', salt=DEFAULT_SALT.decode('utf-8'))
        ciphertext, iv = encrypt(SNAPSHOT_TEXT, derive_key('test_passphrase_123', DEFAULT_SALT))

        assert cm.decrypt(ciphertext, iv) == SNAPSHOT_TEXT

    def test_managers_with_different_passphrases_cannot_share_data(self, crypto_manager_initialized):
        """Test per-tenant keys: another passphrase cannot decrypt."""
        other = CryptoManager('another_tenant_passphrase')
        ciphertext, iv = crypto_manager_initialized.encrypt(SNAPSHOT_TEXT)

        with pytest.raises(CryptoError):
            other.decrypt(ciphertext, iv)
