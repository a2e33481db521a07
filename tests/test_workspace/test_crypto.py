"""Tests for AES-256-GCM credential encryption."""

from __future__ import annotations

import base64

import pytest

from conductor.exceptions import EmptyInputError, InvalidCiphertextError, InvalidKeyError
from conductor.workspace.crypto import (
    KEY_SIZE,
    NONCE_SIZE,
    Encryptor,
    decode_key,
    generate_key,
)


class TestGenerateKey:
    """Tests for master key generation."""

    def test_key_is_32_bytes(self) -> None:
        """Test that generated keys have the AES-256 key size."""
        assert len(generate_key()) == KEY_SIZE

    def test_keys_are_random(self) -> None:
        """Test that two generated keys differ."""
        assert generate_key() != generate_key()


class TestDecodeKey:
    """Tests for decoding base64 master keys."""

    def test_valid_key(self) -> None:
        """Test decoding a base64 key of 32 bytes."""
        key = bytes(range(32))
        assert decode_key(base64.b64encode(key).decode()) == key

    def test_surrounding_whitespace_ignored(self) -> None:
        """Test that a trailing newline from a shell export is tolerated."""
        key = bytes(32)
        assert decode_key(base64.b64encode(key).decode() + "\n") == key

    def test_wrong_length_rejected(self) -> None:
        """Test that a 16-byte key is rejected."""
        with pytest.raises(InvalidKeyError) as exc_info:
            decode_key(base64.b64encode(bytes(16)).decode())
        assert "expected 32 bytes, got 16" in str(exc_info.value)

    def test_not_base64_rejected(self) -> None:
        """Test that non-base64 text is rejected."""
        with pytest.raises(InvalidKeyError) as exc_info:
            decode_key("not*base64!", source="CONDUCTOR_MASTER_KEY")
        assert "CONDUCTOR_MASTER_KEY" in str(exc_info.value)


class TestEncryptor:
    """Tests for the Encryptor class."""

    def test_round_trip(self, encryptor: Encryptor) -> None:
        """Test that decrypt reverses encrypt."""
        assert encryptor.decrypt(encryptor.encrypt(b"ghp_secret")) == b"ghp_secret"

    def test_ciphertext_layout(self, encryptor: Encryptor) -> None:
        """Test that ciphertext is nonce + plaintext-length body + 16-byte tag."""
        ciphertext = encryptor.encrypt(b"abc")
        assert len(ciphertext) == NONCE_SIZE + 3 + 16

    def test_fresh_nonce_per_call(self, encryptor: Encryptor) -> None:
        """Test that encrypting the same plaintext twice differs."""
        first = encryptor.encrypt(b"same")
        second = encryptor.encrypt(b"same")
        assert first != second
        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]

    def test_empty_plaintext_rejected(self, encryptor: Encryptor) -> None:
        """Test that encrypting nothing raises EmptyInputError."""
        with pytest.raises(EmptyInputError):
            encryptor.encrypt(b"")

    @pytest.mark.parametrize("length", [0, 1, NONCE_SIZE - 1])
    def test_short_ciphertext_rejected(self, encryptor: Encryptor, length: int) -> None:
        """Test that input shorter than a nonce is invalid."""
        with pytest.raises(InvalidCiphertextError):
            encryptor.decrypt(b"x" * length)

    def test_wrong_key_rejected(self, encryptor: Encryptor) -> None:
        """Test that ciphertext from another key does not decrypt."""
        ciphertext = Encryptor(generate_key()).encrypt(b"secret")
        with pytest.raises(InvalidCiphertextError):
            encryptor.decrypt(ciphertext)

    def test_tampering_detected(self, encryptor: Encryptor) -> None:
        """Test that flipping one bit in ciphertext is detected."""
        ciphertext = bytearray(encryptor.encrypt(b"secret"))
        ciphertext[-1] ^= 0x01
        with pytest.raises(InvalidCiphertextError):
            encryptor.decrypt(bytes(ciphertext))

    @pytest.mark.parametrize("length", [16, 31, 33, 0])
    def test_bad_key_length(self, length: int) -> None:
        """Test that only 32-byte keys are accepted."""
        with pytest.raises(InvalidKeyError):
            Encryptor(bytes(length))


class TestStringHelpers:
    """Tests for the base64 string wrappers."""

    def test_empty_string_maps_to_empty(self, encryptor: Encryptor) -> None:
        """Test that empty strings bypass encryption in both directions."""
        assert encryptor.encrypt_string("") == ""
        assert encryptor.decrypt_string("") == ""

    def test_string_round_trip(self, encryptor: Encryptor) -> None:
        """Test a unicode string survives encryption."""
        encoded = encryptor.encrypt_string("pässwörd")
        base64.b64decode(encoded, validate=True)
        assert encryptor.decrypt_string(encoded) == "pässwörd"

    def test_invalid_base64_rejected(self, encryptor: Encryptor) -> None:
        """Test that non-base64 ciphertext is an InvalidCiphertextError."""
        with pytest.raises(InvalidCiphertextError):
            encryptor.decrypt_string("%%%")
