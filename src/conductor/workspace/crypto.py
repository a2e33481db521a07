# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""AES-256-GCM encryption for integration credentials.

Ciphertexts are laid out as ``nonce || ciphertext || tag`` with a fresh
12-byte nonce per call, so two encryptions of the same plaintext never
produce the same bytes.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from conductor.exceptions import EmptyInputError, InvalidCiphertextError, InvalidKeyError

KEY_SIZE = 32
NONCE_SIZE = 12


def generate_key() -> bytes:
    """Return 32 cryptographically random bytes suitable as a master key."""
    return os.urandom(KEY_SIZE)


def decode_key(encoded: str, source: str = "master key") -> bytes:
    """Decode a base64 master key and check its length.

    Args:
        encoded: Standard base64 text.
        source: Where the key came from, used in error messages.

    Raises:
        InvalidKeyError: If the text is not base64 or does not decode to 32 bytes.
    """
    try:
        key = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError(f"Failed to decode {source}: {e}") from e
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(
            f"Invalid {source} length: expected {KEY_SIZE} bytes, got {len(key)}"
        )
    return key


class Encryptor:
    """Encrypts and decrypts credential payloads with a fixed key.

    Example:
        >>> enc = Encryptor(generate_key())
        >>> enc.decrypt(enc.encrypt(b"ghp_secret"))
        b'ghp_secret'
    """

    def __init__(self, key: bytes) -> None:
        """Initialize the encryptor.

        Raises:
            InvalidKeyError: If the key is not exactly 32 bytes.
        """
        if len(key) != KEY_SIZE:
            raise InvalidKeyError(
                f"Invalid key length: expected {KEY_SIZE} bytes, got {len(key)}"
            )
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt plaintext, returning ``nonce || ciphertext || tag``.

        Raises:
            EmptyInputError: If plaintext is empty.
        """
        if not plaintext:
            raise EmptyInputError()
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt bytes produced by :meth:`encrypt`.

        Raises:
            InvalidCiphertextError: If the input is truncated, was produced
                with another key, or has been modified.
        """
        if len(ciphertext) < NONCE_SIZE:
            raise InvalidCiphertextError()
        nonce, body = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, body, None)
        except InvalidTag as e:
            raise InvalidCiphertextError() from e

    def encrypt_string(self, plaintext: str) -> str:
        """Encrypt a string and return the ciphertext as standard base64.

        An empty string maps to an empty string.
        """
        if plaintext == "":
            return ""
        return base64.b64encode(self.encrypt(plaintext.encode("utf-8"))).decode("ascii")

    def decrypt_string(self, encoded: str) -> str:
        """Reverse :meth:`encrypt_string`.

        Raises:
            InvalidCiphertextError: If the input is not base64 or fails to decrypt.
        """
        if encoded == "":
            return ""
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidCiphertextError() from e
        try:
            return self.decrypt(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidCiphertextError() from e
