# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Master key management backed by the OS keychain.

The master key is resolved in a fixed order:

1. The system keychain entry ``conductor`` / ``workspace-master-key``.
2. The ``CONDUCTOR_MASTER_KEY`` environment variable (base64).
3. A freshly generated key, written back to the keychain when possible.

When the keychain cannot be written, the generated key is printed to stderr
so the user can persist it through the environment instead.
"""

from __future__ import annotations

import base64
import logging
import os
import threading

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from rich.console import Console

from conductor.exceptions import InvalidKeyError, KeychainUnavailableError
from conductor.workspace.crypto import KEY_SIZE, decode_key, generate_key

logger = logging.getLogger(__name__)

KEYCHAIN_SERVICE = "conductor"
MASTER_KEY_NAME = "workspace-master-key"
MASTER_KEY_ENV_VAR = "CONDUCTOR_MASTER_KEY"
_AVAILABILITY_ACCOUNT = "__conductor_availability_test__"

# Errors raised by keyring backends when the keychain is locked or absent
_KEYCHAIN_ERRORS = (KeyringError, RuntimeError, OSError)

_generated_key: bytes | None = None
_generated_key_lock = threading.Lock()

_console = Console(stderr=True)


def _reset_generated_key() -> None:
    """Forget the key generated by this process. Used by tests."""
    global _generated_key
    with _generated_key_lock:
        _generated_key = None


class KeychainManager:
    """Resolves, stores and deletes the workspace master key.

    Availability is checked once at construction and then downgraded lazily
    whenever a keychain call fails for a reason other than a missing entry.
    Callers only ever see available or unavailable.
    """

    def __init__(self) -> None:
        self._available = True
        try:
            keyring.get_password(KEYCHAIN_SERVICE, _AVAILABILITY_ACCOUNT)
        except _KEYCHAIN_ERRORS as e:
            logger.debug(f"System keychain unavailable: {e}")
            self._available = False

    @property
    def is_keychain_available(self) -> bool:
        """Whether the system keychain is currently considered usable."""
        return self._available

    def _mark_unavailable(self, error: Exception) -> None:
        if self._available:
            logger.warning(f"System keychain became unavailable, falling back to environment: {error}")
        self._available = False

    def get_master_key(self) -> bytes | None:
        """Return the configured master key, or None when none is configured.

        Raises:
            InvalidKeyError: If a configured key is not valid base64 of 32 bytes.
        """
        if self._available:
            try:
                stored = keyring.get_password(KEYCHAIN_SERVICE, MASTER_KEY_NAME)
            except _KEYCHAIN_ERRORS as e:
                self._mark_unavailable(e)
                stored = None
            if stored is not None:
                return decode_key(stored, source="master key from keychain")

        env_key = os.environ.get(MASTER_KEY_ENV_VAR)
        if env_key:
            return decode_key(env_key, source=MASTER_KEY_ENV_VAR)

        return None

    def get_or_create_master_key(self) -> bytes:
        """Return the master key, generating and persisting one if needed.

        A generated key is memoized for the life of the process, so
        concurrent callers always receive identical bytes.

        Raises:
            InvalidKeyError: If a configured key is malformed.
        """
        global _generated_key

        key = self.get_master_key()
        if key is not None:
            return key

        with _generated_key_lock:
            if _generated_key is not None:
                return _generated_key

            # Another manager may have stored a key while we waited
            key = self.get_master_key()
            if key is not None:
                return key

            key = generate_key()
            encoded = base64.b64encode(key).decode("ascii")
            _generated_key = key

            if self._available:
                try:
                    keyring.set_password(KEYCHAIN_SERVICE, MASTER_KEY_NAME, encoded)
                except _KEYCHAIN_ERRORS as e:
                    self._mark_unavailable(e)
                else:
                    logger.info("Generated new master key and stored it in the system keychain")
                    return key

            _console.print(
                "\nSystem keychain unavailable. To persist the encryption key, "
                "set the environment variable:\n\n"
                f"export {MASTER_KEY_ENV_VAR}={encoded}\n\n"
                "WARNING: Store this value securely. If lost, encrypted integrations "
                "cannot be recovered.\n",
                markup=False,
                highlight=False,
                soft_wrap=True,
            )
            return key

    def store_master_key(self, key: bytes) -> None:
        """Write a master key to the keychain, e.g. when restoring a backup.

        Raises:
            InvalidKeyError: If the key is not 32 bytes.
            KeychainUnavailableError: If the keychain cannot be used.
        """
        if len(key) != KEY_SIZE:
            raise InvalidKeyError(
                f"Invalid key length: expected {KEY_SIZE} bytes, got {len(key)}"
            )
        if not self._available:
            raise KeychainUnavailableError()
        try:
            keyring.set_password(
                KEYCHAIN_SERVICE, MASTER_KEY_NAME, base64.b64encode(key).decode("ascii")
            )
        except _KEYCHAIN_ERRORS as e:
            self._mark_unavailable(e)
            raise KeychainUnavailableError(f"Failed to store master key in keychain: {e}") from e

    def delete_master_key(self) -> None:
        """Remove the master key from the keychain. A missing entry is not an error.

        Raises:
            KeychainUnavailableError: If the keychain cannot be used.
        """
        if not self._available:
            raise KeychainUnavailableError()
        try:
            keyring.delete_password(KEYCHAIN_SERVICE, MASTER_KEY_NAME)
        except PasswordDeleteError:
            logger.debug("Master key already absent from keychain")
        except _KEYCHAIN_ERRORS as e:
            self._mark_unavailable(e)
            raise KeychainUnavailableError(f"Failed to delete master key from keychain: {e}") from e
