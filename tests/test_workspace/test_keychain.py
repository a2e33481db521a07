"""Tests for master key management."""

from __future__ import annotations

import base64
import threading

import pytest
from keyring.errors import KeyringError

from conductor.exceptions import InvalidKeyError, KeychainUnavailableError
from conductor.workspace.keychain import (
    KEYCHAIN_SERVICE,
    MASTER_KEY_ENV_VAR,
    MASTER_KEY_NAME,
    KeychainManager,
)


def _encoded(key: bytes) -> str:
    return base64.b64encode(key).decode()


class TestGetMasterKey:
    """Tests for resolving an existing master key."""

    def test_none_when_unconfigured(self) -> None:
        """Test that no key is returned when neither source has one."""
        assert KeychainManager().get_master_key() is None

    def test_keychain_first(self, memory_keyring, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the keychain entry wins over the environment."""
        keychain_key = bytes([1] * 32)
        memory_keyring.entries[(KEYCHAIN_SERVICE, MASTER_KEY_NAME)] = _encoded(keychain_key)
        monkeypatch.setenv(MASTER_KEY_ENV_VAR, _encoded(bytes([2] * 32)))

        assert KeychainManager().get_master_key() == keychain_key

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the environment variable is used without a keychain entry."""
        env_key = bytes([3] * 32)
        monkeypatch.setenv(MASTER_KEY_ENV_VAR, _encoded(env_key))
        assert KeychainManager().get_master_key() == env_key

    def test_environment_used_when_keychain_unavailable(
        self, memory_keyring, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a locked keychain degrades to the environment."""
        memory_keyring.fail_with = KeyringError("locked")
        env_key = bytes([4] * 32)
        monkeypatch.setenv(MASTER_KEY_ENV_VAR, _encoded(env_key))

        manager = KeychainManager()
        assert manager.is_keychain_available is False
        assert manager.get_master_key() == env_key

    def test_malformed_environment_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a short environment key is an InvalidKeyError."""
        monkeypatch.setenv(MASTER_KEY_ENV_VAR, _encoded(bytes(8)))
        with pytest.raises(InvalidKeyError):
            KeychainManager().get_master_key()


class TestGetOrCreateMasterKey:
    """Tests for generating a master key on first use."""

    def test_generated_key_stored_in_keychain(self, memory_keyring) -> None:
        """Test that a generated key is persisted to the keychain."""
        key = KeychainManager().get_or_create_master_key()

        assert len(key) == 32
        stored = memory_keyring.entries[(KEYCHAIN_SERVICE, MASTER_KEY_NAME)]
        assert base64.b64decode(stored) == key

    def test_existing_key_reused(self, memory_keyring) -> None:
        """Test that an existing keychain key is returned unchanged."""
        existing = bytes([9] * 32)
        memory_keyring.entries[(KEYCHAIN_SERVICE, MASTER_KEY_NAME)] = _encoded(existing)
        assert KeychainManager().get_or_create_master_key() == existing

    def test_degraded_mode_prints_export_instructions(
        self, memory_keyring, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that an unwritable keychain yields instructions on stderr."""
        memory_keyring.fail_with = RuntimeError("no backend")

        key = KeychainManager().get_or_create_master_key()

        err = capsys.readouterr().err
        assert f"export {MASTER_KEY_ENV_VAR}={_encoded(key)}" in err
        assert "cannot be recovered" in err

    def test_degraded_mode_key_is_memoized(self, memory_keyring) -> None:
        """Test that repeated calls return the same generated key."""
        memory_keyring.fail_with = RuntimeError("no backend")
        first = KeychainManager().get_or_create_master_key()
        second = KeychainManager().get_or_create_master_key()
        assert first == second

    def test_concurrent_callers_agree(self, memory_keyring) -> None:
        """Test that concurrent first use yields one key."""
        memory_keyring.fail_with = RuntimeError("no backend")
        results: list[bytes] = []
        lock = threading.Lock()

        def worker() -> None:
            key = KeychainManager().get_or_create_master_key()
            with lock:
                results.append(key)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert len(set(results)) == 1


class TestStoreAndDelete:
    """Tests for writing and removing the keychain entry."""

    def test_store_master_key(self, memory_keyring) -> None:
        """Test that a 32-byte key is written base64-encoded."""
        key = bytes([5] * 32)
        KeychainManager().store_master_key(key)
        assert memory_keyring.entries[(KEYCHAIN_SERVICE, MASTER_KEY_NAME)] == _encoded(key)

    def test_store_rejects_bad_length(self) -> None:
        """Test that storing a short key fails before touching the keychain."""
        with pytest.raises(InvalidKeyError):
            KeychainManager().store_master_key(b"short")

    def test_store_when_unavailable(self, memory_keyring) -> None:
        """Test that storing without a keychain raises KeychainUnavailableError."""
        memory_keyring.fail_with = KeyringError("locked")
        with pytest.raises(KeychainUnavailableError):
            KeychainManager().store_master_key(bytes(32))

    def test_delete_master_key(self, memory_keyring) -> None:
        """Test that delete removes the entry."""
        memory_keyring.entries[(KEYCHAIN_SERVICE, MASTER_KEY_NAME)] = _encoded(bytes(32))
        KeychainManager().delete_master_key()
        assert (KEYCHAIN_SERVICE, MASTER_KEY_NAME) not in memory_keyring.entries

    def test_delete_missing_is_not_an_error(self) -> None:
        """Test that deleting an absent key succeeds."""
        KeychainManager().delete_master_key()
