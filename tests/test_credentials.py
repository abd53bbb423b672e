"""Tests for the keychain-backed password store."""

from __future__ import annotations

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from dbgen.credentials import SERVICE_NAME, CredentialError, KeyringPasswordStore


class _FakeKeyring:
    def __init__(self) -> None:
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, key: str) -> str | None:
        return self.entries.get((service, key))

    def set_password(self, service: str, key: str, password: str) -> None:
        self.entries[(service, key)] = password

    def delete_password(self, service: str, key: str) -> None:
        if (service, key) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, key)]


@pytest.fixture
def fake_keyring(monkeypatch: pytest.MonkeyPatch) -> _FakeKeyring:
    fake = _FakeKeyring()
    monkeypatch.setattr("dbgen.credentials.keyring.get_password", fake.get_password)
    monkeypatch.setattr("dbgen.credentials.keyring.set_password", fake.set_password)
    monkeypatch.setattr("dbgen.credentials.keyring.delete_password", fake.delete_password)
    return fake


def test_keyring_store_round_trip(fake_keyring: _FakeKeyring) -> None:
    store = KeyringPasswordStore()

    store.set_password("local", "s3cret")

    assert fake_keyring.entries == {(SERVICE_NAME, "local"): "s3cret"}
    assert store.get_password("local") == "s3cret"
    store.delete_password("local")
    assert store.get_password("local") is None


def test_deleting_a_missing_password_is_ignored(fake_keyring: _FakeKeyring) -> None:
    KeyringPasswordStore().delete_password("never-saved")


def test_keyring_failures_become_credential_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _locked(service: str, key: str) -> str | None:
        raise KeyringError("keychain locked")

    monkeypatch.setattr("dbgen.credentials.keyring.get_password", _locked)

    with pytest.raises(CredentialError, match="keychain locked"):
        KeyringPasswordStore().get_password("local")
