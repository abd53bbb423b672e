"""Password storage for saved connections."""

from __future__ import annotations

from typing import Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

# Service name used for all keychain entries
SERVICE_NAME = "dbgen"


class CredentialError(RuntimeError):
    """Raised when the password store cannot be read or written."""


class PasswordStore(Protocol):
    """Keyed password storage, one entry per connection id."""

    def get_password(self, connection_id: str) -> str | None: ...

    def set_password(self, connection_id: str, password: str) -> None: ...

    def delete_password(self, connection_id: str) -> None: ...


class KeyringPasswordStore:
    """Password store backed by the system keychain."""

    def __init__(self, service_name: str = SERVICE_NAME) -> None:
        self._service_name = service_name

    def get_password(self, connection_id: str) -> str | None:
        try:
            return keyring.get_password(self._service_name, connection_id)
        except KeyringError as exc:
            raise CredentialError(f"Failed to read password for '{connection_id}': {exc}") from exc

    def set_password(self, connection_id: str, password: str) -> None:
        try:
            keyring.set_password(self._service_name, connection_id, password)
        except KeyringError as exc:
            raise CredentialError(f"Failed to store password for '{connection_id}': {exc}") from exc

    def delete_password(self, connection_id: str) -> None:
        try:
            keyring.delete_password(self._service_name, connection_id)
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            raise CredentialError(f"Failed to delete password for '{connection_id}': {exc}") from exc


class InMemoryPasswordStore:
    """Dictionary-backed password store for tests and embedding."""

    def __init__(self, passwords: dict[str, str] | None = None) -> None:
        self._passwords = dict(passwords or {})

    def get_password(self, connection_id: str) -> str | None:
        return self._passwords.get(connection_id)

    def set_password(self, connection_id: str, password: str) -> None:
        self._passwords[connection_id] = password

    def delete_password(self, connection_id: str) -> None:
        self._passwords.pop(connection_id, None)


__all__ = [
    "CredentialError",
    "InMemoryPasswordStore",
    "KeyringPasswordStore",
    "PasswordStore",
    "SERVICE_NAME",
]
