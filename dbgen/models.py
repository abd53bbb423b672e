"""Shared dataclasses used across connection/metadata modules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from .urls import resolve_url


class Dialect(str, Enum):
    """Engine behaviour that changes how catalogs and schemas are read."""

    DEFAULT = "default"
    ORACLE = "oracle"
    EMBEDDED = "embedded"


@dataclass(frozen=True, slots=True)
class DriverType:
    """A supported engine and the URL template used to reach it."""

    name: str
    label: str
    url_template: str
    default_port: int | None = None
    dialect: Dialect = Dialect.DEFAULT


MYSQL = DriverType("mysql", "MySQL", "mysql+pymysql://${host}:${port}/${db}", 3306)
MARIADB = DriverType("mariadb", "MariaDB", "mariadb+pymysql://${host}:${port}/${db}", 3306)
POSTGRESQL = DriverType("postgresql", "PostgreSQL", "postgresql://${host}:${port}/${db}", 5432)
ORACLE = DriverType(
    "oracle",
    "Oracle",
    "oracle+oracledb://${host}:${port}/?service_name=${db}",
    1521,
    Dialect.ORACLE,
)
SQLSERVER = DriverType("sqlserver", "SQL Server", "mssql+pymssql://${host}:${port}/${db}", 1433)
SQLITE = DriverType("sqlite", "SQLite", "sqlite:///${db}", None, Dialect.EMBEDDED)

DRIVER_TYPES: dict[str, DriverType] = {
    driver.name: driver for driver in (MYSQL, MARIADB, POSTGRESQL, ORACLE, SQLSERVER, SQLITE)
}


def get_driver_type(name: str) -> DriverType:
    """Look up a registered driver type by name (case-insensitive)."""

    driver = DRIVER_TYPES.get(name.strip().lower())
    if driver is None:
        known = ", ".join(sorted(DRIVER_TYPES))
        raise ValueError(f"Unknown driver type '{name}' (expected one of: {known}).")
    return driver


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """Runtime representation of a saved connection.

    Stored copies never carry a password; live operations work on a copy
    decorated through :meth:`with_password`.
    """

    id: str
    driver_type: DriverType
    name: str | None = None
    url: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def dialect(self) -> Dialect:
        return self.driver_type.dialect

    @property
    def effective_url(self) -> str:
        return resolve_url(self)

    def with_password(self, password: str | None) -> ConnectionInfo:
        """Return a copy carrying the given password."""

        return replace(self, password=password)

    def without_password(self) -> ConnectionInfo:
        return replace(self, password=None)


class ItemType(str, Enum):
    """Kinds of nodes in the discovered schema tree."""

    DATABASE = "database"
    TABLE = "table"


@dataclass(frozen=True, slots=True)
class DatabaseItem:
    """A discovered database or table."""

    kind: ItemType
    name: str
    comment: str | None = None
    parent: DatabaseItem | None = None

    @classmethod
    def database(cls, name: str) -> DatabaseItem:
        return cls(kind=ItemType.DATABASE, name=name)

    @classmethod
    def table(cls, name: str, comment: str | None = None, parent: DatabaseItem | None = None) -> DatabaseItem:
        return cls(kind=ItemType.TABLE, name=name, comment=comment, parent=parent)


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column details as reported by the engine."""

    column_name: str
    column_type: str | None = None
    comment: str | None = None


__all__ = [
    "ColumnInfo",
    "ConnectionInfo",
    "DRIVER_TYPES",
    "DatabaseItem",
    "Dialect",
    "DriverType",
    "ItemType",
    "MARIADB",
    "MYSQL",
    "ORACLE",
    "POSTGRESQL",
    "SQLITE",
    "SQLSERVER",
    "get_driver_type",
]
