"""Normalizes catalogs, schemas, tables and columns across engines."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from .connections import (
    TABLE_TYPE,
    DataSourceFactory,
    DatabaseAccessError,
    DefaultDataSourceFactory,
    MetadataConnection,
)
from .models import ColumnInfo, ConnectionInfo, DatabaseItem, Dialect
from .settings import TableInfo

LOG = logging.getLogger(__name__)

PLACEHOLDER_DATABASE = "dummy"


@dataclass(frozen=True, slots=True)
class DialectRules:
    """How an engine maps logical databases onto catalogs and schemas."""

    catalogs_as_schemas: bool = False
    placeholder_database: str | None = None


DIALECT_RULES: Mapping[Dialect, DialectRules] = {
    Dialect.DEFAULT: DialectRules(),
    Dialect.ORACLE: DialectRules(catalogs_as_schemas=True),
    Dialect.EMBEDDED: DialectRules(placeholder_database=PLACEHOLDER_DATABASE),
}


def rules_for(dialect: Dialect) -> DialectRules:
    return DIALECT_RULES.get(dialect, DIALECT_RULES[Dialect.DEFAULT])


def metadata_filters(dialect: Dialect, database: str | None) -> tuple[str | None, str | None]:
    """Return the ``(catalog, schema)`` filters used to look inside ``database``."""

    if rules_for(dialect).catalogs_as_schemas:
        return None, database
    return database, None


class MetadataNormalizer:
    """Discovers databases, tables and columns for a connection.

    Every call opens its own connection and closes it before returning. A
    failing call raises :class:`DatabaseAccessError` and returns nothing.
    """

    def __init__(self, data_sources: DataSourceFactory | None = None) -> None:
        self._data_sources = data_sources or DefaultDataSourceFactory()

    def test_connection(self, info: ConnectionInfo) -> None:
        """Open and close a connection, raising on failure."""

        with self._connect(info):
            pass

    def list_databases(self, info: ConnectionInfo) -> list[DatabaseItem]:
        with self._connect(info) as connection:
            rules = rules_for(connection.dialect)
            names = _named(connection.catalogs())
            if not names and rules.catalogs_as_schemas:
                names = _named(connection.schemas())
            if not names and rules.placeholder_database:
                names = [rules.placeholder_database]
        LOG.debug("Listed databases", extra={"connection": info.id, "count": len(names)})
        return [DatabaseItem.database(name) for name in names]

    def list_tables(self, info: ConnectionInfo, database: str) -> list[DatabaseItem]:
        parent = DatabaseItem.database(database)
        with self._connect(info) as connection:
            catalog, schema = metadata_filters(connection.dialect, database)
            rows = connection.tables(catalog, schema, (TABLE_TYPE,))
            items = [
                DatabaseItem.table(row.name, row.remarks, parent)
                for row in rows
                if row.table_type == TABLE_TYPE
            ]
        return items

    def list_columns(self, info: ConnectionInfo, table_info: TableInfo) -> list[ColumnInfo]:
        with self._connect(info) as connection:
            catalog, schema = metadata_filters(connection.dialect, table_info.database)
            rows = connection.columns(catalog, schema, table_info.table_name)
            columns = [
                ColumnInfo(column_name=row.name, column_type=row.type_name, comment=row.remarks)
                for row in rows
            ]
        return columns

    @contextmanager
    def _connect(self, info: ConnectionInfo) -> Iterator[MetadataConnection]:
        try:
            connection = self._data_sources.get_data_source(info).get_connection()
        except DatabaseAccessError:
            raise
        except Exception as exc:
            raise DatabaseAccessError(f"Failed to connect to '{info.display_name}': {exc}") from exc
        try:
            yield connection
        except DatabaseAccessError:
            raise
        except Exception as exc:
            raise DatabaseAccessError(
                f"Failed to read metadata for '{info.display_name}': {exc}"
            ) from exc
        finally:
            _close(connection, info)


def _named(names: Iterable[str | None]) -> list[str]:
    return [name for name in names if name and name.strip()]


def _close(connection: MetadataConnection, info: ConnectionInfo) -> None:
    try:
        connection.close()
    except Exception:
        LOG.exception("Failed to close connection", extra={"connection": info.id})


__all__ = [
    "DIALECT_RULES",
    "DialectRules",
    "MetadataNormalizer",
    "PLACEHOLDER_DATABASE",
    "metadata_filters",
    "rules_for",
]
