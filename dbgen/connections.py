"""Data sources that open short-lived metadata connections."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine, Protocol, Sequence, TypeVar, runtime_checkable

import asyncpg
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, CompileError, NoSuchTableError
from sqlalchemy.pool import NullPool

from .models import POSTGRESQL, ConnectionInfo, Dialect
from .urls import redact_url, resolve_url

LOG = logging.getLogger(__name__)

TABLE_TYPE = "TABLE"

_T = TypeVar("_T")


class DatabaseAccessError(RuntimeError):
    """Raised when a connection cannot be opened or a metadata query fails."""


@dataclass(frozen=True, slots=True)
class TableRow:
    """One row of a driver table listing."""

    name: str
    table_type: str
    remarks: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnRow:
    """One row of a driver column listing."""

    name: str
    type_name: str | None
    remarks: str | None = None


@runtime_checkable
class MetadataConnection(Protocol):
    """Live connection exposing catalog, schema, table and column listings."""

    dialect: Dialect

    def catalogs(self) -> Sequence[str]: ...

    def schemas(self) -> Sequence[str]: ...

    def tables(self, catalog: str | None, schema: str | None, types: Sequence[str]) -> Sequence[TableRow]: ...

    def columns(self, catalog: str | None, schema: str | None, table: str) -> Sequence[ColumnRow]: ...

    def close(self) -> None: ...


class DataSource(Protocol):
    """Connection-capable handle for one resolved connection."""

    def get_connection(self) -> MetadataConnection: ...


class DataSourceFactory(Protocol):
    """Builds data sources for connection entries."""

    def get_data_source(self, info: ConnectionInfo) -> DataSource: ...


class SqlAlchemyMetadataConnection:
    """Metadata connection backed by a SQLAlchemy inspector."""

    # Engines where a "database" is what SQLAlchemy reports as a schema.
    _SCHEMA_CATALOG_ENGINES = frozenset({"mysql", "mariadb"})

    def __init__(self, engine: Engine, connection: Connection, dialect: Dialect) -> None:
        self.dialect = dialect
        self._engine = engine
        self._connection = connection
        self._inspector = inspect(connection)

    @property
    def _databases_are_schemas(self) -> bool:
        return self._engine.dialect.name in self._SCHEMA_CATALOG_ENGINES

    def catalogs(self) -> Sequence[str]:
        if self.dialect is not Dialect.DEFAULT:
            return ()
        if self._databases_are_schemas:
            return tuple(self._inspector.get_schema_names())
        database = self._engine.url.database
        return (database,) if database else ()

    def schemas(self) -> Sequence[str]:
        if self.dialect is Dialect.EMBEDDED:
            return ()
        return tuple(self._inspector.get_schema_names())

    def tables(self, catalog: str | None, schema: str | None, types: Sequence[str]) -> Sequence[TableRow]:
        if self._is_other_catalog(catalog):
            return ()
        target = self._target_schema(catalog, schema)
        rows: list[TableRow] = []
        if TABLE_TYPE in types:
            for name in self._inspector.get_table_names(schema=target):
                rows.append(TableRow(name=name, table_type=TABLE_TYPE, remarks=self._table_comment(name, target)))
        if "VIEW" in types:
            for name in self._inspector.get_view_names(schema=target):
                rows.append(TableRow(name=name, table_type="VIEW"))
        return tuple(rows)

    def columns(self, catalog: str | None, schema: str | None, table: str) -> Sequence[ColumnRow]:
        if self._is_other_catalog(catalog):
            return ()
        target = self._target_schema(catalog, schema)
        try:
            columns = self._inspector.get_columns(table, schema=target)
        except NoSuchTableError:
            return ()
        return tuple(
            ColumnRow(name=column["name"], type_name=_type_name(column["type"]), remarks=column.get("comment"))
            for column in columns
        )

    def close(self) -> None:
        try:
            self._connection.close()
        finally:
            self._engine.dispose()

    def _is_other_catalog(self, catalog: str | None) -> bool:
        # Only the connected database is visible when catalogs are not schemas.
        if not catalog or self.dialect is not Dialect.DEFAULT or self._databases_are_schemas:
            return False
        return catalog != self._engine.url.database

    def _target_schema(self, catalog: str | None, schema: str | None) -> str | None:
        if schema:
            return schema
        if catalog and self._databases_are_schemas:
            return catalog
        return None

    def _table_comment(self, table: str, schema: str | None) -> str | None:
        if not self._engine.dialect.supports_comments:
            return None
        try:
            comment = self._inspector.get_table_comment(table, schema=schema)
        except NotImplementedError:
            return None
        return comment.get("text") if comment else None


class SqlAlchemyDataSource:
    """Opens SQLAlchemy connections without pooling."""

    def __init__(self, info: ConnectionInfo) -> None:
        self._info = info

    @property
    def url(self) -> URL:
        try:
            url = make_url(resolve_url(self._info))
        except ArgumentError as exc:
            raise DatabaseAccessError(
                f"Invalid URL for connection '{self._info.display_name}': {exc}"
            ) from exc
        if self._info.username and not url.username:
            url = url.set(username=self._info.username)
        if self._info.password and not url.password:
            url = url.set(password=self._info.password)
        return url

    def get_connection(self) -> SqlAlchemyMetadataConnection:
        url = self.url
        LOG.debug(
            "Opening SQLAlchemy connection",
            extra={"connection": self._info.id, "url": url.render_as_string(hide_password=True)},
        )
        engine: Engine | None = None
        try:
            engine = create_engine(url, poolclass=NullPool)
            connection = engine.connect()
        except Exception as exc:
            if engine is not None:
                engine.dispose()
            raise DatabaseAccessError(
                f"Failed to connect to '{self._info.display_name}': {exc}"
            ) from exc
        return SqlAlchemyMetadataConnection(engine, connection, self._info.dialect)


class AsyncpgMetadataConnection:
    """Metadata connection that queries PostgreSQL via asyncpg.

    The asyncpg connection is driven by an event loop owned by this object and
    closed together with it.
    """

    _CATALOG_QUERY = """
        SELECT datname
        FROM pg_catalog.pg_database
        WHERE datallowconn AND NOT datistemplate
        ORDER BY datname
    """

    _SCHEMA_QUERY = """
        SELECT schema_name
        FROM information_schema.schemata
        ORDER BY schema_name
    """

    _TABLE_QUERY = """
        SELECT t.table_name,
               CASE
                   WHEN t.table_schema IN ('pg_catalog', 'information_schema')
                        AND t.table_type = 'BASE TABLE' THEN 'SYSTEM TABLE'
                   WHEN t.table_schema IN ('pg_catalog', 'information_schema') THEN 'SYSTEM VIEW'
                   WHEN t.table_type = 'BASE TABLE' THEN 'TABLE'
                   ELSE t.table_type
               END AS table_type,
               pg_catalog.obj_description(k.oid, 'pg_class') AS remarks
        FROM information_schema.tables t
        JOIN pg_catalog.pg_namespace n ON n.nspname = t.table_schema
        JOIN pg_catalog.pg_class k ON k.relnamespace = n.oid AND k.relname = t.table_name
        WHERE ($1::text IS NULL OR t.table_catalog = $1)
          AND ($2::text IS NULL OR t.table_schema = $2)
        ORDER BY t.table_schema, t.table_name
    """

    _COLUMN_QUERY = """
        SELECT c.column_name,
               c.udt_name AS type_name,
               pg_catalog.col_description(a.attrelid, a.attnum) AS remarks
        FROM information_schema.columns c
        JOIN pg_catalog.pg_namespace n ON n.nspname = c.table_schema
        JOIN pg_catalog.pg_class k ON k.relnamespace = n.oid AND k.relname = c.table_name
        JOIN pg_catalog.pg_attribute a ON a.attrelid = k.oid AND a.attname = c.column_name
        WHERE ($1::text IS NULL OR c.table_catalog = $1)
          AND ($2::text IS NULL OR c.table_schema = $2)
          AND c.table_name = $3
        ORDER BY c.table_schema, c.ordinal_position
    """

    def __init__(self, connection: Any, loop: asyncio.AbstractEventLoop, dialect: Dialect = Dialect.DEFAULT) -> None:
        self.dialect = dialect
        self._connection = connection
        self._loop = loop

    def catalogs(self) -> Sequence[str]:
        rows = self._run(self._connection.fetch(self._CATALOG_QUERY))
        return tuple(str(row["datname"]) for row in rows)

    def schemas(self) -> Sequence[str]:
        rows = self._run(self._connection.fetch(self._SCHEMA_QUERY))
        return tuple(str(row["schema_name"]) for row in rows)

    def tables(self, catalog: str | None, schema: str | None, types: Sequence[str]) -> Sequence[TableRow]:
        rows = self._run(self._connection.fetch(self._TABLE_QUERY, catalog, schema))
        return tuple(
            TableRow(name=str(row["table_name"]), table_type=str(row["table_type"]), remarks=row["remarks"])
            for row in rows
            if row["table_type"] in types
        )

    def columns(self, catalog: str | None, schema: str | None, table: str) -> Sequence[ColumnRow]:
        rows = self._run(self._connection.fetch(self._COLUMN_QUERY, catalog, schema, table))
        return tuple(
            ColumnRow(name=str(row["column_name"]), type_name=row["type_name"], remarks=row["remarks"])
            for row in rows
        )

    def close(self) -> None:
        try:
            self._run(self._connection.close())
        finally:
            self._loop.close()

    def _run(self, coro: Coroutine[Any, Any, _T]) -> _T:
        return self._loop.run_until_complete(coro)


class AsyncpgDataSource:
    """Opens PostgreSQL metadata connections via asyncpg."""

    def __init__(self, info: ConnectionInfo, *, connect_timeout: float | None = None) -> None:
        self._info = info
        self._connect_timeout = connect_timeout

    def get_connection(self) -> AsyncpgMetadataConnection:
        kwargs = self._connect_kwargs()
        LOG.debug(
            "Opening asyncpg connection",
            extra={"connection": self._info.id, "url": redact_url(resolve_url(self._info))},
        )
        loop = asyncio.new_event_loop()
        try:
            connection = loop.run_until_complete(asyncpg.connect(**kwargs))
        except Exception as exc:
            loop.close()
            raise DatabaseAccessError(
                f"Failed to connect to '{self._info.display_name}': {exc}"
            ) from exc
        return AsyncpgMetadataConnection(connection, loop, self._info.dialect)

    def _connect_kwargs(self) -> dict[str, object]:
        kwargs: dict[str, object] = {"dsn": resolve_url(self._info)}
        if self._info.username:
            kwargs["user"] = self._info.username
        if self._info.password:
            kwargs["password"] = self._info.password
        if self._connect_timeout is not None:
            kwargs["timeout"] = self._connect_timeout
        return kwargs


class DefaultDataSourceFactory:
    """Routes PostgreSQL URLs to asyncpg and everything else to SQLAlchemy."""

    _ASYNCPG_SCHEMES = frozenset({"postgresql", "postgres"})

    def get_data_source(self, info: ConnectionInfo) -> DataSource:
        scheme = resolve_url(info).split("://", 1)[0].lower()
        if info.driver_type.name == POSTGRESQL.name and scheme in self._ASYNCPG_SCHEMES:
            return AsyncpgDataSource(info)
        return SqlAlchemyDataSource(info)


def _type_name(type_: Any) -> str | None:
    try:
        return str(type_)
    except CompileError:
        return type(type_).__name__.upper()


__all__ = [
    "AsyncpgDataSource",
    "AsyncpgMetadataConnection",
    "ColumnRow",
    "DataSource",
    "DataSourceFactory",
    "DatabaseAccessError",
    "DefaultDataSourceFactory",
    "MetadataConnection",
    "SqlAlchemyDataSource",
    "SqlAlchemyMetadataConnection",
    "TABLE_TYPE",
    "TableRow",
]
