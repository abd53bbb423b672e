"""Tests for the data source backends."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

import pytest

from dbgen.connections import (
    AsyncpgDataSource,
    DatabaseAccessError,
    DefaultDataSourceFactory,
    SqlAlchemyDataSource,
)
from dbgen.metadata import MetadataNormalizer
from dbgen.models import MYSQL, POSTGRESQL, SQLITE, ConnectionInfo, Dialect, DriverType
from dbgen.settings import TableInfo


@pytest.fixture
def sqlite_info(tmp_path: Path) -> ConnectionInfo:
    path = tmp_path / "shop.db"
    with sqlite3.connect(path) as db:
        db.execute("CREATE TABLE accounts (id INTEGER PRIMARY KEY, email VARCHAR(120) NOT NULL)")
        db.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, account_id INTEGER, total NUMERIC(10, 2))")
        db.execute("CREATE VIEW big_orders AS SELECT * FROM orders WHERE total > 100")
    return ConnectionInfo(id="local", driver_type=SQLITE, database=str(path))


def test_sqlite_lists_placeholder_database(sqlite_info: ConnectionInfo) -> None:
    items = MetadataNormalizer().list_databases(sqlite_info)

    assert [item.name for item in items] == ["dummy"]


def test_sqlite_lists_base_tables_only(sqlite_info: ConnectionInfo) -> None:
    items = MetadataNormalizer().list_tables(sqlite_info, "dummy")

    assert sorted(item.name for item in items) == ["accounts", "orders"]
    assert all(item.comment is None for item in items)


def test_sqlite_lists_columns_in_declared_order(sqlite_info: ConnectionInfo) -> None:
    columns = MetadataNormalizer().list_columns(sqlite_info, TableInfo(database="dummy", table_name="orders"))

    assert [column.column_name for column in columns] == ["id", "account_id", "total"]
    assert columns[0].column_type == "INTEGER"
    assert columns[2].column_type is not None and columns[2].column_type.startswith("NUMERIC")


def test_sqlite_unknown_table_has_no_columns(sqlite_info: ConnectionInfo) -> None:
    columns = MetadataNormalizer().list_columns(sqlite_info, TableInfo(database="dummy", table_name="missing"))

    assert columns == []


@pytest.fixture
def generic_sqlite_info(sqlite_info: ConnectionInfo) -> ConnectionInfo:
    driver = DriverType("generic", "Generic", "sqlite:///${db}", None, Dialect.DEFAULT)
    return ConnectionInfo(id="generic", driver_type=driver, database=sqlite_info.database)


def test_catalog_engine_lists_tables_of_the_connected_database(generic_sqlite_info: ConnectionInfo) -> None:
    normalizer = MetadataNormalizer()

    [database] = normalizer.list_databases(generic_sqlite_info)
    tables = normalizer.list_tables(generic_sqlite_info, database.name)

    assert database.name == generic_sqlite_info.database
    assert sorted(item.name for item in tables) == ["accounts", "orders"]


def test_catalog_engine_ignores_tables_of_other_databases(generic_sqlite_info: ConnectionInfo) -> None:
    normalizer = MetadataNormalizer()

    tables = normalizer.list_tables(generic_sqlite_info, "some_other_database")
    columns = normalizer.list_columns(
        generic_sqlite_info, TableInfo(database="some_other_database", table_name="orders")
    )

    assert tables == []
    assert columns == []


def test_sqlalchemy_connection_carries_driver_dialect(sqlite_info: ConnectionInfo) -> None:
    connection = SqlAlchemyDataSource(sqlite_info).get_connection()
    try:
        assert connection.dialect is Dialect.EMBEDDED
        assert connection.catalogs() == ()
        assert connection.schemas() == ()
    finally:
        connection.close()


def test_sqlalchemy_url_applies_credentials() -> None:
    info = ConnectionInfo(
        id="mysql",
        driver_type=MYSQL,
        host="localhost",
        port=3306,
        database="shop",
        username="app",
        password="s3cret",
    )

    url = SqlAlchemyDataSource(info).url

    assert url.username == "app"
    assert url.password == "s3cret"
    assert url.database == "shop"


def test_sqlalchemy_invalid_url_raises_database_access_error() -> None:
    info = ConnectionInfo(id="broken", driver_type=MYSQL, url="not a url")

    with pytest.raises(DatabaseAccessError, match="Invalid URL"):
        SqlAlchemyDataSource(info).get_connection()


def test_sqlalchemy_connect_failure_raises_database_access_error(tmp_path: Path) -> None:
    info = ConnectionInfo(id="missing", driver_type=SQLITE, database=str(tmp_path / "no" / "such" / "dir.db"))

    with pytest.raises(DatabaseAccessError, match="Failed to connect"):
        MetadataNormalizer().test_connection(info)


class _FakeAsyncpgConnection:
    def __init__(self) -> None:
        self.queries: list[tuple[str, tuple[object, ...]]] = []
        self.closed = False

    async def fetch(self, query: str, *args: object) -> list[dict[str, object]]:
        self.queries.append((query, args))
        if "pg_database" in query:
            return [{"datname": "postgres"}, {"datname": "shop"}]
        if "information_schema.schemata" in query:
            return [{"schema_name": "public"}]
        if "information_schema.tables" in query:
            return [
                {"table_name": "accounts", "table_type": "TABLE", "remarks": "Customer accounts"},
                {"table_name": "active_accounts", "table_type": "VIEW", "remarks": None},
                {"table_name": "pg_type", "table_type": "SYSTEM TABLE", "remarks": None},
            ]
        if "information_schema.columns" in query:
            return [
                {"column_name": "id", "type_name": "int4", "remarks": None},
                {"column_name": "email", "type_name": "varchar", "remarks": "Login email"},
            ]
        raise AssertionError(f"unexpected query: {query}")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def postgres_info() -> ConnectionInfo:
    return ConnectionInfo(
        id="pg",
        driver_type=POSTGRESQL,
        host="localhost",
        port=5432,
        database="shop",
        username="app",
        password="s3cret",
    )


def test_asyncpg_backend_reads_metadata(monkeypatch: pytest.MonkeyPatch, postgres_info: ConnectionInfo) -> None:
    fake = _FakeAsyncpgConnection()
    seen: dict[str, Any] = {}

    async def _fake_connect(**kwargs: Any) -> _FakeAsyncpgConnection:
        seen.update(kwargs)
        return fake

    monkeypatch.setattr("dbgen.connections.asyncpg.connect", _fake_connect)
    normalizer = MetadataNormalizer()

    databases = normalizer.list_databases(postgres_info)
    tables = normalizer.list_tables(postgres_info, "shop")
    columns = normalizer.list_columns(postgres_info, TableInfo(database="shop", table_name="accounts"))

    assert seen["dsn"] == "postgresql://localhost:5432/shop"
    assert seen["user"] == "app"
    assert seen["password"] == "s3cret"
    assert "timeout" not in seen
    assert [item.name for item in databases] == ["postgres", "shop"]
    assert [(item.name, item.comment) for item in tables] == [("accounts", "Customer accounts")]
    assert [(c.column_name, c.column_type, c.comment) for c in columns] == [
        ("id", "int4", None),
        ("email", "varchar", "Login email"),
    ]
    table_query = next(args for query, args in fake.queries if "information_schema.tables" in query)
    column_query = next(args for query, args in fake.queries if "information_schema.columns" in query)
    assert table_query == ("shop", None)
    assert column_query == ("shop", None, "accounts")
    assert fake.closed is True


def test_asyncpg_backend_surfaces_connection_errors(
    monkeypatch: pytest.MonkeyPatch, postgres_info: ConnectionInfo
) -> None:
    async def _broken_connect(**kwargs: Any) -> None:
        raise OSError("boom")

    monkeypatch.setattr("dbgen.connections.asyncpg.connect", _broken_connect)

    with pytest.raises(DatabaseAccessError, match="boom"):
        AsyncpgDataSource(postgres_info).get_connection()


def test_asyncpg_connect_timeout_is_opt_in(monkeypatch: pytest.MonkeyPatch, postgres_info: ConnectionInfo) -> None:
    seen: dict[str, Any] = {}

    async def _fake_connect(**kwargs: Any) -> _FakeAsyncpgConnection:
        seen.update(kwargs)
        return _FakeAsyncpgConnection()

    monkeypatch.setattr("dbgen.connections.asyncpg.connect", _fake_connect)

    AsyncpgDataSource(postgres_info, connect_timeout=2.5).get_connection().close()

    assert seen["timeout"] == 2.5


def test_factory_routes_postgres_urls_to_asyncpg(postgres_info: ConnectionInfo) -> None:
    factory = DefaultDataSourceFactory()

    assert isinstance(factory.get_data_source(postgres_info), AsyncpgDataSource)
    psycopg = ConnectionInfo(id="pg2", driver_type=POSTGRESQL, url="postgresql+psycopg://localhost/shop")
    assert isinstance(factory.get_data_source(psycopg), SqlAlchemyDataSource)
    mysql = ConnectionInfo(id="my", driver_type=MYSQL, host="localhost", port=3306, database="shop")
    assert isinstance(factory.get_data_source(mysql), SqlAlchemyDataSource)
