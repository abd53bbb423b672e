"""Command line entry point for browsing connections and generator state."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence

from .config import CONFIG_DIR
from .connections import DatabaseAccessError
from .credentials import CredentialError
from .models import DRIVER_TYPES, ConnectionInfo, get_driver_type
from .service import BuilderService
from .settings import FileSettingsManager, TableInfo

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbgen", description=__doc__)
    parser.add_argument("--config-dir", type=Path, default=None, help=f"Settings directory (default: {CONFIG_DIR})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("connections", help="List saved connections.")

    add = commands.add_parser("add", help="Save a new connection (or replace one with the same id).")
    add.add_argument("id")
    add.add_argument("--driver", required=True, choices=sorted(DRIVER_TYPES))
    add.add_argument("--name")
    add.add_argument("--url", help="Explicit URL; overrides host/port/database.")
    add.add_argument("--host")
    add.add_argument("--port", type=int)
    add.add_argument("--database")
    add.add_argument("--username")
    add.add_argument("--password", action="store_true", help="Prompt for a password to store in the keychain.")

    remove = commands.add_parser("remove", help="Delete a saved connection.")
    remove.add_argument("id")

    test = commands.add_parser("test", help="Open and close a connection.")
    test.add_argument("id")

    databases = commands.add_parser("databases", help="List databases visible to a connection.")
    databases.add_argument("id")

    tables = commands.add_parser("tables", help="List base tables in a database.")
    tables.add_argument("id")
    tables.add_argument("database")

    columns = commands.add_parser("columns", help="List the columns of a table.")
    columns.add_argument("id")
    columns.add_argument("database")
    columns.add_argument("table")

    history = commands.add_parser("history", help="Show package history.")
    history.add_argument("--clear", action="store_true", help="Forget all history entries.")

    commands.add_parser("last", help="Show the last staged generator parameters.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = FileSettingsManager(args.config_dir)
    level = logging.DEBUG if args.verbose else getattr(logging, settings.config.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    service = BuilderService(settings)
    handler = _COMMANDS[args.command]
    try:
        handler(service, args)
    except (DatabaseAccessError, CredentialError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def _list_connections(service: BuilderService, _args: argparse.Namespace) -> None:
    for info in service.load_connection_info_list():
        print(f"{info.id}\t{info.driver_type.label}\t{info.display_name}\t{info.effective_url}")


def _add_connection(service: BuilderService, args: argparse.Namespace) -> None:
    driver = get_driver_type(args.driver)
    password = getpass.getpass(f"Password for {args.id}: ") if args.password else None
    info = ConnectionInfo(
        id=args.id,
        driver_type=driver,
        name=args.name,
        url=args.url,
        host=args.host,
        port=args.port if args.port is not None else driver.default_port,
        database=args.database,
        username=args.username,
        password=password,
    )
    connections = [entry for entry in service.load_connection_info_list() if entry.id != info.id]
    connections.append(info)
    service.save_connection_info(connections)
    print(f"Saved connection '{info.id}'.")


def _remove_connection(service: BuilderService, args: argparse.Namespace) -> None:
    connections = service.load_connection_info_list()
    remaining = [entry for entry in connections if entry.id != args.id]
    if len(remaining) == len(connections):
        print(f"No connection named '{args.id}'.")
        return
    service.save_connection_info(remaining)
    print(f"Removed connection '{args.id}'.")


def _test_connection(service: BuilderService, args: argparse.Namespace) -> None:
    service.test_connection(service.get_connection_info_with_password(args.id))
    print("Connection OK.")


def _list_databases(service: BuilderService, args: argparse.Namespace) -> None:
    for item in service.fetch_databases(args.id):
        print(item.name)


def _list_tables(service: BuilderService, args: argparse.Namespace) -> None:
    for item in service.fetch_tables(args.id, args.database):
        print(f"{item.name}\t{item.comment or ''}".rstrip())


def _list_columns(service: BuilderService, args: argparse.Namespace) -> None:
    info = service.get_connection_info_with_password(args.id)
    for column in service.fetch_columns(info, TableInfo(database=args.database, table_name=args.table)):
        print(f"{column.column_name}\t{column.column_type or ''}\t{column.comment or ''}".rstrip())


def _show_history(service: BuilderService, args: argparse.Namespace) -> None:
    if args.clear:
        service.clear_history()
        print("History cleared.")
        return
    for category, values in service.get_history().items():
        print(f"{category.value}: {', '.join(values)}")


def _show_last(service: BuilderService, _args: argparse.Namespace) -> None:
    params = service.get_last_generator_params()
    if params is None:
        print("No generator parameters staged yet.")
        return
    print(params.model_dump_json(indent=2))


_COMMANDS: dict[str, Callable[[BuilderService, argparse.Namespace], None]] = {
    "connections": _list_connections,
    "add": _add_connection,
    "remove": _remove_connection,
    "test": _test_connection,
    "databases": _list_databases,
    "tables": _list_tables,
    "columns": _list_columns,
    "history": _show_history,
    "last": _show_last,
}


__all__ = ["build_parser", "main"]
