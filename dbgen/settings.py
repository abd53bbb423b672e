"""Persisted generator state and the settings managers that own it."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence

from pydantic import BaseModel, Field, ValidationError

from .config import (
    CONFIG_DIR,
    DEFAULT_HISTORY_SIZE,
    BuilderConfig,
    ConnectionInfoConfig,
    load_config,
    save_config,
)
from .credentials import InMemoryPasswordStore, KeyringPasswordStore, PasswordStore
from .models import ConnectionInfo

LOG = logging.getLogger(__name__)

STATE_FILE_NAME = "state.json"


class HistoryCategory(str, Enum):
    """Kinds of values remembered between generation runs."""

    MODEL_PACKAGE = "model_package"
    CLIENT_PACKAGE = "client_package"
    SQL_MAP_PACKAGE = "sql_map_package"


class TableInfo(BaseModel):
    """A table selected for generation plus the choices made for it."""

    database: str
    table_name: str
    domain_name: str | None = None
    mapper_name: str | None = None
    generated_key: str | None = None
    ignored_columns: list[str] = Field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return self.database, self.table_name


class PackageTarget(BaseModel):
    """Where one kind of generated file goes."""

    target_project: str = ""
    target_package: str = ""


class GeneratorParamWrapper(BaseModel):
    """Parameter bundle for one generation run."""

    connection_id: str | None = None
    selected_tables: list[TableInfo] = Field(default_factory=list)
    model_target: PackageTarget | None = None
    client_target: PackageTarget | None = None
    sql_map_target: PackageTarget | None = None

    def package_targets(self) -> dict[HistoryCategory, PackageTarget | None]:
        return {
            HistoryCategory.MODEL_PACKAGE: self.model_target,
            HistoryCategory.CLIENT_PACKAGE: self.client_target,
            HistoryCategory.SQL_MAP_PACKAGE: self.sql_map_target,
        }


class DefaultParameters(BaseModel):
    """Values used to pre-fill a new generation run."""

    model_target: PackageTarget = Field(default_factory=PackageTarget)
    client_target: PackageTarget = Field(default_factory=PackageTarget)
    sql_map_target: PackageTarget = Field(default_factory=PackageTarget)
    file_encoding: str = "UTF-8"
    generate_comments: bool = True


class GeneratorState(BaseModel):
    """Everything persisted besides the connection list."""

    last_params: GeneratorParamWrapper | None = None
    table_infos: list[TableInfo] = Field(default_factory=list)
    history: dict[HistoryCategory, list[str]] = Field(default_factory=dict)
    default_parameters: DefaultParameters = Field(default_factory=DefaultParameters)

    def history_map(self) -> dict[HistoryCategory, list[str]]:
        """Return history for every category, empty lists included."""

        return {category: list(self.history.get(category, ())) for category in HistoryCategory}

    def find_table_info(self, partial: TableInfo) -> TableInfo | None:
        for table_info in self.table_infos:
            if table_info.key == partial.key:
                return table_info
        return None

    def with_table_infos(self, table_infos: Sequence[TableInfo]) -> GeneratorState:
        """Return a copy with the given tables upserted by database and name."""

        merged = {table_info.key: table_info for table_info in self.table_infos}
        for table_info in table_infos:
            merged[table_info.key] = table_info.model_copy(deep=True)
        return self.model_copy(update={"table_infos": list(merged.values())})

    def with_history_entry(self, category: HistoryCategory, value: str, *, limit: int) -> GeneratorState:
        """Return a copy with ``value`` recorded as the newest entry.

        Blank values and values already present leave the state unchanged.
        """

        if not value or not value.strip():
            return self
        entries = self.history.get(category, [])
        if value in entries:
            return self
        history = dict(self.history)
        history[category] = ([value] + list(entries))[:limit]
        return self.model_copy(update={"history": history})

    def without_history(self) -> GeneratorState:
        return self.model_copy(update={"history": {}})


class SettingsManager(Protocol):
    """Store for connections, generator state, history and passwords."""

    def get_connection_info_list(self) -> list[ConnectionInfo]: ...

    def save_connection_info(self, connections: Sequence[ConnectionInfo]) -> None: ...

    def get_connection_password(self, info: ConnectionInfo) -> str | None: ...

    def get_state(self) -> GeneratorState: ...

    def save_state(self, state: GeneratorState) -> None: ...

    def save_table_info(self, table_infos: Sequence[TableInfo]) -> None: ...

    def get_table_info(self, partial: TableInfo) -> TableInfo | None: ...

    def add_history(self, category: HistoryCategory, value: str) -> None: ...

    def clear_history(self) -> None: ...


class BaseSettingsManager:
    """Shared settings logic on top of load/save primitives.

    Subclasses provide connection and state persistence; passwords always go
    to the password store and never to the persisted connection list.
    """

    def __init__(self, password_store: PasswordStore, *, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self._passwords = password_store
        self._history_size = history_size

    def get_connection_info_list(self) -> list[ConnectionInfo]:
        return list(self._load_connections())

    def save_connection_info(self, connections: Sequence[ConnectionInfo]) -> None:
        previous = {info.id for info in self._load_connections()}
        current = {info.id for info in connections}
        for info in connections:
            if info.password:
                self._passwords.set_password(info.id, info.password)
        for removed in previous - current:
            self._passwords.delete_password(removed)
        self._store_connections([info.without_password() for info in connections])
        LOG.debug("Saved connections", extra={"count": len(connections)})

    def get_connection_password(self, info: ConnectionInfo) -> str | None:
        return self._passwords.get_password(info.id)

    def get_state(self) -> GeneratorState:
        raise NotImplementedError

    def save_state(self, state: GeneratorState) -> None:
        raise NotImplementedError

    def save_table_info(self, table_infos: Sequence[TableInfo]) -> None:
        self.save_state(self.get_state().with_table_infos(table_infos))

    def get_table_info(self, partial: TableInfo) -> TableInfo | None:
        return self.get_state().find_table_info(partial)

    def add_history(self, category: HistoryCategory, value: str) -> None:
        state = self.get_state()
        updated = state.with_history_entry(category, value, limit=self._history_size)
        if updated is not state:
            self.save_state(updated)

    def clear_history(self) -> None:
        self.save_state(self.get_state().without_history())

    def _load_connections(self) -> Sequence[ConnectionInfo]:
        raise NotImplementedError

    def _store_connections(self, connections: Sequence[ConnectionInfo]) -> None:
        raise NotImplementedError


class InMemorySettingsManager(BaseSettingsManager):
    """Settings kept in memory; used by tests and embedding callers."""

    def __init__(
        self,
        connections: Sequence[ConnectionInfo] = (),
        *,
        password_store: PasswordStore | None = None,
        state: GeneratorState | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        super().__init__(password_store or InMemoryPasswordStore(), history_size=history_size)
        self._connections: tuple[ConnectionInfo, ...] = ()
        self._state = state or GeneratorState()
        if connections:
            self.save_connection_info(connections)

    def get_state(self) -> GeneratorState:
        return self._state.model_copy(deep=True)

    def save_state(self, state: GeneratorState) -> None:
        self._state = state.model_copy(deep=True)

    def _load_connections(self) -> Sequence[ConnectionInfo]:
        return self._connections

    def _store_connections(self, connections: Sequence[ConnectionInfo]) -> None:
        self._connections = tuple(connections)


class FileSettingsManager(BaseSettingsManager):
    """Settings persisted under a config directory.

    Connections live in ``config.toml`` and generator state in
    ``state.json``; passwords go to the password store.
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        *,
        password_store: PasswordStore | None = None,
        config: BuilderConfig | None = None,
    ) -> None:
        self._config_dir = config_dir or CONFIG_DIR
        self._config = config or load_config(self.config_file)
        super().__init__(password_store or KeyringPasswordStore(), history_size=self._config.history_size)

    @property
    def config_file(self) -> Path:
        return self._config_dir / "config.toml"

    @property
    def state_file(self) -> Path:
        return self._config_dir / STATE_FILE_NAME

    @property
    def config(self) -> BuilderConfig:
        return self._config

    def get_state(self) -> GeneratorState:
        try:
            raw = self.state_file.read_text()
        except FileNotFoundError:
            return GeneratorState()
        try:
            return GeneratorState.model_validate_json(raw)
        except ValidationError:
            LOG.warning("Ignoring unreadable generator state", extra={"path": str(self.state_file)})
            return GeneratorState()

    def save_state(self, state: GeneratorState) -> None:
        self._config_dir.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(state.model_dump_json(indent=2))

    def _load_connections(self) -> Sequence[ConnectionInfo]:
        return tuple(entry.to_connection_info() for entry in self._config.connections)

    def _store_connections(self, connections: Sequence[ConnectionInfo]) -> None:
        config = self._config.with_connections(
            [ConnectionInfoConfig.from_connection_info(info) for info in connections]
        )
        save_config(config, self.config_file)
        self._config = config


__all__ = [
    "BaseSettingsManager",
    "DefaultParameters",
    "FileSettingsManager",
    "GeneratorParamWrapper",
    "GeneratorState",
    "HistoryCategory",
    "InMemorySettingsManager",
    "PackageTarget",
    "SettingsManager",
    "STATE_FILE_NAME",
    "TableInfo",
]
