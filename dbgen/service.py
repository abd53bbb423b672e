"""Unified service used by front-ends: connections, metadata and generator state."""

from __future__ import annotations

import logging
from typing import Sequence

from .connections import DataSourceFactory, DatabaseAccessError
from .metadata import MetadataNormalizer
from .models import ColumnInfo, ConnectionInfo, DatabaseItem
from .settings import (
    DefaultParameters,
    GeneratorParamWrapper,
    HistoryCategory,
    SettingsManager,
    TableInfo,
)

LOG = logging.getLogger(__name__)


class ConnectionNotFoundError(DatabaseAccessError):
    """Raised when an operation names a connection id that is not saved."""


class BuilderService:
    """Facade over the settings manager and the metadata normalizer."""

    def __init__(
        self,
        settings: SettingsManager,
        data_sources: DataSourceFactory | None = None,
    ) -> None:
        self._settings = settings
        self._metadata = MetadataNormalizer(data_sources)

    # Connections

    def save_connection_info(self, connections: Sequence[ConnectionInfo]) -> None:
        self._settings.save_connection_info(connections)

    def load_connection_info_list(self) -> list[ConnectionInfo]:
        """Saved connections, without passwords."""

        return self._settings.get_connection_info_list()

    def load_connection_info_list_with_password(self) -> list[ConnectionInfo]:
        """Copies of the saved connections with passwords filled in."""

        return [self._with_password(info) for info in self.load_connection_info_list()]

    def get_connection_info_with_password(self, connection_id: str) -> ConnectionInfo:
        for info in self.load_connection_info_list():
            if info.id == connection_id:
                return self._with_password(info)
        raise ConnectionNotFoundError(f"Connection '{connection_id}' not found, please add it first.")

    def test_connection(self, info: ConnectionInfo) -> None:
        """Open and close a connection; raises :class:`DatabaseAccessError` on failure."""

        self._metadata.test_connection(info)

    # Metadata

    def fetch_databases(self, connection_id: str) -> list[DatabaseItem]:
        info = self.get_connection_info_with_password(connection_id)
        return self._metadata.list_databases(info)

    def fetch_tables(self, connection_id: str, database: str) -> list[DatabaseItem]:
        info = self.get_connection_info_with_password(connection_id)
        return self._metadata.list_tables(info, database)

    def fetch_columns(self, info: ConnectionInfo, table_info: TableInfo) -> list[ColumnInfo]:
        return self._metadata.list_columns(info, table_info)

    # Generator parameters

    def stash_generator_params(self, params: GeneratorParamWrapper) -> None:
        """Remember ``params`` as the last run and record its packages in history."""

        state = self._settings.get_state()
        self._settings.save_state(state.model_copy(update={"last_params": params.model_copy(deep=True)}))
        self._settings.save_table_info(params.selected_tables)
        for category, target in params.package_targets().items():
            if target is not None:
                self._settings.add_history(category, target.target_package)

    def get_last_generator_params(self) -> GeneratorParamWrapper | None:
        return self._settings.get_state().last_params

    def get_last_table_info(self, partial: TableInfo) -> TableInfo | None:
        return self._settings.get_table_info(partial)

    def get_default_parameters(self) -> DefaultParameters:
        return self._settings.get_state().default_parameters.model_copy(deep=True)

    def save_default_parameters(self, parameters: DefaultParameters) -> None:
        state = self._settings.get_state()
        self._settings.save_state(state.model_copy(update={"default_parameters": parameters.model_copy(deep=True)}))

    def get_history(self) -> dict[HistoryCategory, list[str]]:
        return self._settings.get_state().history_map()

    def clear_history(self) -> None:
        self._settings.clear_history()

    def _with_password(self, info: ConnectionInfo) -> ConnectionInfo:
        try:
            password = self._settings.get_connection_password(info)
        except Exception:
            LOG.warning("Failed to get password", exc_info=True, extra={"connection": info.id})
            password = None
        return info.with_password(password if password is not None else info.password)


__all__ = ["BuilderService", "ConnectionNotFoundError"]
