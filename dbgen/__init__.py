"""Database metadata discovery and generator-parameter staging for code generators."""

from __future__ import annotations

__version__ = "0.1.0"

from .connections import DatabaseAccessError, DefaultDataSourceFactory
from .metadata import MetadataNormalizer
from .models import ColumnInfo, ConnectionInfo, DatabaseItem, Dialect, DriverType, ItemType
from .service import BuilderService, ConnectionNotFoundError
from .settings import (
    DefaultParameters,
    FileSettingsManager,
    GeneratorParamWrapper,
    HistoryCategory,
    InMemorySettingsManager,
    PackageTarget,
    TableInfo,
)
from .urls import resolve_url

__all__ = [
    "BuilderService",
    "ColumnInfo",
    "ConnectionInfo",
    "ConnectionNotFoundError",
    "DatabaseAccessError",
    "DatabaseItem",
    "DefaultDataSourceFactory",
    "DefaultParameters",
    "Dialect",
    "DriverType",
    "FileSettingsManager",
    "GeneratorParamWrapper",
    "HistoryCategory",
    "InMemorySettingsManager",
    "ItemType",
    "MetadataNormalizer",
    "PackageTarget",
    "TableInfo",
    "__version__",
    "resolve_url",
]
