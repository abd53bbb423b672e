"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

from .models import ConnectionInfo, get_driver_type

CONFIG_DIR = Path.home() / ".config" / "dbgen"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_HISTORY_SIZE = 10


class ConnectionInfoConfig(BaseModel):
    """Connection entry stored in config.toml (never holds a password)."""

    id: str
    driver: str
    name: str | None = None
    url: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None

    def to_connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            id=self.id,
            driver_type=get_driver_type(self.driver),
            name=self.name,
            url=self.url,
            host=self.host,
            port=self.port,
            database=self.database,
            username=self.username,
        )

    @classmethod
    def from_connection_info(cls, info: ConnectionInfo) -> ConnectionInfoConfig:
        return cls(
            id=info.id,
            driver=info.driver_type.name,
            name=info.name,
            url=info.url,
            host=info.host,
            port=info.port,
            database=info.database,
            username=info.username,
        )


class BuilderConfig(BaseModel):
    """Shape of the application configuration file."""

    log_level: str = "WARNING"
    history_size: int = DEFAULT_HISTORY_SIZE
    connections: list[ConnectionInfoConfig] = Field(default_factory=list)

    def with_connections(self, connections: list[ConnectionInfoConfig]) -> BuilderConfig:
        """Return a copy with the connection list replaced."""

        return self.model_copy(update={"connections": list(connections)})


def load_config(path: Path | None = None) -> BuilderConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except (tomllib.TOMLDecodeError, OSError):
        return BuilderConfig()

    connections_data = data.get("connections")
    connections: list[ConnectionInfoConfig] = []
    if isinstance(connections_data, list):
        connections = [
            ConnectionInfoConfig(**entry)
            for entry in connections_data  # type: ignore[list-item]
            if isinstance(entry, dict)
        ]

    return BuilderConfig(
        log_level=data.get("log_level", BuilderConfig.model_fields["log_level"].default),
        history_size=data.get("history_size", BuilderConfig.model_fields["history_size"].default),
        connections=connections,
    )


def save_config(config: BuilderConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f"log_level = {_quote(config.log_level)}",
        f"history_size = {config.history_size}",
    ]
    if config.connections:
        lines.append("")
        for connection in config.connections:
            lines.append("[[connections]]")
            lines.append(f"id = {_quote(connection.id)}")
            lines.append(f"driver = {_quote(connection.driver)}")
            for key in ("name", "url", "host", "database", "username"):
                value = getattr(connection, key)
                if value:
                    lines.append(f"{key} = {_quote(value)}")
            if connection.port is not None:
                lines.append(f"port = {connection.port}")
            lines.append("")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")


_TOML_ESCAPES = {"\\": "\\\\", '"': '\\"', "\b": "\\b", "\t": "\\t", "\n": "\\n", "\f": "\\f", "\r": "\\r"}


def _quote(value: str) -> str:
    escaped = "".join(_escape_char(char) for char in value)
    return f'"{escaped}"'


def _escape_char(char: str) -> str:
    if char in _TOML_ESCAPES:
        return _TOML_ESCAPES[char]
    if char < " " or char == "\x7f":
        return f"\\u{ord(char):04X}"
    return char


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        log_level = raw.get("log_level")
        if isinstance(log_level, str):
            data["log_level"] = log_level
        history_size = raw.get("history_size")
        if isinstance(history_size, int) and history_size > 0:
            data["history_size"] = history_size
        connections = raw.get("connections")
        if isinstance(connections, list):
            parsed_connections: list[dict[str, object]] = []
            for connection in connections:
                if not isinstance(connection, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in ("id", "driver", "name", "url", "host", "database", "username"):
                    value = connection.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                port = connection.get("port")
                if isinstance(port, int):
                    parsed["port"] = port
                if parsed.get("id") and parsed.get("driver"):
                    parsed_connections.append(parsed)
            data["connections"] = parsed_connections
    return data


__all__ = [
    "BuilderConfig",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "ConnectionInfoConfig",
    "DEFAULT_HISTORY_SIZE",
    "load_config",
    "save_config",
]
