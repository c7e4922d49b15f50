"""App configuration loading helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "mysqlui" / "config.toml"


class LayoutState(BaseModel):
    """Persisted layout hints for the TUI."""

    sidebar_width: int | None = None


class Settings(BaseModel):
    """User-tunable behaviour switches."""

    max_table_count: int = 500
    enable_delimiter_operator: bool = True
    page_size: int = 100
    auto_limit: int = 100


class ConnectionProfileConfig(BaseModel):
    """Connection profile stored in config.toml (never holds the password)."""

    host: str
    user: str
    port: int = 3306
    cert_path: str | None = None
    display_name: str | None = None


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "textual-dark"
    connections: dict[str, ConnectionProfileConfig] = Field(default_factory=dict)
    pinned_tables: list[str] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)
    layout: LayoutState = Field(default_factory=LayoutState)

    def with_connection(self, profile_id: str, profile: ConnectionProfileConfig) -> AppConfig:
        """Return a copy with the given connection added or replaced."""

        connections = dict(self.connections)
        connections[profile_id] = profile
        return self.model_copy(update={"connections": connections})

    def without_connection(self, profile_id: str) -> AppConfig:
        connections = dict(self.connections)
        connections.pop(profile_id, None)
        return self.model_copy(update={"connections": connections})

    def with_pinned_tables(self, keys: list[str]) -> AppConfig:
        return self.model_copy(update={"pinned_tables": list(keys)})

    def with_layout(self, **updates: object) -> AppConfig:
        """Return a copy with layout state changes applied."""

        layout = self.layout.model_copy(update=updates)
        return self.model_copy(update={"layout": layout})


class ConfigStore:
    """Holds the current config and writes every change through to disk."""

    def __init__(self, config: AppConfig | None = None, *, autosave: bool = True) -> None:
        self._config = config if config is not None else load_config()
        self._autosave = autosave

    @property
    def config(self) -> AppConfig:
        return self._config

    def update(self, config: AppConfig) -> None:
        self._config = config
        if self._autosave:
            save_config(config)


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable config file", extra={"path": str(CONFIG_FILE)})
        return AppConfig()

    return AppConfig(
        theme=data.get("theme", AppConfig.model_fields["theme"].default),
        connections=data.get("connections", {}),
        pinned_tables=data.get("pinned_tables", []),
        settings=data.get("settings", Settings()),
        layout=data.get("layout", LayoutState()),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"theme = {_quote(config.theme)}"]
    pins = ", ".join(_quote(key) for key in config.pinned_tables)
    lines.append(f"pinned_tables = [{pins}]")
    settings = config.settings
    lines.append("")
    lines.append("[settings]")
    lines.append(f"max_table_count = {settings.max_table_count}")
    lines.append(f"enable_delimiter_operator = {str(settings.enable_delimiter_operator).lower()}")
    lines.append(f"page_size = {settings.page_size}")
    lines.append(f"auto_limit = {settings.auto_limit}")
    if config.layout.sidebar_width is not None:
        lines.append("")
        lines.append("[layout]")
        lines.append(f"sidebar_width = {config.layout.sidebar_width}")
    for profile_id, profile in config.connections.items():
        lines.append("")
        lines.append(f"[connections.{_quote(profile_id)}]")
        lines.append(f"host = {_quote(profile.host)}")
        lines.append(f"user = {_quote(profile.user)}")
        lines.append(f"port = {profile.port}")
        if profile.cert_path:
            lines.append(f"cert_path = {_quote(profile.cert_path)}")
        if profile.display_name:
            lines.append(f"display_name = {_quote(profile.display_name)}")
    CONFIG_FILE.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _quote(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    theme = raw.get("theme")
    if isinstance(theme, str):
        data["theme"] = theme
    pins = raw.get("pinned_tables")
    if isinstance(pins, list):
        seen: list[str] = []
        for key in pins:
            if isinstance(key, str) and key not in seen:
                seen.append(key)
        data["pinned_tables"] = seen
    settings = raw.get("settings")
    if isinstance(settings, dict):
        parsed_settings: dict[str, object] = {}
        for key in ("max_table_count", "page_size", "auto_limit"):
            value = settings.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value > 0:
                parsed_settings[key] = value
        delimiter = settings.get("enable_delimiter_operator")
        if isinstance(delimiter, bool):
            parsed_settings["enable_delimiter_operator"] = delimiter
        data["settings"] = Settings(**parsed_settings)
    connections = raw.get("connections")
    if isinstance(connections, dict):
        parsed_connections: dict[str, ConnectionProfileConfig] = {}
        for profile_id, entry in connections.items():
            if not isinstance(entry, dict):
                continue
            host = entry.get("host")
            user = entry.get("user")
            if not isinstance(host, str) or not isinstance(user, str):
                continue
            parsed: dict[str, object] = {"host": host, "user": user}
            port = entry.get("port")
            if isinstance(port, int):
                parsed["port"] = port
            elif isinstance(port, str) and port.isdigit():
                parsed["port"] = int(port)
            for key in ("cert_path", "display_name"):
                value = entry.get(key)
                if isinstance(value, str) and value:
                    parsed[key] = value
            parsed_connections[str(profile_id)] = ConnectionProfileConfig(**parsed)
        data["connections"] = parsed_connections
    layout = raw.get("layout")
    if isinstance(layout, dict):
        state: dict[str, object] = {}
        sidebar_width = layout.get("sidebar_width")
        if isinstance(sidebar_width, int):
            state["sidebar_width"] = sidebar_width
        data["layout"] = LayoutState(**state)
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConfigStore",
    "ConnectionProfileConfig",
    "LayoutState",
    "Settings",
    "load_config",
    "save_config",
]
