"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from mysqlui import config as config_module
from mysqlui.config import (
    AppConfig,
    ConfigStore,
    ConnectionProfileConfig,
    LayoutState,
    Settings,
    load_config,
    save_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == AppConfig()
    assert result.settings.max_table_count == 500
    assert result.settings.enable_delimiter_operator is True


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
theme = "textual-light"
pinned_tables = ["db1:3306:shop:orders", "db1:3306:shop:orders", "db1:3306:shop:users"]

[settings]
max_table_count = 50
enable_delimiter_operator = false
page_size = -3

[connections."abc123"]
host = "db1"
user = "root"
port = "3307"
display_name = "Primary"

[connections.broken]
user = "nohost"

[layout]
sidebar_width = 30
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.theme == "textual-light"
    assert result.pinned_tables == ["db1:3306:shop:orders", "db1:3306:shop:users"]
    assert result.settings.max_table_count == 50
    assert result.settings.enable_delimiter_operator is False
    assert result.settings.page_size == 100
    assert list(result.connections) == ["abc123"]
    profile = result.connections["abc123"]
    assert profile.port == 3307
    assert profile.display_name == "Primary"
    assert profile.cert_path is None
    assert result.layout.sidebar_width == 30


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("theme = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result == AppConfig()


def test_save_config_round_trips_through_load(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "nested" / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    config = AppConfig(
        theme="textual-light",
        connections={
            "abc123": ConnectionProfileConfig(
                host="db1",
                user="root",
                port=3307,
                cert_path="/etc/ssl/ca.pem",
                display_name='Primary "east"',
            )
        },
        pinned_tables=["db1:3307:shop:orders"],
        settings=Settings(max_table_count=20, auto_limit=10),
        layout=LayoutState(sidebar_width=32),
    )

    save_config(config)

    content = config_path.read_text()
    assert 'theme = "textual-light"' in content
    assert '[connections."abc123"]' in content
    assert "[layout]" in content
    assert "password" not in content
    assert load_config() == config


def test_with_connection_and_without_connection() -> None:
    profile = ConnectionProfileConfig(host="db1", user="root")

    added = AppConfig().with_connection("abc", profile)
    removed = added.without_connection("abc")

    assert added.connections == {"abc": profile}
    assert removed.connections == {}
    assert removed.without_connection("missing") == removed


def test_with_layout_updates_state() -> None:
    config = AppConfig()

    updated = config.with_layout(sidebar_width=40)

    assert updated.layout.sidebar_width == 40
    assert config.layout.sidebar_width is None


def test_config_store_saves_updates(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    store = ConfigStore(AppConfig())

    store.update(store.config.with_pinned_tables(["h:1:d:t"]))

    assert store.config.pinned_tables == ["h:1:d:t"]
    assert load_config().pinned_tables == ["h:1:d:t"]


def test_config_store_without_autosave_keeps_disk_untouched(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    store = ConfigStore(AppConfig(), autosave=False)

    store.update(store.config.with_layout(sidebar_width=50))

    assert store.config.layout.sidebar_width == 50
    assert not config_path.exists()
