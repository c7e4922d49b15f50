"""Tests for the connection registry."""

from __future__ import annotations

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from mysqlui import registry as registry_module
from mysqlui.config import ConfigStore
from mysqlui.registry import ConnectionRegistry, KeyringSecretStore, ProfileNotFoundError

from .conftest import LockedSecretStore, MemorySecretStore


def test_add_stores_password_in_secret_store_only(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)

    profile_id = registry.add("db1", "root", port=3307, password="hunter2", display_name="Primary")

    entry = store.config.connections[profile_id]
    assert entry.host == "db1"
    assert entry.port == 3307
    assert "password" not in entry.model_dump()
    assert secrets.secrets[profile_id] == "hunter2"
    assert registry.get(profile_id).label == "Primary"


def test_add_without_password_skips_secret_store(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)

    profile_id = registry.add("db1", "root", password="", cert_path="")

    assert profile_id not in secrets.secrets
    assert registry.get(profile_id).cert_path is None
    assert registry.password_for(profile_id) is None


def test_add_saves_profile_before_storing_secret(store: ConfigStore) -> None:
    saved_at_set: list[bool] = []

    class _Recording(MemorySecretStore):
        def set(self, key: str, secret: str) -> None:
            saved_at_set.append(key in store.config.connections)
            super().set(key, secret)

    ConnectionRegistry(store, _Recording()).add("db1", "root", password="pw")

    assert saved_at_set == [True]


def test_add_rolls_back_profile_when_secret_store_fails(store: ConfigStore) -> None:
    registry = ConnectionRegistry(store, LockedSecretStore())

    with pytest.raises(KeyringError):
        registry.add("db1", "root", password="pw")

    assert registry.list() == []
    assert store.config.connections == {}


def test_add_generates_unique_ids(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)

    first = registry.add("db1", "root")
    second = registry.add("db1", "root")

    assert first != second
    assert [profile.id for profile in registry.list()] == [first, second]


def test_delete_removes_profile_and_secret(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)
    profile_id = registry.add("db1", "root", password="pw")

    registry.delete(profile_id)

    assert registry.list() == []
    assert secrets.deleted == [profile_id]
    with pytest.raises(ProfileNotFoundError):
        registry.get(profile_id)


def test_delete_unknown_profile_raises(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)

    with pytest.raises(ProfileNotFoundError):
        registry.delete("missing")
    assert secrets.deleted == []


def test_rename_changes_label(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)
    profile_id = registry.add("db1", "root")

    renamed = registry.rename(profile_id, "Reporting")

    assert renamed.label == "Reporting"
    assert registry.get(profile_id).display_name == "Reporting"
    assert registry.rename(profile_id, "").label == "db1"


def test_options_for_resolves_secret_and_database(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)
    profile_id = registry.add("db1", "root", port=3310, password="pw", cert_path="/tmp/ca.pem")

    options = registry.options_for(registry.get(profile_id), "shop")

    assert options.password == "pw"
    assert options.database == "shop"
    assert options.port == 3310
    assert options.cert_path == "/tmp/ca.pem"


def test_pin_and_unpin_keep_order_without_duplicates(store: ConfigStore, secrets: MemorySecretStore) -> None:
    registry = ConnectionRegistry(store, secrets)

    assert registry.pin("h:3306:shop:orders") is True
    assert registry.pin("h:3306:shop:users") is True
    assert registry.pin("h:3306:shop:orders") is False
    assert registry.pinned_tables() == ["h:3306:shop:orders", "h:3306:shop:users"]

    assert registry.unpin("h:3306:shop:orders") is True
    assert registry.unpin("h:3306:shop:orders") is False
    assert store.config.pinned_tables == ["h:3306:shop:users"]


def test_keyring_store_ignores_missing_secret_on_delete(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, str]] = []

    def _delete(service: str, key: str) -> None:
        calls.append((service, key))
        raise PasswordDeleteError("not found")

    monkeypatch.setattr(registry_module.keyring, "delete_password", _delete)

    KeyringSecretStore().delete("abc")

    assert calls == [("mysqlui", "abc")]
