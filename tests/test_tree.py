"""Tests for the schema tree model and filter state."""

from __future__ import annotations

import pytest

from mysqlui.config import ConfigStore
from mysqlui.connections import ConnectionBackendError
from mysqlui.metadata import SchemaCatalog
from mysqlui.models import ColumnInfo, TableInfo
from mysqlui.registry import ConnectionRegistry
from mysqlui.tree import (
    ColumnNode,
    ConnectionNode,
    DatabaseNode,
    FilterState,
    InfoNode,
    NodeKind,
    TableNode,
    TreeModel,
)

from .conftest import FakeExecutor, LockedSecretStore, MemorySecretStore


def _model(
    store: ConfigStore, secrets: MemorySecretStore, executor: FakeExecutor, *, max_table_count: int = 500
) -> tuple[TreeModel, ConnectionRegistry]:
    registry = ConnectionRegistry(store, secrets)
    model = TreeModel(registry, SchemaCatalog(executor), FilterState(), max_table_count=max_table_count)
    return model, registry


def _tables(*names: tuple[str, str]) -> list[dict[str, object]]:
    return [{"TABLE_NAME": name, "TABLE_COMMENT": comment} for name, comment in names]


def _columns(*specs: tuple[str, str, str, str]) -> list[dict[str, object]]:
    return [
        {"COLUMN_NAME": name, "COLUMN_TYPE": column_type, "COLUMN_COMMENT": comment, "COLUMN_KEY": key}
        for name, column_type, comment, key in specs
    ]


def test_filter_state_notifies_only_on_change() -> None:
    state = FilterState()
    seen: list[str] = []
    unsubscribe = state.subscribe(lambda s: seen.append(s.table_filter))

    state.set_table_filter(" ord ")
    state.set_table_filter("ord")
    state.clear()
    state.clear()
    unsubscribe()
    state.set_table_filter("users")

    assert seen == ["ord", ""]


def test_filter_state_matches_names_comments_and_types() -> None:
    state = FilterState()
    state.set_table_filter("ORD")
    state.set_column_filter("varchar")

    assert state.matches_table(TableInfo("orders"))
    assert state.matches_table(TableInfo("t1", comment="Order lines"))
    assert not state.matches_table(TableInfo("users"))
    assert state.matches_column(ColumnInfo("email", "varchar(255)"))
    assert not state.matches_column(ColumnInfo("id", "int"))


def test_toggle_all_expanded_bumps_version() -> None:
    state = FilterState()

    assert state.toggle_all_expanded() is True
    assert state.toggle_all_expanded() is False
    assert state.expand_version == 2
    state.set_all_expanded(False)
    assert state.expand_version == 2


def test_roots_list_registered_connections(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root", display_name="Primary")

    roots = model.roots()

    assert len(roots) == 1
    item = model.describe(roots[0])
    assert item.label == "Primary"
    assert item.kind is NodeKind.CONNECTION
    assert item.expandable is True


@pytest.mark.anyio
async def test_connection_children_skip_system_databases(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    fake_executor.route(
        "SHOW DATABASES",
        [{"Database": name} for name in ("information_schema", "shop", "mysql", "sys", "performance_schema", "crm")],
    )

    children = await model.children(model.roots()[0])

    assert [child.database for child in children] == ["shop", "crm"]
    options, _, _ = fake_executor.fetch_calls[0]
    assert options.database is None


@pytest.mark.anyio
async def test_database_children_filter_and_pin_order(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor, max_table_count=25)
    registry.add("db1", "root")
    profile = registry.list()[0]
    fake_executor.route(
        "information_schema.TABLES",
        _tables(("users", ""), ("orders", "Order headers"), ("audit", ""), ("order_lines", "")),
    )
    registry.pin("db1:3306:shop:order_lines")
    registry.pin("db1:3306:shop:audit")

    children = await model.children(DatabaseNode(profile, "shop"))

    assert [child.table for child in children] == ["order_lines", "audit", "orders", "users"]
    assert [child.pinned for child in children] == [True, True, False, False]
    assert fake_executor.fetch_calls[0][2] == ("shop", 25)

    model.filter_state.set_table_filter("order")
    filtered = await model.children(DatabaseNode(profile, "shop"))

    assert [child.table for child in filtered] == ["order_lines", "orders"]


@pytest.mark.anyio
async def test_table_children_are_filtered_columns(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    profile = registry.list()[0]
    fake_executor.route(
        "information_schema.COLUMNS",
        _columns(("id", "int", "", "PRI"), ("email", "varchar(255)", "Login", ""), ("created", "datetime", "", "")),
    )
    model.filter_state.set_column_filter("login")

    children = await model.children(TableNode(profile, "shop", "users"))

    assert len(children) == 1
    column = children[0]
    assert isinstance(column, ColumnNode)
    item = model.describe(column)
    assert item.label == "email : varchar(255)"
    assert item.description == "Login"
    assert item.expandable is False


@pytest.mark.anyio
async def test_children_failure_becomes_info_node(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    fake_executor.route("SHOW DATABASES", ConnectionBackendError("Failed to connect to root@db1:3306"))

    children = await model.children(model.roots()[0])

    assert len(children) == 1
    assert isinstance(children[0], InfoNode)
    assert "Failed to connect" in model.describe(children[0]).label


@pytest.mark.anyio
async def test_children_secret_store_failure_becomes_info_node(
    store: ConfigStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, LockedSecretStore(), fake_executor)
    registry.add("db1", "root")
    connection = model.roots()[0]

    children = await model.children(connection)
    tables = await model.children(DatabaseNode(connection.profile, "shop"))

    assert [type(child) for child in children + tables] == [InfoNode, InfoNode]
    assert "No recommended backend" in model.describe(children[0]).label
    assert fake_executor.fetch_calls == []


def test_describe_marks_pinned_tables_and_primary_keys(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    profile = registry.list()[0]

    pinned = model.describe(TableNode(profile, "shop", "orders", pinned=True))
    column = model.describe(ColumnNode(profile, "shop", "orders", ColumnInfo("id", "int", key="PRI")))

    assert pinned.label == "⭐ orders"
    assert pinned.context == "pinnedTable"
    assert pinned.id == "db1:3306:shop:orders"
    assert column.icon == "🔑"


def test_describe_expansion_follows_filters(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    profile = registry.list()[0]
    connection = ConnectionNode(profile)
    table = TableNode(profile, "shop", "orders")

    before = model.describe(connection)
    assert model.describe(table).expanded is False

    model.filter_state.set_column_filter("id")
    assert model.describe(table).expanded is True

    model.filter_state.set_all_expanded(True)
    after = model.describe(connection)
    assert after.expanded is True
    assert after.id != before.id
    assert model.describe(DatabaseNode(profile, "shop")).expanded is True


def test_toggle_pin_updates_registry_and_refreshes(
    store: ConfigStore, secrets: MemorySecretStore, fake_executor: FakeExecutor
) -> None:
    model, registry = _model(store, secrets, fake_executor)
    registry.add("db1", "root")
    profile = registry.list()[0]
    refreshes: list[int] = []
    model.subscribe(lambda: refreshes.append(1))
    node = TableNode(profile, "shop", "orders")

    assert model.toggle_pin(node) is True
    assert registry.pinned_tables() == ["db1:3306:shop:orders"]
    assert model.toggle_pin(TableNode(profile, "shop", "orders", pinned=True)) is False
    assert registry.pinned_tables() == []
    assert len(refreshes) == 2
