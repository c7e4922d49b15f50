"""Lazy Connection -> Database -> Table -> Column tree model and filter state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from keyring.errors import KeyringError

from .connections import ConnectionBackendError
from .metadata import SchemaCatalog
from .models import ColumnInfo, ConnectionProfile, TableInfo, table_key
from .query import QueryExecutionError
from .registry import ConnectionRegistry

LOG = logging.getLogger(__name__)

FilterListener = Callable[["FilterState"], None]
RefreshListener = Callable[[], None]


class NodeKind(str, Enum):
    CONNECTION = "connection"
    DATABASE = "database"
    TABLE = "table"
    COLUMN = "column"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class ConnectionNode:
    profile: ConnectionProfile

    @property
    def kind(self) -> NodeKind:
        return NodeKind.CONNECTION


@dataclass(frozen=True, slots=True)
class DatabaseNode:
    profile: ConnectionProfile
    database: str

    @property
    def kind(self) -> NodeKind:
        return NodeKind.DATABASE


@dataclass(frozen=True, slots=True)
class TableNode:
    profile: ConnectionProfile
    database: str
    table: str
    comment: str = ""
    pinned: bool = False

    @property
    def kind(self) -> NodeKind:
        return NodeKind.TABLE

    @property
    def key(self) -> str:
        return table_key(self.profile.host, self.profile.port, self.database, self.table)


@dataclass(frozen=True, slots=True)
class ColumnNode:
    profile: ConnectionProfile
    database: str
    table: str
    column: ColumnInfo

    @property
    def kind(self) -> NodeKind:
        return NodeKind.COLUMN


@dataclass(frozen=True, slots=True)
class InfoNode:
    """Placeholder leaf carrying an error or informational message."""

    message: str

    @property
    def kind(self) -> NodeKind:
        return NodeKind.INFO


TreeNode = Union[ConnectionNode, DatabaseNode, TableNode, ColumnNode, InfoNode]


@dataclass(frozen=True, slots=True)
class TreeItem:
    """Render descriptor handed to the tree widget."""

    label: str
    kind: NodeKind
    context: str
    expandable: bool
    expanded: bool = False
    id: str | None = None
    description: str = ""
    icon: str = ""


class FilterState:
    """Table/column filter text plus the expand-all flag.

    Listeners only fire when a value actually changes.
    """

    def __init__(self) -> None:
        self._table_filter = ""
        self._column_filter = ""
        self._all_expanded = False
        self._expand_version = 0
        self._listeners: set[FilterListener] = set()

    @property
    def table_filter(self) -> str:
        return self._table_filter

    @property
    def column_filter(self) -> str:
        return self._column_filter

    @property
    def all_expanded(self) -> bool:
        return self._all_expanded

    @property
    def expand_version(self) -> int:
        return self._expand_version

    @property
    def active(self) -> bool:
        return bool(self._table_filter or self._column_filter)

    def subscribe(self, listener: FilterListener) -> Callable[[], None]:
        """Register a change listener and return an unsubscribe callback."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def set_table_filter(self, text: str) -> None:
        text = text.strip()
        if text == self._table_filter:
            return
        self._table_filter = text
        self._notify()

    def set_column_filter(self, text: str) -> None:
        text = text.strip()
        if text == self._column_filter:
            return
        self._column_filter = text
        self._notify()

    def clear(self) -> None:
        if not self.active:
            return
        self._table_filter = ""
        self._column_filter = ""
        self._notify()

    def set_all_expanded(self, expanded: bool) -> None:
        if expanded == self._all_expanded:
            return
        self._all_expanded = expanded
        self._expand_version += 1
        self._notify()

    def toggle_all_expanded(self) -> bool:
        self.set_all_expanded(not self._all_expanded)
        return self._all_expanded

    def matches_table(self, table: TableInfo) -> bool:
        needle = self._table_filter.lower()
        if not needle:
            return True
        return needle in table.name.lower() or needle in table.comment.lower()

    def matches_column(self, column: ColumnInfo) -> bool:
        needle = self._column_filter.lower()
        if not needle:
            return True
        return (
            needle in column.name.lower()
            or needle in column.comment.lower()
            or needle in column.column_type.lower()
        )

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                LOG.exception("Filter listener failed")


class TreeModel:
    """Child accessors and render descriptors for the schema tree.

    ``children`` re-queries the server on every call and never raises; a
    failed lookup yields a single ``InfoNode`` carrying the error text.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        catalog: SchemaCatalog,
        filter_state: FilterState,
        *,
        max_table_count: int = 500,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._filter = filter_state
        self._max_table_count = max_table_count
        self._listeners: set[RefreshListener] = set()

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def refresh(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                LOG.exception("Tree refresh listener failed")

    def roots(self) -> list[TreeNode]:
        return [ConnectionNode(profile) for profile in self._registry.list()]

    async def children(self, node: TreeNode) -> list[TreeNode]:
        try:
            if isinstance(node, ConnectionNode):
                return await self._databases(node)
            if isinstance(node, DatabaseNode):
                return await self._tables(node)
            if isinstance(node, TableNode):
                return await self._columns(node)
        except (ConnectionBackendError, QueryExecutionError, KeyringError) as exc:
            LOG.warning("Tree lookup failed", extra={"node": node.kind.value, "reason": str(exc)})
            return [InfoNode(str(exc))]
        return []

    def describe(self, node: TreeNode) -> TreeItem:
        if isinstance(node, ConnectionNode):
            return TreeItem(
                label=node.profile.label,
                kind=node.kind,
                context="connection",
                expandable=True,
                expanded=self._filter.all_expanded,
                id=f"{node.profile.id}#v{self._filter.expand_version}",
                icon="🖥",
            )
        if isinstance(node, DatabaseNode):
            return TreeItem(
                label=node.database,
                kind=node.kind,
                context="database",
                expandable=True,
                expanded=self._filter.all_expanded,
                id=f"{node.profile.id}:{node.database}",
                icon="🗄",
            )
        if isinstance(node, TableNode):
            return TreeItem(
                label=f"⭐ {node.table}" if node.pinned else node.table,
                kind=node.kind,
                context="pinnedTable" if node.pinned else "table",
                expandable=True,
                expanded=bool(self._filter.column_filter) or self._filter.all_expanded,
                id=node.key,
                description=node.comment,
                icon="▦",
            )
        if isinstance(node, ColumnNode):
            column = node.column
            return TreeItem(
                label=f"{column.name} : {column.column_type}",
                kind=node.kind,
                context="column",
                expandable=False,
                description=column.comment,
                icon="🔑" if column.is_primary else "•",
            )
        return TreeItem(label=node.message, kind=node.kind, context="info", expandable=False, icon="ℹ")

    def toggle_pin(self, node: TableNode) -> bool:
        """Flip the pinned state of ``node``; returns the new state."""

        if node.pinned or node.key in self._registry.pinned_tables():
            self._registry.unpin(node.key)
            pinned = False
        else:
            self._registry.pin(node.key)
            pinned = True
        self.refresh()
        return pinned

    async def _databases(self, node: ConnectionNode) -> list[TreeNode]:
        options = self._registry.options_for(node.profile)
        databases = await self._catalog.list_databases(options)
        return [DatabaseNode(node.profile, name) for name in databases]

    async def _tables(self, node: DatabaseNode) -> list[TreeNode]:
        options = self._registry.options_for(node.profile, node.database)
        tables = await self._catalog.list_tables(options, node.database, self._max_table_count)
        pins = self._registry.pinned_tables()
        nodes = [
            TableNode(
                node.profile,
                node.database,
                info.name,
                comment=info.comment,
                pinned=table_key(node.profile.host, node.profile.port, node.database, info.name) in pins,
            )
            for info in tables
            if self._filter.matches_table(info)
        ]
        return sort_tables(nodes, pins)

    async def _columns(self, node: TableNode) -> list[TreeNode]:
        options = self._registry.options_for(node.profile, node.database)
        columns = await self._catalog.list_columns(options, node.database, node.table)
        return [
            ColumnNode(node.profile, node.database, node.table, column)
            for column in columns
            if self._filter.matches_column(column)
        ]


def sort_tables(nodes: list[TableNode], pins: list[str]) -> list[TreeNode]:
    """Pinned tables first in pin order, then the rest alphabetically."""

    order = {key: index for index, key in enumerate(pins)}

    def _sort_key(node: TableNode) -> tuple[int, int, str]:
        if node.pinned:
            return (0, order.get(node.key, len(order)), "")
        return (1, 0, node.table.lower())

    return sorted(nodes, key=_sort_key)


__all__ = [
    "ColumnNode",
    "ConnectionNode",
    "DatabaseNode",
    "FilterState",
    "InfoNode",
    "NodeKind",
    "TableNode",
    "TreeItem",
    "TreeModel",
    "TreeNode",
    "sort_tables",
]
