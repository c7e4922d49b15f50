"""Sidebar tree rendering the lazy connection/database/table/column model."""

from __future__ import annotations

import logging
from typing import Callable

from rich.text import Text
from textual.binding import Binding
from textual.widgets import Tree
from textual.widgets.tree import TreeNode as UITreeNode

from mysqlui.tree import (
    ColumnNode,
    ConnectionNode,
    DatabaseNode,
    FilterState,
    InfoNode,
    TableNode,
    TreeModel,
    TreeNode,
)

LOG = logging.getLogger(__name__)


def node_key(node: TreeNode) -> str | None:
    """Stable identity used to restore expansion across reloads."""

    if isinstance(node, ConnectionNode):
        return node.profile.id
    if isinstance(node, DatabaseNode):
        return f"{node.profile.id}:{node.database}"
    if isinstance(node, TableNode):
        return f"{node.profile.id}:{node.key}"
    return None


class SchemaTree(Tree[TreeNode]):
    """Tree widget that re-queries children every time a node is expanded."""

    DEFAULT_CSS = """
    SchemaTree {
        height: 1fr;
        background: $surface-darken-2;
    }
    """

    BINDINGS = [
        Binding("n", "app.new_query", "New query", show=False),
        Binding("d", "app.select_database", "Use database", show=False),
        Binding("s", "app.select_top", "Top rows", show=False),
        Binding("c", "app.count_table", "Count", show=False),
        Binding("i", "app.show_structure", "Structure", show=False),
        Binding("p", "app.toggle_pin", "Pin/unpin", show=False),
        Binding("x", "app.drop_table", "Drop table", show=False),
        Binding("b", "app.backup_table", "Backup table", show=False),
        Binding("plus", "app.add_column", "Add column", show=False),
        Binding("l", "app.select_column", "Select column", show=False),
        Binding("f", "app.filter_by_column", "Filter by value", show=False),
        Binding("y", "app.copy_name", "Copy name", show=False),
        Binding("e", "app.insert_column_name", "Insert column", show=False),
        Binding("minus", "app.drop_column", "Drop column", show=False),
        Binding("r", "app.rename_connection", "Rename", show=False),
        Binding("delete", "app.delete_connection", "Delete connection", show=False),
    ]

    def __init__(self, model: TreeModel) -> None:
        super().__init__("Connections", id="schema-tree")
        self.show_root = False
        self._model = model
        self._expanded_keys: set[str] = set()
        self._expand_version = model.filter_state.expand_version
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def model(self) -> TreeModel:
        return self._model

    @property
    def selected(self) -> TreeNode | None:
        node = self.cursor_node
        if node is None:
            return None
        return node.data

    async def on_mount(self) -> None:
        self._unsubscribers.append(self._model.subscribe(self.reload))
        self._unsubscribers.append(self._model.filter_state.subscribe(self._handle_filter_change))
        self.reload()

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def reload(self) -> None:
        """Rebuild from the registry, re-expanding previously open nodes."""

        self._remember_expanded(self.root)
        version = self._model.filter_state.expand_version
        if version != self._expand_version:
            self._expanded_keys.clear()
            self._expand_version = version
        self.clear()
        self.root.expand()
        roots = self._model.roots()
        if not roots:
            self.root.add_leaf(Text("No connections. Press Ctrl+N to add one.", style="dim"), data=InfoNode("empty"))
            return
        for node in roots:
            self._add(self.root, node)

    async def on_tree_node_expanded(self, event: Tree.NodeExpanded[TreeNode]) -> None:
        node = event.node
        data = node.data
        if data is None or isinstance(data, (InfoNode, ColumnNode)):
            return
        key = node_key(data)
        if key is not None:
            self._expanded_keys.add(key)
        node.remove_children()
        loading = node.add_leaf(Text("Loading…", style="dim"))
        children = await self._model.children(data)
        loading.remove()
        for child in children:
            self._add(node, child)

    def on_tree_node_collapsed(self, event: Tree.NodeCollapsed[TreeNode]) -> None:
        data = event.node.data
        key = node_key(data) if data is not None else None
        if key is not None:
            self._expanded_keys.discard(key)

    def _add(self, parent: UITreeNode[TreeNode], node: TreeNode) -> UITreeNode[TreeNode]:
        item = self._model.describe(node)
        label = Text(f"{item.icon} {item.label}")
        if item.description:
            label.append(f"  {item.description}", style="dim")
        if isinstance(node, InfoNode):
            label.stylize("italic")
        if not item.expandable:
            return parent.add_leaf(label, data=node)
        child = parent.add(label, data=node, allow_expand=True)
        key = node_key(node)
        if item.expanded or (key is not None and key in self._expanded_keys):
            child.expand()
        return child

    def _remember_expanded(self, node: UITreeNode[TreeNode]) -> None:
        for child in node.children:
            data = child.data
            key = node_key(data) if data is not None else None
            if key is not None and child.is_expanded:
                self._expanded_keys.add(key)
                self._remember_expanded(child)

    def _handle_filter_change(self, _state: FilterState) -> None:
        self.reload()


__all__ = ["SchemaTree", "node_key"]
