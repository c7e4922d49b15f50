"""Widget library for the Textual UI."""

from __future__ import annotations

from .filter_bar import FilterBar
from .query_pad import QueryPad
from .result_view import ResultView
from .schema_tree import SchemaTree
from .sidebar_panel import SidebarPanel
from .status_bar import StatusBar

__all__ = ["FilterBar", "QueryPad", "ResultView", "SchemaTree", "SidebarPanel", "StatusBar"]
