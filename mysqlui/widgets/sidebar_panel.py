"""Resizable sidebar holding the filter inputs and the schema tree."""

from __future__ import annotations

from typing import Callable

from textual import events
from textual.app import ComposeResult
from textual.containers import Container, Vertical
from textual.widgets import Static

from mysqlui.session import Session

from .filter_bar import FilterBar
from .schema_tree import SchemaTree

MIN_WIDTH = 22
MAX_WIDTH = 80
DEFAULT_WIDTH = 36


class SidebarPanel(Container):
    """Sidebar column plus a draggable handle that reports its new width."""

    DEFAULT_CSS = """
    SidebarPanel {
        layout: horizontal;
        height: 1fr;
    }

    SidebarPanel #sidebar-column {
        height: 1fr;
        background: $surface-darken-2;
    }

    SidebarResizeHandle {
        width: 1;
        min-width: 1;
        height: 100%;
        background: $surface-darken-2;
        color: $text-muted;
    }

    SidebarResizeHandle.dragging,
    SidebarPanel.resizing SidebarResizeHandle {
        background: $primary;
        color: $text;
    }
    """

    def __init__(
        self,
        session: Session,
        *,
        initial_width: int | None = None,
        on_width_change: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(id="sidebar-panel")
        self.schema_tree = SchemaTree(session.tree)
        self.filters = FilterBar(session.filter_state)
        self._column = Vertical(self.filters, self.schema_tree, id="sidebar-column")
        self._on_width_change = on_width_change or (lambda _: None)
        self._width = clamp_width(initial_width or DEFAULT_WIDTH)
        self._drag_origin: tuple[int, int] | None = None
        self.styles.flex = "0 0 auto"

    @property
    def width(self) -> int:
        return self._width

    @property
    def resizing(self) -> bool:
        return self._drag_origin is not None

    def compose(self) -> ComposeResult:
        self._apply_width(self._width)
        yield self._column
        yield SidebarResizeHandle(self)

    def begin_resize(self, screen_x: int) -> None:
        self._drag_origin = (screen_x, self._width)
        self.set_class(True, "resizing")

    def update_resize(self, screen_x: int) -> None:
        if self._drag_origin is None:
            return
        start_x, start_width = self._drag_origin
        self._apply_width(clamp_width(start_width + screen_x - start_x))

    def end_resize(self) -> None:
        if self._drag_origin is None:
            return
        self._drag_origin = None
        self.set_class(False, "resizing")
        self._on_width_change(self._width)

    def _apply_width(self, width: int) -> None:
        self._width = width
        self._column.styles.width = width
        self.styles.width = width + 1


def clamp_width(width: int) -> int:
    return max(MIN_WIDTH, min(MAX_WIDTH, int(width)))


class SidebarResizeHandle(Static):
    """Drag target on the sidebar's right edge."""

    def __init__(self, panel: SidebarPanel) -> None:
        super().__init__("┃", id="sidebar-resize-handle")
        self._panel = panel

    def on_mouse_down(self, event: events.MouseDown) -> None:
        self.capture_mouse()
        self._panel.begin_resize(event.screen_x)
        self.set_class(True, "dragging")

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self._panel.resizing:
            self._panel.update_resize(event.screen_x)

    def on_mouse_up(self, event: events.MouseUp) -> None:
        self.release_mouse()
        self._panel.end_resize()
        self.set_class(False, "dragging")


__all__ = ["SidebarPanel", "clamp_width"]
