"""Modal screens standing in for input boxes, confirmations and quick picks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Label, OptionList, Static, TextArea
from textual.widgets.option_list import Option

from .models import TableInfo

_MODAL_CSS = """
{name} {
    align: center middle;
}

{name} > Vertical {
    width: 72;
    height: auto;
    max-height: 90%;
    padding: 1 2;
    border: thick $primary 60%;
    background: $surface;
}

{name} .dialog-title {
    text-style: bold;
    margin-bottom: 1;
}

{name} .dialog-actions {
    height: auto;
    margin-top: 1;
    align-horizontal: right;
}

{name} .dialog-actions > Button {
    margin-left: 1;
}
"""


def _modal_css(name: str) -> str:
    return _MODAL_CSS.replace("{name}", name)


@dataclass(frozen=True, slots=True)
class FormField:
    """One input of a ``FormScreen``."""

    name: str
    label: str
    placeholder: str = ""
    default: str = ""
    password: bool = False
    required: bool = False
    checkbox: bool = False


class FormScreen(ModalScreen[dict[str, str] | None]):
    """Collects several values at once; escape cancels with ``None``.

    Checkbox fields report ``"1"`` or ``""``.
    """

    DEFAULT_CSS = _modal_css("FormScreen")
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, fields: Sequence[FormField]) -> None:
        super().__init__()
        self._title = title
        self._fields = tuple(fields)

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(Text(self._title), classes="dialog-title")
            for field in self._fields:
                if field.checkbox:
                    yield Checkbox(field.label, value=bool(field.default), id=f"field-{field.name}")
                    continue
                yield Label(field.label + (" *" if field.required else ""))
                yield Input(
                    value=field.default,
                    placeholder=field.placeholder,
                    password=field.password,
                    id=f"field-{field.name}",
                )
            yield Static("", id="form-error")
            with Horizontal(classes="dialog-actions"):
                yield Button("Cancel", id="cancel")
                yield Button("OK", id="ok", variant="primary")

    def on_mount(self) -> None:
        first = next((f for f in self._fields if not f.checkbox), None)
        if first is not None:
            self.query_one(f"#field-{first.name}", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "ok":
            self._submit()
        else:
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self._submit()

    def values(self) -> dict[str, str]:
        collected: dict[str, str] = {}
        for field in self._fields:
            if field.checkbox:
                collected[field.name] = "1" if self.query_one(f"#field-{field.name}", Checkbox).value else ""
            else:
                collected[field.name] = self.query_one(f"#field-{field.name}", Input).value.strip()
        return collected

    def _submit(self) -> None:
        values = self.values()
        missing = [field.label for field in self._fields if field.required and not values[field.name]]
        if missing:
            self.query_one("#form-error", Static).update(Text(f"Required: {', '.join(missing)}"))
            return
        self.dismiss(values)


class PromptScreen(ModalScreen[str | None]):
    """Single-line input box; escape cancels."""

    DEFAULT_CSS = _modal_css("PromptScreen")
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str, *, placeholder: str = "", default: str = "") -> None:
        super().__init__()
        self._prompt = prompt
        self._placeholder = placeholder
        self._default = default

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(Text(self._prompt), classes="dialog-title")
            yield Input(value=self._default, placeholder=self._placeholder, id="prompt-input")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/No question; anything but Yes counts as No."""

    DEFAULT_CSS = _modal_css("ConfirmScreen")
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, question: str, *, confirm_label: str = "Yes") -> None:
        super().__init__()
        self._question = question
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(Text(self._question), classes="dialog-title")
            with Horizontal(classes="dialog-actions"):
                yield Button("No", id="no")
                yield Button(self._confirm_label, id="yes", variant="error")

    def on_mount(self) -> None:
        self.query_one("#no", Button).focus()

    def action_cancel(self) -> None:
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "yes")


def table_choice_label(table: TableInfo) -> str:
    return f"{table.name} - {table.comment}" if table.comment else table.name


def filter_table_choices(tables: Sequence[TableInfo], text: str, *, initial: int = 10) -> list[TableInfo]:
    """First ``initial`` tables when ``text`` is empty, else name/comment matches."""

    needle = text.strip().lower()
    if not needle:
        return list(tables[:initial])
    return [
        table
        for table in tables
        if needle in table.name.lower() or needle in table_choice_label(table).lower()
    ]


class TablePickerScreen(ModalScreen[str | None]):
    """Type-to-filter quick pick over the tables of the active database."""

    DEFAULT_CSS = _modal_css("TablePickerScreen") + """
    TablePickerScreen OptionList {
        height: 16;
    }
    """
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, tables: Sequence[TableInfo]) -> None:
        super().__init__()
        self._tables = tuple(tables)

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("Open table", classes="dialog-title")
            yield Input(placeholder="Type to filter tables...", id="picker-filter")
            yield OptionList(id="picker-options")

    def on_mount(self) -> None:
        self._populate("")
        self.query_one("#picker-filter", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        self._populate(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        options = self.query_one("#picker-options", OptionList)
        if options.option_count:
            index = options.highlighted if options.highlighted is not None else 0
            self.dismiss(options.get_option_at_index(index).id)

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self.dismiss(event.option.id)

    def _populate(self, text: str) -> None:
        options = self.query_one("#picker-options", OptionList)
        options.clear_options()
        options.add_options(
            Option(Text(table_choice_label(table)), id=table.name)
            for table in filter_table_choices(self._tables, text)
        )
        if options.option_count:
            options.highlighted = 0


class TextViewerScreen(ModalScreen[str | None]):
    """Read-only document view; Ctrl+O sends the text to the query pad."""

    DEFAULT_CSS = """
    TextViewerScreen {
        align: center middle;
    }

    TextViewerScreen > Vertical {
        width: 95%;
        height: 90%;
        border: thick $primary 60%;
        background: $surface;
        padding: 0 1;
    }

    TextViewerScreen TextArea {
        height: 1fr;
    }
    """
    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("ctrl+o", "open_in_pad", "Open in query pad", priority=True),
    ]

    def __init__(self, title: str, text: str) -> None:
        super().__init__()
        self._title = title
        self._text = text

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(Text(f"{self._title}  (Esc close · Ctrl+O open in query pad)"), classes="dialog-title")
            yield TextArea(self._text, read_only=True, id="viewer-text")

    def action_close(self) -> None:
        self.dismiss(None)

    def action_open_in_pad(self) -> None:
        self.dismiss(self._text)


__all__ = [
    "ConfirmScreen",
    "FormField",
    "FormScreen",
    "PromptScreen",
    "TablePickerScreen",
    "TextViewerScreen",
    "filter_table_choices",
    "table_choice_label",
]
