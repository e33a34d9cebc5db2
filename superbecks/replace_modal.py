"""Replacement order editor modal screen."""

from __future__ import annotations

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Static

from superbecks.errors import SuperbecksError
from superbecks.logs import get_logger
from superbecks.models import MenuItem
from superbecks.rendering import format_menu_label, format_money, format_qty_line, render_pointer_list
from superbecks.void_replace import VoidReplaceWorkflow

_logger = get_logger("replace_modal")

_MAX_MATCHES = 6


class ReplaceOrderModal(ModalScreen[str | None]):
    """Edit the DRAFT replacement of an order, then save or finalize it.

    Dismisses with the replacement id once finalized, or None on cancel.
    """

    BINDINGS = [
        ("escape", "close", "Cancel"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("up", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("enter", "activate_current", "Select"),
        ("plus", "change_qty(1)", "More"),
        ("equals_sign", "change_qty(1)", "More"),
        ("minus", "change_qty(-1)", "Less"),
        ("d", "remove_current", "Remove"),
        ("r", "edit_reason", "Reason"),
        Binding("ctrl+s", "save_draft", "Save draft", priority=True),
        Binding("ctrl+f", "finalize", "Finalize", priority=True),
    ]

    CSS = """
    ReplaceOrderModal {
        align: center middle;
        background: $background 60%;
    }

    #replace-dialog {
        width: 76;
        height: auto;
        max-height: 90%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #replace-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #replace-body {
        margin-bottom: 1;
        color: white;
    }

    #replace-status {
        color: #ffb3b3;
    }

    #replace-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    cursor_index = reactive(0)
    _LINE_KIND = "line"
    _ADD_FACTORY_KIND = "add_factory"
    _MODE_NORMAL = "normal"
    _MODE_ADDING = "adding"
    _MODE_REASON = "reason"

    def __init__(self, workflow: VoidReplaceWorkflow, menu: list[MenuItem], branch_name: str) -> None:
        super().__init__()
        self.workflow = workflow
        self.menu = menu
        self.branch_name = branch_name
        self.input_mode = self._MODE_NORMAL
        self.search_value = ""
        self.match_index = 0
        self.reason = ""
        self.busy = False
        self.status = ""

    def compose(self) -> ComposeResult:
        with Container(id="replace-dialog"):
            yield Static("Void & replace", id="replace-title")
            yield Static(id="replace-body")
            yield Static(id="replace-status")
            yield Static(id="replace-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event) -> None:
        if self.input_mode == self._MODE_NORMAL:
            return

        if event.key == "escape":
            self.input_mode = self._MODE_NORMAL
            self.search_value = ""
            self._refresh_content()
            event.stop()
            return

        if event.key == "enter":
            if self.input_mode == self._MODE_ADDING:
                self._confirm_add()
            else:
                self.input_mode = self._MODE_NORMAL
                self._refresh_content()
            event.stop()
            return

        if event.key in {"up", "down"} and self.input_mode == self._MODE_ADDING:
            matches = self._matches()
            if matches:
                delta = 1 if event.key == "down" else -1
                self.match_index = (self.match_index + delta) % len(matches)
            self._refresh_content()
            event.stop()
            return

        if event.key == "backspace":
            if self.input_mode == self._MODE_ADDING:
                self.search_value = self.search_value[:-1]
                self.match_index = 0
            else:
                self.reason = self.reason[:-1]
            self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            if self.input_mode == self._MODE_ADDING:
                self.search_value += event.character
                self.match_index = 0
            else:
                self.reason += event.character
            self.status = ""
            self._refresh_content()
            event.stop()
            return

        # Ignore all non-text keys while typing.
        event.stop()

    def action_close(self) -> None:
        if self.busy:
            return
        self.workflow.cancel()
        self.dismiss(None)

    def action_move_cursor(self, delta: int) -> None:
        if self.input_mode != self._MODE_NORMAL:
            return
        rows = self._rows()
        self.cursor_index = (self.cursor_index + delta) % len(rows)
        self._refresh_content()

    def action_activate_current(self) -> None:
        if self.busy:
            return
        row_kind, _ = self._rows()[self.cursor_index]
        if row_kind == self._ADD_FACTORY_KIND:
            self.input_mode = self._MODE_ADDING
            self.search_value = ""
            self.match_index = 0
            self._refresh_content()

    def action_change_qty(self, delta: int) -> None:
        menu_item_id = self._current_line_id()
        if menu_item_id is None or self.busy:
            return
        if delta > 0:
            self.workflow.increment(menu_item_id)
        else:
            self.workflow.decrement(menu_item_id)
        self._refresh_content()

    def action_remove_current(self) -> None:
        menu_item_id = self._current_line_id()
        if menu_item_id is None or self.busy:
            return
        self.workflow.remove(menu_item_id)
        self._refresh_content()

    def action_edit_reason(self) -> None:
        if self.busy:
            return
        self.input_mode = self._MODE_REASON
        self._refresh_content()

    def action_save_draft(self) -> None:
        if self.busy or self.input_mode != self._MODE_NORMAL:
            return
        self.busy = True
        self.status = "Saving draft..."
        self._refresh_content()
        self._run_save()

    def action_finalize(self) -> None:
        if self.busy or self.input_mode != self._MODE_NORMAL:
            return
        try:
            self.workflow.validate_finalize(self.reason)
        except SuperbecksError as exc:
            self.status = exc.message
            self._refresh_content()
            return
        self.busy = True
        self.status = "Finalizing..."
        self._refresh_content()
        self._run_finalize(self.reason)

    @work(thread=True, exclusive=True, group="replace")
    def _run_save(self) -> None:
        try:
            total = self.workflow.save_draft()
        except SuperbecksError as exc:
            self.app.call_from_thread(self._step_failed, exc.message)
            return
        self.app.call_from_thread(self._draft_saved, format_money(total))

    @work(thread=True, exclusive=True, group="replace")
    def _run_finalize(self, reason: str) -> None:
        try:
            new_order_id = self.workflow.finalize(reason)
        except SuperbecksError as exc:
            self.app.call_from_thread(self._step_failed, exc.message)
            return
        self.app.call_from_thread(self._finalized, new_order_id)

    def _draft_saved(self, total: str) -> None:
        self.busy = False
        self.status = f"Draft saved ({total})"
        self._refresh_content()

    def _finalized(self, new_order_id: str) -> None:
        self.busy = False
        self.dismiss(new_order_id)

    def _step_failed(self, message: str) -> None:
        _logger.info("replace_step_failed new=%s message=%r", self.workflow.new_order_id, message)
        self.busy = False
        self.status = message
        self._refresh_content()

    def _rows(self) -> list[tuple[str, str]]:
        rows: list[tuple[str, str]] = [(self._LINE_KIND, line.menu_item_id) for line in self.workflow.lines]
        rows.append((self._ADD_FACTORY_KIND, "Add item"))
        return rows

    def _current_line_id(self) -> str | None:
        if self.input_mode != self._MODE_NORMAL:
            return None
        rows = self._rows()
        if self.cursor_index >= len(rows):
            return None
        row_kind, row_value = rows[self.cursor_index]
        if row_kind != self._LINE_KIND:
            return None
        return row_value

    def _matches(self) -> list[MenuItem]:
        q = self.search_value.strip().lower()
        if not q:
            return self.menu[:_MAX_MATCHES]
        return [item for item in self.menu if q in item.name.lower()][:_MAX_MATCHES]

    def _confirm_add(self) -> None:
        matches = self._matches()
        self.input_mode = self._MODE_NORMAL
        self.search_value = ""
        if matches:
            item = matches[min(self.match_index, len(matches) - 1)]
            self.workflow.add_item(item)
            ids = [line.menu_item_id for line in self.workflow.lines]
            self.cursor_index = ids.index(item.id)
        self.match_index = 0
        self._refresh_content()

    def _refresh_content(self) -> None:
        body = self.query_one("#replace-body", Static)
        help_text = self.query_one("#replace-help", Static)
        status = self.query_one("#replace-status", Static)

        rows = self._rows()
        if self.cursor_index >= len(rows):
            self.cursor_index = max(0, len(rows) - 1)

        content = Text(style="white")
        old = self.workflow.old_order
        if old is not None:
            content.append(f"{self.branch_name} • replacing {old.id[:8]} ({format_money(old.total_amount)})", style="dim")
            content.append("\n\n")

        rendered: list[Text] = []
        for row_kind, row_value in rows:
            if row_kind == self._LINE_KIND:
                line = next(entry for entry in self.workflow.lines if entry.menu_item_id == row_value)
                rendered.append(format_qty_line(line.name, line.unit_price, line.qty))
            elif self.input_mode == self._MODE_ADDING:
                rendered.append(Text(f"[+] Add item: {self.search_value}|", style="bold white"))
            else:
                rendered.append(Text("[+] Add item", style="white"))
        content.append_text(render_pointer_list(rendered, self.cursor_index, len(rendered)))

        if self.input_mode == self._MODE_ADDING:
            matches = self._matches()
            content.append("\n")
            if not matches:
                content.append("\n    No matching menu items", style="dim")
            for idx, item in enumerate(matches):
                content.append("\n    ")
                content.append("• " if idx == self.match_index else "  ")
                content.append_text(format_menu_label(item))

        content.append(f"\n\nTotal {format_money(self.workflow.total)}", style="bold")
        content.append("\nReason: ")
        content.append(self.reason or "", style="bold white")
        if self.input_mode == self._MODE_REASON:
            content.append("|")

        if self.input_mode == self._MODE_ADDING:
            help_text.update("Type to search, ↑/↓ pick, Enter add, Esc stop adding")
        elif self.input_mode == self._MODE_REASON:
            help_text.update("Type the void reason, Enter/Esc done")
        else:
            help_text.update("J/K move, +/- qty, D remove, Enter add, R reason, Ctrl+S save, Ctrl+F finalize, Esc cancel")
        status.update(self.status)
        body.update(content)
