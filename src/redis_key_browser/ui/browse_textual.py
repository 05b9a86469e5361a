from __future__ import annotations

from collections.abc import Sequence
from functools import partial

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from ..store.base import StoreInterface
from .browse_loop import BrowseController, Job
from .browse_models import TYPE_LABELS, DetailPane, KeyName, ViewState
from .browse_state import BrowseEvent, BrowserStateMachine, KeyPress
from .value_render import display_key, format_ttl, ttl_badge

_DEFAULT_LIST_HEIGHT = 20
_SELECTED_STYLE = "bold on #3b4252"
_DETAIL_PAGE_KEYS = {"pageup": -1, "pagedown": 1}

_HELP_NORMAL = (
    "q Quit | r Refresh | Enter View details | / Search | Esc Clear filter | "
    "↑/↓ j/k Move | g/G First/Last | PgUp/PgDn Scroll details"
)
_HELP_SEARCH = "Type to filter | Enter Keep filter | Esc Clear and leave | ←/→ Move cursor"


def key_window(count: int, selected: int | None, height: int) -> tuple[int, int]:
    """Return the `[start, end)` slice of the key list that keeps `selected` in view."""

    if count <= 0 or height <= 0:
        return (0, 0)
    if count <= height:
        return (0, count)
    anchor = selected or 0
    start = min(max(0, anchor - height // 2), count - height)
    return (start, start + height)


def detail_page_step(key: str) -> int:
    """Return -1/1 for keys that page the detail pane, 0 for everything else."""

    return _DETAIL_PAGE_KEYS.get(key, 0)


def help_text(view: ViewState) -> str:
    return _HELP_SEARCH if view.mode == "search" else _HELP_NORMAL


def status_text(view: ViewState, *, endpoint: str) -> str:
    mode = "SEARCH" if view.mode == "search" else "NORMAL"
    parts = [endpoint, f"Keys {len(view.visible_keys)}/{len(view.all_keys)}", mode]
    if view.active_query and view.mode == "normal":
        parts.append(f"Filter: {view.active_query!r}")
    if view.status:
        parts.append(view.status)
    return " | ".join(parts)


def render_search_line(view: ViewState) -> Text:
    if view.search is not None:
        query = view.search.query
        cursor = view.search.cursor
        line = Text("Search: ", style="bold")
        line.append(query[:cursor])
        line.append(query[cursor : cursor + 1] or " ", style="reverse")
        line.append(query[cursor + 1 :])
        return line
    if view.active_query:
        line = Text("Filter: ", style="bold")
        line.append(view.active_query)
        line.append("  (/ edit, Esc clear)", style="dim")
        return line
    return Text("Press / to search keys", style="dim")


def render_key_lines(
    machine: BrowserStateMachine,
    *,
    height: int,
) -> Text:
    view = machine.view
    if not view.visible_keys:
        if view.all_keys:
            return Text("No keys match the current query.", style="dim")
        return Text("No keys in this database.", style="dim")
    start, end = key_window(len(view.visible_keys), view.selected, height)
    lines: list[Text] = []
    for idx in range(start, end):
        key = view.visible_keys[idx]
        selected = idx == view.selected
        line = Text(">" if selected else " ", style=_SELECTED_STYLE if selected else "")
        line.append(" ")
        line.append(display_key(key))
        meta = machine.meta_for(key)
        if machine.is_loading(key):
            badge = "  (…)"
        elif meta is not None:
            badge = f"  ({meta.type}, {ttl_badge(meta)})"
        else:
            badge = f"  ({ttl_badge(None)})"
        line.append(badge, style="dim")
        if selected:
            line.stylize(_SELECTED_STYLE)
        lines.append(line)
    return Text("\n").join(lines)


def _detail_header(detail: DetailPane) -> Table:
    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="bold")
    grid.add_column()
    loading = detail.status == "loading"
    grid.add_row("Key:", display_key(detail.key))
    if detail.meta is not None:
        grid.add_row("Type:", TYPE_LABELS[detail.meta.type])
    else:
        grid.add_row("Type:", "loading..." if loading else "n/a")
    grid.add_row("TTL:", format_ttl(detail.meta, loading=loading))
    if detail.block is not None:
        grid.add_row("Size:", detail.block.summary)
    return grid


def _value_renderable(detail: DetailPane) -> RenderableType:
    block = detail.block
    if block is None:
        return Text("")
    if block.kind == "text":
        return Text(block.text)
    table = Table(title=block.title, expand=True, show_lines=False)
    for header in block.headers:
        table.add_column(header, overflow="fold")
    for row in block.rows:
        table.add_row(*row)
    return table


def render_detail(detail: DetailPane | None, *, has_keys: bool) -> RenderableType:
    if detail is None:
        if not has_keys:
            return Text("Nothing selected.", style="dim")
        return Text("Press Enter to load key details.", style="dim")
    header = _detail_header(detail)
    if detail.status == "loading":
        return Group(header, Text(""), Text("Loading...", style="italic"))
    if detail.status == "error":
        return Group(
            header,
            Text(""),
            Text(f"✗ {detail.error or 'Unknown error'}", style="bold red"),
            Text("Press Enter to retry.", style="dim"),
        )
    return Group(header, Text(""), _value_renderable(detail))


def run_browse(
    store: StoreInterface,
    keys: Sequence[KeyName],
    *,
    endpoint: str,
) -> None:
    """Run the fullscreen key browser until the user quits.

    Textual is imported lazily so non-interactive commands stay lightweight.
    """

    from textual import on
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, Vertical, VerticalScroll
    from textual.events import Key
    from textual.message import Message
    from textual.widgets import Header, Static

    class _StoreResult(Message):
        def __init__(self, event: BrowseEvent) -> None:
            super().__init__()
            self.event = event

    class _BrowseApp(App[None]):
        TITLE = "redis-key-browser"
        BINDINGS = [
            Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        ]

        CSS = """
        Screen {
            background: #2e3436;
            color: #eeeeec;
        }
        #main {
            height: 1fr;
        }
        #key-pane {
            width: 40%;
        }
        #search {
            height: 3;
            border: round #fce94f;
            color: #fce94f;
        }
        #keys {
            height: 1fr;
            border: round #729fcf;
        }
        #detail-pane {
            width: 60%;
            border: round #729fcf;
        }
        #status {
            height: 1;
            padding: 0 1;
            color: #ffffff;
            background: #204a87;
        }
        #help {
            height: 1;
            padding: 0 1;
            color: #ffffff;
            background: #555753;
        }
        """

        def __init__(self) -> None:
            super().__init__()
            self.sub_title = endpoint
            self._controller = BrowseController(store, BrowserStateMachine(keys), self._spawn)

        def compose(self) -> ComposeResult:
            yield Header(show_clock=False)
            with Horizontal(id="main"):
                with Vertical(id="key-pane"):
                    yield Static("", id="search")
                    yield Static("", id="keys")
                with VerticalScroll(id="detail-pane"):
                    yield Static("", id="detail")
            yield Static("", id="status")
            yield Static("", id="help")

        def on_mount(self) -> None:
            self.query_one("#detail-pane", VerticalScroll).border_title = "Key Details"
            self._refresh_view()
            # Sizes are known after the first layout pass.
            self.call_after_refresh(self._refresh_view)

        def on_key(self, event: Key) -> None:
            event.stop()
            event.prevent_default()
            step = detail_page_step(event.key)
            if step:
                pane = self.query_one("#detail-pane", VerticalScroll)
                if step > 0:
                    pane.scroll_page_down()
                else:
                    pane.scroll_page_up()
                return
            press = KeyPress(
                key=event.key,
                character=event.character if event.is_printable else None,
            )
            if self._controller.handle_key(press):
                self.exit()
                return
            self._refresh_view()

        def _spawn(self, job: Job) -> None:
            self.run_worker(
                partial(self._run_job, job),
                thread=True,
                group="store",
                exit_on_error=False,
            )

        def _run_job(self, job: Job) -> None:
            # Worker thread: the result travels back through the app's message queue.
            self.post_message(_StoreResult(job()))

        @on(_StoreResult)
        def _on_store_result(self, message: _StoreResult) -> None:
            self._controller.deliver(message.event)
            self._refresh_view()

        def _refresh_view(self) -> None:
            machine = self._controller.machine
            view = machine.view
            keys_widget = self.query_one("#keys", Static)
            height = keys_widget.content_size.height or _DEFAULT_LIST_HEIGHT
            keys_widget.border_title = (
                f"Redis Keys ({len(view.visible_keys)}/{len(view.all_keys)})"
            )
            keys_widget.update(render_key_lines(machine, height=height))
            self.query_one("#search", Static).update(render_search_line(view))
            detail = render_detail(view.detail, has_keys=bool(view.visible_keys))
            self.query_one("#detail", Static).update(detail)
            self.query_one("#status", Static).update(status_text(view, endpoint=endpoint))
            self.query_one("#help", Static).update(help_text(view))

    _BrowseApp().run()
