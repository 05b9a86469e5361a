from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .browse_models import DetailPane, KeyMeta, KeyName, SearchState, Value, ViewState
from .key_filter import filter_keys
from .value_render import ValueShapeError, render_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KeyPress:
    """A key event in Textual's naming (`up`, `enter`, `ctrl+c`, ...).

    `character` is set for printable input only.
    """

    key: str
    character: str | None = None


@dataclass(frozen=True, slots=True)
class FetchDetail:
    key: KeyName
    seq: int


@dataclass(frozen=True, slots=True)
class FetchKeys:
    seq: int


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Effect = FetchDetail | FetchKeys | Quit


@dataclass(frozen=True, slots=True)
class DetailLoaded:
    key: KeyName
    seq: int
    meta: KeyMeta
    value: Value


@dataclass(frozen=True, slots=True)
class DetailFailed:
    key: KeyName
    seq: int
    error: str


@dataclass(frozen=True, slots=True)
class KeysLoaded:
    seq: int
    keys: tuple[KeyName, ...]


@dataclass(frozen=True, slots=True)
class KeysFailed:
    seq: int
    error: str


BrowseEvent = DetailLoaded | DetailFailed | KeysLoaded | KeysFailed


class BrowserStateMachine:
    """Owns the `ViewState` and is its only writer.

    Modes are `normal` (navigate, select, refresh) and `search` (edit the query). Key
    handlers return effects for the interaction loop to run; store results come back
    through `apply()`.

    Every request carries a sequence number. A key has at most one request in flight:
    selecting a key that is already loading issues nothing new. A result is accepted
    only when its sequence is the one recorded for its key, and it reaches the detail
    pane only while that key is still selected. A completed key-list refresh forgets
    every request and cache entry older than the refresh, so late results from before
    it are dropped; details requested while it was running survive.
    """

    def __init__(self, keys: Iterable[KeyName] = ()) -> None:
        self.view = ViewState()
        self._cache: dict[KeyName, DetailPane] = {}
        # Sequence of the request that produced each cache entry.
        self._cache_seq: dict[KeyName, int] = {}
        self._inflight: dict[KeyName, int] = {}
        self._keys_seq: int | None = None
        self._seq = 0
        self.view.all_keys = list(keys)
        self._refilter()
        self.view.status = f"Find {len(self.view.all_keys)} keys"

    def cached(self, key: KeyName) -> DetailPane | None:
        return self._cache.get(key)

    def meta_for(self, key: KeyName) -> KeyMeta | None:
        entry = self._cache.get(key)
        if entry is None or entry.status != "ready":
            return None
        return entry.meta

    def is_loading(self, key: KeyName) -> bool:
        return key in self._inflight

    @property
    def refreshing(self) -> bool:
        return self._keys_seq is not None

    def handle_key(self, press: KeyPress) -> list[Effect]:
        if press.key == "ctrl+c":
            return [Quit()]
        if self.view.mode == "search":
            self._handle_search_key(press)
            return []
        return self._handle_normal_key(press)

    def apply(self, event: BrowseEvent) -> None:
        match event:
            case DetailLoaded(key=key, seq=seq, meta=meta, value=value):
                if not self._accept(key, seq):
                    return
                try:
                    block = render_value(meta.type, value)
                except ValueShapeError as exc:
                    logger.error("Store returned a mismatched value for %r: %s", key, exc)
                    entry = DetailPane(key=key, status="error", meta=meta, error=str(exc))
                else:
                    entry = DetailPane(key=key, status="ready", meta=meta, block=block)
                self._store_entry(entry, seq)
            case DetailFailed(key=key, seq=seq, error=error):
                if not self._accept(key, seq):
                    return
                self._store_entry(DetailPane(key=key, status="error", error=error), seq)
            case KeysLoaded(seq=seq, keys=keys):
                if seq != self._keys_seq:
                    logger.debug("Discarding superseded key list (seq %d)", seq)
                    return
                self._keys_seq = None
                self._forget_before(seq, keys)
                self.view.all_keys = list(keys)
                self._refilter()
                self.view.status = f"Keys list refreshed ({len(keys)} keys)"
            case KeysFailed(seq=seq, error=error):
                if seq != self._keys_seq:
                    return
                self._keys_seq = None
                self.view.status = f"Refresh failed: {error}"

    # Normal mode

    def _handle_normal_key(self, press: KeyPress) -> list[Effect]:
        key = press.key
        char = press.character
        if char in {"q", "Q"}:
            return [Quit()]
        if key == "up" or char == "k":
            self._move(-1)
        elif key == "down" or char == "j":
            self._move(1)
        elif key == "home" or char == "g":
            self._select_edge(last=False)
        elif key == "end" or char == "G":
            self._select_edge(last=True)
        elif key == "enter":
            return self._confirm()
        elif char == "/":
            seed = self.view.active_query
            self.view.search = SearchState(query=seed, cursor=len(seed))
            self.view.mode = "search"
        elif key == "escape":
            if self.view.active_query:
                self.view.active_query = ""
                self._refilter()
        elif char in {"r", "R"}:
            return self._refresh()
        return []

    def _move(self, delta: int) -> None:
        count = len(self.view.visible_keys)
        if count == 0 or self.view.selected is None:
            return
        # Selection wraps around at both ends.
        self.view.selected = (self.view.selected + delta) % count
        self._sync_detail()

    def _select_edge(self, *, last: bool) -> None:
        count = len(self.view.visible_keys)
        if count == 0:
            return
        self.view.selected = count - 1 if last else 0
        self._sync_detail()

    def _confirm(self) -> list[Effect]:
        key = self.view.selected_key
        if key is None:
            return []
        cached = self._cache.get(key)
        if cached is not None and cached.status == "ready":
            self.view.detail = cached
            return []
        if key in self._inflight:
            self.view.detail = DetailPane(key=key, status="loading")
            return []
        # Error entries are dropped: reselecting is how the user retries.
        self._cache.pop(key, None)
        self._cache_seq.pop(key, None)
        seq = self._next_seq()
        self._inflight[key] = seq
        self.view.detail = DetailPane(key=key, status="loading")
        return [FetchDetail(key=key, seq=seq)]

    def _refresh(self) -> list[Effect]:
        seq = self._next_seq()
        self._keys_seq = seq
        self.view.status = "Refreshing keys..."
        return [FetchKeys(seq=seq)]

    # Search mode

    def _handle_search_key(self, press: KeyPress) -> None:
        search = self.view.search
        if search is None:
            search = self.view.search = SearchState()
        key = press.key
        query = search.query
        cursor = search.cursor
        if key == "escape":
            self._leave_search(commit=False)
            return
        if key == "enter":
            self._leave_search(commit=True)
            return
        if key == "backspace":
            if cursor == 0:
                return
            search.query = query[: cursor - 1] + query[cursor:]
            search.cursor = cursor - 1
        elif key == "delete":
            if cursor >= len(query):
                return
            search.query = query[:cursor] + query[cursor + 1 :]
        elif key == "left":
            search.cursor = max(0, cursor - 1)
            return
        elif key == "right":
            search.cursor = min(len(query), cursor + 1)
            return
        elif key == "home":
            search.cursor = 0
            return
        elif key == "end":
            search.cursor = len(query)
            return
        elif press.character and press.character.isprintable():
            search.query = query[:cursor] + press.character + query[cursor:]
            search.cursor = cursor + len(press.character)
        else:
            return
        self._refilter()

    def _leave_search(self, *, commit: bool) -> None:
        search = self.view.search
        self.view.active_query = search.query if commit and search is not None else ""
        self.view.search = None
        self.view.mode = "normal"
        self._refilter()

    # Shared

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _refilter(self) -> None:
        previous = self.view.selected_key
        visible = filter_keys(self.view.all_keys, self.view.query)
        self.view.visible_keys = visible
        if not visible:
            self.view.selected = None
        elif previous is not None and previous in visible:
            self.view.selected = visible.index(previous)
        else:
            self.view.selected = 0
        self._sync_detail()

    def _sync_detail(self) -> None:
        key = self.view.selected_key
        if key is None:
            self.view.detail = None
        elif key in self._cache:
            self.view.detail = self._cache[key]
        elif key in self._inflight:
            self.view.detail = DetailPane(key=key, status="loading")
        else:
            self.view.detail = None

    def _forget_before(self, refresh_seq: int, keys: Iterable[KeyName]) -> None:
        """Drop cache entries and requests older than a key-list refresh.

        Requests issued while the refresh was running stay valid as long as their key
        is still listed.
        """

        listed = set(keys)
        self._inflight = {
            key: seq
            for key, seq in self._inflight.items()
            if seq > refresh_seq and key in listed
        }
        self._cache_seq = {
            key: seq
            for key, seq in self._cache_seq.items()
            if seq > refresh_seq and key in listed
        }
        self._cache = {key: self._cache[key] for key in self._cache_seq}

    def _accept(self, key: KeyName, seq: int) -> bool:
        if self._inflight.get(key) != seq:
            logger.debug("Discarding stale result for %r (seq %d)", key, seq)
            return False
        del self._inflight[key]
        return True

    def _store_entry(self, entry: DetailPane, seq: int) -> None:
        self._cache[entry.key] = entry
        self._cache_seq[entry.key] = seq
        if self.view.selected_key == entry.key:
            self.view.detail = entry
        else:
            logger.debug("Cached %r without showing it; selection moved on", entry.key)
