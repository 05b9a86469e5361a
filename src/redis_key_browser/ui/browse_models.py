from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

KeyName = str
TypeTag = Literal["string", "hash", "list", "set", "zset"]
BrowseMode = Literal["normal", "search"]
DetailStatus = Literal["loading", "ready", "error"]
BlockKind = Literal["text", "table"]

TYPE_TAGS: tuple[TypeTag, ...] = ("string", "hash", "list", "set", "zset")

TYPE_LABELS: dict[TypeTag, str] = {
    "string": "String",
    "hash": "Hash",
    "list": "List",
    "set": "Set",
    "zset": "Sorted Set",
}


@dataclass(frozen=True, slots=True)
class KeyMeta:
    name: KeyName
    type: TypeTag
    # None means the key never expires.
    ttl: timedelta | None


@dataclass(frozen=True, slots=True)
class StringValue:
    text: str


@dataclass(frozen=True, slots=True)
class HashValue:
    fields: tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class ListValue:
    items: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SetValue:
    members: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SortedSetValue:
    entries: tuple[tuple[str, float], ...]


Value = StringValue | HashValue | ListValue | SetValue | SortedSetValue


@dataclass(frozen=True, slots=True)
class DisplayBlock:
    kind: BlockKind
    title: str
    summary: str
    text: str = ""
    headers: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True, slots=True)
class DetailPane:
    key: KeyName
    status: DetailStatus
    meta: KeyMeta | None = None
    block: DisplayBlock | None = None
    error: str | None = None


@dataclass(slots=True)
class SearchState:
    query: str = ""
    cursor: int = 0


@dataclass(slots=True)
class ViewState:
    mode: BrowseMode = "normal"
    all_keys: list[KeyName] = field(default_factory=list)
    visible_keys: list[KeyName] = field(default_factory=list)
    selected: int | None = None
    detail: DetailPane | None = None
    search: SearchState | None = None
    active_query: str = ""
    status: str = ""

    @property
    def selected_key(self) -> KeyName | None:
        if self.selected is None:
            return None
        return self.visible_keys[self.selected]

    @property
    def query(self) -> str:
        """The query the visible list is currently derived from."""
        if self.search is not None:
            return self.search.query
        return self.active_query
