from __future__ import annotations

from typing import assert_never

from .browse_models import (
    TYPE_LABELS,
    DisplayBlock,
    HashValue,
    KeyMeta,
    ListValue,
    SetValue,
    SortedSetValue,
    StringValue,
    TypeTag,
    Value,
)

_SURROGATE_LO = 0xDC80
_SURROGATE_HI = 0xDCFF
_KEEP_CONTROLS = {"\n", "\t"}


class ValueShapeError(TypeError):
    """Raised when a value's shape does not match its declared type tag."""


def escape_text(text: str) -> str:
    """Return a printable, reversible rendition of `text`.

    Bytes that were not valid UTF-8 (decoded with `surrogateescape`) and control
    characters become `\\xNN`; backslashes are doubled so the escape stays unambiguous.
    Newlines and tabs are kept as-is.
    """

    out: list[str] = []
    for ch in text:
        code = ord(ch)
        if _SURROGATE_LO <= code <= _SURROGATE_HI:
            out.append(f"\\x{code - 0xDC00:02x}")
        elif ch == "\\":
            out.append("\\\\")
        elif ch in _KEEP_CONTROLS:
            out.append(ch)
        elif code < 0x20 or code == 0x7F:
            out.append(f"\\x{code:02x}")
        else:
            out.append(ch)
    return "".join(out)


def display_key(key: str) -> str:
    """Single-line form of a key name, as listed and as matched by the filter."""

    return escape_text(key).replace("\n", "\\n").replace("\t", "\\t")


def format_score(score: float) -> str:
    if score.is_integer():
        return str(int(score))
    return repr(score)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _zset_order(entry: tuple[str, float]) -> tuple[float, bytes]:
    # Ties follow the server: members compare as raw bytes.
    member, score = entry
    return (score, member.encode("utf-8", "surrogateescape"))


def render_value(type_tag: TypeTag, value: Value) -> DisplayBlock:
    """Turn a typed value into a display block.

    Raises:
        ValueShapeError: If `value` is not the shape `type_tag` promises.
    """

    title = TYPE_LABELS[type_tag]
    match value:
        case StringValue(text=text) if type_tag == "string":
            size = len(text.encode("utf-8", "surrogateescape"))
            return DisplayBlock(
                kind="text",
                title=title,
                summary=f"{title}, {_plural(size, 'byte')}",
                text=escape_text(text),
            )
        case HashValue(fields=fields) if type_tag == "hash":
            return DisplayBlock(
                kind="table",
                title=title,
                summary=f"{title}, {_plural(len(fields), 'field')}",
                headers=("Field", "Value"),
                rows=tuple((escape_text(f), escape_text(v)) for f, v in fields),
            )
        case ListValue(items=items) if type_tag == "list":
            return DisplayBlock(
                kind="table",
                title=title,
                summary=f"{title}, {_plural(len(items), 'element')}",
                headers=("#", "Element"),
                rows=tuple((str(idx), escape_text(item)) for idx, item in enumerate(items)),
            )
        case SetValue(members=members) if type_tag == "set":
            return DisplayBlock(
                kind="table",
                title=title,
                summary=f"{title}, {_plural(len(members), 'member')}",
                headers=("Member",),
                rows=tuple((escape_text(member),) for member in members),
            )
        case SortedSetValue(entries=entries) if type_tag == "zset":
            ordered = sorted(entries, key=_zset_order)
            return DisplayBlock(
                kind="table",
                title=title,
                summary=f"{title}, {_plural(len(ordered), 'member')}",
                headers=("Score", "Member"),
                rows=tuple(
                    (format_score(score), escape_text(member)) for member, score in ordered
                ),
            )
        case StringValue() | HashValue() | ListValue() | SetValue() | SortedSetValue():
            raise ValueShapeError(
                f"{type(value).__name__} does not match declared type {type_tag!r}"
            )
        case _:
            assert_never(value)


def format_ttl(meta: KeyMeta | None, *, loading: bool = False) -> str:
    """Detail-pane TTL text. An unfetched TTL never reads like "no expiry"."""

    if meta is None:
        return "loading..." if loading else "n/a"
    if meta.ttl is None:
        return "Never expires"
    seconds = int(meta.ttl.total_seconds())
    return _plural(seconds, "second")


def ttl_badge(meta: KeyMeta | None) -> str:
    """Short TTL marker for the key list: `?` unknown, `∞` no expiry, `42s` otherwise."""

    if meta is None:
        return "?"
    if meta.ttl is None:
        return "∞"
    return f"{int(meta.ttl.total_seconds())}s"
