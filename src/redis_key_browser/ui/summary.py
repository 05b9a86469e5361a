from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..store.base import StoreError, StoreInterface
from .browse_models import TYPE_LABELS, KeyMeta, KeyName
from .value_render import display_key, format_ttl

DEFAULT_SUMMARY_LIMIT = 50


def _meta_cells(store: StoreInterface, key: KeyName) -> tuple[str, str]:
    try:
        type_tag = store.key_type(key)
        meta = KeyMeta(name=key, type=type_tag, ttl=store.ttl(key))
    except StoreError as exc:
        return ("error", str(exc))
    return (TYPE_LABELS[meta.type], format_ttl(meta))


def render_key_summary(
    console: Console,
    store: StoreInterface,
    keys: Sequence[KeyName],
    *,
    endpoint: str,
    limit: int = DEFAULT_SUMMARY_LIMIT,
) -> None:
    """Print a key/type/TTL table for the first `limit` keys."""

    table = Table(title=f"{endpoint} ({len(keys)} keys)")
    table.add_column("Key", overflow="fold")
    table.add_column("Type")
    table.add_column("TTL", justify="right")

    for key in keys[:limit]:
        type_text, ttl_text = _meta_cells(store, key)
        style = "red" if type_text == "error" else ""
        table.add_row(display_key(key), Text(type_text, style=style), ttl_text)

    console.print(table)
    if len(keys) > limit:
        console.print(f"... +{len(keys) - limit} more")
