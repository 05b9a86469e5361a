from __future__ import annotations

from collections.abc import Sequence

from .browse_models import KeyName
from .value_render import display_key


def key_matches(key: KeyName, needle: str) -> bool:
    return needle in display_key(key).casefold()


def filter_keys(all_keys: Sequence[KeyName], query: str) -> list[KeyName]:
    """Return the keys whose display name contains `query`, ignoring case.

    Matching runs against the escaped form shown in the key list, so a query typed
    from what is on screen finds binary key names too. Relative order is kept and an
    empty query returns every key.
    """

    if not query:
        return list(all_keys)
    needle = query.casefold()
    return [key for key in all_keys if key_matches(key, needle)]
