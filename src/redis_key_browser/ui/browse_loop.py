from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from ..store.base import (
    KeyNotFound,
    StoreConnectionError,
    StoreError,
    StoreInterface,
    UnsupportedKeyType,
)
from .browse_models import KeyMeta, KeyName, ViewState
from .browse_state import (
    BrowseEvent,
    BrowserStateMachine,
    DetailFailed,
    DetailLoaded,
    FetchDetail,
    FetchKeys,
    KeyPress,
    KeysFailed,
    KeysLoaded,
    Quit,
)

logger = logging.getLogger(__name__)

Job = Callable[[], BrowseEvent]
Spawn = Callable[[Job], None]


def describe_store_error(exc: StoreError) -> str:
    if isinstance(exc, KeyNotFound):
        label = "Not found"
    elif isinstance(exc, StoreConnectionError):
        label = "Connection error"
    elif isinstance(exc, UnsupportedKeyType):
        label = "Unsupported type"
    else:
        label = "Store error"
    return f"{label}: {exc}"


def fetch_detail(store: StoreInterface, key: KeyName, seq: int) -> BrowseEvent:
    """Fetch type, TTL and value for one key. Runs off the UI turn."""

    try:
        type_tag = store.key_type(key)
        ttl = store.ttl(key)
        value = store.read_value(key, type_tag)
    except StoreError as exc:
        logger.warning("Fetching %r failed: %s", key, exc)
        return DetailFailed(key=key, seq=seq, error=describe_store_error(exc))
    except Exception as exc:
        # Every request resolves to an event, whatever the store raised.
        logger.exception("Unexpected failure fetching %r", key)
        return DetailFailed(key=key, seq=seq, error=f"Unexpected error: {exc}")
    meta = KeyMeta(name=key, type=type_tag, ttl=ttl)
    return DetailLoaded(key=key, seq=seq, meta=meta, value=value)


def fetch_keys(store: StoreInterface, seq: int) -> BrowseEvent:
    try:
        keys = store.list_keys()
    except StoreError as exc:
        logger.warning("Listing keys failed: %s", exc)
        return KeysFailed(seq=seq, error=describe_store_error(exc))
    except Exception as exc:
        logger.exception("Unexpected failure listing keys")
        return KeysFailed(seq=seq, error=f"Unexpected error: {exc}")
    return KeysLoaded(seq=seq, keys=tuple(keys))


class BrowseController:
    """Connects input, the state machine and the store.

    `spawn` runs a job without blocking the caller and must hand the job's event back
    to `deliver()` on the same turn sequence that calls `handle_key()`. The Textual app
    does this with thread workers posting messages to its queue; tests pass a
    recording spawn and deliver events by hand.
    """

    def __init__(
        self,
        store: StoreInterface,
        machine: BrowserStateMachine,
        spawn: Spawn,
    ) -> None:
        self._store = store
        self._machine = machine
        self._spawn = spawn

    @property
    def machine(self) -> BrowserStateMachine:
        return self._machine

    @property
    def view(self) -> ViewState:
        return self._machine.view

    def handle_key(self, press: KeyPress) -> bool:
        """Dispatch one key press. Returns True when the session should end."""

        quit_requested = False
        for effect in self._machine.handle_key(press):
            match effect:
                case FetchDetail(key=key, seq=seq):
                    self._spawn(partial(fetch_detail, self._store, key, seq))
                case FetchKeys(seq=seq):
                    self._spawn(partial(fetch_keys, self._store, seq))
                case Quit():
                    quit_requested = True
        return quit_requested

    def deliver(self, event: BrowseEvent) -> None:
        self._machine.apply(event)
