from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import timedelta

from ..ui.browse_models import KeyName, TypeTag, Value


class StoreError(Exception):
    """Base class for store-layer errors."""


class StoreConnectionError(StoreError):
    """Raised when the server cannot be reached, times out, or rejects the session."""


class KeyNotFound(StoreError):
    """Raised when a listed key no longer exists (expired or deleted since the scan)."""


class UnsupportedKeyType(StoreError):
    """Raised for key types the browser cannot display (streams, module types)."""


class StoreInterface(ABC):
    """Read-only capability the browser needs from a Redis-protocol server."""

    @contextlib.contextmanager
    def session(self) -> Iterator[StoreInterface]:
        """Hold the store's resources for the duration of this context."""

        yield self

    @abstractmethod
    def list_keys(self) -> list[KeyName]:
        """Return every key name in the selected database."""

    @abstractmethod
    def key_type(self, key: KeyName) -> TypeTag:
        """Return the data type of `key`.

        Raises:
            KeyNotFound: If the key does not exist anymore.
            UnsupportedKeyType: If the server reports a type outside `TypeTag`.
        """

    @abstractmethod
    def ttl(self, key: KeyName) -> timedelta | None:
        """Return the remaining time to live, or None when the key never expires."""

    @abstractmethod
    def read_value(self, key: KeyName, type_tag: TypeTag) -> Value:
        """Read the full value of `key`; the returned shape matches `type_tag`."""
