from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final
from urllib.parse import urlsplit

import redis
from redis import exceptions as redis_exceptions

from ..ui.browse_models import (
    TYPE_TAGS,
    HashValue,
    KeyName,
    ListValue,
    SetValue,
    SortedSetValue,
    StringValue,
    TypeTag,
    Value,
)
from .base import (
    KeyNotFound,
    StoreConnectionError,
    StoreError,
    StoreInterface,
    UnsupportedKeyType,
)

logger = logging.getLogger(__name__)

_SCAN_COUNT: Final[int] = 1000
_TTL_NO_EXPIRY: Final[int] = -1
_TTL_MISSING: Final[int] = -2


@dataclass(frozen=True)
class RedisStoreConfig:
    host: str = "127.0.0.1"
    port: int = 6379
    password: str | None = None
    db: int = 0
    # A connection URL takes precedence over host/port/password/db.
    url: str | None = None
    timeout_s: float = 5.0

    @property
    def endpoint(self) -> str:
        """Human-readable endpoint label without credentials."""

        if self.url:
            parts = urlsplit(self.url)
            host = parts.hostname or self.host
            port = parts.port or self.port
            db = parts.path.lstrip("/") or "0"
            return f"{parts.scheme or 'redis'}://{host}:{port}/{db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


@contextlib.contextmanager
def _translate_errors(operation: str, key: KeyName | None = None) -> Iterator[None]:
    target = f" {key!r}" if key is not None else ""
    try:
        yield
    except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
        logger.warning("%s%s failed: %s", operation, target, exc)
        raise StoreConnectionError(f"{operation}{target}: {exc}") from exc
    except redis_exceptions.RedisError as exc:
        logger.warning("%s%s error: %s", operation, target, exc)
        raise StoreError(f"{operation}{target}: {exc}") from exc


class RedisStore(StoreInterface):
    """Store backed by a redis-py client.

    Replies are decoded as UTF-8 with `surrogateescape`, so key names and values that
    are not valid UTF-8 survive the trip to Python and back to the server unchanged.
    """

    def __init__(self, config: RedisStoreConfig, *, client: Any | None = None) -> None:
        self._config = config
        self._client_obj = client

    @property
    def config(self) -> RedisStoreConfig:
        return self._config

    def _client(self) -> Any:
        if self._client_obj is None:
            cfg = self._config
            options: dict[str, Any] = {
                "decode_responses": True,
                "encoding_errors": "surrogateescape",
                "socket_timeout": cfg.timeout_s,
                "socket_connect_timeout": cfg.timeout_s,
            }
            if cfg.url:
                try:
                    self._client_obj = redis.Redis.from_url(cfg.url, **options)
                except ValueError as exc:
                    # redis-py rejects unknown schemes and malformed URLs this way.
                    logger.warning("Rejected connection URL for %s: %s", cfg.endpoint, exc)
                    raise StoreConnectionError(f"Invalid connection URL: {exc}") from exc
            else:
                self._client_obj = redis.Redis(
                    host=cfg.host,
                    port=cfg.port,
                    db=cfg.db,
                    password=cfg.password,
                    **options,
                )
        return self._client_obj

    def close(self) -> None:
        client = self._client_obj
        if client is None:
            return
        self._client_obj = None
        with contextlib.suppress(redis_exceptions.RedisError, OSError):
            client.close()

    @contextlib.contextmanager
    def session(self) -> Iterator[RedisStore]:
        """Keep the client open for the duration of this context."""

        try:
            yield self
        finally:
            self.close()

    def list_keys(self) -> list[KeyName]:
        with _translate_errors("SCAN"):
            keys = {str(key) for key in self._client().scan_iter(count=_SCAN_COUNT)}
        logger.debug("SCAN returned %d keys from %s", len(keys), self._config.endpoint)
        return sorted(keys)

    def key_type(self, key: KeyName) -> TypeTag:
        with _translate_errors("TYPE", key):
            reply = str(self._client().type(key)).lower()
        if reply == "none":
            raise KeyNotFound(f"Key does not exist: {key!r}")
        for tag in TYPE_TAGS:
            if reply == tag:
                return tag
        raise UnsupportedKeyType(f"Unsupported key type {reply!r} for {key!r}")

    def ttl(self, key: KeyName) -> timedelta | None:
        with _translate_errors("TTL", key):
            seconds = int(self._client().ttl(key))
        if seconds == _TTL_MISSING:
            raise KeyNotFound(f"Key does not exist: {key!r}")
        if seconds == _TTL_NO_EXPIRY:
            return None
        return timedelta(seconds=seconds)

    def read_value(self, key: KeyName, type_tag: TypeTag) -> Value:
        client = self._client()
        match type_tag:
            case "string":
                with _translate_errors("GET", key):
                    text = client.get(key)
                if text is None:
                    raise KeyNotFound(f"Key does not exist: {key!r}")
                return StringValue(text=str(text))
            case "hash":
                with _translate_errors("HGETALL", key):
                    mapping = client.hgetall(key)
                return HashValue(fields=tuple((str(f), str(v)) for f, v in mapping.items()))
            case "list":
                with _translate_errors("LRANGE", key):
                    items = client.lrange(key, 0, -1)
                return ListValue(items=tuple(str(item) for item in items))
            case "set":
                # SSCAN keeps server order (SMEMBERS would come back as a Python set).
                # It may repeat members while the set is rehashing.
                with _translate_errors("SSCAN", key):
                    members = dict.fromkeys(
                        str(member) for member in client.sscan_iter(key, count=_SCAN_COUNT)
                    )
                return SetValue(members=tuple(members))
            case "zset":
                with _translate_errors("ZRANGE", key):
                    entries = client.zrange(key, 0, -1, withscores=True)
                return SortedSetValue(
                    entries=tuple((str(member), float(score)) for member, score in entries)
                )
        raise UnsupportedKeyType(f"Unsupported key type {type_tag!r} for {key!r}")
