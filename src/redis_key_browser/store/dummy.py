from __future__ import annotations

import json
import time
from datetime import timedelta
from pathlib import Path
from typing import Any

from ..ui.browse_models import (
    TYPE_TAGS,
    HashValue,
    KeyMeta,
    KeyName,
    ListValue,
    SetValue,
    SortedSetValue,
    StringValue,
    TypeTag,
    Value,
)
from .base import KeyNotFound, StoreConnectionError, StoreInterface


class DummyStore(StoreInterface):
    """Fixture-backed store used for --dry-run and tests.

    The fixture is a JSON object of the form::

        {
          "meta": {"latency_s": 0.2},
          "keys": {
            "user:1": {"type": "hash", "ttl": null, "value": {"name": "Ada"}},
            "board": {"type": "zset", "ttl": 60, "value": [["ada", 3], ["bob", 1]]},
            "gone": {"error": "not_found"},
            "slow": {"error": "timeout"}
          }
        }

    `latency_s` delays every per-key request, which is handy for exercising the
    loading state of the browser.
    """

    def __init__(self, data: dict[str, Any], *, latency_s: float | None = None) -> None:
        self._latency_s = 0.0
        self._order: list[KeyName] = []
        self._meta: dict[KeyName, KeyMeta] = {}
        self._values: dict[KeyName, Value] = {}
        self._errors: dict[KeyName, str] = {}
        self._load(data)
        if latency_s is not None:
            self._latency_s = latency_s

    @classmethod
    def from_path(cls, fixture_path: Path, *, latency_s: float | None = None) -> DummyStore:
        raw = fixture_path.read_text(encoding="utf-8")
        data: Any = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Fixture root must be a JSON object")
        return cls(data, latency_s=latency_s)

    def list_keys(self) -> list[KeyName]:
        return list(self._order)

    def key_type(self, key: KeyName) -> TypeTag:
        self._delay()
        self._raise_for(key)
        return self._meta[key].type

    def ttl(self, key: KeyName) -> timedelta | None:
        self._raise_for(key)
        return self._meta[key].ttl

    def read_value(self, key: KeyName, type_tag: TypeTag) -> Value:  # noqa: ARG002
        self._delay()
        self._raise_for(key)
        return self._values[key]

    def _delay(self) -> None:
        if self._latency_s > 0:
            time.sleep(self._latency_s)

    def _raise_for(self, key: KeyName) -> None:
        error = self._errors.get(key)
        if error == "timeout":
            raise StoreConnectionError(f"Timeout reading {key!r}")
        if error is not None or key not in self._meta:
            raise KeyNotFound(f"Key does not exist: {key!r}")

    def _load(self, data: dict[str, Any]) -> None:
        meta = data.get("meta", {})
        if not isinstance(meta, dict):
            raise ValueError('Fixture top-level key "meta" must be an object')
        latency = meta.get("latency_s", 0.0)
        if not isinstance(latency, (int, float)) or isinstance(latency, bool) or latency < 0:
            raise ValueError('Fixture meta key "latency_s" must be a non-negative number')
        self._latency_s = float(latency)

        keys = data.get("keys")
        if not isinstance(keys, dict):
            raise ValueError('Fixture must contain top-level key "keys" as an object')

        for key, entry in keys.items():
            if not isinstance(entry, dict):
                raise ValueError(f"Key {key!r} must be a JSON object")
            self._order.append(key)

            error = entry.get("error")
            if error is not None:
                if error not in {"timeout", "not_found"}:
                    raise ValueError(f'Key {key!r} error must be "timeout" or "not_found"')
                self._errors[key] = error
                continue

            type_tag = entry.get("type")
            if type_tag not in TYPE_TAGS:
                raise ValueError(f"Key {key!r} has unsupported type {type_tag!r}")
            ttl = entry.get("ttl")
            if ttl is not None and (not isinstance(ttl, int) or isinstance(ttl, bool) or ttl < 0):
                raise ValueError(f"Key {key!r} ttl must be null or a non-negative integer")

            self._meta[key] = KeyMeta(
                name=key,
                type=type_tag,
                ttl=timedelta(seconds=ttl) if ttl is not None else None,
            )
            self._values[key] = _parse_value(key, type_tag, entry.get("value"))


def _parse_value(key: str, type_tag: TypeTag, raw: Any) -> Value:
    match type_tag:
        case "string":
            if not isinstance(raw, str):
                raise ValueError(f"String key {key!r} needs a string value")
            return StringValue(text=raw)
        case "hash":
            if not isinstance(raw, dict):
                raise ValueError(f"Hash key {key!r} needs an object value")
            return HashValue(fields=tuple((str(f), str(v)) for f, v in raw.items()))
        case "list":
            if not isinstance(raw, list):
                raise ValueError(f"List key {key!r} needs an array value")
            return ListValue(items=tuple(str(item) for item in raw))
        case "set":
            if not isinstance(raw, list):
                raise ValueError(f"Set key {key!r} needs an array value")
            return SetValue(members=tuple(dict.fromkeys(str(item) for item in raw)))
        case "zset":
            if not isinstance(raw, list):
                raise ValueError(f"Sorted set key {key!r} needs an array of [member, score]")
            entries: list[tuple[str, float]] = []
            for pair in raw:
                if (
                    not isinstance(pair, list)
                    or len(pair) != 2
                    or not isinstance(pair[1], (int, float))
                    or isinstance(pair[1], bool)
                ):
                    raise ValueError(
                        f"Sorted set key {key!r} entries must be [member, score] pairs"
                    )
                entries.append((str(pair[0]), float(pair[1])))
            return SortedSetValue(entries=tuple(entries))
