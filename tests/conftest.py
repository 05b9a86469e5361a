from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from redis_key_browser.store.dummy import DummyStore


def sample_fixture_data() -> dict[str, Any]:
    return {
        "meta": {},
        "keys": {
            "user:1": {"type": "hash", "ttl": None, "value": {"name": "Ada", "lang": "en"}},
            "user:2": {"type": "string", "ttl": 30, "value": "Bob"},
            "queue:jobs": {"type": "list", "ttl": None, "value": ["a", "b"]},
            "tags": {"type": "set", "ttl": None, "value": ["x", "y", "x"]},
            "board": {"type": "zset", "ttl": 60, "value": [["b", 2], ["a", 2], ["c", 1]]},
            "gone": {"error": "not_found"},
            "slow": {"error": "timeout"},
        },
    }


@pytest.fixture
def fixture_path(tmp_path: Path) -> Path:
    path = tmp_path / "keys.json"
    path.write_text(json.dumps(sample_fixture_data()), encoding="utf-8")
    return path


@pytest.fixture
def dummy_store() -> DummyStore:
    return DummyStore(sample_fixture_data())
