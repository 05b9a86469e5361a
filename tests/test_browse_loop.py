from __future__ import annotations

from datetime import timedelta

from redis_key_browser.store.base import (
    KeyNotFound,
    StoreConnectionError,
    StoreError,
    UnsupportedKeyType,
)
from redis_key_browser.store.dummy import DummyStore
from redis_key_browser.ui.browse_loop import (
    BrowseController,
    Job,
    describe_store_error,
    fetch_detail,
    fetch_keys,
)
from redis_key_browser.ui.browse_models import HashValue, TypeTag
from redis_key_browser.ui.browse_state import (
    BrowserStateMachine,
    DetailFailed,
    DetailLoaded,
    KeyPress,
    KeysFailed,
    KeysLoaded,
)


class _RecordingSpawn:
    def __init__(self) -> None:
        self.jobs: list[Job] = []

    def __call__(self, job: Job) -> None:
        self.jobs.append(job)


def _controller(store: DummyStore) -> tuple[BrowseController, _RecordingSpawn]:
    spawn = _RecordingSpawn()
    machine = BrowserStateMachine(store.list_keys())
    return BrowseController(store, machine, spawn), spawn


def test_describe_store_error_prefixes_by_kind() -> None:
    assert describe_store_error(KeyNotFound("k")) == "Not found: k"
    assert describe_store_error(StoreConnectionError("refused")) == "Connection error: refused"
    assert describe_store_error(UnsupportedKeyType("stream")) == "Unsupported type: stream"
    assert describe_store_error(StoreError("boom")) == "Store error: boom"


def test_fetch_detail_returns_loaded_event(dummy_store: DummyStore) -> None:
    event = fetch_detail(dummy_store, "user:1", 7)
    assert isinstance(event, DetailLoaded)
    assert event.seq == 7
    assert event.meta.type == "hash"
    assert event.meta.ttl is None
    assert event.value == HashValue(fields=(("name", "Ada"), ("lang", "en")))


def test_fetch_detail_maps_store_errors_to_failed_events(dummy_store: DummyStore) -> None:
    gone = fetch_detail(dummy_store, "gone", 1)
    slow = fetch_detail(dummy_store, "slow", 2)
    assert isinstance(gone, DetailFailed)
    assert gone.error.startswith("Not found: ")
    assert isinstance(slow, DetailFailed)
    assert slow.error.startswith("Connection error: ")


def test_fetch_keys_returns_fixture_keys(dummy_store: DummyStore) -> None:
    event = fetch_keys(dummy_store, 3)
    assert isinstance(event, KeysLoaded)
    assert event.seq == 3
    assert event.keys == ("user:1", "user:2", "queue:jobs", "tags", "board", "gone", "slow")


def test_controller_spawns_fetch_and_delivers_result(dummy_store: DummyStore) -> None:
    controller, spawn = _controller(dummy_store)
    assert controller.view.selected_key == "user:1"

    assert controller.handle_key(KeyPress("enter")) is False
    assert len(spawn.jobs) == 1
    detail = controller.view.detail
    assert detail is not None and detail.status == "loading"

    # Coalesced while the first job is still pending.
    controller.handle_key(KeyPress("enter"))
    assert len(spawn.jobs) == 1

    controller.deliver(spawn.jobs.pop()())
    detail = controller.view.detail
    assert detail is not None
    assert detail.status == "ready"
    assert detail.block is not None
    assert detail.block.summary == "Hash, 2 fields"


def test_controller_shows_ttl_from_store(dummy_store: DummyStore) -> None:
    controller, spawn = _controller(dummy_store)
    controller.handle_key(KeyPress("down"))
    controller.handle_key(KeyPress("enter"))
    controller.deliver(spawn.jobs.pop()())
    detail = controller.view.detail
    assert detail is not None and detail.meta is not None
    assert detail.meta.ttl == timedelta(seconds=30)
    assert controller.machine.meta_for("user:2") == detail.meta


def test_controller_refresh_reloads_keys(dummy_store: DummyStore) -> None:
    controller, spawn = _controller(dummy_store)
    controller.handle_key(KeyPress("r", "r"))
    assert controller.machine.refreshing
    event = spawn.jobs.pop()()
    assert isinstance(event, KeysLoaded)
    controller.deliver(event)
    assert controller.view.status == "Keys list refreshed (7 keys)"
    assert controller.view.selected_key == "user:1"


_BROKEN_FIXTURE = {"keys": {"user:1": {"type": "string", "ttl": None, "value": "x"}}}


class _BrokenStore(DummyStore):
    listed = False

    def key_type(self, key: str) -> TypeTag:
        raise RuntimeError("decoder exploded")

    def list_keys(self) -> list[str]:
        if self.listed:
            raise RuntimeError("scan exploded")
        self.listed = True
        return super().list_keys()


def test_unexpected_job_errors_become_failed_events() -> None:
    store = _BrokenStore(_BROKEN_FIXTURE)
    store.list_keys()

    detail = fetch_detail(store, "user:1", 4)
    assert isinstance(detail, DetailFailed)
    assert detail.seq == 4
    assert detail.error == "Unexpected error: decoder exploded"

    keys = fetch_keys(store, 5)
    assert isinstance(keys, KeysFailed)
    assert keys.seq == 5
    assert keys.error == "Unexpected error: scan exploded"


def test_key_can_be_retried_after_unexpected_job_error() -> None:
    store = _BrokenStore(_BROKEN_FIXTURE)
    controller, spawn = _controller(store)
    controller.handle_key(KeyPress("enter"))
    controller.deliver(spawn.jobs.pop()())
    detail = controller.view.detail
    assert detail is not None and detail.status == "error"
    assert not controller.machine.is_loading("user:1")

    controller.handle_key(KeyPress("enter"))
    assert len(spawn.jobs) == 1


def test_controller_quit_returns_true_without_spawning(dummy_store: DummyStore) -> None:
    controller, spawn = _controller(dummy_store)
    assert controller.handle_key(KeyPress("q", "q")) is True
    assert controller.handle_key(KeyPress("ctrl+c")) is True
    assert spawn.jobs == []
