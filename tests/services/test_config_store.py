from __future__ import annotations

import threading

import pytest

from configwatch.domain.errors import TypeMismatchError
from configwatch.domain.models import ConfigSnapshot
from configwatch.services import ConfigStore


def test_store_starts_with_empty_version_zero() -> None:
    store = ConfigStore()

    assert store.current().version == 0
    assert store.get("missing", default=5) == 5


def test_install_swaps_snapshot_and_returns_previous() -> None:
    store = ConfigStore()
    first = ConfigSnapshot.from_mapping({"timeout": 30}, version=1)
    second = ConfigSnapshot.from_mapping({"timeout": 60}, version=2)

    assert store.install(first).version == 0
    held = store.current()
    store.install(second)

    assert store.current() is second
    assert held.get("timeout") == 30
    assert store.get("timeout", int) == 60


def test_install_rejects_stale_versions() -> None:
    store = ConfigStore(ConfigSnapshot.from_mapping({}, version=3))

    with pytest.raises(ValueError):
        store.install(ConfigSnapshot.from_mapping({"a": 1}, version=3))
    assert store.version == 3


def test_get_raises_type_mismatch() -> None:
    store = ConfigStore(ConfigSnapshot.from_mapping({"port": "http"}, version=1))

    with pytest.raises(TypeMismatchError):
        store.get("port", int)


def test_listeners_fire_once_per_install_and_can_unsubscribe() -> None:
    store = ConfigStore()
    seen: list[tuple[int, int]] = []
    unsubscribe = store.on_change(lambda old, new: seen.append((old.version, new.version)))

    store.install(ConfigSnapshot.from_mapping({"a": 1}, version=1))
    store.install(ConfigSnapshot.from_mapping({"a": 2}, version=2))
    unsubscribe()
    store.install(ConfigSnapshot.from_mapping({"a": 3}, version=3))

    assert seen == [(0, 1), (1, 2)]


def test_failing_listener_does_not_block_install(caplog: pytest.LogCaptureFixture) -> None:
    store = ConfigStore()
    calls: list[int] = []

    def broken(old: ConfigSnapshot, new: ConfigSnapshot) -> None:
        raise RuntimeError("boom")

    store.on_change(broken)
    store.on_change(lambda old, new: calls.append(new.version))
    store.install(ConfigSnapshot.from_mapping({"a": 1}, version=1))

    assert store.version == 1
    assert calls == [1]
    assert "Change listener" in caplog.text


def test_readers_never_see_a_torn_snapshot() -> None:
    store = ConfigStore(ConfigSnapshot.from_mapping({"left": 0, "right": 0}, version=1))
    stop = threading.Event()
    torn: list[tuple[int, int]] = []

    def reader() -> None:
        while not stop.is_set():
            snapshot = store.current()
            left, right = snapshot.get("left"), snapshot.get("right")
            if left != right:
                torn.append((left, right))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for version in range(2, 300):
        store.install(
            ConfigSnapshot.from_mapping({"left": version, "right": version}, version=version)
        )
    stop.set()
    for thread in threads:
        thread.join()

    assert torn == []
    assert store.version == 299
