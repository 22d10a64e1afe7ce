from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shopsync.adapters.memory import InMemoryKeyValueStore
    from tests.helpers.catalog import MutableClock


def test_add_only_succeeds_once(memory_store: InMemoryKeyValueStore) -> None:
    assert memory_store.add("key", {"a": 1})
    assert not memory_store.add("key", {"a": 2})
    assert memory_store.get("key") == {"a": 1}


def test_values_expire(memory_store: InMemoryKeyValueStore, clock: MutableClock) -> None:
    memory_store.set("key", "value", ttl_seconds=10)

    clock.advance(seconds=9)
    assert memory_store.get("key") == "value"

    clock.advance(seconds=1)
    assert memory_store.get("key") is None
    assert memory_store.add("key", "again", ttl_seconds=10)


def test_stored_values_are_copies(memory_store: InMemoryKeyValueStore) -> None:
    value = {"processed": 1}
    memory_store.set("key", value)
    value["processed"] = 99

    loaded = memory_store.get("key")
    assert loaded == {"processed": 1}
    loaded["processed"] = 5
    assert memory_store.get("key") == {"processed": 1}


def test_delete_missing_key_is_noop(memory_store: InMemoryKeyValueStore) -> None:
    memory_store.delete("absent")
    assert memory_store.get("absent") is None
