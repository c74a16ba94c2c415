"""Tests for the in-memory task store."""

import pytest

from queue_agent.services.memory_store import MemoryTaskStore


@pytest.mark.unit
def test_insert_assigns_ids_in_order():
    """Test that inserted documents get ids and keep insertion order."""
    store = MemoryTaskStore()

    stored = store.insert("q", [{"agent_name": "a", "n": 1}, {"agent_name": "a", "n": 2}])

    assert all(doc["id"] for doc in stored)
    assert [doc["n"] for doc in store.find("q")] == [1, 2]


@pytest.mark.unit
def test_insert_keeps_existing_id():
    """Test that a caller-supplied id is preserved."""
    store = MemoryTaskStore()
    store.insert("q", [{"id": "fixed", "agent_name": "a"}])

    assert store.find("q", {"id": "fixed"})[0]["agent_name"] == "a"


@pytest.mark.unit
def test_find_none_matches_missing_field():
    """Test that a None filter value matches documents without the field."""
    store = MemoryTaskStore()
    store.insert("q", [{"agent_name": "a"}, {"agent_name": "a", "complete": True}])

    assert len(store.find("q", {"complete": None})) == 1


@pytest.mark.unit
def test_find_returns_copies():
    """Test that mutating a found document does not change the store."""
    store = MemoryTaskStore()
    store.insert("q", [{"agent_name": "a", "tags": ["x"]}])

    store.find("q")[0]["tags"].append("y")

    assert store.find("q")[0]["tags"] == ["x"]


@pytest.mark.unit
def test_update_one_updates_first_match_only():
    """Test that update_one touches a single document."""
    store = MemoryTaskStore()
    store.insert("q", [{"agent_name": "a", "ready": True}, {"agent_name": "a", "ready": True}])

    assert store.update_one("q", {"ready": True}, {"ready": False}) == 1
    assert [doc["ready"] for doc in store.find("q")] == [False, True]


@pytest.mark.unit
def test_update_one_conditional_miss():
    """Test that a filter matching nothing reports zero updates."""
    store = MemoryTaskStore()
    store.insert("q", [{"id": "t1", "agent_name": "a", "ready": False}])

    assert store.update_one("q", {"id": "t1", "ready": True}, {"ready": False}) == 0
    assert store.update_one("missing", {"id": "t1"}, {"ready": True}) == 0


@pytest.mark.unit
def test_queues_are_separate():
    """Test that queues do not see each other's documents."""
    store = MemoryTaskStore()
    store.insert("q1", [{"agent_name": "a"}])

    assert store.find("q2") == []
