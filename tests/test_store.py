"""Tests for the in-memory key-value store."""

import pytest

from othelloroom.store import MemoryStore, WrongType


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


def test_values_expire_with_the_clock(store, clock):
    store.set("k", {"a": 1}, ex=10)
    assert store.ttl("k") == 10
    clock.advance(9.5)
    assert store.ttl("k") == 1
    assert store.get("k") == {"a": 1}
    clock.advance(0.5)
    assert store.get("k") is None
    assert store.ttl("k") == -2


def test_ttl_without_expiry_and_persist(store):
    store.set("k", "v")
    assert store.ttl("k") == -1
    assert store.persist("k") is False
    store.expire("k", 30)
    assert store.ttl("k") == 30
    assert store.persist("k") is True
    assert store.ttl("k") == -1


def test_expire_with_non_positive_seconds_deletes(store):
    store.set("k", "v")
    assert store.expire("k", 0) is True
    assert not store.exists("k")
    assert store.expire("missing", 10) is False


def test_set_if_absent_and_millisecond_expiry(store, clock):
    assert store.set("lock", "1", px=2500, nx=True) is True
    assert store.set("lock", "2", px=2500, nx=True) is False
    assert store.get("lock") == "1"
    clock.advance(2.5)
    assert store.set("lock", "3", px=2500, nx=True) is True


def test_compare_and_set_keeps_ttl(store):
    store.set("game", {"turn": 1}, ex=100)
    assert store.compare_and_set("game", {"turn": 2}, {"turn": 1}) is False
    assert store.compare_and_set("game", {"turn": 1}, {"turn": 2}) is True
    assert store.get("game") == {"turn": 2}
    assert store.ttl("game") == 100
    assert store.compare_and_set("missing", None, {"turn": 1}) is False


def test_returned_values_do_not_alias_storage(store):
    value = {"players": ["a"]}
    store.set("k", value)
    value["players"].append("b")
    fetched = store.get("k")
    fetched["players"].append("c")
    assert store.get("k") == {"players": ["a"]}


def test_hash_operations(store):
    assert store.hgetall("h") is None
    assert store.hupdate("h", {"a": 1}) is False
    assert not store.exists("h")

    assert store.hset("h", {"a": 1, "b": 2}) == 2
    assert store.hset("h", {"b": 3, "c": 4}) == 1
    assert store.hget("h", "b") == 3
    assert store.hupdate("h", {"a": 9}) is True
    assert store.hgetall("h") == {"a": 9, "b": 3, "c": 4}


def test_list_operations(store):
    assert store.rpush("q", "a", "b") == 2
    assert store.rpush("q", "c") == 3
    assert store.lrange("q", 0, -1) == ["a", "b", "c"]
    assert store.lrange("q", 0, 1) == ["a", "b"]
    assert store.lrange("q", -2, -1) == ["b", "c"]
    assert store.lpop("q") == "a"
    assert store.lpop("q") == "b"
    assert store.lpop("q") == "c"
    assert store.lpop("q") is None
    assert not store.exists("q")


def test_delete_counts_existing_keys(store):
    store.set("a", 1)
    store.set("b", 2)
    assert store.delete("a", "b", "c") == 2
    assert store.delete("a") == 0
    assert store.keys() == []


def test_wrong_type_is_rejected(store):
    store.set("s", "value")
    with pytest.raises(WrongType):
        store.hset("s", {"a": 1})
    with pytest.raises(WrongType):
        store.rpush("s", "x")


def test_compare_and_delete_and_expire(store, clock):
    store.set("lock", "owner-a", ex=2)
    assert store.compare_and_expire("lock", "owner-b", 10) is False
    assert store.compare_and_expire("lock", "owner-a", 10) is True
    clock.advance(5)
    assert store.get("lock") == "owner-a"
    assert store.compare_and_delete("lock", "owner-b") is False
    assert store.compare_and_delete("lock", "owner-a") is True
    assert not store.exists("lock")


def test_hash_field_compare_and_set(store):
    assert store.hcompare_and_set("h", "players", [], ["a"]) is False
    store.hset("h", {"players": []})
    assert store.hcompare_and_set("h", "players", [], ["a"]) is True
    assert store.hcompare_and_set("h", "players", [], ["b"]) is False
    assert store.hget("h", "players") == ["a"]
