"""Tests for the list result cache."""

import logging

import pytest

from deltametrics.cache.result_cache import CacheKey, ResultCache, estimate_bytes

TTL = 4 * 3600


def _key(entity="wallet_logs", page=1, page_size=10, order=""):
    return ResultCache.signature(entity, page, page_size, order)


def test_signature_is_a_plain_tuple_key():
    key = _key(order="id desc")
    assert key == CacheKey("wallet_logs", 1, 10, "id desc")
    assert _key(order=None) == CacheKey("wallet_logs", 1, 10, "")


def test_get_counts_hits_and_misses(cache):
    assert cache.get(_key()) is None
    cache.put(_key(), ([{"id": 1}], 1))

    assert cache.get(_key()) == ([{"id": 1}], 1)
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1
    assert stats["bytes"] == estimate_bytes(([{"id": 1}], 1))


def test_get_or_load_calls_loader_once(cache):
    calls = []

    def loader():
        calls.append(1)
        return ([], 0)

    assert cache.get_or_load(_key(), loader) == ([], 0)
    assert cache.get_or_load(_key(), loader) == ([], 0)
    assert len(calls) == 1


def test_entries_expire_after_ttl(cache, clock):
    cache.put(_key(), "page")

    clock.advance(TTL - 1)
    assert cache.get(_key()) == "page"

    clock.advance(2)
    assert cache.get(_key()) is None


def test_least_recently_used_entry_is_evicted_over_budget(clock):
    value = "x" * 40
    size = estimate_bytes(value)
    cache = ResultCache(max_bytes=2 * size + 1, ttl_seconds=TTL, timer=clock)

    cache.put(_key(page=1), value)
    cache.put(_key(page=2), value)
    assert cache.get(_key(page=1)) == value

    cache.put(_key(page=3), value)

    assert cache.get(_key(page=2)) is None
    assert cache.get(_key(page=1)) == value
    assert cache.get(_key(page=3)) == value
    assert cache.stats()["bytes"] <= cache.max_bytes


def test_value_larger_than_budget_is_not_cached(clock):
    cache = ResultCache(max_bytes=16, ttl_seconds=TTL, timer=clock)
    assert cache.put(_key(), "y" * 64) is False
    assert len(cache) == 0

    assert cache.get_or_load(_key(), lambda: "z" * 64) == "z" * 64
    assert len(cache) == 0


def test_invalidate_entity_only_drops_that_entity(cache):
    cache.put(_key("wallet_logs", 1), "a")
    cache.put(_key("wallet_logs", 2), "b")
    cache.put(_key("log_events", 1), "c")

    assert cache.invalidate_entity("wallet_logs") == 2
    assert cache.get(_key("wallet_logs", 1)) is None
    assert cache.get(_key("log_events", 1)) == "c"
    assert cache.invalidate_entity("content_logs") == 0


def test_purge_expired_sweeps_without_access(cache, clock):
    cache.put(_key(page=1), "a")
    clock.advance(TTL / 2)
    cache.put(_key(page=2), "b")

    clock.advance(TTL / 2 + 1)
    assert cache.purge_expired() == 1
    assert len(cache) == 1

    clock.advance(TTL)
    assert cache.purge_expired() == 1
    assert len(cache) == 0


def test_clear(cache):
    cache.put(_key(), "a")
    cache.clear()
    assert len(cache) == 0


def test_purge_loop_starts_and_stops():
    cache = ResultCache(max_bytes=1024, ttl_seconds=TTL, purge_interval_seconds=0.01)
    cache.start_purge_loop()
    thread = cache._purge_thread
    assert thread is not None and thread.is_alive()

    cache.start_purge_loop()
    assert cache._purge_thread is thread

    cache.stop(timeout=5)
    assert not thread.is_alive()
    assert cache._purge_thread is None


@pytest.mark.parametrize("kwargs", [{"max_bytes": 0}, {"ttl_seconds": 0}])
def test_rejects_non_positive_limits(kwargs):
    with pytest.raises(ValueError):
        ResultCache(**kwargs)


def test_load_racing_an_invalidation_is_not_stored(cache):
    def loader():
        cache.invalidate_entity("wallet_logs")
        return "stale"

    assert cache.get_or_load(_key(), loader) == "stale"
    assert len(cache) == 0

    assert cache.get_or_load(_key(), lambda: "fresh") == "fresh"
    assert cache.get(_key()) == "fresh"


def test_invalidation_of_other_entity_does_not_block_store(cache):
    def loader():
        cache.invalidate_entity("log_events")
        return "page"

    cache.get_or_load(_key("wallet_logs"), loader)
    assert cache.get(_key("wallet_logs")) == "page"


def test_discarded_and_invalidated_pages_are_logged(cache, caplog):
    cache.put(_key(page=2), "old")

    def loader():
        cache.invalidate_entity("wallet_logs")
        return "stale"

    with caplog.at_level(logging.DEBUG, logger="deltametrics.cache.result_cache"):
        cache.get_or_load(_key(), loader)

    messages = [record.getMessage() for record in caplog.records]
    assert "Invalidated 1 cached pages for wallet_logs" in messages
    assert any(m.startswith("Discarding") and "wallet_logs changed while loading" in m for m in messages)
