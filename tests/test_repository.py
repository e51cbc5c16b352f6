"""Tests for the generic repository."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import event

from deltametrics.database.repository import Repository, build_repositories
from deltametrics.database.schema import ContentWalletLogs
from deltametrics.errors import (
    InsertFailedError,
    InvalidOrderError,
    InvalidPaginationError,
    NotFoundError,
)


def _wallet_record(n: int) -> dict:
    return {
        "content": n,
        "wallet": f"f1wallet{n:03d}",
        "node_info": "node-a",
        "requester_info": "10.0.0.1",
        "requesting_api_key": f"EST-{n}",
        "system_content_wallet_id": 1000 + n,
        "created_at": datetime(2024, 1, 1, 12, 0, n % 60, tzinfo=timezone.utc),
        "delta_node_uuid": "node-uuid-1",
        "wallet_id": n,
    }


@pytest.fixture
def wallets(uncached_repositories) -> Repository:
    return uncached_repositories["content_wallet_logs"]


@pytest.fixture
def seeded(wallets):
    for n in range(1, 26):
        wallets.create(_wallet_record(n))
    return wallets


def test_build_repositories_covers_registry(registry, uncached_repositories):
    assert set(uncached_repositories) == set(registry.names())
    for name, repo in uncached_repositories.items():
        assert repo.entity == name
        assert repo.descriptor is registry.get(name)


def test_create_then_get_returns_same_record(wallets):
    created, rows = wallets.create(_wallet_record(1))

    assert rows == 1
    assert isinstance(created["id"], int)
    fetched = wallets.get(created["id"])

    expected = {**_wallet_record(1), "id": created["id"]}
    assert wallets.descriptor.to_json(fetched) == wallets.descriptor.to_json(expected)
    assert fetched["updated_at"] is None


def test_create_keeps_client_supplied_id(wallets):
    created, _ = wallets.create({"id": 4242, "wallet": "f1x"})
    assert created["id"] == 4242
    assert wallets.get(4242)["wallet"] == "f1x"


def test_create_duplicate_id_is_client_caused_insert_failure(wallets):
    wallets.create({"id": 7, "wallet": "first"})
    with pytest.raises(InsertFailedError) as excinfo:
        wallets.create({"id": 7, "wallet": "second"})
    assert excinfo.value.client_error is True
    assert excinfo.value.kind == "InsertFailed"


@pytest.mark.parametrize(
    "entity",
    [
        "content_deal_logs",
        "content_deal_proposal_logs",
        "content_deal_proposal_parameters_logs",
        "content_logs",
        "content_miner_logs",
        "content_wallet_logs",
        "delta_node_geo_locations",
        "delta_startup_logs",
        "instance_meta_logs",
        "log_events",
        "piece_commitment_logs",
        "wallet_logs",
    ],
)
def test_every_entity_supports_the_same_operations(uncached_repositories, entity):
    repo = uncached_repositories[entity]
    created, _ = repo.create({"delta_node_uuid": "node-1"})
    record_id = created["id"]

    assert repo.get(record_id)["delta_node_uuid"] == "node-1"
    updated, rows = repo.update(record_id, {"delta_node_uuid": "node-2"})
    assert rows == 1
    assert updated["delta_node_uuid"] == "node-2"
    records, total = repo.list(page=0, page_size=10)
    assert total == 1
    assert records[0]["id"] == record_id
    assert repo.delete(record_id) == 1
    with pytest.raises(NotFoundError):
        repo.get(record_id)


def test_update_overwrites_only_patched_fields(wallets):
    created, _ = wallets.create(_wallet_record(3))

    updated, rows = wallets.update(created["id"], {"wallet": "f1changed", "node_info": "node-b"})

    assert rows == 1
    assert updated["wallet"] == "f1changed"
    assert updated["node_info"] == "node-b"
    stored = wallets.get(created["id"])
    assert stored["wallet"] == "f1changed"
    for name in ("content", "requester_info", "requesting_api_key", "system_content_wallet_id", "wallet_id"):
        assert stored[name] == created[name]


def test_update_with_empty_patch_changes_nothing(wallets):
    created, _ = wallets.create(_wallet_record(4))
    updated, _ = wallets.update(created["id"], {})
    assert wallets.descriptor.to_json(updated) == wallets.descriptor.to_json(created)


def test_update_applies_explicit_zero(wallets):
    created, _ = wallets.create(_wallet_record(5))
    updated, _ = wallets.update(created["id"], {"content": 0})
    assert updated["content"] == 0


def test_update_skipping_zero_values(registry, session_factory):
    repo = Repository(registry.get("content_wallet_logs"), session_factory, skip_zero_values=True)
    created, _ = repo.create(_wallet_record(6))
    updated, _ = repo.update(created["id"], {"content": 0, "wallet": ""})
    assert updated["content"] == 6
    assert updated["wallet"] == "f1wallet006"


@pytest.mark.parametrize("operation", ["get", "update", "delete"])
def test_missing_id_is_not_found(wallets, operation):
    with pytest.raises(NotFoundError):
        if operation == "get":
            wallets.get(999)
        elif operation == "update":
            wallets.update(999, {"wallet": "x"})
        else:
            wallets.delete(999)


def test_delete_twice_is_not_found(wallets):
    created, _ = wallets.create(_wallet_record(8))
    assert wallets.delete(created["id"]) == 1
    with pytest.raises(NotFoundError):
        wallets.delete(created["id"])


def test_list_pages_of_twenty_five(seeded):
    first, total = seeded.list(page=1, page_size=10, order="id")
    third, total_third = seeded.list(page=3, page_size=10, order="id")

    assert len(first) == 10
    assert total == 25
    assert len(third) == 5
    assert total_third == 25
    assert [r["content"] for r in third] == [21, 22, 23, 24, 25]


def test_list_page_zero_means_no_offset(seeded):
    records, total = seeded.list(page=0, page_size=7, order="id")
    assert [r["content"] for r in records] == [1, 2, 3, 4, 5, 6, 7]
    assert total == 25

    negative, _ = seeded.list(page=-3, page_size=7, order="id")
    assert negative == records


def test_list_page_two_starts_at_page_size_offset(seeded):
    records, total = seeded.list(page=2, page_size=10, order="id")
    assert records[0]["content"] == 11
    assert total == 25


def test_list_past_the_end_is_empty_not_an_error(seeded):
    records, total = seeded.list(page=10, page_size=10)
    assert records == []
    assert total == 25


def test_list_empty_table(wallets):
    assert wallets.list() == ([], 0)


def test_list_orders_descending(seeded):
    records, _ = seeded.list(page=1, page_size=3, order="walletId desc")
    assert [r["wallet_id"] for r in records] == [25, 24, 23]


def test_list_rejects_bad_arguments(seeded):
    with pytest.raises(InvalidPaginationError):
        seeded.list(page=1, page_size=0)
    with pytest.raises(InvalidOrderError):
        seeded.list(page=1, page_size=10, order="password desc")


def test_store_failures_map_to_error_kinds(engine, wallets):
    created, _ = wallets.create(_wallet_record(9))
    ContentWalletLogs.__table__.drop(engine)

    with pytest.raises(NotFoundError):
        wallets.list()
    with pytest.raises(NotFoundError):
        wallets.get(created["id"])
    with pytest.raises(InsertFailedError) as excinfo:
        wallets.create(_wallet_record(10))
    assert excinfo.value.client_error is False


def test_list_reads_through_cache(repositories, counter, clock):
    repo = repositories["content_wallet_logs"]
    for n in range(1, 4):
        repo.create(_wallet_record(n))
    counter.selects = 0

    first = repo.list(page=1, page_size=10, order="id")
    selects_after_first = counter.selects
    second = repo.list(page=1, page_size=10, order="id")

    assert selects_after_first > 0
    assert counter.selects == selects_after_first
    assert second == first

    clock.advance(4 * 3600 + 1)
    third = repo.list(page=1, page_size=10, order="id")
    assert counter.selects == 2 * selects_after_first
    assert third == first


def test_cache_signature_uses_normalized_order(repositories, counter):
    repo = repositories["content_wallet_logs"]
    repo.create(_wallet_record(1))
    counter.selects = 0

    repo.list(page=1, page_size=10, order="createdAt DESC")
    loaded = counter.selects
    repo.list(page=1, page_size=10, order="created_at desc")
    assert counter.selects == loaded

    repo.list(page=2, page_size=10, order="created_at desc")
    assert counter.selects == 2 * loaded


def test_writes_do_not_invalidate_cached_pages_by_default(repositories):
    repo = repositories["content_wallet_logs"]
    repo.create(_wallet_record(1))
    _, total_before = repo.list(page=1, page_size=10)

    repo.create(_wallet_record(2))
    _, total_cached = repo.list(page=1, page_size=10)

    assert total_cached == total_before == 1


def test_invalidate_on_write_drops_cached_pages(registry, session_factory, cache):
    repos = build_repositories(registry, session_factory, cache=cache, invalidate_on_write=True)
    repo = repos["content_wallet_logs"]
    repo.create(_wallet_record(1))
    repo.list(page=1, page_size=10)

    repo.create(_wallet_record(2))
    _, total = repo.list(page=1, page_size=10)
    assert total == 2

    repos["content_miner_logs"].create({"miner": "f01234"})
    repos["content_miner_logs"].list()
    repo.delete(1)
    _, total = repo.list(page=1, page_size=10)
    assert total == 1
    assert cache.get(cache.signature("content_miner_logs", 0, 20, "")) is not None


def test_mutating_a_listed_page_does_not_touch_the_cache(repositories):
    repo = repositories["content_wallet_logs"]
    repo.create(_wallet_record(1))
    first, total = repo.list(page=1, page_size=10)

    first[0]["wallet"] = "mutated"
    first.clear()

    again, total_again = repo.list(page=1, page_size=10)
    assert total_again == total == 1
    assert len(again) == 1
    assert again[0]["wallet"] == "f1wallet001"


def test_write_row_counts_come_from_the_store(wallets, engine):
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement.split()[0].upper())

    event.listen(engine, "before_cursor_execute", record)
    try:
        created, inserted = wallets.create(_wallet_record(1))
        _, updated = wallets.update(created["id"], {})
    finally:
        event.remove(engine, "before_cursor_execute", record)

    assert inserted == 1
    assert updated == 1
    assert "INSERT" in statements
    assert "UPDATE" in statements
