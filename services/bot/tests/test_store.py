import pytest

from shared.utils.errors import ErrorKind, StoreError


def test_insert_and_find(store):
    row = store.insert("chat_links", {"account_id": "acc-1", "chat_id": 10})

    assert row["id"] is not None
    assert row["linked_at"] is not None
    assert store.find_one("chat_links", {"chat_id": 10})["account_id"] == "acc-1"
    assert store.find_one("chat_links", {"chat_id": 99}) is None


def test_find_many_and_delete(store):
    store.insert("chat_links", {"account_id": "acc-1", "chat_id": 10})
    store.insert("chat_links", {"account_id": "acc-1", "chat_id": 11})
    store.insert("chat_links", {"account_id": "acc-2", "chat_id": 12})

    assert len(store.find_many("chat_links", {"account_id": "acc-1"})) == 2
    assert store.delete("chat_links", {"account_id": "acc-1"}) == 2
    assert store.find_many("chat_links", {"account_id": "acc-1"}) == []


def test_delete_requires_predicate(store):
    with pytest.raises(StoreError):
        store.delete("chat_links", {})


def test_unique_violation_is_a_conflict(store):
    store.insert("chat_links", {"account_id": "acc-1", "chat_id": 10})
    with pytest.raises(StoreError) as exc_info:
        store.insert("chat_links", {"account_id": "acc-2", "chat_id": 10})
    assert exc_info.value.kind is ErrorKind.STORE_CONFLICT


def test_update_missing_row(store):
    with pytest.raises(StoreError) as exc_info:
        store.update("articles", {"url": "https://nowhere.example"}, {"title": "x"})
    assert exc_info.value.code == "not_found"


def test_upsert_inserts_then_updates_only_non_key_fields(store):
    article = store.insert("articles", {"url": "https://example.com"})

    first = store.upsert("user_articles", {"user_id": "u1", "article_id": article["id"]}, ("user_id", "article_id"))
    store.update("user_articles", {"user_id": "u1"}, {"is_read": True})
    second = store.upsert(
        "user_articles",
        {"user_id": "u1", "article_id": article["id"], "updated_at": first["updated_at"]},
        ("user_id", "article_id"),
    )

    assert first["is_read"] is False
    assert second["is_read"] is True
    assert len(store.find_many("user_articles", {"user_id": "u1"})) == 1


def test_transaction_rolls_back_every_write(store):
    with pytest.raises(StoreError):
        with store.transaction():
            store.insert("chat_links", {"account_id": "acc-1", "chat_id": 10})
            store.insert("chat_links", {"account_id": "acc-2", "chat_id": 10})

    assert store.find_many("chat_links", {"account_id": "acc-1"}) == []


def test_unknown_collection(store):
    with pytest.raises(StoreError):
        store.find_one("nope", {})


def test_timestamps_round_trip_timezone_aware(store):
    inserted = store.insert("chat_links", {"account_id": "acc-1", "chat_id": 10})
    loaded = store.find_one("chat_links", {"chat_id": 10})

    assert loaded["linked_at"].tzinfo is not None
    assert loaded["linked_at"] == inserted["linked_at"]
