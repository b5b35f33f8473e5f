"""Tests for the JSON-backed user store"""

import json
from pathlib import Path

import pytest

from authvault.auth.models import UserRecord
from authvault.stores.user_store import InMemoryUserStore, JsonUserStore, find_by_email
from authvault.utils.exceptions import PersistenceError


@pytest.fixture
def store(tmp_path: Path) -> JsonUserStore:
    return JsonUserStore(tmp_path / "data" / "users.json", lock_timeout_seconds=1)


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_initialize_creates_empty_collection(store):
    store.initialize()
    assert _read(store.users_path) == {"users": []}


def test_initialize_twice_leaves_one_empty_collection(store):
    store.initialize()
    store.initialize()
    assert _read(store.users_path) == {"users": []}
    # no stray temp files next to the store
    assert [p.name for p in store.users_path.parent.iterdir()] == ["users.json"]


def test_initialize_keeps_existing_data(store):
    store.save_all([UserRecord(email="a@x.com", password_hash="$2b$04$hash")])
    store.initialize()
    assert _read(store.users_path) == {"users": [{"email": "a@x.com", "password": "$2b$04$hash"}]}


def test_load_all_on_fresh_store_returns_empty(store):
    assert store.load_all() == []
    assert store.users_path.exists()


def test_save_all_writes_persisted_layout(store):
    records = [
        UserRecord(email="a@x.com", password_hash="hash-a"),
        UserRecord(email="b@x.com", password_hash="hash-b"),
    ]
    store.save_all(records)

    assert _read(store.users_path) == {
        "users": [
            {"email": "a@x.com", "password": "hash-a"},
            {"email": "b@x.com", "password": "hash-b"},
        ]
    }
    assert store.load_all() == records


def test_save_all_replaces_whole_collection(store):
    store.save_all([UserRecord(email="a@x.com", password_hash="hash-a")])
    store.save_all([UserRecord(email="b@x.com", password_hash="hash-b")])
    assert [u.email for u in store.load_all()] == ["b@x.com"]


def test_corrupted_json_is_reset(store):
    store.initialize()
    store.users_path.write_text("{not json", encoding="utf-8")

    assert store.load_all() == []
    assert _read(store.users_path) == {"users": []}


@pytest.mark.parametrize(
    "content",
    [
        "[]",
        "null",
        '{"people": []}',
        '{"users": {"email": "a@x.com"}}',
        '{"users": [{"email": "a@x.com"}]}',
        "",
    ],
)
def test_wrong_structure_is_treated_as_corruption(store, content):
    store.initialize()
    store.users_path.write_text(content, encoding="utf-8")

    assert store.load_all() == []
    assert _read(store.users_path) == {"users": []}


def test_save_failure_raises_persistence_error(store, monkeypatch):
    store.initialize()

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("authvault.stores.user_store.shutil.move", boom)
    with pytest.raises(PersistenceError):
        store.save_all([UserRecord(email="a@x.com", password_hash="hash")])

    # old content intact, temp file cleaned up
    assert _read(store.users_path) == {"users": []}
    assert [p.name for p in store.users_path.parent.iterdir()] == ["users.json"]


def test_save_to_unwritable_location_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonUserStore(blocker / "users.json")

    with pytest.raises(PersistenceError):
        store.save_all([])


def test_read_failure_returns_empty(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonUserStore(blocker / "users.json")

    assert store.load_all() == []


def test_write_lock_is_exclusive(store):
    with store.write_lock():
        with pytest.raises(PersistenceError):
            with JsonUserStore(store.users_path, lock_timeout_seconds=0.1).write_lock():
                pass
    # released after the section
    with store.write_lock():
        pass


def test_find_by_email_is_exact_match(store):
    store.save_all([UserRecord(email="a@x.com", password_hash="hash")])
    assert find_by_email(store, "a@x.com") is not None
    assert find_by_email(store, "A@x.com") is None


def test_in_memory_store_returns_copies():
    store = InMemoryUserStore()
    store.save_all([UserRecord(email="a@x.com", password_hash="hash")])

    loaded = store.load_all()
    loaded.append(UserRecord(email="b@x.com", password_hash="hash"))
    assert len(store.load_all()) == 1
