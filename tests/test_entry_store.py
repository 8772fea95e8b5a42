"""Test cases for the SQLite entry store.

This module tests entry kinds, lookups, value versioning and export of the
durable tree.
"""

from pathlib import Path

import pytest

from regconf import EntryKindError, EntryStore, write_entry
from regconf.utils import load_yaml


def test_folders_and_leaves():
    """Test entry kinds.

    Given an empty store
    When creating a folder and a leaf inside it
    Then lookups return entries of the right kind and leaves decode to their value
    """
    with EntryStore() as store:
        root = store.root()
        assert root.is_root and store.is_folder(root)

        api = store.create_folder(root, "api")
        limit = store.create_leaf(api, "request_limit", 1)

        assert store.find_child(root, "api") == api
        assert store.find_child(api, "request_limit") == limit
        assert store.find_child(api, "REQUEST_LIMIT") is None
        assert not store.is_folder(limit)
        assert store.decode_value(limit) == 1
        assert limit.value is not None and api.value is None


def test_kind_invariants_are_enforced(store: EntryStore):
    leaf = store.find("api.enabled")
    folder = store.find("api")

    with pytest.raises(EntryKindError):
        store.create_leaf(leaf, "child", 1)
    with pytest.raises(EntryKindError):
        store.decode_value(folder)
    with pytest.raises(EntryKindError):
        store.update_value(folder, 1)
    with pytest.raises(EntryKindError):
        write_entry(store, "api.enabled.child", 1)


def test_children_are_ordered_by_key(store: EntryStore):
    keys = [child.key for child in store.children(store.find("api"))]
    assert keys == ["auth", "enabled", "request_limit"]


def test_value_history(store: EntryStore):
    """Test version history.

    Given a leaf created with one value
    When writing a new value, then the same value again
    Then only real changes are recorded, oldest first
    """
    entry = store.find("api.request_limit")
    assert len(store.versions(entry)) == 1

    entry = store.update_value(entry, 5)
    store.update_value(entry, 5)

    versions = store.versions(entry)
    assert [load_yaml(v.value) for v in versions] == [1, 5]
    assert store.decode_value(store.find("api.request_limit")) == 5


def test_values_keep_their_types():
    with EntryStore() as store:
        root = store.root()
        values = {
            "flag": False,
            "count": 0,
            "ratio": 1e-4,
            "text": "1e-4",
            "items": ["a", 1],
            "nothing": None,
        }
        for key, value in values.items():
            store.create_leaf(root, key, value)

        assert store.export() == values
        assert isinstance(store.export()["text"], str)


def test_delete_subtree(store: EntryStore):
    auth = store.find("api.auth")
    token = store.find("api.auth.token")
    store.delete(auth)

    assert store.find("api.auth") is None
    assert store.get_entry(token.id) is None
    assert store.versions(token) == []
    assert store.find("api.enabled") is not None


def test_delete_all(store: EntryStore):
    store.delete_all()
    store.delete_all_version_history()

    assert store.count_versions() == 0
    assert store.export() == {}
    # Root is recreated on demand
    assert store.count_entries() == 1


def test_database_file_persists(temp_dir: Path):
    database = str(temp_dir / "nested" / "registry.db")
    with EntryStore(database) as store:
        write_entry(store, "api.enabled", True)

    with EntryStore(database) as store:
        assert store.export() == {"api": {"enabled": True}}
        assert store.database == database


def test_write_entry_mapping_becomes_folder(store: EntryStore):
    """Test writing a mapping value.

    Given an existing folder
    When writing a mapping at a new path and into the existing folder
    Then folders are created or reused instead of a dict-valued leaf
    """
    folder = write_entry(store, "cache", {"ttl": 30, "backend": {"name": "redis"}})

    assert folder.folder
    assert store.export(folder) == {"ttl": 30, "backend": {"name": "redis"}}

    write_entry(store, "api", {"request_limit": 3})
    assert store.decode_value(store.find("api.request_limit")) == 3
    assert store.find("api.enabled") is not None

    with pytest.raises(EntryKindError):
        write_entry(store, "debug", {"verbose": True})
