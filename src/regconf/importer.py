"""Bulk import of registry entries from YAML sources.

A source is a mapping of keys to values; nested mappings become folders and
everything else becomes a leaf. Files often hold one section per environment::

    development:
      api:
        enabled:        true
        request_limit:  1

    production:
      api:
        enabled:        false
        request_limit:  1

in which case ``environment="production"`` picks the matching section.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Tuple, Union

import yaml

from .exceptions import EntryKindError, RegistryImportError
from .store import Entry, EntryStore
from .utils import KEY_PATH, load_yaml, split_key_path

logger = logging.getLogger(__name__)

SOURCE_TYPE = Union[str, Path, Mapping, TextIO]


def import_entries(
    store: EntryStore,
    source: SOURCE_TYPE,
    purge: bool = False,
    environment: Optional[str] = None,
) -> int:
    """Import entries from a YAML source into the store.

    Purging happens before the source is read, so a source that fails to load
    after ``purge=True`` leaves the store empty.

    Args:
        store: Entry store to write into
        source: YAML file path, readable text stream, or an already loaded mapping
        purge: Delete all entries and all version history first
        environment: Top-level section to import instead of the whole source

    Returns:
        Number of leaf values written  # (created or changed)

    Raises:
        RegistryImportError: If the source cannot be read or is not a mapping
    """
    if purge:
        logger.debug("Purging %r before import", store)
        store.delete_all()
        store.delete_all_version_history()

    data = _read_source(source)
    if environment is not None:
        if environment not in data:
            raise RegistryImportError(source, f"no section for environment '{environment}'")
        data = data[environment]
        if not isinstance(data, Mapping):
            raise RegistryImportError(source, f"section '{environment}' is not a mapping")

    try:
        written = _import_mapping(store, store.root(), data)
    except (EntryKindError, ValueError) as e:
        raise RegistryImportError(source, str(e)) from e

    logger.debug("Imported %d values from %r into %r", written, source, store)
    return written


def write_entry(store: EntryStore, key_path: KEY_PATH, value: Any) -> Entry:
    """Write a value at a key path, creating intermediate folders as needed.

    A mapping value becomes a folder whose entries are imported like an import source.

    Args:
        store: Entry store to write into
        key_path: Dot-separated path or sequence of keys of the leaf
        value: Value to store  # (scalar, list or mapping)

    Returns:
        The written leaf, or the folder for a mapping value

    Raises:
        EntryKindError: If a folder sits where the leaf should be, or a leaf sits on the way
    """
    keys = split_key_path(key_path)
    parent = store.root()
    for key in keys[:-1]:
        parent = _folder(store, parent, key)
    if isinstance(value, Mapping):
        folder = _folder(store, parent, keys[-1])
        _import_mapping(store, folder, value)
        return folder
    return _leaf(store, parent, keys[-1], value)[0]


def _read_source(source: SOURCE_TYPE) -> Dict[str, Any]:
    """Load the source into a plain mapping."""
    if isinstance(source, Mapping):
        return dict(source)

    try:
        if isinstance(source, (str, Path)):
            with open(source, "r") as f:
                data = load_yaml(f)
        else:
            data = load_yaml(source)
    except OSError as e:
        raise RegistryImportError(source, f"unreadable ({e})") from e
    except yaml.YAMLError as e:
        raise RegistryImportError(source, f"malformed YAML ({e})") from e

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise RegistryImportError(source, "top level must be a YAML mapping")
    return dict(data)


def _import_mapping(store: EntryStore, parent: Entry, data: Mapping) -> int:
    written = 0
    for key, value in data.items():
        key = str(key)
        if isinstance(value, Mapping):
            written += _import_mapping(store, _folder(store, parent, key), value)
        else:
            written += _leaf(store, parent, key, value)[1]
    return written


def _folder(store: EntryStore, parent: Entry, key: str) -> Entry:
    entry = store.find_child(parent, key)
    if entry is None:
        return store.create_folder(parent, key)
    if not entry.folder:
        raise EntryKindError(f"'{key}' is a leaf and cannot become a folder")
    return entry


def _leaf(store: EntryStore, parent: Entry, key: str, value: Any) -> Tuple[Entry, int]:
    """Create or update a leaf. Returns the entry and 1 if its value was written."""
    entry = store.find_child(parent, key)
    if entry is None:
        return store.create_leaf(parent, key, value), 1
    if entry.folder:
        raise EntryKindError(f"'{key}' is a folder and cannot hold a value")

    updated = store.update_value(entry, value)
    return updated, int(updated.value != entry.value)
