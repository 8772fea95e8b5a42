"""RegConf - Hierarchical Registry Configuration.

A versioned configuration registry backed by SQLite, with lazy cached access,
scoped value overrides and YAML import.
"""
# ruff: noqa: F401

from .exceptions import (
    EntryKindError,
    KeyNotFoundError,
    OverrideRestoreError,
    RegConfError,
    RegistryImportError,
)
from .importer import import_entries, write_entry
from .node import RegistryNode
from .overrides import overridden, with_overrides
from .registry import Registry, configure, get_registry
from .settings import RegistrySettings, load_settings
from .store import Entry, EntryStore, EntryVersion

__version__ = "0.1.0"
