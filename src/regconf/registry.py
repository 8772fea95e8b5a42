"""Registry context object and the process-wide default registry.

Access registry values::

    registry = Registry(EntryStore("config/registry.db"))
    registry.api.enabled                 # => True
    registry.get("api.request_limit")    # => 1
    registry.is_truthy("api.enabled")    # => True

Values are cached on first access. ``reset()`` drops the cache so the next
access reads from the store again, except while an override scope is active.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, ContextManager, Dict, Mapping, Optional, TypeVar

from .importer import SOURCE_TYPE, import_entries
from .node import RegistryNode
from .settings import RegistrySettings, load_settings
from .store import EntryStore
from .utils import KEY_PATH

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry:
    """Owns the root node of one entry store, its reset lifecycle and reset suppression."""

    def __init__(self, store: EntryStore):
        """Initialize registry.

        Args:
            store: Entry store the registry reads from  # (not owned unless closed via close())
        """
        self._store = store
        self._root: Optional[RegistryNode] = None
        self._suppress_depth = 0  # (number of active override scopes)
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> "Registry":
        return cls(EntryStore(settings.database))

    @property
    def store(self) -> EntryStore:
        return self._store

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def root(self) -> RegistryNode:
        """Root node, built on first access after construction or reset."""
        with self._lock:
            if self._root is None:
                self._root = RegistryNode(self, self._store.root())
                logger.debug("Built registry root for %r", self._store)
            return self._root

    @property
    def is_warm(self) -> bool:
        return self._root is not None

    def get(self, key_path: KEY_PATH) -> RegistryNode | Any:
        """Value or node at a dot-separated path or sequence of keys.

        Raises:
            KeyNotFoundError: If any key along the path does not exist
        """
        return self.root.resolve(key_path)

    def access(self, *keys: str) -> RegistryNode | Any:
        return self.root.resolve(keys)

    def set(self, key_path: KEY_PATH, value: Any) -> None:
        """Set the cached value at a path. Nothing is written to the store."""
        self.root.assign(key_path, value)

    def is_truthy(self, key_path: KEY_PATH) -> bool:
        return self.root.is_truthy(key_path)

    def export_tree(self) -> Dict[str, Any]:
        """Cached state of the whole registry. See ``RegistryNode.export_tree``."""
        return self.root.export_tree()

    to_dict = export_tree

    def reset(self) -> bool:
        """Drop the cache so the next access reads from the store.

        Does nothing while reset is suppressed by an override scope.

        Returns:
            True if the cache was dropped
        """
        with self._lock:
            if self._suppress_depth:
                logger.debug("Reset ignored, suppressed by %d override scope(s)", self._suppress_depth)
                return False
            self._root = None
        logger.debug("Registry reset for %r", self._store)
        return True

    @property
    def reset_suppressed(self) -> bool:
        return self._suppress_depth > 0

    def suppress_reset(self) -> None:
        """Enter a reset-suppressed scope. Meant for override scopes only."""
        with self._lock:
            self._suppress_depth += 1

    def allow_reset(self) -> None:
        """Leave a reset-suppressed scope. Meant for override scopes only."""
        with self._lock:
            if self._suppress_depth > 0:
                self._suppress_depth -= 1

    def import_from(self, source: SOURCE_TYPE, purge: bool = False, environment: Optional[str] = None) -> int:
        """Import entries into the store. See ``regconf.importer.import_entries``.

        The cache is left alone; call ``reset()`` afterwards to see imported values.
        """
        return import_entries(self._store, source, purge=purge, environment=environment)

    def overridden(self, overrides: Mapping[str, Any]) -> ContextManager[RegistryNode]:
        return self.root.overridden(overrides)

    def with_overrides(self, overrides: Mapping[str, Any], work: Callable[[], T]) -> T:
        return self.root.with_overrides(overrides, work)

    def close(self) -> None:
        """Close the underlying store."""
        with self._lock:
            self._root = None
        self._store.close()

    def __getattr__(self, name: str) -> RegistryNode | Any:
        """Route attribute access to the root node."""
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.root, name)

    def __setattr__(self, name: str, value: Any) -> None:
        """Attribute-style setter, writes to the root node's cache."""
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self.root.set(name, value)

    def __getitem__(self, key_path: KEY_PATH) -> RegistryNode | Any:
        return self.get(key_path)

    def __setitem__(self, key_path: KEY_PATH, value: Any) -> None:
        self.set(key_path, value)

    def __contains__(self, key_path: KEY_PATH) -> bool:
        return key_path in self.root

    def __repr__(self) -> str:
        return f"Registry({self._store!r}, warm={self.is_warm})"


_default_registry: Optional[Registry] = None
_default_lock = threading.Lock()


def configure(settings: Optional[RegistrySettings] = None, store: Optional[EntryStore] = None) -> Registry:
    """Build and install the process-wide default registry.

    Args:
        settings: Settings to build the store from  # (load_settings() when omitted)
        store: Ready-made store, takes precedence over settings

    Returns:
        The new default registry
    """
    global _default_registry
    if store is None:
        store = EntryStore((settings or load_settings()).database)
    with _default_lock:
        _default_registry = Registry(store)
    return _default_registry


def get_registry() -> Registry:
    """Return the process-wide default registry, configuring it from settings on first use."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = Registry.from_settings(load_settings())
        return _default_registry
