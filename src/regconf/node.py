"""RegConf registry node module."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, ContextManager, Dict, FrozenSet, List, Mapping, Tuple, TypeVar

from .exceptions import KeyNotFoundError
from .overrides import overridden, with_overrides
from .store import Entry, EntryStore
from .utils import KEY_PATH, split_key_path

if TYPE_CHECKING:
    from .registry import Registry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RegistryNode:
    """Lazy, caching view over one folder entry.

    Keys are looked up in the entry store the first time they are read. Leaf
    values are decoded and cached; folders become nested ``RegistryNode``
    objects, cached as well. Cached keys are never looked up again until the
    owning registry is reset.

    Supports attribute access (``node.api.enabled``), dotted item access
    (``node["api.enabled"]``) and the explicit ``get``/``set``/``is_truthy``.
    """

    def __init__(self, registry: "Registry", entry: Entry, path: Tuple[str, ...] = ()):
        """Initialize registry node.

        Args:
            registry: Registry that owns this node  # (lock and reset suppression)
            entry: Folder entry this node mirrors
            path: Keys leading from the root to this node
        """
        # Internal state bypasses __setattr__, which writes to the cache
        object.__setattr__(self, "_registry", registry)
        object.__setattr__(self, "_entry", entry)
        object.__setattr__(self, "_path", tuple(path))
        object.__setattr__(self, "_cache", {})
        object.__setattr__(self, "_accessors", set())

    @property
    def registry(self) -> "Registry":
        return self._registry

    @property
    def entry(self) -> Entry:
        return self._entry

    @property
    def path(self) -> Tuple[str, ...]:
        return self._path

    @property
    def store(self) -> EntryStore:
        return self._registry.store

    @property
    def accessors(self) -> FrozenSet[str]:
        """Keys resolved from the entry store so far."""
        return frozenset(self._accessors)

    def get(self, key: str) -> "RegistryNode" | Any:
        """Return the cached value for ``key``, resolving it from the store on first access.

        Args:
            key: Child key  # (exact, case-sensitive match)

        Returns:
            Decoded leaf value or a nested RegistryNode for folders

        Raises:
            KeyNotFoundError: If the key is neither cached nor a child of the bound entry
        """
        key = str(key)
        try:
            return self._cache[key]
        except KeyError:
            pass

        with self._registry.lock:
            # Another thread may have resolved it while we waited
            if key in self._cache:
                return self._cache[key]

            entry = self.store.find_child(self._entry, key)
            if entry is None:
                raise KeyNotFoundError(key, self._path)

            if entry.folder:
                value = RegistryNode(self._registry, entry, self._path + (key,))
            else:
                value = self.store.decode_value(entry)
            self._cache[key] = value
            self._accessors.add(key)

        logger.debug("Resolved '%s' from store", ".".join(self._path + (key,)))
        return value

    def set(self, key: str, value: Any) -> None:
        """Write ``value`` into the cache for ``key``. Nothing is written to the store."""
        self._cache[str(key)] = value

    def is_truthy(self, key_path: KEY_PATH) -> bool:
        """Whether the value at ``key_path`` is set to something.

        ``None``, ``False`` and empty strings, lists and dicts are false.
        Numbers are always true, ``0`` included.

        Raises:
            KeyNotFoundError: If the key path does not exist
        """
        value = self.resolve(key_path)
        if value is None or value is False:
            return False
        if isinstance(value, (str, list, tuple, dict)):
            return len(value) > 0
        return True

    def resolve(self, key_path: KEY_PATH) -> "RegistryNode" | Any:
        """Get the value at a dot-separated path or sequence of keys."""
        current = self
        walked = list(self._path)
        for key in split_key_path(key_path):
            if not isinstance(current, RegistryNode):
                raise KeyNotFoundError(key, walked)
            current = current.get(key)
            walked.append(key)
        return current

    def assign(self, key_path: KEY_PATH, value: Any) -> None:
        """Set the cached value at a dot-separated path or sequence of keys."""
        keys = split_key_path(key_path)
        parent = self.resolve(keys[:-1]) if len(keys) > 1 else self
        if not isinstance(parent, RegistryNode):
            raise KeyNotFoundError(keys[-1], list(self._path) + keys[:-1])
        parent.set(keys[-1], value)

    def keys(self) -> List[str]:
        """Cached keys, in the order they were first cached."""
        return list(self._cache)

    def export_tree(self) -> Dict[str, Any]:
        """Render the cached state as a nested plain dict.

        Only keys that have been read or set are included. Keys never touched
        are absent even if they exist in the store.
        """
        result = {}  # Dict[str, Any] (plain nested dictionary)
        for key, value in self._cache.items():
            if isinstance(value, RegistryNode):
                result[key] = value.export_tree()
            else:
                result[key] = value
        return result

    to_dict = export_tree

    def overridden(self, overrides: Mapping[str, Any]) -> ContextManager["RegistryNode"]:
        """Context manager applying ``overrides`` to this node for the duration of the block."""
        return overridden(self, overrides)

    def with_overrides(self, overrides: Mapping[str, Any], work: Callable[[], T]) -> T:
        """Run ``work`` with ``overrides`` applied to this node and return its result."""
        return with_overrides(self, overrides, work)

    def __getattr__(self, name: str) -> "RegistryNode" | Any:
        """Attribute-style getter."""
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.get(name)
        except KeyNotFoundError as e:
            raise AttributeError(f"Registry has no key '{name}' under '{'.'.join(self._path) or '<root>'}'") from e

    def __setattr__(self, name: str, value: Any) -> None:
        """Attribute-style setter, writes to the cache."""
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __getitem__(self, key_path: KEY_PATH) -> "RegistryNode" | Any:
        return self.resolve(key_path)

    def __setitem__(self, key_path: KEY_PATH, value: Any) -> None:
        self.assign(key_path, value)

    def __contains__(self, key_path: KEY_PATH) -> bool:
        try:
            self.resolve(key_path)
        except KeyNotFoundError:
            return False
        return True

    def __dir__(self) -> List[str]:
        return sorted(set(super().__dir__()) | self._accessors)

    def __repr__(self) -> str:
        return f"RegistryNode({'.'.join(self._path) or '<root>'!r}, cached={self.keys()})"
