"""Custom exceptions for RegConf."""

from typing import Any, Dict, Optional, Sequence


class RegConfError(Exception):
    """Base exception for RegConf errors."""

    pass


class KeyNotFoundError(RegConfError, KeyError):
    """Raised when a key is neither cached nor a child of the bound entry."""

    def __init__(self, key: str, path: Optional[Sequence[str]] = None):
        self.key = key
        self.path = list(path or [])
        where = ".".join(self.path) or "<root>"
        super().__init__(f"Key '{key}' not found under '{where}'")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class EntryKindError(RegConfError):
    """Raised when a folder is used as a leaf or the other way around."""

    pass


class RegistryImportError(RegConfError):
    """Raised when an import source is unreadable or malformed."""

    def __init__(self, source: Any, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot import registry entries from {source!r}: {reason}")


class OverrideRestoreError(RegConfError):
    """Raised when original values could not be put back after an override scope."""

    def __init__(self, failures: Dict[str, BaseException]):
        """Initialize override restore error.

        Args:
            failures: Mapping of key to the exception raised while restoring it
        """
        self.failures = failures
        details = ", ".join(f"{key} ({type(exc).__name__}: {exc})" for key, exc in failures.items())
        super().__init__(f"Failed to restore overridden keys: {details}")
