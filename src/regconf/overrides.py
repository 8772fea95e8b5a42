"""Scoped value overrides on registry nodes.

Overrides only go through a node's ``get``/``set`` and never touch storage.
While a scope is active the owning registry ignores ``reset()``, so the
overridden cache cannot be thrown away underneath the caller. Suppression is
counted, so a nested scope leaves it active until the outermost scope exits.
"""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Mapping, TypeVar

from .exceptions import OverrideRestoreError

if TYPE_CHECKING:
    from .node import RegistryNode

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def overridden(node: "RegistryNode", overrides: Mapping[str, Any]) -> Iterator["RegistryNode"]:
    """Temporarily replace cached values of ``node``.

    Originals are read in the mapping's order before anything is applied, so an
    unknown key fails without side effects. Originals are put back in the same
    order on every exit path.

    Args:
        node: Node whose keys are overridden
        overrides: Mapping of key to temporary value

    Yields:
        The node itself

    Raises:
        KeyNotFoundError: If an overridden key does not exist
        OverrideRestoreError: If restoring originals failed after the block completed normally
    """
    originals = {}  # Dict[str, Any] (values read before override)
    for key in overrides:
        originals[key] = node.get(key)

    registry = node.registry
    suppressed = False
    completed = False
    try:
        # A failure part way through still restores the keys already applied
        for key, value in overrides.items():
            node.set(key, value)
        logger.debug("Overriding %s on %r", list(overrides), node)

        registry.suppress_reset()
        suppressed = True
        yield node
        completed = True
    finally:
        if suppressed:
            registry.allow_reset()
        failures = _restore(node, originals)
        # A failure from the block takes precedence over restore failures
        if failures and completed:
            raise OverrideRestoreError(failures)


def with_overrides(node: "RegistryNode", overrides: Mapping[str, Any], work: Callable[[], T]) -> T:
    """Run ``work`` with ``overrides`` applied to ``node`` and return its result."""
    with overridden(node, overrides):
        return work()


def _restore(node: "RegistryNode", originals: Dict[str, Any]) -> Dict[str, BaseException]:
    """Put every original value back, collecting failures instead of stopping at the first."""
    failures = {}  # Dict[str, BaseException] (key -> restore error)
    for key, value in originals.items():
        try:
            node.set(key, value)
        except Exception as e:
            logger.warning("Failed to restore '%s' on %r: %s", key, node, e)
            failures[key] = e
    return failures
