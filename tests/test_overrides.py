"""Test cases for scoped overrides.

This module tests that overrides are applied for the duration of a unit of
work, restored on every exit path, and suppress registry reset meanwhile.
"""

from unittest.mock import patch

import pytest

from regconf import KeyNotFoundError, OverrideRestoreError, Registry, RegistryNode, overridden, with_overrides


def test_override_applies_during_work_and_restores_after(registry: Registry):
    """Test the request_limit example.

    Given folder api with request_limit=1
    When running work with request_limit overridden to 5
    Then work sees 5 and the value is 1 again afterwards
    """
    api = registry.api
    seen = []

    result = api.with_overrides({"request_limit": 5}, lambda: seen.append(api.get("request_limit")) or "done")

    assert result == "done"
    assert seen == [5]
    assert api.get("request_limit") == 1
    assert registry.get("api.request_limit") == 1


def test_override_restores_when_work_fails(registry: Registry):
    """Test restoration on failure.

    Given an override scope
    When the work raises
    Then the original value is restored and the exception propagates
    """
    api = registry.api

    def work():
        assert api.request_limit == 5
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        with_overrides(api, {"request_limit": 5}, work)

    assert api.request_limit == 1
    assert not registry.reset_suppressed


def test_override_restores_on_keyboard_interrupt(registry: Registry):
    with pytest.raises(KeyboardInterrupt):
        with registry.api.overridden({"enabled": False}):
            raise KeyboardInterrupt

    assert registry.api.enabled is True
    assert not registry.reset_suppressed


def test_suppression_is_active_only_inside_the_scope(registry: Registry):
    """Test reset suppression.

    Given no override scope
    When entering and leaving a scope
    Then suppression is off before, on during, and off after
    """
    assert not registry.reset_suppressed
    with registry.overridden({"debug": True}) as root:
        assert isinstance(root, RegistryNode)
        assert registry.reset_suppressed
        assert registry.debug is True
    assert not registry.reset_suppressed
    assert registry.debug is False


def test_reset_inside_scope_is_a_noop(registry: Registry):
    """Test reset() during an active scope.

    Given an active override scope
    When reset() is called
    Then the root node identity is unchanged and the override stays visible
    """
    root = registry.root

    def work():
        assert registry.reset() is False
        assert registry.root is root
        return registry.api.request_limit

    assert registry.api.with_overrides({"request_limit": 7}, work) == 7
    assert registry.root is root

    # Outside the scope reset works again
    assert registry.reset() is True
    assert registry.root is not root


def test_nested_scopes_keep_suppression_until_outer_exit(registry: Registry):
    """Test nested overrides.

    Given an outer and an inner override scope
    When the inner scope exits
    Then reset is still suppressed and each scope restores its own values
    """
    with overridden(registry.api, {"request_limit": 2}):
        with overridden(registry.api, {"request_limit": 3, "enabled": False}):
            assert registry.api.request_limit == 3
            assert registry.api.enabled is False
        assert registry.reset_suppressed
        assert registry.reset() is False
        assert registry.api.request_limit == 2
        assert registry.api.enabled is True
    assert not registry.reset_suppressed
    assert registry.api.request_limit == 1


def test_unknown_override_key_fails_before_applying(registry: Registry):
    """Test an unknown key.

    Given overrides with a valid key followed by an unknown one
    When entering the scope
    Then KeyNotFoundError is raised, work never runs and nothing is changed
    """
    calls = []
    with pytest.raises(KeyNotFoundError):
        registry.api.with_overrides({"request_limit": 9, "missing": 1}, lambda: calls.append(1))

    assert calls == []
    assert registry.api.request_limit == 1
    assert not registry.reset_suppressed


def test_overrides_do_not_touch_the_store(registry: Registry, store):
    registry.api.request_limit  # warm the cache
    with patch.object(store, "find_child", wraps=store.find_child) as find_child:
        registry.api.with_overrides({"request_limit": 4}, lambda: None)
        assert find_child.call_count == 0
    assert store.decode_value(store.find("api.request_limit")) == 1


def test_originals_restored_in_insertion_order(registry: Registry):
    api = registry.api
    api.enabled, api.request_limit
    calls = []
    original_set = RegistryNode.set

    def recording_set(node, key, value):
        calls.append((key, value))
        original_set(node, key, value)

    with patch.object(RegistryNode, "set", recording_set):
        api.with_overrides({"request_limit": 5, "enabled": False}, lambda: None)

    assert calls == [
        ("request_limit", 5),
        ("enabled", False),
        ("request_limit", 1),
        ("enabled", True),
    ]


def test_restore_failures_are_collected(registry: Registry):
    """Test collect-and-raise restoration.

    Given a node whose set() fails for one key while restoring
    When the work completes normally
    Then the other keys are still restored and OverrideRestoreError names the failed key
    """
    api = registry.api
    original_set = RegistryNode.set
    restoring = []

    def flaky_set(node, key, value):
        if restoring and key == "enabled":
            raise ValueError("read-only")
        original_set(node, key, value)

    def work():
        restoring.append(True)

    with patch.object(RegistryNode, "set", flaky_set):
        with pytest.raises(OverrideRestoreError) as exc_info:
            api.with_overrides({"enabled": False, "request_limit": 5}, work)

    assert list(exc_info.value.failures) == ["enabled"]
    assert api.request_limit == 1
    assert not registry.reset_suppressed


def test_failure_while_applying_restores_applied_keys(registry: Registry):
    """Test a failure part way through applying overrides.

    Given overrides where setting the second key fails
    When entering the scope
    Then the error propagates, work never runs and the first key is restored
    """
    api = registry.api
    original_set = RegistryNode.set
    calls = []

    def flaky_set(node, key, value):
        if key == "enabled" and value is False:
            raise ValueError("read-only")
        original_set(node, key, value)

    with patch.object(RegistryNode, "set", flaky_set):
        with pytest.raises(ValueError, match="read-only"):
            api.with_overrides({"request_limit": 5, "enabled": False}, lambda: calls.append(1))

    assert calls == []
    assert api.request_limit == 1
    assert api.enabled is True
    assert not registry.reset_suppressed


def test_work_failure_wins_over_restore_failure(registry: Registry):
    api = registry.api
    original_set = RegistryNode.set
    failing = []

    def flaky_set(node, key, value):
        if failing:
            raise ValueError("read-only")
        original_set(node, key, value)

    def work():
        failing.append(True)
        raise RuntimeError("work failed")

    with patch.object(RegistryNode, "set", flaky_set):
        with pytest.raises(RuntimeError, match="work failed"):
            api.with_overrides({"enabled": False}, work)
