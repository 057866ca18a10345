"""Tests for OVERRIDE conflicts."""

import pytest

from chainpatch import (
    AlreadyOverriddenError,
    WrapperKind,
    chain_registry,
    module_registry,
    register,
)
from chainpatch.guard import check


class A:
    def x(self):
        return 1


def override(value):
    def wrapper(self, wrapped, *args, **kwargs):
        return value

    return wrapper


@pytest.fixture
def wrapped_class():
    """A fresh class per test, so chains never leak between tests."""

    class Target:
        def x(self):
            return 1

    return Target


class TestOverrideConflicts:
    """Tests for the single OVERRIDE rule."""

    def test_second_override_from_other_module(self, wrapped_class, modules):
        """Test a second module can't OVERRIDE the same chain."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="combat-log")

        with pytest.raises(AlreadyOverriddenError) as exc_info:
            register(wrapped_class, "x", override(3), kind="OVERRIDE", module="pacifist")

        error = exc_info.value
        assert error.module == "pacifist"
        assert error.conflicting_module == "combat-log"
        assert error.target.endswith("Target.x")
        assert "pacifist" in str(error)
        assert "combat-log" in str(error)
        assert wrapped_class().x() == 2

    def test_conflicting_module_title(self, wrapped_class, modules):
        """Test the conflicting module's display title is available."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="combat-log")

        with pytest.raises(AlreadyOverriddenError) as exc_info:
            register(wrapped_class, "x", override(3), kind="OVERRIDE", module="pacifist")

        assert exc_info.value.conflicting_module_title == "Combat Log"

    def test_conflicting_module_title_unknown(self, wrapped_class):
        """Test the title is None for modules the registry doesn't know."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="ghost")

        with pytest.raises(AlreadyOverriddenError) as exc_info:
            register(wrapped_class, "x", override(3), kind="OVERRIDE", module="other")

        assert exc_info.value.conflicting_module_title is None

    def test_same_module_replaces_override(self, wrapped_class):
        """Test a module can re-register its own OVERRIDE."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")
        register(wrapped_class, "x", override(3), kind="OVERRIDE", module="m1")

        assert wrapped_class().x() == 3
        assert len(chain_registry.get(wrapped_class, "x")) == 1

    def test_unknown_modules_conflict(self, wrapped_class):
        """Test two OVERRIDEs from unresolved modules conflict."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE")

        with pytest.raises(AlreadyOverriddenError):
            register(wrapped_class, "x", override(3), kind="OVERRIDE")

    def test_failed_override_leaves_chain_untouched(self, wrapped_class):
        """Test a rejected registration doesn't add anything."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")
        register(wrapped_class, "x", lambda self, wrapped: wrapped() + 1, module="m2")

        with pytest.raises(AlreadyOverriddenError):
            register(wrapped_class, "x", override(3), kind="OVERRIDE", module="m3")

        assert len(chain_registry.get(wrapped_class, "x")) == 2
        assert wrapped_class().x() == 3

    def test_wrappers_and_mixed_unrestricted(self, wrapped_class):
        """Test any number of WRAPPER and MIXED entries from any modules."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")
        for i in range(3):
            register(wrapped_class, "x", lambda self, wrapped: wrapped(), module=f"w{i}")
            register(
                wrapped_class, "x", lambda self, wrapped: wrapped(), kind="MIXED", module=f"x{i}"
            )

        assert len(chain_registry.get(wrapped_class, "x")) == 7

    def test_override_after_unregister(self, wrapped_class):
        """Test the OVERRIDE slot frees up once its owner unregisters."""
        from chainpatch import unregister

        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")
        unregister(wrapped_class, "x", module="m1")

        register(wrapped_class, "x", override(3), kind="OVERRIDE", module="m2")

        assert wrapped_class().x() == 3

    def test_override_on_separate_levels(self):
        """Test OVERRIDEs on different levels don't conflict."""

        class Sub(A):
            pass

        register(A, "x", override(2), kind="OVERRIDE", module="m1")
        register(Sub, "x", override(3), kind="OVERRIDE", module="m2")

        assert A().x() == 2
        assert Sub().x() == 3


class TestCheck:
    """Tests for the guard function itself."""

    def test_check_allows_non_override(self, wrapped_class):
        """Test WRAPPER and MIXED always pass."""
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")
        node = chain_registry.get(wrapped_class, "x")

        check(node, "m2", WrapperKind.WRAPPER)
        check(node, "m2", WrapperKind.MIXED)

    def test_check_empty_chain(self, wrapped_class):
        """Test an OVERRIDE on a chain without one passes."""
        register(wrapped_class, "x", lambda self, wrapped: wrapped(), module="m1")
        node = chain_registry.get(wrapped_class, "x")

        check(node, "m2", WrapperKind.OVERRIDE)

    def test_module_registry_untouched(self, wrapped_class):
        """Test conflicts don't depend on modules being registered."""
        assert len(module_registry) == 0
        register(wrapped_class, "x", override(2), kind="OVERRIDE", module="m1")

        with pytest.raises(AlreadyOverriddenError):
            register(wrapped_class, "x", override(3), kind="OVERRIDE", module="m2")
