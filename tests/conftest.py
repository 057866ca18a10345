"""
Shared pytest fixtures for all tests.
"""
from typing import Iterator

import pytest

from chainpatch import module_registry, reset_all, reset_settings, set_caller_resolver


@pytest.fixture(autouse=True)
def clean_chains() -> Iterator[None]:
    """Start and finish every test with no chains, modules or overrides."""
    reset_all()
    module_registry.clear()
    reset_settings()
    set_caller_resolver(None)
    yield
    reset_all()
    module_registry.clear()
    reset_settings()
    set_caller_resolver(None)


@pytest.fixture
def modules():
    """Register a few installed modules for attribution tests."""
    module_registry.register("combat-log", title="Combat Log")
    module_registry.register("pacifist", title="Pacifist Mode")
    module_registry.register("dice-tweaks", title="Dice Tweaks")
    return module_registry


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Clear CHAINPATCH_* environment variables for settings tests."""
    for suffix in ("DEBUG", "WARN_UNFORWARDED", "LOG_LEVEL", "STACK_DEPTH"):
        monkeypatch.delenv(f"CHAINPATCH_{suffix}", raising=False)
    return monkeypatch
