"""Caller identity resolution.

Figures out which installed module asked for a registration by walking the
Python call stack and matching each frame's module name against the module
registry. This is a best-effort heuristic: when nothing matches the caller is
reported as unknown (None), which only affects diagnostics and same-module
replacement, never the correctness of a chain.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Protocol, runtime_checkable

from .config import get_settings
from .modules import ModuleRegistry, module_registry

logger = logging.getLogger(__name__)

PACKAGE_NAME = __name__.split(".")[0]


@runtime_checkable
class CallerResolver(Protocol):
    """Protocol for caller identity resolvers."""

    def __call__(self) -> Optional[str]:
        """Return the identifier of the calling module, or None if unknown."""
        ...


class StackCallerResolver:
    """Resolves the calling module from the frames on the current stack.

    Attributes:
        registry: Module registry used to recognize installed modules
        max_depth: Maximum number of frames inspected
    """

    def __init__(
        self, registry: ModuleRegistry | None = None, max_depth: int | None = None
    ):
        self.registry = registry if registry is not None else module_registry
        self.max_depth = max_depth

    def __call__(self) -> Optional[str]:
        max_depth = self.max_depth or get_settings().capture_stack_depth
        try:
            frame = sys._getframe(1)
        except ValueError:
            return None

        depth = 0
        while frame is not None and depth < max_depth:
            name = frame.f_globals.get("__name__") or ""
            if name != PACKAGE_NAME and not name.startswith(PACKAGE_NAME + "."):
                info = self.registry.find_owner(name)
                if info is not None:
                    return info.id
            frame = frame.f_back
            depth += 1

        return None


_resolver: CallerResolver = StackCallerResolver()


def get_caller_resolver() -> CallerResolver:
    return _resolver


def set_caller_resolver(resolver: CallerResolver | None) -> CallerResolver:
    """Install a caller resolver.

    Args:
        resolver: New resolver, or None to restore the stack-based default

    Returns:
        The previously installed resolver
    """
    global _resolver
    previous = _resolver
    _resolver = resolver if resolver is not None else StackCallerResolver()
    return previous


def resolve_caller(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the module behind the current registration request.

    Args:
        explicit: Module id given by the caller; used as-is when provided

    Returns:
        The module id, or None if it cannot be determined
    """
    if explicit is not None:
        return explicit
    module = _resolver()
    if module is None:
        logger.debug("Could not resolve calling module, treating as unknown")
    return module
