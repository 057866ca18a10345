"""Property locator: finds where an attribute lives along the lookup chain.

The walk visits the object itself, then the classes of its MRO, reading each
level's own ``__dict__`` statically (no descriptor is triggered). The first
level that hosts a chain node or owns a value for the name wins.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from .exceptions import NotFoundError
from .models import LocateResult
from .node import MISSING, ChainNode, describe_level, is_shadow


def iter_levels(obj: Any) -> Iterator[Any]:
    """Yield the levels of obj's lookup chain, most specific first.

    Per-instance shadow classes are not levels of their own; their chain
    nodes belong to the instance.
    """
    if isinstance(obj, type):
        mro = obj.__mro__
    else:
        yield obj
        mro = type(obj).__mro__
    for cls in mro:
        if not is_shadow(cls):
            yield cls


def inspect_level(level: Any, name: str) -> Optional[LocateResult]:
    """Check a single level for a chain node or an own value."""
    if isinstance(level, type):
        value = level.__dict__.get(name, MISSING)
    else:
        cls = type(level)
        if is_shadow(cls):
            node = cls.__dict__.get(name)
            if isinstance(node, ChainNode):
                return LocateResult(level, "node", node)
        own = getattr(level, "__dict__", None)
        value = own.get(name, MISSING) if isinstance(own, dict) else MISSING

    if value is MISSING:
        return None
    if isinstance(value, ChainNode):
        return LocateResult(level, "node", value)
    value_type = type(value)
    if hasattr(value_type, "__set__") or hasattr(value_type, "__delete__"):
        return LocateResult(level, "accessor", value)
    return LocateResult(level, "data", value)


def locate(obj: Any, name: str) -> LocateResult:
    """Find the nearest level hosting a chain node for, or owning, an attribute.

    Args:
        obj: Class or instance to start from (inclusive)
        name: Attribute name

    Returns:
        The first matching level and what was found there

    Raises:
        NotFoundError: If no level of the chain has the attribute
    """
    for level in iter_levels(obj):
        result = inspect_level(level, name)
        if result is not None:
            return result
    raise NotFoundError(describe_level(obj), name)
