"""Models for the wrapper chain engine.

Defines the core data structures shared by the chain components:
- WrapperKind: The three interception levels (WRAPPER, MIXED, OVERRIDE)
- WrapperEntry: One registered wrapper on a chain
- LocateResult: Where an attribute was found along the lookup chain
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Callable, Optional

from .exceptions import InvalidWrapperKindError


class WrapperKind(IntEnum):
    """Interception level of a wrapper, from "must forward" to "fully replaces"."""

    WRAPPER = 1
    MIXED = 2
    OVERRIDE = 3

    @classmethod
    def parse(cls, value: Any) -> "WrapperKind":
        """Parse a kind from a member, its integer code or its name.

        Raises:
            InvalidWrapperKindError: If the value does not name a kind
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidWrapperKindError(value) from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidWrapperKindError(value) from None
        raise InvalidWrapperKindError(value)


TYPES_LIST = tuple(kind.name for kind in WrapperKind)
TYPES = MappingProxyType({kind.name: kind.value for kind in WrapperKind})
TYPES_REVERSE = MappingProxyType({kind.value: kind.name for kind in WrapperKind})


_sequence = itertools.count(1)


def next_sequence() -> int:
    """Return the next registration sequence number."""
    return next(_sequence)


@dataclass(frozen=True)
class WrapperEntry:
    """A wrapper registered on a chain.

    Entries are immutable. Re-registration by the same module with the same
    kind produces a new entry that keeps the old sequence number, so the
    wrapper stays in its original position.

    Attributes:
        module: Identifier of the owning module, None if it could not be resolved
        kind: Interception level
        fn: The wrapper function, called as fn(receiver, wrapped, *args, **kwargs)
        sequence: Registration order, higher is newer
    """

    module: Optional[str]
    kind: WrapperKind
    fn: Callable[..., Any]
    sequence: int = field(default_factory=next_sequence)

    def replace_fn(self, fn: Callable[..., Any]) -> "WrapperEntry":
        """Return a copy with a different function and the same position."""
        return WrapperEntry(
            module=self.module, kind=self.kind, fn=fn, sequence=self.sequence
        )

    def sort_key(self) -> tuple[int, int]:
        """Sort key ordering entries from outermost to innermost."""
        return (self.kind.value, -self.sequence)


@dataclass(frozen=True)
class LocateResult:
    """Result of walking the lookup chain for an attribute.

    Attributes:
        level: The instance or class where the attribute was found
        found: "node" for an installed chain, "data" for a plain value,
            "accessor" for any other descriptor
        value: The raw (statically looked up) value found at that level
    """

    level: Any
    found: str
    value: Any = None

    @property
    def is_node(self) -> bool:
        return self.found == "node"
