"""Public operations: register, unregister, assign and reset.

Example:
    import chainpatch

    def log_attack(self, wrapped, *args, **kwargs):
        logger.info("%s attacks", self.name)
        return wrapped(*args, **kwargs)

    chainpatch.register(Actor, "attack", log_attack, module="combat-log")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

from .dispatcher import reset_warnings
from .exceptions import NotFoundError
from .guard import check
from .identity import resolve_caller
from .locator import locate
from .models import WrapperEntry, WrapperKind
from .node import describe_level
from .registry import chain_registry

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _resolve_path(target: Any, name: str) -> tuple[Any, str]:
    """Split a dotted name into (object holding the attribute, attribute name)."""
    if not name:
        raise ValueError("Attribute name must not be empty")
    *path, attr = name.split(".")
    obj = target
    for part in path:
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise NotFoundError(describe_level(obj), part) from None
    return obj, attr


def register(
    target: Any,
    name: str,
    fn: Callable[..., Any],
    kind: WrapperKind | int | str = WrapperKind.WRAPPER,
    *,
    module: Optional[str] = None,
) -> WrapperEntry:
    """Register a wrapper on an attribute of a class or instance.

    The wrapper is called as ``fn(receiver, wrapped, *args, **kwargs)``.
    WRAPPER and MIXED wrappers get ``wrapped``, which calls the rest of the
    chain bound to the receiver. An OVERRIDE gets an opaque placeholder
    instead and fully replaces the original behavior.

    Args:
        target: Class or instance whose attribute is wrapped
        name: Attribute name, may be a dotted path resolved from target
        fn: Wrapper function
        kind: WRAPPER, MIXED or OVERRIDE (member, code or name)
        module: Owning module id; resolved from the call stack when omitted

    Returns:
        The registered entry

    Raises:
        NotFoundError: If the attribute does not exist
        AlreadyOverriddenError: If another module already overrides it
        InvalidWrapperKindError: If kind is not a wrapper kind
        TypeError: If fn is not callable or the attribute is a data descriptor
    """
    if not callable(fn):
        raise TypeError(f"Wrapper for '{name}' must be callable, got {type(fn).__name__}")
    kind = WrapperKind.parse(kind)
    obj, attr = _resolve_path(target, name)
    module = resolve_caller(module)

    with chain_registry.lock:
        found = locate(obj, attr)
        if found.found == "accessor":
            raise TypeError(
                f"Can't wrap '{attr}' on {describe_level(found.level)}: "
                f"data descriptors such as properties are not supported"
            )
        node = chain_registry.get_or_create(obj, attr, found)
        check(node, module, kind)
        entry = node.add(WrapperEntry(module=module, kind=kind, fn=fn))

    logger.debug(
        "Registered %s wrapper on %s for module '%s'", kind.name, node.describe(), module
    )
    return entry


def wrap(
    target: Any,
    name: str,
    kind: WrapperKind | int | str = WrapperKind.WRAPPER,
    *,
    module: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator form of register().

    Example:
        @chainpatch.wrap(Actor, "attack", "MIXED", module="pacifist")
        def no_attacks(self, wrapped, target):
            return None
    """

    def decorator(fn: F) -> F:
        register(target, name, fn, kind, module=module)
        return fn

    return decorator


def unregister(
    target: Any,
    name: str,
    *,
    module: Optional[str] = None,
    kind: WrapperKind | int | str | None = None,
    fail: bool = True,
) -> int:
    """Remove a module's wrappers from an attribute.

    The chain node itself stays installed, the attribute keeps working
    through it.

    Args:
        target: Class or instance the wrapper was registered on
        name: Attribute name, may be a dotted path
        module: Owning module id; resolved from the call stack when omitted
        kind: Only remove entries of this kind
        fail: Raise if nothing was removed

    Returns:
        Number of entries removed

    Raises:
        NotFoundError: If fail is set and the module had no wrapper there
    """
    obj, attr = _resolve_path(target, name)
    module = resolve_caller(module)
    parsed = WrapperKind.parse(kind) if kind is not None else None

    with chain_registry.lock:
        node = chain_registry.get(obj, attr)
        removed = node.remove(module, parsed) if node is not None else 0

    if not removed and fail:
        raise NotFoundError(
            describe_level(obj),
            attr,
            f"No wrapper registered on {describe_level(obj)}.{attr} for module '{module}'",
        )
    logger.debug(
        "Removed %d wrapper(s) of module '%s' from %s.%s",
        removed,
        module,
        describe_level(obj),
        attr,
    )
    return removed


def unregister_all(module: str) -> int:
    """Remove every wrapper a module registered.

    Returns:
        Number of entries removed
    """
    with chain_registry.lock:
        removed = sum(node.remove(module) for node in chain_registry.nodes())
    logger.debug("Removed %d wrapper(s) of module '%s'", removed, module)
    return removed


def assign(target: Any, name: str, value: Any) -> None:
    """Assign an attribute, going through its wrapper chain if there is one.

    Works for any class, including ones that do not use the ChainAware
    metaclass: the value becomes the chain's base for target and every
    registered wrapper keeps running around it.

    Args:
        target: Class or instance to assign on
        name: Attribute name, may be a dotted path
        value: New value
    """
    obj, attr = _resolve_path(target, name)
    try:
        found = locate(obj, attr)
    except NotFoundError:
        found = None

    if found is not None and found.is_node:
        found.value.assign(obj, value)
    else:
        setattr(obj, attr, value)


def reset_all() -> int:
    """Remove every chain and restore all wrapped attributes.

    Returns:
        Number of chains removed
    """
    count = chain_registry.reset()
    reset_warnings()
    logger.debug("Reset %d chain(s)", count)
    return count


unwrap_all = reset_all
