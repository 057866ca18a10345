"""Call dispatcher for wrapper chains.

For every call the dispatcher takes a snapshot of the node's entries and
nests them around the base, innermost first, so that each wrapper receives a
``wrapped`` continuation that runs the rest of the chain. Like the plugin
pipeline's hooks, wrapper functions may be sync or async: the dispatcher
never awaits anything on its own, it returns whatever the outermost wrapper
returned. While the base runs it is marked as running for the receiver; a
coroutine returned by the base is handed back inside a thin coroutine that
keeps the mark while it is awaited.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Coroutine

from .config import get_settings
from .models import WrapperEntry, WrapperKind
from .node import ChainNode, running_base

logger = logging.getLogger(__name__)

_warned_unforwarded: set[tuple[int, int]] = set()


class OpaqueContinuation:
    """Stand-in for ``wrapped`` handed to OVERRIDE wrappers.

    An OVERRIDE replaces the rest of the chain, so there is nothing to call.
    The object only identifies what was overridden, for diagnostics.
    """

    __slots__ = ("target", "module")

    def __init__(self, target: str, module: str | None):
        self.target = target
        self.module = module

    def __repr__(self) -> str:
        return f"<overridden {self.target} (module {self.module!r})>"


def invoke(node: ChainNode, receiver: Any, args: tuple, kwargs: dict) -> Any:
    """Call an attribute's wrapper chain for a receiver.

    Args:
        node: The chain node
        receiver: The object the attribute was accessed on
        args: Positional call arguments
        kwargs: Keyword call arguments

    Returns:
        The outermost layer's return value, unchanged
    """
    entries = node.entries()
    call = _base_call(node, receiver)
    for entry in reversed(entries):
        call = _layer(node, entry, receiver, call)

    if logger.isEnabledFor(logging.DEBUG) and get_settings().debug:
        logger.debug(
            "Calling %s through %d wrapper(s) for %r",
            node.describe(),
            len(entries),
            receiver,
        )
    return call(*args, **kwargs)


def _base_call(node: ChainNode, receiver: Any) -> Callable[..., Any]:
    def call_base(*args: Any, **kwargs: Any) -> Any:
        with running_base(node, receiver):
            result = node.resolve_base(receiver)(*args, **kwargs)
        if inspect.iscoroutine(result):
            return _await_base(node, receiver, result)
        return result

    return call_base


async def _await_base(node: ChainNode, receiver: Any, coro: Coroutine) -> Any:
    with running_base(node, receiver):
        return await coro


def _layer(
    node: ChainNode,
    entry: WrapperEntry,
    receiver: Any,
    inner: Callable[..., Any],
) -> Callable[..., Any]:
    fn = entry.fn

    if entry.kind is WrapperKind.OVERRIDE:
        opaque = OpaqueContinuation(node.describe(), entry.module)

        def call_override(*args: Any, **kwargs: Any) -> Any:
            return fn(receiver, opaque, *args, **kwargs)

        return call_override

    def call_wrapper(*args: Any, **kwargs: Any) -> Any:
        forwarded = False

        def wrapped(*inner_args: Any, **inner_kwargs: Any) -> Any:
            nonlocal forwarded
            forwarded = True
            return inner(*inner_args, **inner_kwargs)

        result = fn(receiver, wrapped, *args, **kwargs)
        if (
            entry.kind is WrapperKind.WRAPPER
            and not forwarded
            and not inspect.isawaitable(result)
        ):
            _warn_unforwarded(node, entry)
        return result

    return call_wrapper


def _warn_unforwarded(node: ChainNode, entry: WrapperEntry) -> None:
    key = (id(node), entry.sequence)
    if key in _warned_unforwarded or not get_settings().warn_unforwarded:
        return
    _warned_unforwarded.add(key)
    logger.warning(
        "WRAPPER for %s from module '%s' returned without calling the wrapped "
        "function; register it as MIXED or OVERRIDE if that is intended",
        node.describe(),
        entry.module,
    )


def reset_warnings() -> None:
    """Forget which wrappers were already reported as unforwarded."""
    _warned_unforwarded.clear()
