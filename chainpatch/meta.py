"""Metaclass that routes class attribute assignment through wrapper chains.

Python's descriptor protocol intercepts ``instance.attr = value`` but not
``Cls.attr = value``. Classes created with ChainAware get the missing half:
assigning a wrapped attribute on the class (or any subclass) updates the
chain's base instead of replacing the chain.

Example:
    class Token(metaclass=ChainAware):
        def render(self):
            ...

    register(Token, "render", add_border)
    Token.render = render_v2  # add_border still runs, around render_v2
"""

from __future__ import annotations

from typing import Any, Optional

from .node import ChainNode


def _find_node(cls: type, name: str) -> Optional[ChainNode]:
    for klass in cls.__mro__:
        if name in klass.__dict__:
            value = klass.__dict__[name]
            return value if isinstance(value, ChainNode) else None
    return None


class ChainAware(type):
    """Metaclass making ``Cls.attr = value`` chain-aware."""

    def __setattr__(cls, name: str, value: Any) -> None:
        node = _find_node(cls, name)
        if node is not None and not isinstance(value, ChainNode):
            node.assign(cls, value)
            return
        super().__setattr__(name, value)

    def __delattr__(cls, name: str) -> None:
        node = _find_node(cls, name)
        if node is not None:
            node.delete(cls)
            return
        super().__delattr__(name)
