"""Chain nodes: the interception point installed on a class or an instance.

A ChainNode is a data descriptor. Installed in a class ``__dict__`` it turns
every read of the attribute into a call through the wrapper chain and every
write into an update of the chain's base, instead of a replacement of the
chain itself. Writes on an instance are caught natively by the descriptor
protocol. Writes on a class are caught by the ChainAware metaclass or by
``chainpatch.assign``; a plain ``setattr`` on a class that uses neither
replaces the node, and the next registration on that attribute absorbs the
new value as the chain's base.

Wrapping a single instance installs the node on a private subclass created for
that instance only (the instance's type is swapped; ``isinstance`` checks,
``__class__``, copying and pickling still see the real class).
"""

from __future__ import annotations

import contextvars
import functools
import logging
import types
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from .models import WrapperEntry, WrapperKind

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


MISSING = _Sentinel("MISSING")

# Default base of a node whose level did not own the attribute: the value is
# looked up again, past the node's level, at every call.
FORWARD = _Sentinel("FORWARD")

# Holds the real class in the __dict__ of every per-instance shadow class
SHADOW_MARKER = "__chainpatch_shadow__"

_object_class = object.__dict__["__class__"]

# (id(node), id(receiver)) pairs whose base is running in the current context
_running_bases: contextvars.ContextVar[frozenset] = contextvars.ContextVar(
    "chainpatch_running_bases", default=frozenset()
)


def is_shadow(cls: type) -> bool:
    """Check if a class is a per-instance shadow class."""
    return isinstance(cls, type) and isinstance(cls.__dict__.get(SHADOW_MARKER), type)


def real_class(cls: type) -> type:
    """The class a shadow class stands in for, or cls itself."""
    return cls.__dict__[SHADOW_MARKER] if is_shadow(cls) else cls


@contextmanager
def running_base(node: "ChainNode", receiver: Any) -> Iterator[None]:
    """Mark node's base as running for receiver until the block exits."""
    token = _running_bases.set(_running_bases.get() | {(id(node), id(receiver))})
    try:
        yield
    finally:
        _running_bases.reset(token)


def is_running_base(node: "ChainNode", receiver: Any) -> bool:
    return (id(node), id(receiver)) in _running_bases.get()


def bind(value: Any, receiver: Any) -> Any:
    """Bind a class-level value to a receiver through the descriptor protocol."""
    get = getattr(type(value), "__get__", None)
    if get is None:
        return value
    if isinstance(receiver, type):
        return get(value, None, receiver)
    return get(value, receiver, type(receiver))


def _unwrap_function(value: Any) -> Any:
    if isinstance(value, ChainNode):
        return value.trampoline
    if isinstance(value, (classmethod, staticmethod)):
        return value.__func__
    return value


def describe_level(level: Any) -> str:
    """Readable name for a class or instance level."""
    if isinstance(level, type):
        return level.__qualname__
    cls = real_class(type(level))
    return f"<{cls.__qualname__} object at {id(level):#x}>"


class BaseStore:
    """Per-receiver base values, keyed by receiver identity.

    Receivers are referenced weakly: an entry disappears together with its
    receiver and never keeps it alive.
    """

    def __init__(self) -> None:
        self._data: dict[int, tuple[weakref.ref, Any]] = {}

    def set(self, receiver: Any, value: Any) -> None:
        """Store a value for a receiver.

        Raises:
            TypeError: If the receiver does not support weak references
        """
        key = id(receiver)
        data = self._data

        def _expire(ref: weakref.ref, key: int = key) -> None:
            item = data.get(key)
            if item is not None and item[0] is ref:
                del data[key]

        self._data[key] = (weakref.ref(receiver, _expire), value)

    def get(self, receiver: Any, default: Any = MISSING) -> Any:
        item = self._data.get(id(receiver))
        if item is None or item[0]() is not receiver:
            return default
        return item[1]

    def discard(self, receiver: Any) -> bool:
        item = self._data.get(id(receiver))
        if item is None or item[0]() is not receiver:
            return False
        del self._data[id(receiver)]
        return True

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, receiver: Any) -> bool:
        return self.get(receiver) is not MISSING

    def __len__(self) -> int:
        return sum(1 for ref, _ in self._data.values() if ref() is not None)


def _get_real_class(self: Any) -> type:
    return real_class(type(self))


def _set_class(self: Any, value: type) -> None:
    _object_class.__set__(self, value)


def _reduce_as_real_class(self: Any, protocol: int) -> Any:
    """Copy and pickle a wrapped instance as an instance of its real class."""
    shadow = type(self)
    real = real_class(shadow)
    reduced = super(shadow, self).__reduce_ex__(protocol)
    if isinstance(reduced, tuple) and len(reduced) > 1 and isinstance(reduced[1], tuple):
        args = tuple(real if arg is shadow else arg for arg in reduced[1])
        reduced = (reduced[0], args, *reduced[2:])
    return reduced


def _skip_init_subclass(cls: type, **kwargs: Any) -> None:
    pass


@contextmanager
def _quiet_subclassing(cls: type) -> Iterator[None]:
    """Keep cls.__init_subclass__ from seeing the shadow class being created."""
    own = cls.__dict__.get("__init_subclass__", MISSING)
    try:
        type.__setattr__(cls, "__init_subclass__", classmethod(_skip_init_subclass))
        patched = True
    except TypeError:
        # Immutable types can't carry Python level hooks anyway
        patched = False
    try:
        yield
    finally:
        if patched and own is MISSING:
            type.__delattr__(cls, "__init_subclass__")
        elif patched:
            type.__setattr__(cls, "__init_subclass__", own)


def make_shadow(cls: type) -> type:
    """Create the private subclass that hosts an instance's chain nodes."""
    meta = type(cls)
    namespace = {
        SHADOW_MARKER: cls,
        "__slots__": (),
        "__module__": cls.__module__,
        "__qualname__": cls.__qualname__,
        "__doc__": cls.__doc__,
        "__class__": property(_get_real_class, _set_class),
        "__reduce_ex__": _reduce_as_real_class,
    }
    with _quiet_subclassing(cls):
        return meta.__new__(meta, cls.__name__, (cls,), namespace)


class ChainNode:
    """The wrapper chain for one attribute at one level.

    An instance level is referenced weakly when it supports weak references,
    so a per-instance chain lives exactly as long as its instance.

    Attributes:
        level: The class or instance owning the chain (None once a weakly
            referenced instance is gone)
        name: Attribute name
        owner: Class whose __dict__ holds the descriptor (the level itself,
            or the level's shadow class for instance levels)
        binding: "instance" for plain methods, "class" for classmethod and
            staticmethod bases (the owner class is the receiver)
        store: Per-receiver base values
    """

    def __init__(self, level: Any, name: str, binding: str = "instance"):
        self._is_class_level = isinstance(level, type)
        self._level: Any = level
        self._level_ref: Optional[weakref.ref] = None
        if not self._is_class_level:
            try:
                self._level_ref = weakref.ref(level)
                self._level = None
            except TypeError:
                pass
        self.name = name
        self.binding = binding
        self.owner: Optional[type] = level if self._is_class_level else None
        self.store = BaseStore()

        self._entries: list[WrapperEntry] = []
        self._default: Any = FORWARD
        self._default_bound = self._is_class_level
        self._original: Any = MISSING
        self._installed = False

        node = self

        def trampoline(receiver, /, *args, **kwargs):
            from .dispatcher import invoke

            return invoke(node, receiver, args, kwargs)

        self.trampoline: Callable[..., Any] = trampoline

    @property
    def level(self) -> Any:
        if self._level_ref is not None:
            return self._level_ref()
        return self._level

    # Descriptor protocol

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if self.binding == "class":
            # An instance that got its own value shadows the class binding
            if instance is not None and self.has_own_base(instance):
                return ChainMethod(self, instance)
            receiver = owner if owner is not None else type(instance)
            return ChainMethod(self, receiver)
        if instance is None:
            return ChainFunction(self)
        return ChainMethod(self, instance)

    def __set__(self, instance: Any, value: Any) -> None:
        self.assign(instance, value)

    def __delete__(self, instance: Any) -> None:
        self.delete(instance)

    # Installation

    @property
    def is_class_level(self) -> bool:
        return self._is_class_level

    def is_installed(self) -> bool:
        """Check if the descriptor is still in place on its level."""
        if not self._installed or self.owner is None:
            return False
        if not self.is_class_level and type(self.level) is not self.owner:
            return False
        return self.owner.__dict__.get(self.name) is self

    def install(self) -> None:
        """Install the descriptor, capturing the level's own value as default base."""
        own = self._take_own_value()
        self._original = own
        if own is not MISSING:
            self._set_default(own)
            self._adopt_metadata(own)
        self._put_descriptor()
        self._installed = True
        logger.debug("Installed chain node on %s", self.describe())

    def reinstall(self) -> None:
        """Install again after the descriptor was replaced behind the node's back.

        The value that replaced the descriptor becomes the new default base.
        """
        own = self._take_own_value()
        if own is not MISSING:
            self._set_default(own)
            logger.warning(
                "%s was overwritten directly; using the new value as base", self.describe()
            )
        self._put_descriptor()
        self._installed = True

    def uninstall(self) -> None:
        """Remove the descriptor and restore the level's original value."""
        if not self._installed:
            return
        self._installed = False
        level = self.level
        if level is None:
            return
        if self.is_class_level:
            if level.__dict__.get(self.name) is self:
                type.__delattr__(level, self.name)
            if self._original is not MISSING:
                type.__setattr__(level, self.name, self._original)
        else:
            shadow = self.owner
            if shadow is not None and shadow.__dict__.get(self.name) is self:
                type.__delattr__(shadow, self.name)
            if shadow is not None and type(level) is shadow:
                remaining = [v for v in vars(shadow).values() if isinstance(v, ChainNode)]
                if not remaining:
                    _set_class(level, real_class(shadow))
            if self._original is not MISSING:
                vars(level)[self.name] = self._original
        self.store.clear()
        logger.debug("Uninstalled chain node from %s", self.describe())

    def _take_own_value(self) -> Any:
        level = self.level
        if self.is_class_level:
            value = level.__dict__.get(self.name, MISSING)
            return MISSING if value is self else value
        own = getattr(level, "__dict__", None)
        if isinstance(own, dict) and self.name in own:
            return own.pop(self.name)
        return MISSING

    def _put_descriptor(self) -> None:
        level = self.level
        if self.is_class_level:
            type.__setattr__(level, self.name, self)
            return
        cls = type(level)
        if not is_shadow(cls):
            cls = make_shadow(cls)
            _set_class(level, cls)
        self.owner = cls
        type.__setattr__(cls, self.name, self)

    def _adopt_metadata(self, value: Any) -> None:
        func = _unwrap_function(value)
        if callable(func):
            functools.update_wrapper(self.trampoline, func)

    def inherit_metadata(self, value: Any) -> None:
        """Copy name and docstring from an inherited base when nothing is owned."""
        if self._original is MISSING:
            self._adopt_metadata(value)

    # Base values

    def _set_default(self, value: Any) -> None:
        self._default = value
        self._default_bound = self.is_class_level

    @property
    def default(self) -> Any:
        """The node-wide default base, FORWARD when it is looked up past the level."""
        return self._default

    def assign(self, receiver: Any, value: Any) -> None:
        """Make value the base for receiver.

        Assigning on the level itself replaces the node-wide default; assigning
        on any other receiver only affects that receiver (and, for classes, the
        instances that inherit from it).

        Raises:
            TypeError: If the receiver can neither be weakly referenced nor
                holds a __dict__
        """
        if receiver is self.level:
            self._set_default(value)
            logger.debug("Replaced base of %s", self.describe())
            return
        try:
            self.store.set(receiver, value)
        except TypeError:
            own = getattr(receiver, "__dict__", None)
            if not isinstance(own, dict):
                raise TypeError(
                    f"Cannot store a base for {type(receiver).__name__} objects: "
                    f"they support neither weak references nor a __dict__"
                ) from None
            own[self.name] = value
        logger.debug("Replaced base of %s for %r", self.describe(), receiver)

    def delete(self, receiver: Any) -> None:
        """Drop the base stored for a receiver.

        Raises:
            AttributeError: On the level itself, or if the receiver has no base
        """
        if receiver is self.level:
            raise AttributeError(
                f"Can't delete '{self.name}' from {describe_level(self.level)} while it is wrapped"
            )
        removed = self.store.discard(receiver)
        own = getattr(receiver, "__dict__", None)
        if isinstance(own, dict) and self.name in own:
            del own[self.name]
            removed = True
        if not removed:
            raise AttributeError(self.name)

    def has_own_base(self, receiver: Any) -> bool:
        """Check if a base was assigned on receiver itself, not on the level."""
        if receiver is self.level:
            return False
        if receiver in self.store:
            return True
        own = getattr(receiver, "__dict__", None)
        return isinstance(own, dict) and self.name in own

    def lookup(self, receiver: Any) -> tuple[Any, bool]:
        """Find the raw base in effect for a receiver.

        Order: the receiver's own value, the values stored for the classes of
        its MRO below the owner, then the node default.

        Returns:
            (raw value, whether it must be bound to the receiver)
        """
        if receiver is not self.level:
            if isinstance(receiver, type):
                mro = receiver.__mro__
            else:
                value = self.store.get(receiver)
                if value is not MISSING:
                    return value, False
                own = getattr(receiver, "__dict__", None)
                if isinstance(own, dict) and self.name in own:
                    return own[self.name], False
                mro = type(receiver).__mro__
            for cls in mro:
                if cls is self.owner:
                    break
                value = self.store.get(cls)
                if value is not MISSING:
                    return value, True
        return self._default, self._default_bound

    def materialize(self, receiver: Any, raw: Any, bound: bool) -> Any:
        """Turn a raw base into the callable to invoke for a receiver."""
        if raw is FORWARD:
            return getattr(super(self.owner, receiver), self.name)
        if bound:
            return bind(raw, receiver)
        return raw

    def resolve_base(self, receiver: Any) -> Any:
        """The base callable currently in effect for a receiver."""
        return self.materialize(receiver, *self.lookup(receiver))

    # Entries

    def entries(self) -> tuple[WrapperEntry, ...]:
        """Snapshot of the entries, outermost first."""
        return tuple(self._entries)

    def add(self, entry: WrapperEntry) -> WrapperEntry:
        """Insert an entry, replacing the same module's entry of the same kind.

        Returns:
            The entry as stored
        """
        if entry.module is not None:
            for i, existing in enumerate(self._entries):
                if existing.module == entry.module and existing.kind == entry.kind:
                    entry = existing.replace_fn(entry.fn)
                    self._entries[i] = entry
                    return entry
        self._entries.append(entry)
        self._entries.sort(key=WrapperEntry.sort_key)
        return entry

    def remove(self, module: Optional[str], kind: Optional[WrapperKind] = None) -> int:
        """Remove a module's entries, optionally only those of one kind.

        Returns:
            Number of entries removed
        """
        keep = [
            e
            for e in self._entries
            if e.module != module or (kind is not None and e.kind != kind)
        ]
        removed = len(self._entries) - len(keep)
        self._entries = keep
        return removed

    def override_entry(self) -> Optional[WrapperEntry]:
        for entry in self._entries:
            if entry.kind is WrapperKind.OVERRIDE:
                return entry
        return None

    def clear(self) -> None:
        self._entries = []

    def __iter__(self) -> Iterator[WrapperEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    def describe(self) -> str:
        return f"{describe_level(self.level)}.{self.name}"

    def __repr__(self) -> str:
        return f"<ChainNode {self.describe()} entries={len(self._entries)}>"


class ChainMethod:
    """The chain's trampoline bound to a receiver.

    Remembers which base was in effect for the receiver when it was read. When
    it is called from inside the replacement of that base (the usual "save the
    original, then assign a new function that calls it" pattern), it calls the
    base it saw directly instead of running the wrappers a second time. Called
    from anywhere else it always runs the full chain around the current base.
    """

    __slots__ = ("_node", "__self__", "_seen")

    def __init__(self, node: ChainNode, receiver: Any):
        self._node = node
        self.__self__ = receiver
        self._seen = node.lookup(receiver)

    @property
    def __func__(self) -> Callable[..., Any]:
        return self._node.trampoline

    @property
    def __doc__(self) -> Optional[str]:  # type: ignore[override]
        return self._node.trampoline.__doc__

    def __getattr__(self, item: str) -> Any:
        if item in self.__slots__:
            raise AttributeError(item)
        return getattr(self._node.trampoline, item)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        node = self._node
        receiver = self.__self__
        raw, bound = self._seen
        if is_running_base(node, receiver) and node.lookup(receiver)[0] is not raw:
            return node.materialize(receiver, raw, bound)(*args, **kwargs)
        return node.trampoline(receiver, *args, **kwargs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChainMethod):
            return NotImplemented
        return self._node is other._node and self.__self__ is other.__self__

    def __hash__(self) -> int:
        return hash((id(self._node), id(self.__self__)))

    def __repr__(self) -> str:
        return f"<chained method {self._node.describe()} of {self.__self__!r}>"


class ChainFunction:
    """The chain's trampoline read from the class, unbound.

    Called with the receiver as first argument, like a plain function read
    from a class. Remembers the level's default base at read time, with the
    same rule for calls made from inside its replacement as ChainMethod.
    """

    __slots__ = ("_node", "_seen")

    def __init__(self, node: ChainNode):
        self._node = node
        self._seen = (node.default, node.is_class_level)

    @property
    def __doc__(self) -> Optional[str]:  # type: ignore[override]
        return self._node.trampoline.__doc__

    def __getattr__(self, item: str) -> Any:
        if item in self.__slots__:
            raise AttributeError(item)
        return getattr(self._node.trampoline, item)

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self, instance)

    def __call__(self, receiver: Any, /, *args: Any, **kwargs: Any) -> Any:
        node = self._node
        raw, bound = self._seen
        if is_running_base(node, receiver) and node.default is not raw:
            return node.materialize(receiver, raw, bound)(*args, **kwargs)
        return node.trampoline(receiver, *args, **kwargs)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ChainFunction):
            return self._node is other._node
        return other is self._node.trampoline

    def __hash__(self) -> int:
        return hash(self._node.trampoline)

    def __repr__(self) -> str:
        return f"<chained function {self._node.describe()}>"
