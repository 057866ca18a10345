"""Cooperative method wrapping for plugin systems.

Independent modules can wrap the same method of a shared class hierarchy
without clobbering each other. Each wrapped attribute gets a chain node:
wrappers layer around whatever the real implementation currently is, and
direct reassignment of the attribute becomes the chain's new base instead of
destroying the chain.

Three interception levels exist:

1. WRAPPER - must call ``wrapped``; runs outermost, newest first
2. MIXED - may call ``wrapped`` any number of times, or not at all
3. OVERRIDE - replaces the original entirely; one module per chain
"""

from .api import assign, register, reset_all, unregister, unregister_all, unwrap_all, wrap
from .config import Settings, configure, get_settings, load_settings, reset_settings
from .dispatcher import OpaqueContinuation
from .exceptions import (
    AlreadyOverriddenError,
    ChainpatchError,
    InvalidWrapperKindError,
    NotFoundError,
)
from .identity import get_caller_resolver, resolve_caller, set_caller_resolver
from .locator import locate
from .logging_config import setup_logging
from .meta import ChainAware
from .models import TYPES, TYPES_LIST, TYPES_REVERSE, LocateResult, WrapperEntry, WrapperKind
from .modules import ModuleInfo, ModuleRegistry, module_registry
from .node import ChainNode
from .registry import ChainRegistry, chain_registry

WRAPPER = WrapperKind.WRAPPER
MIXED = WrapperKind.MIXED
OVERRIDE = WrapperKind.OVERRIDE

__all__ = [
    # Operations
    "register",
    "wrap",
    "unregister",
    "unregister_all",
    "assign",
    "reset_all",
    "unwrap_all",
    "locate",
    # Kinds and models
    "WrapperKind",
    "WRAPPER",
    "MIXED",
    "OVERRIDE",
    "TYPES",
    "TYPES_LIST",
    "TYPES_REVERSE",
    "WrapperEntry",
    "LocateResult",
    "OpaqueContinuation",
    # Chains
    "ChainNode",
    "ChainRegistry",
    "chain_registry",
    "ChainAware",
    # Modules
    "ModuleInfo",
    "ModuleRegistry",
    "module_registry",
    "resolve_caller",
    "get_caller_resolver",
    "set_caller_resolver",
    # Errors
    "ChainpatchError",
    "NotFoundError",
    "AlreadyOverriddenError",
    "InvalidWrapperKindError",
    # Settings and logging
    "Settings",
    "get_settings",
    "configure",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
