"""Conflict guard: only one module may OVERRIDE a given chain."""

from __future__ import annotations

import logging
from typing import Optional

from .exceptions import AlreadyOverriddenError
from .models import WrapperKind
from .node import ChainNode

logger = logging.getLogger(__name__)


def check(node: ChainNode, module: Optional[str], kind: WrapperKind) -> None:
    """Validate a registration request against a node's existing entries.

    An OVERRIDE from a module is allowed when the chain has no OVERRIDE yet,
    or when the existing OVERRIDE belongs to the same (known) module, in which
    case it will be replaced. WRAPPER and MIXED are never restricted.

    Raises:
        AlreadyOverriddenError: If another module already overrides the chain
    """
    if kind is not WrapperKind.OVERRIDE:
        return

    existing = node.override_entry()
    if existing is None:
        return
    if module is not None and existing.module == module:
        return

    logger.debug(
        "Rejected OVERRIDE of %s by '%s': already overridden by '%s'",
        node.describe(),
        module,
        existing.module,
    )
    raise AlreadyOverriddenError(module, node.describe(), existing.module)
