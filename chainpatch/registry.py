"""Chain registry: one chain node per (level, attribute name).

The registry is the only place where classes and instances get modified.
Class chains are created lazily on first registration and live until reset().
Instance chains are referenced weakly: the instance's shadow class keeps its
nodes alive, and they go away together with the instance.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Iterator, Optional

from .locator import locate
from .logging_config import log_timing
from .models import LocateResult
from .node import ChainNode, describe_level

logger = logging.getLogger(__name__)


def _binding_for(found: LocateResult) -> str:
    value = found.value
    if isinstance(value, ChainNode):
        return value.binding
    if isinstance(value, (classmethod, staticmethod)):
        return "class"
    return "instance"


class ChainRegistry:
    """Process-wide map from (level, name) to its chain node.

    Attributes:
        lock: Re-entrant lock serializing registry mutations
    """

    def __init__(self) -> None:
        self._nodes: dict[tuple[int, str], ChainNode] = {}
        self._instance_nodes: weakref.WeakValueDictionary[tuple[int, str], ChainNode] = (
            weakref.WeakValueDictionary()
        )
        self.lock = threading.RLock()

    def get(self, level: Any, name: str) -> Optional[ChainNode]:
        """Get the node installed on exactly this level, if any."""
        key = (id(level), name)
        node = self._nodes.get(key)
        if node is None:
            node = self._instance_nodes.get(key)
        if node is None or node.level is not level:
            return None
        return node

    def get_or_create(
        self, level: Any, name: str, found: Optional[LocateResult] = None
    ) -> ChainNode:
        """Get the node for (level, name), installing a new one if needed.

        A node whose descriptor was replaced directly on the class is
        reinstalled, taking the replacing value as its new base.

        Args:
            level: Class or instance the chain belongs to
            name: Attribute name
            found: Result of locating name from level, computed if omitted

        Returns:
            The chain node

        Raises:
            NotFoundError: If the attribute does not exist anywhere from level up
        """
        with self.lock:
            node = self.get(level, name)
            if node is not None:
                if not node.is_installed():
                    node.reinstall()
                return node

            if found is None:
                found = locate(level, name)
            node = ChainNode(level, name, binding=_binding_for(found))
            node.install()
            if found.level is not level:
                node.inherit_metadata(found.value)
            if node.is_class_level:
                self._nodes[(id(level), name)] = node
            else:
                self._instance_nodes[(id(level), name)] = node
            logger.debug(
                "Created chain for %s (found %s on %s)",
                node.describe(),
                found.found,
                describe_level(found.level),
            )
            return node

    def nodes(self) -> list[ChainNode]:
        return list(self._instance_nodes.values()) + list(self._nodes.values())

    def reset(self) -> int:
        """Uninstall every node and restore the original attribute values.

        Instance chains are uninstalled first, then class chains newest first,
        so subclass levels are restored before the levels they were created on
        top of.

        Returns:
            Number of nodes removed
        """
        with self.lock, log_timing(logger, "Chain registry reset"):
            nodes = list(self._instance_nodes.values()) + list(reversed(self._nodes.values()))
            for node in nodes:
                node.uninstall()
            self._nodes.clear()
            self._instance_nodes.clear()
            return len(nodes)

    def __iter__(self) -> Iterator[ChainNode]:
        return iter(self.nodes())

    def __len__(self) -> int:
        return len(self._nodes) + len(self._instance_nodes)


# Global registry instance
chain_registry = ChainRegistry()
