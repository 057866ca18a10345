"""Module registry for attributing wrappers to the modules that own them.

The registry is the place where host applications describe the plugins they
have installed. The chain engine only reads from it: to label conflicts with a
human readable title and to let the caller identity heuristic recognize which
installed module a frame belongs to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ModuleInfo:
    """An installed module.

    Attributes:
        id: Unique identifier, usually the top-level import package name
        title: Display title used in diagnostics
        packages: Import package prefixes that belong to this module
        metadata: Free form metadata supplied by the host
    """

    id: str
    title: Optional[str] = None
    packages: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = self.id
        if not self.packages:
            self.packages = (self.id,)

    def match_length(self, module_name: str) -> int:
        """Check if an import path belongs to this module.

        Args:
            module_name: Dotted module name, e.g. a frame's __name__

        Returns:
            Length of the longest owned package prefix matching the name,
            -1 if the name is outside all of the module's packages
        """
        best = -1
        for pkg in self.packages:
            if module_name == pkg or module_name.startswith(pkg + "."):
                best = max(best, len(pkg))
        return best


class ModuleRegistry:
    """Installed modules, keyed by identifier."""

    def __init__(self) -> None:
        self._modules: dict[str, ModuleInfo] = {}

    def register(
        self,
        module_id: str,
        title: Optional[str] = None,
        packages: tuple[str, ...] = (),
        **metadata: Any,
    ) -> ModuleInfo:
        """Register (or replace) an installed module.

        Args:
            module_id: Unique module identifier
            title: Optional display title
            packages: Import packages owned by the module, defaults to (module_id,)
            **metadata: Extra metadata stored on the ModuleInfo

        Returns:
            The registered ModuleInfo
        """
        info = ModuleInfo(
            id=module_id, title=title, packages=tuple(packages), metadata=metadata
        )
        self._modules[module_id] = info
        logger.debug("Registered module '%s' (%s)", module_id, info.title)
        return info

    def unregister(self, module_id: str) -> bool:
        """Remove a module.

        Returns:
            True if the module was registered, False otherwise
        """
        if module_id in self._modules:
            del self._modules[module_id]
            logger.debug("Unregistered module '%s'", module_id)
            return True
        return False

    def get(self, module_id: Optional[str]) -> Optional[ModuleInfo]:
        if module_id is None:
            return None
        return self._modules.get(module_id)

    def has(self, module_id: Optional[str]) -> bool:
        return module_id is not None and module_id in self._modules

    def find_owner(self, module_name: str) -> Optional[ModuleInfo]:
        """Find the installed module an import path belongs to.

        The most specific package prefix wins when several modules match.
        """
        best: Optional[ModuleInfo] = None
        best_len = -1
        for info in self._modules.values():
            length = info.match_length(module_name)
            if length > best_len:
                best, best_len = info, length
        return best

    def list(self) -> list[ModuleInfo]:
        return list(self._modules.values())

    def clear(self) -> int:
        """Remove all modules.

        Returns:
            Number of modules removed
        """
        count = len(self._modules)
        self._modules.clear()
        return count

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)


# Global registry instance
module_registry = ModuleRegistry()
