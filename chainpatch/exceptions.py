"""
Wrapper chain exceptions.

These exceptions are raised at the registration boundary only. Errors raised
by wrapper or base functions during a call are never converted into one of
these; they propagate exactly as if no chain existed.
"""

from __future__ import annotations

from typing import Any, Optional


class ChainpatchError(Exception):
    """Base exception for all chainpatch errors."""

    pass


class NotFoundError(ChainpatchError, AttributeError):
    """Raised when an attribute cannot be found anywhere along the lookup chain."""

    def __init__(self, target: str, name: str, message: Optional[str] = None):
        super().__init__(message or f"Can't find '{name}' on {target}")
        # AttributeError.__init__ resets name, so set it afterwards
        self.target = target
        self.name = name


class InvalidWrapperKindError(ChainpatchError, ValueError):
    """Raised when a wrapper kind cannot be parsed."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(
            f"Invalid wrapper kind {value!r}; expected one of WRAPPER, MIXED, OVERRIDE"
        )


class AlreadyOverriddenError(ChainpatchError):
    """Raised when a second module tries to OVERRIDE an already overridden attribute.

    Attributes:
        module: Module that requested the OVERRIDE
        target: Description of the wrapped attribute
        conflicting_module: Module whose OVERRIDE is already installed
    """

    def __init__(
        self,
        module: Optional[str],
        target: str,
        conflicting_module: Optional[str],
    ):
        self.module = module
        self.target = target
        self.conflicting_module = conflicting_module
        super().__init__(
            f"Failed to wrap '{target}' for module '{module}' with type OVERRIDE. "
            f"The module '{conflicting_module}' has already registered an "
            f"OVERRIDE wrapper for the same method."
        )

    @property
    def conflicting_module_title(self) -> Optional[str]:
        """Title of the module that caused the wrapping conflict, if registered."""
        from .modules import module_registry

        info = module_registry.get(self.conflicting_module)
        return info.title if info else None
