"""
Error types raised by the registry cache.

Every error carries a machine-readable ``kind`` plus a stack of context
strings, so callers can branch on the kind while still getting a readable
message such as ``"refreshing cache: could not create registry cache: ..."``.
"""
from __future__ import annotations

from typing import List


class RegistryError(Exception):
    """Base class for all registry cache errors."""

    kind = "registry"

    def __init__(self, message: str, *, context: List[str] | None = None):
        super().__init__(message)
        self.message = message
        self.context: List[str] = list(context or [])

    def wrap(self, context: str) -> "RegistryError":
        """Prepend a context string (outermost first) and return self for re-raising."""
        self.context.insert(0, context)
        return self

    def __str__(self) -> str:
        return ": ".join([*self.context, self.message])


class ConfigurationError(RegistryError):
    kind = "configuration"


class CacheCorruptionError(RegistryError):
    """The mirror exists but is not a valid mirror of the configured remote."""

    kind = "corruption"


class CreationError(RegistryError):
    kind = "creation"


class ResetError(RegistryError):
    """Deleting an invalid mirror failed; nothing else can be attempted."""

    kind = "reset"


class RefreshError(RegistryError):
    kind = "refresh"


class NotFoundError(RegistryError):
    kind = "not_found"


class ParseError(RegistryError):
    kind = "parse"


class ValidationError(RegistryError):
    kind = "validation"
