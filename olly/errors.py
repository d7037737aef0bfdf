"""Errors raised while wiring components together."""

from typing import Any


class OllyError(Exception):
    """Base class for olly errors."""


class CapabilityError(OllyError, ValueError):
    """A dependency was passed that does not expose the required capability.

    Subclasses ValueError so pydantic argument models report it as a
    ValidationError at construction time.
    """

    def __init__(self, capability: str, field: str, value: Any):
        self.capability = capability
        self.field = field
        self.value = value
        super().__init__(
            f"{field}: {type(value).__name__} does not provide the "
            f"{capability} capability"
        )
