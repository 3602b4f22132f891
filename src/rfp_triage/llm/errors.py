"""Failure types raised by the structured generator.

Guarded flows treat all of them the same way (fall back); they only differ
in how they show up in logs.
"""


class GenerationError(Exception):
    """Base class for anything that stops the generator producing output."""


class ProviderUnavailableError(GenerationError):
    """Provider unreachable, SDK not installed, or circuit open."""


class ProviderError(GenerationError):
    """Provider reached but the call failed (bad key, quota, server error)."""


class MalformedOutputError(GenerationError):
    """Model answered, but not with JSON matching the output schema."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
