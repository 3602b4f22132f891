"""Structured generation against pluggable LLM providers."""

from .errors import (
    GenerationError,
    MalformedOutputError,
    ProviderError,
    ProviderUnavailableError,
)
from .generate import StructuredGenerator

__all__ = [
    "GenerationError",
    "MalformedOutputError",
    "ProviderError",
    "ProviderUnavailableError",
    "StructuredGenerator",
]
