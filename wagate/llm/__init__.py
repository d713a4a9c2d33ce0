"""Generation providers."""

from .provider import (
    GenerationEmptyResponseError,
    GenerationError,
    GenerationNotConfiguredError,
    GenerationProvider,
    GenerationRateLimitError,
)
from .gemini import GeminiProvider

__all__ = [
    "GeminiProvider",
    "GenerationEmptyResponseError",
    "GenerationError",
    "GenerationNotConfiguredError",
    "GenerationProvider",
    "GenerationRateLimitError",
]
