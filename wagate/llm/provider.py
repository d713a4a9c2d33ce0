"""Provider-agnostic generation interface."""

from abc import ABC, abstractmethod
from typing import Optional


# ════════════════════════════════════════════════════════
# Generation Exception Hierarchy. The dispatcher only
# distinguishes "not configured" and "rate limited";
# everything else gets the generic apology.
# ════════════════════════════════════════════════════════

class GenerationError(Exception):
    """Base class for all generation provider errors."""
    pass

class GenerationNotConfiguredError(GenerationError):
    """No API key configured for the provider."""
    pass

class GenerationRateLimitError(GenerationError):
    """429, quota exhausted, or rate limit reached."""
    pass

class GenerationEmptyResponseError(GenerationError):
    """Provider answered without usable content."""
    pass


class GenerationProvider(ABC):
    """Abstract text + image generation capability."""

    @abstractmethod
    async def generate(self, prompt: str, context: Optional[str] = None) -> str:
        """Generate a text reply.

        Args:
            prompt: The user-facing prompt (question plus any history).
            context: System instruction (persona description).
        """
        ...

    @abstractmethod
    async def generate_image(self, prompt: str) -> bytes:
        """Generate an image and return its raw bytes."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    def configured(self) -> bool:
        return True
