"""wagate configuration management."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("wagate.config")


class GatewaySettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, description="HTTP API port")

    # Send API; unset rejects every request
    api_secret: Optional[str] = Field(default=None, description="Shared secret for the send endpoints")

    # Routing
    notification_targets: str = Field(
        default="",
        description="Comma-separated default targets for webhook notifications",
    )
    mute_list: str = Field(
        default="",
        description="Semicolon-separated chat identifiers the bot never answers",
    )
    country_code: str = Field(default="62", description="Country code used to normalize phone numbers")
    command_prefixes: str = Field(default="!/", description="Characters that start a chat command")
    personas: str = Field(
        default="fiq=Fiq,apik=Apik",
        description="Comma-separated keyword=Name pairs for assistant personas",
    )

    # Conversation memory
    memory_file: str = Field(default="memory.json", description="Path of the persisted memory file")
    memory_cap: int = Field(default=50, description="Max entries kept per conversation")
    memory_history_limit: int = Field(default=6, description="Entries fed back as prompt context")

    # Generation (Gemini)
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Text generation model")
    gemini_image_model: str = Field(
        default="gemini-2.0-flash-preview-image-generation",
        description="Image generation model",
    )
    generation_timeout: float = Field(default=30.0, description="Generation request timeout (seconds)")

    # Market data
    market_timeout: float = Field(default=30.0, description="Market data request timeout (seconds)")

    # Delivery pacing
    bulk_pacing: float = Field(default=1.0, description="Delay between bulk sends (seconds)")
    webhook_pacing: float = Field(default=0.5, description="Delay between webhook sends (seconds)")

    # Transport
    wacli_path: str = Field(default="wacli", description="Path to the wacli binary")
    wacli_db: str = Field(default="~/.wacli/wacli.db", description="wacli message store")

    # Logging
    log_file: str = Field(default="~/wagate.log", description="Log file path")

    model_config = {"env_prefix": "WAGATE_", "env_file": ".env", "extra": "ignore"}

    def targets(self) -> list[str]:
        """Default notification targets, blanks dropped."""
        return [t.strip() for t in self.notification_targets.split(",") if t.strip()]

    def muted_chats(self) -> set[str]:
        return {c.strip() for c in self.mute_list.split(";") if c.strip()}

    def prefixes(self) -> tuple[str, ...]:
        return tuple(ch for ch in self.command_prefixes if not ch.isspace())

    def persona_list(self) -> list[tuple[str, str]]:
        """Parse ``personas`` into (keyword, name) pairs.

        A bare keyword without ``=Name`` uses the capitalized keyword as name.
        """
        result = []
        for item in self.personas.split(","):
            item = item.strip()
            if not item:
                continue
            keyword, _, name = item.partition("=")
            keyword = keyword.strip().lower()
            if not keyword:
                continue
            result.append((keyword, name.strip() or keyword.capitalize()))
        return result


def load_settings() -> GatewaySettings:
    """Load settings from environment."""
    settings = GatewaySettings()

    if not settings.api_secret:
        logger.warning(
            "⚠️ WAGATE_API_SECRET is not set; the send endpoints will reject every "
            "request until a secret is configured."
        )
    if not settings.gemini_api_key:
        logger.warning(
            "WAGATE_GEMINI_API_KEY is not set; assistant and image commands "
            "will answer with a 'not configured' message."
        )

    return settings
