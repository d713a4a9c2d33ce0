"""wagate: main entry point."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import uvicorn

from .api import create_app
from .assistant import PersonaAssistant
from .commands import CommandClassifier, Persona
from .config import GatewaySettings, load_settings
from .delivery import DeliveryEngine
from .dispatcher import Dispatcher
from .llm import GeminiProvider
from .market import MarketDataClient
from .media import MediaSender
from .memory import ConversationMemory
from .transport.base import Transport
from .transport.wacli import WacliTransport
from .webhook import WebhookRelay

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("wagate")


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO):
    handlers: list[logging.Handler] = [logging.StreamHandler()]       # stderr (console)
    if log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))
    logging.basicConfig(level=level, format=_log_format, handlers=handlers)
    # httpx logs every request URL at INFO, which would leak the Gemini key
    logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class Services:
    """Every long-lived object, constructed once at startup."""
    settings: GatewaySettings
    transport: Transport
    delivery: DeliveryEngine
    media: MediaSender
    memory: ConversationMemory
    provider: GeminiProvider
    assistant: PersonaAssistant
    market: MarketDataClient
    classifier: CommandClassifier
    relay: WebhookRelay
    dispatcher: Dispatcher


def build_services(settings: GatewaySettings, transport: Optional[Transport] = None) -> Services:
    """Wire the gateway from settings. ``transport`` overrides wacli (tests)."""
    transport = transport or WacliTransport(settings.wacli_path, settings.wacli_db)
    delivery = DeliveryEngine(transport, country_code=settings.country_code)
    media = MediaSender(transport, delivery)
    memory = ConversationMemory(settings.memory_file, cap=settings.memory_cap)
    provider = GeminiProvider(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        image_model=settings.gemini_image_model,
        timeout=settings.generation_timeout,
    )
    assistant = PersonaAssistant(provider, memory, history_limit=settings.memory_history_limit)
    market = MarketDataClient(timeout=settings.market_timeout)
    classifier = CommandClassifier(
        prefixes=settings.prefixes(),
        personas=[Persona(kw, name) for kw, name in settings.persona_list()],
    )
    relay = WebhookRelay(transport, delivery, settings.targets(), pacing=settings.webhook_pacing)
    dispatcher = Dispatcher(
        transport=transport,
        delivery=delivery,
        media=media,
        classifier=classifier,
        assistant=assistant,
        market=market,
        provider=provider,
        muted_chats=settings.muted_chats(),
    )
    return Services(
        settings=settings,
        transport=transport,
        delivery=delivery,
        media=media,
        memory=memory,
        provider=provider,
        assistant=assistant,
        market=market,
        classifier=classifier,
        relay=relay,
        dispatcher=dispatcher,
    )


def build_app(services: Services):
    """HTTP app whose lifespan owns the dispatcher task."""

    @asynccontextmanager
    async def lifespan(app):
        task = asyncio.create_task(services.dispatcher.run())
        try:
            yield
        finally:
            await services.transport.close()
            await services.dispatcher.shutdown()
            if not task.done():
                task.cancel()
            logger.info("Dispatcher stopped.")

    return create_app(
        transport=services.transport,
        delivery=services.delivery,
        relay=services.relay,
        market=services.market,
        api_secret=services.settings.api_secret,
        country_code=services.settings.country_code,
        bulk_pacing=services.settings.bulk_pacing,
        lifespan=lifespan,
    )


async def run(settings: Optional[GatewaySettings] = None):
    """Main run loop."""
    settings = settings or load_settings()
    services = build_services(settings)

    loaded = services.memory.load()
    logger.info(f"Conversation memory: {loaded} conversation(s) from {settings.memory_file}")

    if not await services.transport.connect():
        logger.critical("Could not connect to WhatsApp. Is wacli installed and authenticated?")
        return

    app = build_app(services)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
    ))
    logger.info(f"wagate listening on {settings.host}:{settings.port}. Press Ctrl+C to stop.")
    try:
        await server.serve()
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        if services.transport.is_connected():
            await services.transport.close()


def main():
    """Entry point."""
    setup_logging(GatewaySettings().log_file)
    asyncio.run(run())


if __name__ == "__main__":
    main()
