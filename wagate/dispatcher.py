"""Dispatch loop: inbound chat messages to command handlers.

Per message: extract text → mute check → empty check → classify →
handler. Each message runs in its own task so a slow handler (generation
can take tens of seconds) never delays the next message.
"""

import asyncio
import logging
from typing import Iterable, Optional

from .assistant import PersonaAssistant
from .commands import Classification, Command, CommandClassifier
from .communication import process_outbound, split_message
from .communication import replies
from .communication.errors import classify_error
from .communication.inbound import InboundMessage
from .delivery import DeliveryEngine, DeliveryError
from .llm.provider import GenerationError, GenerationProvider
from .market import MarketDataClient, format_snapshot
from .media import MediaSender
from .targets import Target, chat_target
from .transport.base import Transport, TransportError

logger = logging.getLogger("wagate.dispatcher")

DEFAULT_REPLY_ATTEMPTS = 2


class Dispatcher:
    """Route classified chat commands to their handlers.

    Every reply goes through ``DeliveryEngine.send_best_effort`` with
    ``reply_attempts`` attempts; a reply that cannot be delivered is
    logged and dropped.
    """

    def __init__(
        self,
        transport: Transport,
        delivery: DeliveryEngine,
        media: MediaSender,
        classifier: CommandClassifier,
        assistant: PersonaAssistant,
        market: MarketDataClient,
        provider: GenerationProvider,
        muted_chats: Iterable[str] = (),
        reply_attempts: int = DEFAULT_REPLY_ATTEMPTS,
    ):
        self.transport = transport
        self.delivery = delivery
        self.media = media
        self.classifier = classifier
        self.assistant = assistant
        self.market = market
        self.provider = provider
        self.muted_chats = set(muted_chats)
        self.reply_attempts = reply_attempts
        self._tasks: set[asyncio.Task] = set()

        self._handlers = {
            Command.HELP: self._handle_help,
            Command.GREET: self._handle_greet,
            Command.PING: self._handle_ping,
            Command.STATUS: self._handle_status,
            Command.INFO: self._handle_info,
            Command.TEST: self._handle_test,
            Command.ECHO: self._handle_echo,
            Command.GROUPS: self._handle_groups,
            Command.ASK: self._handle_ask,
            Command.MARKET_DATA: self._handle_market,
            Command.GENERATE_IMAGE: self._handle_image,
        }

    # ── Loop ───────────────────────────────────────────────────

    async def run(self):
        """Consume transport events until the stream ends."""
        logger.info("Dispatcher started")
        async for message in self.transport.events():
            task = asyncio.create_task(self.handle(message))
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)
        logger.info("Event stream closed")

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Handler crashed: {type(exc).__name__}: {exc}", exc_info=exc)

    async def shutdown(self):
        """Wait for in-flight handlers and pending background sends."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight handler(s)")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.delivery.drain()

    async def handle(self, message: InboundMessage) -> Optional[Classification]:
        """Process one inbound message.

        Returns:
            The classification that was dispatched, or None when the
            message was dropped (muted, empty, or unrecognized).
        """
        text = message.text
        if message.chat_id in self.muted_chats:
            logger.debug(f"Muted chat {message.chat_id}, dropping message")
            return None
        if not text:
            return None

        classification = self.classifier.classify(text)
        if not classification.recognized:
            return None

        logger.info(
            f"Command {classification.command.value} from {message.push_name or message.sender_id} "
            f"in {message.chat_id}"
        )
        handler = self._handlers[classification.command]
        await handler(message, classification, chat_target(message.chat_id))
        return classification

    # ── Reply helpers ──────────────────────────────────────────

    async def _reply(self, target: Target, text: str) -> bool:
        ok = True
        for chunk in split_message(text):
            ok = await self.delivery.send_best_effort(target, chunk, self.reply_attempts) and ok
        return ok

    def _ack(self, target: Target, text: str) -> asyncio.Task:
        return self.delivery.fire_and_forget(target, text, self.reply_attempts)

    # ── Simple commands ────────────────────────────────────────

    async def _handle_help(self, message, classification, target):
        await self._reply(target, replies.help_text(self.classifier.personas))

    async def _handle_greet(self, message, classification, target):
        await self._reply(target, replies.greet_text(message.push_name))

    async def _handle_ping(self, message, classification, target):
        await self._reply(target, replies.PING_TEXT)

    async def _handle_status(self, message, classification, target):
        if self.transport.is_connected():
            await self._reply(target, replies.status_text())
        else:
            await self._reply(target, replies.DISCONNECTED_TEXT)

    async def _handle_info(self, message, classification, target):
        await self._reply(target, replies.INFO_TEXT)

    async def _handle_test(self, message, classification, target):
        await self._reply(target, replies.TEST_TEXT)

    async def _handle_echo(self, message, classification, target):
        await self._reply(target, replies.echo_text(classification.argument))

    async def _handle_groups(self, message, classification, target):
        try:
            groups = await self.transport.get_joined_groups()
        except TransportError as e:
            logger.error(f"Failed to list groups: {e}")
            await self._reply(target, replies.groups_failed_text(e))
            return

        if classification.argument:
            await self._reply(target, replies.groups_search_text(groups, classification.argument))
        else:
            await self._reply(target, replies.groups_list_text(groups))

    # ── Generation commands ────────────────────────────────────
    # The "working..." ack task is created before the slow call and awaited
    # before the final answer, so the ack is always attempted first.

    async def _handle_ask(self, message, classification, target):
        persona = classification.persona
        question = classification.argument
        if not question:
            await self._reply(target, replies.persona_usage_text(persona))
            return

        ack = self._ack(target, replies.persona_thinking_text(persona))
        try:
            answer = await self.assistant.ask(message.chat_id, persona.name, question)
            text = replies.persona_answer_text(persona, process_outbound(answer))
        except GenerationError as e:
            logger.error(f"{persona.name} failed to answer in {message.chat_id}: {e}")
            text = classify_error(e)

        await asyncio.wait({ack})
        await self._reply(target, text)

    async def _handle_market(self, message, classification, target):
        ack = self._ack(target, replies.MARKET_LOADING_TEXT)
        try:
            snapshot = await self.market.fetch_snapshot()
            text = format_snapshot(snapshot)
        except Exception as e:
            logger.error(f"Market snapshot failed: {type(e).__name__}: {e}")
            text = replies.MARKET_FAILED_TEXT

        await asyncio.wait({ack})
        await self._reply(target, text)

    async def _handle_image(self, message, classification, target):
        prompt = classification.argument
        if not prompt:
            await self._reply(target, replies.IMAGE_USAGE_TEXT)
            return

        ack = self._ack(target, replies.IMAGE_WORKING_TEXT)
        try:
            data = await self.provider.generate_image(prompt)
        except GenerationError as e:
            logger.error(f"Image generation failed in {message.chat_id}: {e}")
            await asyncio.wait({ack})
            await self._reply(target, classify_error(e, image=True))
            return

        await asyncio.wait({ack})
        try:
            outcome = await self.media.send_image(target, data, replies.image_caption(prompt))
            logger.info(f"Image for {message.chat_id} delivered via {outcome.value}")
        except DeliveryError as e:
            logger.error(f"Image for {message.chat_id} dropped: {e}")
