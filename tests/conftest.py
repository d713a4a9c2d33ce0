"""Pytest configuration and shared fixtures."""

import asyncio
from typing import AsyncIterator, Optional

import pytest

from wagate.communication.inbound import InboundMessage, PlainText
from wagate.transport.base import GroupInfo, Transport, TransportError


class FakeTransport(Transport):
    """In-memory transport.

    ``fail_sends`` makes the next N text sends fail; ``always_fail`` makes
    every text send fail. Sent messages are recorded in ``sent``.
    """

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sent: list[tuple[str, str]] = []
        self.images: list[tuple[str, bytes, str]] = []
        self.send_calls = 0
        self.fail_sends = 0
        self.always_fail = False
        self.image_error: Optional[Exception] = None
        self.groups: list[GroupInfo] = []
        self.groups_error: Optional[Exception] = None
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def connect(self) -> bool:
        self.connected = True
        return True

    def is_connected(self) -> bool:
        return self.connected

    async def send_text(self, jid: str, text: str) -> None:
        self.send_calls += 1
        if self.always_fail:
            raise TransportError("network down")
        if self.fail_sends > 0:
            self.fail_sends -= 1
            raise TransportError("temporary failure")
        self.sent.append((jid, text))

    async def send_image(self, jid: str, data: bytes, caption: str = "",
                         mime_type: str = "image/png") -> None:
        if self.image_error is not None:
            raise self.image_error
        self.images.append((jid, data, caption))

    async def get_joined_groups(self) -> list[GroupInfo]:
        if self.groups_error is not None:
            raise self.groups_error
        return list(self.groups)

    async def events(self) -> AsyncIterator[InboundMessage]:
        while True:
            message = await self.queue.get()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        self.closed = True
        self.connected = False
        self.queue.put_nowait(None)

    def texts_to(self, jid: str) -> list[str]:
        return [text for to, text in self.sent if to == jid]


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_message(text: str, chat_id: str = "6281234567890@s.whatsapp.net", **kwargs) -> InboundMessage:
    return InboundMessage(
        chat_id=chat_id,
        sender_id=kwargs.pop("sender_id", chat_id),
        push_name=kwargs.pop("push_name", "Budi"),
        contents=(PlainText(text),),
        **kwargs,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleeper():
    return SleepRecorder()
