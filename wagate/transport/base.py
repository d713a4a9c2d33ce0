"""Transport interface: the messaging session the gateway drives.

The gateway never talks to WhatsApp directly; it goes through a
``Transport``. ``WacliTransport`` is the production implementation, tests
use in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ..communication.inbound import InboundMessage


class TransportError(Exception):
    """A single send or query failed at the transport level."""
    pass


class PayloadTooLargeError(TransportError):
    """Media payload exceeds what the transport accepts for direct upload."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"image too large: {size} bytes (max {limit} bytes)")
        self.size = size
        self.limit = limit


@dataclass
class GroupInfo:
    jid: str
    name: str = ""
    owner: str = ""
    created_at: int = 0  # unix seconds, 0 when unknown

    def to_dict(self) -> dict:
        return {
            "jid": self.jid,
            "name": self.name,
            "owner": self.owner,
            "created_at": self.created_at,
        }


class Transport(ABC):
    """Abstract messaging transport."""

    @abstractmethod
    async def connect(self) -> bool:
        """Open the session. Returns False when the session can't start."""
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def send_text(self, jid: str, text: str) -> None:
        """Send one text message. Raises TransportError on failure."""
        ...

    @abstractmethod
    async def send_image(self, jid: str, data: bytes, caption: str = "",
                         mime_type: str = "image/png") -> None:
        """Upload and send an image. Raises TransportError on failure."""
        ...

    @abstractmethod
    async def get_joined_groups(self) -> list[GroupInfo]:
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[InboundMessage]:
        """Async iterator over inbound messages, in arrival order."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @property
    def own_jid(self) -> Optional[str]:
        return None
