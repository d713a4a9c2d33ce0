"""Messaging transports."""

from .base import GroupInfo, PayloadTooLargeError, Transport, TransportError

__all__ = [
    "GroupInfo",
    "PayloadTooLargeError",
    "Transport",
    "TransportError",
]
