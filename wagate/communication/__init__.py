"""Communication sub-core: channel-agnostic message handling.

- Inbound: message content variants and text extraction
- Outbound: narration stripping, message splitting
- Replies: canned chat texts
- Errors: user-facing apology classification
"""

from .inbound import InboundMessage, extract_text
from .outbound import process_outbound, split_message, strip_narration

__all__ = [
    # Inbound
    "InboundMessage",
    "extract_text",
    # Outbound
    "process_outbound",
    "split_message",
    "strip_narration",
]
