"""Inbound message model and text extraction.

A WhatsApp message can carry its human-readable text in many places:
a plain body, an extended-text body, a media caption, a button or list
selection, or inside an ephemeral/device-sent wrapper. Each shape is a
variant below; ``extract_text()`` walks them in a fixed priority order.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class ExtendedText:
    text: str


@dataclass(frozen=True)
class MediaCaption:
    media_kind: str  # 'image', 'video', 'document'
    caption: str


@dataclass(frozen=True)
class ButtonReply:
    display_text: str = ""
    button_id: str = ""


@dataclass(frozen=True)
class ListReply:
    row_id: str = ""
    title: str = ""


@dataclass(frozen=True)
class TemplateReply:
    display_text: str = ""
    selected_id: str = ""


@dataclass(frozen=True)
class InteractiveReply:
    body: str = ""
    params_json: str = ""


@dataclass(frozen=True)
class Wrapped:
    """Ephemeral or device-sent envelope around another message."""
    wrapper: str  # 'ephemeral', 'device_sent'
    inner: tuple["MessageContent", ...] = ()


MessageContent = Union[
    PlainText, ExtendedText, MediaCaption, ButtonReply, ListReply,
    TemplateReply, InteractiveReply, Wrapped,
]

# Caption order among media kinds
_MEDIA_ORDER = ("image", "video", "document")

# Variant priority: earlier rank wins
_RANK = {
    PlainText: 0,
    ExtendedText: 1,
    MediaCaption: 2,
    ButtonReply: 3,
    ListReply: 4,
    TemplateReply: 5,
    InteractiveReply: 6,
    Wrapped: 7,
}


def _rank(content: MessageContent) -> tuple[int, int]:
    sub = 0
    if isinstance(content, MediaCaption):
        sub = _MEDIA_ORDER.index(content.media_kind) if content.media_kind in _MEDIA_ORDER else len(_MEDIA_ORDER)
    return _RANK[type(content)], sub


def _text_of(content: MessageContent) -> str:
    if isinstance(content, (PlainText, ExtendedText)):
        return content.text
    if isinstance(content, MediaCaption):
        return content.caption
    if isinstance(content, ButtonReply):
        return content.display_text or content.button_id
    if isinstance(content, ListReply):
        # row id is the command token; the title may be decorative
        return content.row_id or content.title
    if isinstance(content, TemplateReply):
        return content.display_text or content.selected_id
    if isinstance(content, InteractiveReply):
        return content.body or content.params_json
    if isinstance(content, Wrapped):
        return extract_text(content.inner)
    return ""


def extract_text(contents) -> str:
    """Return the first non-empty text candidate, or '' if there is none.

    Args:
        contents: A single content variant or an iterable of them (a
            message may carry more than one part).
    """
    if contents is None:
        return ""
    if not isinstance(contents, (list, tuple)):
        contents = (contents,)
    for content in sorted(contents, key=_rank):
        text = _text_of(content)
        if text:
            return text
    return ""


@dataclass
class InboundMessage:
    """An inbound chat event as delivered by the transport."""
    chat_id: str
    sender_id: str = ""
    push_name: str = ""
    contents: tuple = field(default_factory=tuple)
    from_me: bool = False
    message_id: Optional[str] = None
    chat_name: str = ""

    @property
    def is_group(self) -> bool:
        return self.chat_id.endswith("@g.us")

    @property
    def text(self) -> str:
        return extract_text(self.contents)
