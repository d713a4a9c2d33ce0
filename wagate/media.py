"""Media delivery with a degrade-gracefully fallback ladder.

Rungs, each tried at most once per ``send_image`` call:

1. direct upload of the original bytes (skipped above the size ceiling)
2. lossy JPEG compression (quality 70, then 30 if still large)
3. the compressed image as an inline ``data:`` URL text message
4. a 64px thumbnail as an inline ``data:`` URL
5. a plain-text explanation

Only when the final text message also fails does the caller see an error.
"""

import base64
import io
import logging
from enum import Enum
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .delivery import DeliveryEngine
from .targets import Target
from .transport.base import PayloadTooLargeError, Transport, TransportError

logger = logging.getLogger("wagate.media")

MAX_MEDIA_BYTES = 15 * 1024 * 1024
MAX_INLINE_CHARS = 4000
COMPRESS_THRESHOLD = 50 * 1024
AGGRESSIVE_THRESHOLD = 30 * 1024
COMPRESS_QUALITY = 70
AGGRESSIVE_QUALITY = 30
THUMBNAIL_SIZE = 64
THUMBNAIL_QUALITY = 10

__all__ = [
    "MediaOutcome",
    "MediaSender",
    "PayloadTooLargeError",
    "compress_jpeg",
    "make_thumbnail",
    "to_data_url",
]


class MediaOutcome(str, Enum):
    UPLOADED = "uploaded"
    DATA_URL = "data_url"
    THUMBNAIL = "thumbnail"
    TEXT_FALLBACK = "text_fallback"


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return img


def compress_jpeg(data: bytes, quality: int) -> bytes:
    """Re-encode any Pillow-readable image as JPEG at ``quality``."""
    img = _open(data)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def make_thumbnail(data: bytes, max_size: int = THUMBNAIL_SIZE, quality: int = THUMBNAIL_QUALITY) -> bytes:
    """Nearest-neighbour downscale so the longer side is ``max_size``."""
    img = _open(data)
    width, height = img.size
    if width > height:
        new_w, new_h = max_size, (height * max_size) // width
    else:
        new_w, new_h = (width * max_size) // height, max_size
    thumb = img.resize((max(new_w, 1), max(new_h, 1)), Image.Resampling.NEAREST)
    buf = io.BytesIO()
    thumb.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class MediaSender:
    """Send generated images, degrading to text when the transport refuses."""

    def __init__(self, transport: Transport, delivery: DeliveryEngine, max_bytes: int = MAX_MEDIA_BYTES):
        self.transport = transport
        self.delivery = delivery
        self.max_bytes = max_bytes

    async def send_image(self, target: Target, data: bytes, caption: str,
                         mime_type: str = "image/png") -> MediaOutcome:
        """Deliver an image through the fallback ladder.

        Returns:
            Which rung delivered the payload.

        Raises:
            DeliveryError: the last-resort text message could not be sent.
        """
        # Rung 1: direct upload
        try:
            if len(data) > self.max_bytes:
                raise PayloadTooLargeError(len(data), self.max_bytes)
            await self.transport.send_image(target.jid, data, caption=caption, mime_type=mime_type)
            logger.info(f"Image sent to {target.jid} ({len(data)} bytes)")
            return MediaOutcome.UPLOADED
        except PayloadTooLargeError as e:
            logger.warning(f"{e}; falling back to inline delivery")
        except TransportError as e:
            logger.warning(f"Image upload to {target.jid} failed: {e}; falling back to inline delivery")

        # Rung 2: lossy compression
        payload = self._compress(data)
        data_url = to_data_url(payload)

        # Rung 3: inline data URL
        if len(data_url) <= MAX_INLINE_CHARS:
            text = (
                f"{caption}\n\n📎 *Data URL:*\n{data_url}\n\n"
                "*Catatan:* Upload langsung gagal, gambar tersedia sebagai data URL di atas."
            )
            if await self._try_text(target, text):
                return MediaOutcome.DATA_URL
        else:
            logger.info(f"Data URL too long ({len(data_url)} chars), trying thumbnail")

            # Rung 4: thumbnail
            thumb_url = self._thumbnail_url(payload)
            if thumb_url and len(thumb_url) <= MAX_INLINE_CHARS:
                text = (
                    f"{caption}\n\n📎 *Thumbnail:*\n{thumb_url}\n\n"
                    "*Catatan:* Gambar asli terlalu besar, ini adalah thumbnail kecil."
                )
                if await self._try_text(target, text):
                    return MediaOutcome.THUMBNAIL

        # Rung 5: plain text, delivered with the normal retry budget
        fallback = (
            f"{caption}\n\n❌ *Gagal Mengirim Gambar*\n\n"
            "Gambar berhasil dibuat oleh AI tetapi terlalu besar untuk dikirim melalui WhatsApp.\n\n"
            f"*Detail:*\n• Ukuran file: {len(payload)} bytes\n"
            f"• Data URL: {len(data_url)} karakter\n"
            f"• Batas WhatsApp: ~{MAX_INLINE_CHARS} karakter\n\n"
            "*Solusi:*\n• Gunakan deskripsi yang lebih sederhana\n"
            "• Coba prompt yang menghasilkan gambar lebih kecil\n"
            "• Contoh: `!img simple cat` atau `!img red circle`"
        )
        await self.delivery.deliver_with_retry(target, fallback, max_attempts=2)
        return MediaOutcome.TEXT_FALLBACK

    def _compress(self, data: bytes) -> bytes:
        if len(data) <= COMPRESS_THRESHOLD:
            return data
        try:
            compressed = compress_jpeg(data, COMPRESS_QUALITY)
            logger.info(f"Image compressed {len(data)} → {len(compressed)} bytes")
            if len(compressed) > AGGRESSIVE_THRESHOLD:
                compressed = compress_jpeg(data, AGGRESSIVE_QUALITY)
                logger.info(f"Aggressively compressed to {len(compressed)} bytes")
            return compressed
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Failed to compress image: {e}")
            return data

    def _thumbnail_url(self, data: bytes) -> Optional[str]:
        try:
            return to_data_url(make_thumbnail(data))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Failed to create thumbnail: {e}")
            return None

    async def _try_text(self, target: Target, text: str) -> bool:
        """Single attempt; a ladder rung is not retried."""
        try:
            await self.transport.send_text(target.jid, text)
            return True
        except TransportError as e:
            logger.warning(f"Inline image text to {target.jid} failed: {e}")
            return False
