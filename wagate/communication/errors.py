"""User-facing text for generation failures."""

from ..llm.provider import GenerationNotConfiguredError, GenerationRateLimitError

NOT_CONFIGURED_TEXT = (
    "❌ *Error:* WAGATE_GEMINI_API_KEY belum dikonfigurasi di environment variable.\n\n"
    "Silakan set environment variable WAGATE_GEMINI_API_KEY dengan Google Gemini API key Anda."
)

RATE_LIMITED_TEXT = (
    "⏳ *Quota Gemini Habis*\n\n"
    "Maaf, quota API Gemini untuk hari ini sudah habis atau rate limit tercapai. "
    "Silakan coba lagi nanti (biasanya reset setiap 24 jam) atau upgrade ke paid plan "
    "untuk quota lebih besar."
)

ASK_FAILED_TEXT = "❌ *Maaf,* terjadi kesalahan saat memproses permintaan Anda. Silakan coba lagi nanti."

IMAGE_FAILED_TEXT = (
    "❌ *Maaf,* terjadi kesalahan saat membuat gambar. "
    "Silakan coba lagi nanti atau gunakan deskripsi yang lebih sederhana."
)


def classify_error(e: Exception, image: bool = False) -> str:
    """Classify a generation failure into a short apology for the chat.

    Only two cases get tailored text: a missing API key and an exhausted
    quota. Everything else, timeouts included, gets the generic apology.
    """
    if isinstance(e, GenerationNotConfiguredError):
        return NOT_CONFIGURED_TEXT
    if isinstance(e, GenerationRateLimitError):
        return RATE_LIMITED_TEXT
    return IMAGE_FAILED_TEXT if image else ASK_FAILED_TEXT
