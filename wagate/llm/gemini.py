"""Google Gemini provider (API key, generativelanguage REST API)."""

import base64
import logging
from typing import Optional

import httpx

from .provider import (
    GenerationEmptyResponseError,
    GenerationError,
    GenerationNotConfiguredError,
    GenerationProvider,
    GenerationRateLimitError,
)

logger = logging.getLogger("wagate.llm.gemini")

_GEMINI_API = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.0-flash-preview-image-generation"

_RATE_LIMIT_MARKERS = ("quota", "rate limit", "resource_exhausted")


class GeminiProvider(GenerationProvider):
    """Gemini over plain HTTP.

    Args:
        api_key: Gemini API key. Without one every call raises
            GenerationNotConfiguredError.
        model: Text model id.
        image_model: Image-capable model id.
        timeout: Seconds per request; image generation gets twice this.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.image_model = image_model
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    # ── Text ───────────────────────────────────────────────────

    async def generate(self, prompt: str, context: Optional[str] = None) -> str:
        body: dict = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if context:
            body["systemInstruction"] = {"parts": [{"text": context}]}

        data = await self._post(self.model, body, self.timeout)
        parts = self._first_parts(data)
        text = "".join(p["text"] for p in parts if "text" in p and not p.get("thought")).strip()
        if not text:
            raise GenerationEmptyResponseError("empty response from gemini")
        return text

    # ── Image ──────────────────────────────────────────────────

    async def generate_image(self, prompt: str) -> bytes:
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        data = await self._post(self.image_model, body, self.timeout * 2)
        for part in self._first_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                try:
                    return base64.b64decode(inline["data"])
                except (ValueError, TypeError) as e:
                    raise GenerationError(f"invalid image data from gemini: {e}") from e
        raise GenerationEmptyResponseError("gemini returned no image")

    # ── HTTP ───────────────────────────────────────────────────

    async def _post(self, model: str, body: dict, timeout: float) -> dict:
        if not self.api_key:
            raise GenerationNotConfiguredError("gemini API key not configured")

        url = f"{_GEMINI_API}/models/{model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, params={"key": self.api_key})
        except httpx.TimeoutException as e:
            raise GenerationError(f"gemini request timed out after {timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"gemini request failed: {e}") from e

        if resp.status_code != 200:
            detail = resp.text[:300]
            message = f"gemini API error: {detail} (status: {resp.status_code})"
            if resp.status_code == 429 or any(m in detail.lower() for m in _RATE_LIMIT_MARKERS):
                raise GenerationRateLimitError(message)
            raise GenerationError(message)

        try:
            return resp.json()
        except ValueError as e:
            raise GenerationError(f"failed to parse gemini response: {e}") from e

    @staticmethod
    def _first_parts(data: dict) -> list[dict]:
        candidates = data.get("candidates") or []
        if not candidates:
            raise GenerationEmptyResponseError("no response from gemini")
        return (candidates[0].get("content") or {}).get("parts") or []
