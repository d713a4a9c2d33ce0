"""HTTP API: health, groups, send/bulk-send, GitHub webhook, IDX snapshot.

All services are injected through ``create_app``; the module holds no
globals.
"""

import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .delivery import DeliveryEngine, DeliveryError
from .market import MarketDataClient, format_snapshot
from .targets import ResolutionError, resolve
from .transport.base import Transport, TransportError
from .webhook import WebhookRelay

logger = logging.getLogger("wagate.api")

SEND_ATTEMPTS = 3
BULK_ATTEMPTS = 2

ENDPOINTS = [
    "GET /health",
    "GET /groups",
    "GET /idx",
    "POST /send-message",
    "POST /send-bulk-same-message",
    "POST /send-bulk-different-messages",
    "POST /github-webhook?jid=<optional>",
]


# ── Request bodies ─────────────────────────────────────────────

class SendMessageRequest(BaseModel):
    secret: str = ""
    target: str
    message: str


class BulkSameMessageRequest(BaseModel):
    secret: str = ""
    targets: list[str]
    message: str


class MessageEntry(BaseModel):
    targets: str  # one phone number or group id per entry
    message: str


class BulkDifferentMessagesRequest(BaseModel):
    secret: str = ""
    messages: list[MessageEntry]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(
    transport: Transport,
    delivery: DeliveryEngine,
    relay: WebhookRelay,
    market: MarketDataClient,
    api_secret: Optional[str] = None,
    country_code: str = "62",
    bulk_pacing: float = 1.0,
    lifespan=None,
) -> FastAPI:
    """Build the FastAPI app around already-constructed services.

    Args:
        api_secret: Shared secret for the send endpoints. When unset every
            send request is rejected; there is no fallback secret.
        lifespan: Optional lifespan context manager (used by ``main``).
    """
    app = FastAPI(title="wagate", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid body on {request.url.path}: {exc.errors()}")
        return _error(400, "Invalid JSON payload")

    def check_secret(provided: str) -> Optional[JSONResponse]:
        if not api_secret:
            logger.warning("Send request rejected: WAGATE_API_SECRET is not configured")
            return _error(401, "API secret not configured")
        if not secrets.compare_digest(provided.encode(), api_secret.encode()):
            return _error(401, "Unauthorized")
        return None

    def check_connected() -> Optional[JSONResponse]:
        if not transport.is_connected():
            return _error(503, "WhatsApp client not connected")
        return None

    # ── Status ─────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": _now(),
            "whatsapp": transport.is_connected(),
            "version": __version__,
        }

    @app.get("/")
    async def root():
        return {
            "status": "WhatsApp Bot API is running",
            "connected": transport.is_connected(),
            "timestamp": _now(),
            "endpoints": ENDPOINTS,
        }

    @app.get("/groups")
    async def groups():
        if (denied := check_connected()) is not None:
            return denied
        try:
            joined = await transport.get_joined_groups()
        except TransportError as e:
            logger.error(f"Failed to list groups: {e}")
            return _error(500, f"Failed to get groups: {e}")
        return {
            "status": "Success",
            "total": len(joined),
            "groups": [g.to_dict() for g in joined],
            "timestamp": _now(),
        }

    # ── Sending ────────────────────────────────────────────────

    @app.post("/send-message")
    async def send_message(body: SendMessageRequest):
        if (denied := check_secret(body.secret)) is not None:
            return denied
        if (denied := check_connected()) is not None:
            return denied
        if not body.target.strip() or not body.message:
            return _error(400, "Target and message are required")

        try:
            target = resolve(body.target, country_code)
        except ResolutionError:
            return _error(400, "Invalid target format (must be phone number or group JID)", target=body.target)

        try:
            attempts = await delivery.deliver_with_retry(target, body.message, SEND_ATTEMPTS)
        except DeliveryError as e:
            logger.error(f"send-message to {target.jid} failed after {e.attempt_count} attempt(s): {e}")
            return _error(
                500,
                f"Failed to send message after {e.attempt_count} attempts: {e}",
                original_target=body.target,
                target_type=target.kind.value,
                attempts=e.attempt_count,
            )

        logger.info(f"send-message delivered to {target.kind.value} {target.display} ({len(attempts)} attempt(s))")
        return {"status": "Success", "target": target.display, "target_type": target.kind.value}

    @app.post("/send-bulk-same-message")
    async def send_bulk_same(body: BulkSameMessageRequest):
        if (denied := check_secret(body.secret)) is not None:
            return denied
        if (denied := check_connected()) is not None:
            return denied
        if not body.targets or not body.message:
            return _error(400, "Targets and message are required")

        report = await delivery.fan_out(
            [(t, body.message) for t in body.targets],
            max_attempts=BULK_ATTEMPTS,
            pacing=bulk_pacing,
        )
        logger.info(f"Bulk same message: {report.succeeded}/{report.total} delivered")
        return {
            "status": "Bulk same message processing completed",
            "results": [r.to_dict() for r in report.results],
        }

    @app.post("/send-bulk-different-messages")
    async def send_bulk_different(body: BulkDifferentMessagesRequest):
        if (denied := check_secret(body.secret)) is not None:
            return denied
        if (denied := check_connected()) is not None:
            return denied
        if not body.messages:
            return _error(400, "Messages are required")

        items = [(entry.targets, entry.message) for entry in body.messages]
        report = await delivery.fan_out(items, max_attempts=BULK_ATTEMPTS, pacing=bulk_pacing)
        logger.info(f"Bulk different messages: {report.succeeded}/{report.total} delivered")
        return {
            "status": "Bulk different messages processing completed",
            "results": [r.to_dict(include_message=True) for r in report.results],
        }

    # ── Integrations ───────────────────────────────────────────

    @app.post("/github-webhook")
    async def github_webhook(request: Request, jid: Optional[str] = None):
        event_type = request.headers.get("X-GitHub-Event")
        raw = await request.body()
        try:
            payload = json.loads(raw) if raw else None
        except ValueError:
            payload = None

        result = await relay.handle(event_type, payload, jid)
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/idx")
    async def idx():
        try:
            snapshot = await market.fetch_snapshot()
        except Exception as e:
            logger.error(f"IDX snapshot failed: {type(e).__name__}: {e}")
            return _error(500, f"Failed to fetch IDX data: {e}")
        return {
            "status": "success",
            "timestamp": _now(),
            "data": snapshot.to_dict(),
            "formatted": format_snapshot(snapshot),
        }

    return app
