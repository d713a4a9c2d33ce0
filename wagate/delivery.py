"""Delivery engine: retry with linear backoff, paced fan-out.

All outbound text goes through ``DeliveryEngine``:
- ``deliver_with_retry``: one target, up to N attempts, waits 1, 2, 3…
  backoff units between attempts
- ``fan_out``: many targets, independent outcomes, fixed pacing between
  successive sends
- ``send_best_effort`` / ``fire_and_forget``: chat replies whose failure
  is logged and otherwise dropped
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from .targets import DEFAULT_COUNTRY_CODE, ResolutionError, Target, resolve
from .transport.base import Transport, TransportError

logger = logging.getLogger("wagate.delivery")

INVALID_TARGET_ERROR = "Invalid JID format"

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class DeliveryAttempt:
    """One send attempt. Lives only as long as the delivery call."""
    target: Target
    attempt: int  # 1-based
    delay: float = 0.0  # backoff waited before this attempt
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class DeliveryError(Exception):
    """All attempts for one target failed.

    ``str(err)`` is the text of the last underlying transport error.
    """

    def __init__(self, target: Target, attempts: list[DeliveryAttempt]):
        self.target = target
        self.attempts = attempts
        self.last_error = attempts[-1].error if attempts else None
        super().__init__(str(self.last_error) if self.last_error else "delivery failed")

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


@dataclass
class FanOutResult:
    """Outcome for one item of a fan-out."""
    original_target: str
    target: Optional[Target] = None
    success: bool = False
    error: Optional[str] = None
    attempts: int = 0
    message: Optional[str] = None  # echoed back for per-item payloads

    def to_dict(self, include_original: bool = True, include_message: bool = False) -> dict:
        data: dict = {}
        if include_original:
            data["original_target"] = self.original_target
        if self.target is not None:
            data["target"] = self.target.display
            data["target_type"] = self.target.kind.value
        elif not include_original:
            data["target"] = self.original_target
        data["success"] = self.success
        if include_message and self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class FanOutReport:
    results: list[FanOutResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total(self) -> int:
        return len(self.results)


class DeliveryEngine:
    """Send text through a transport with retry and pacing.

    Args:
        transport: The messaging transport.
        backoff_unit: Seconds per backoff step (attempt k waits k-1 units).
        country_code: Used when resolving raw targets in ``fan_out``.
        sleep: Injected sleep, so tests can record delays instead of waiting.
    """

    def __init__(
        self,
        transport: Transport,
        backoff_unit: float = 1.0,
        country_code: str = DEFAULT_COUNTRY_CODE,
        sleep: Sleep = asyncio.sleep,
    ):
        self.transport = transport
        self.backoff_unit = backoff_unit
        self.country_code = country_code
        self._sleep = sleep
        self._background: set[asyncio.Task] = set()

    async def deliver_with_retry(self, target: Target, text: str, max_attempts: int = 2) -> list[DeliveryAttempt]:
        """Deliver ``text`` to ``target``, retrying on transport errors.

        Returns:
            The attempts made; the last one succeeded.

        Raises:
            DeliveryError: every attempt failed. Carries the attempt list.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        attempts: list[DeliveryAttempt] = []
        for index in range(max_attempts):
            delay = 0.0
            if index > 0:
                delay = index * self.backoff_unit
                await self._sleep(delay)

            attempt = DeliveryAttempt(target=target, attempt=index + 1, delay=delay)
            attempts.append(attempt)
            try:
                await self.transport.send_text(target.jid, text)
            except TransportError as e:
                attempt.error = e
                logger.warning(f"Attempt {index + 1}/{max_attempts} failed for {target.jid}: {e}")
                continue
            return attempts

        raise DeliveryError(target, attempts)

    async def fan_out(
        self,
        items: Iterable[tuple[str, str]],
        max_attempts: int = 2,
        pacing: float = 1.0,
    ) -> FanOutReport:
        """Deliver each ``(raw_target, text)`` pair independently.

        A target that fails to resolve is reported and skipped without a
        send. ``pacing`` seconds separate successive sends; there is no
        wait after the last send, even when invalid items follow it.
        """
        items = list(items)
        report = FanOutReport()
        for raw, text in items:
            result = FanOutResult(original_target=raw, message=text)
            try:
                result.target = resolve(raw, self.country_code)
            except ResolutionError:
                result.error = INVALID_TARGET_ERROR
            report.results.append(result)

        sendable = [i for i, r in enumerate(report.results) if r.target is not None]
        last_send = sendable[-1] if sendable else -1

        for index, (result, (raw, text)) in enumerate(zip(report.results, items)):
            target = result.target
            if target is None:
                logger.info(f"Skipping invalid target: {raw}")
                continue

            logger.info(f"Sending {index + 1}/{len(items)} to {target.kind.value}: {target.display}")
            try:
                attempts = await self.deliver_with_retry(target, text, max_attempts)
                result.success = True
                result.attempts = len(attempts)
            except DeliveryError as e:
                result.error = str(e)
                result.attempts = e.attempt_count
                logger.error(f"Failed to send to {target.kind.value} {target.display}: {e}")

            if index < last_send and pacing > 0:
                await self._sleep(pacing)

        return report

    async def send_best_effort(self, target: Target, text: str, max_attempts: int = 2) -> bool:
        """Deliver a chat reply; log failure instead of raising."""
        try:
            await self.deliver_with_retry(target, text, max_attempts)
            return True
        except DeliveryError as e:
            logger.error(f"Reply to {target.jid} dropped after {e.attempt_count} attempt(s): {e}")
            return False

    def fire_and_forget(self, target: Target, text: str, max_attempts: int = 2) -> asyncio.Task:
        """Schedule a best-effort send and return its task.

        The task is created immediately, so it is queued ahead of anything
        the caller awaits afterwards.
        """
        task = asyncio.create_task(self.send_best_effort(target, text, max_attempts))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task):
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background send failed: {type(exc).__name__}: {exc}")

    async def drain(self):
        """Wait for pending fire-and-forget sends."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
