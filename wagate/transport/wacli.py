"""WhatsApp transport via the wacli binary.

- ``wacli sync --follow`` keeps the WhatsApp Web session alive and writes
  new messages into wacli's local SQLite DB
- a poller reads new rows from that DB and turns them into
  ``InboundMessage`` events
- sends shell out to ``wacli send text|file``; sync holds an exclusive
  store lock, so it is paused around every send

Requires: wacli installed and authenticated (`wacli auth`).
"""

import asyncio
import hashlib
import json
import logging
import os
import shutil
import sqlite3
import tempfile
import time
from datetime import datetime
from typing import AsyncIterator, Optional

from ..communication.inbound import InboundMessage, MediaCaption, PlainText
from .base import GroupInfo, Transport, TransportError

logger = logging.getLogger("wagate.transport.wacli")

# Reliability: dedup / echo
_DEDUP_TTL = 120        # 2 minutes
_ECHO_TTL = 20          # 20 seconds
_DEDUP_MAX = 5000       # max cache entries before prune
_POLL_INTERVAL = 2.0
_RESTART_DELAY = 5.0

_SEND_TEXT_TIMEOUT = 30
_SEND_FILE_TIMEOUT = 60
_QUERY_TIMEOUT = 30

_POLL_SQL = """
    SELECT rowid, chat_jid, sender_jid, sender_name, chat_name, text,
           from_me, media_type, mime_type, media_caption, msg_id
    FROM messages
    WHERE rowid > ?
      AND ((text IS NOT NULL AND text != '') OR media_type IS NOT NULL)
      AND chat_jid != 'status@broadcast'
    ORDER BY rowid ASC
"""

_MIME_SUFFIX = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def content_hash(chat_jid: str, text: str) -> str:
    """Compact content hash for dedup/echo detection."""
    return f"{chat_jid}:{hashlib.md5(text.encode()).hexdigest()[:12]}"


def row_to_message(row) -> InboundMessage:
    """Map one wacli ``messages`` row to an inbound event."""
    chat_jid = row["chat_jid"] or ""
    contents = []
    text = (row["text"] or "").strip()
    if text:
        contents.append(PlainText(text))
    if row["media_type"] and row["media_caption"]:
        contents.append(MediaCaption(row["media_type"], row["media_caption"]))
    return InboundMessage(
        chat_id=chat_jid,
        sender_id=row["sender_jid"] or chat_jid,
        push_name=row["sender_name"] or "",
        contents=tuple(contents),
        from_me=bool(row["from_me"]),
        message_id=row["msg_id"],
        chat_name=row["chat_name"] or "",
    )


def _parse_created(value) -> int:
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value:
        try:
            return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
        except ValueError:
            return 0
    return 0


def parse_groups(raw: str) -> list[GroupInfo]:
    """Parse ``wacli groups list --json`` output.

    Accepts a bare list or an object wrapping it under ``groups``/``data``,
    with either Go-style (``JID``) or snake_case (``jid``) keys.
    """
    data = json.loads(raw) if raw.strip() else []
    if isinstance(data, dict):
        data = data.get("groups") or data.get("data") or []
    groups = []
    for item in data:
        if not isinstance(item, dict):
            continue
        jid = item.get("JID") or item.get("jid") or ""
        if not jid:
            continue
        groups.append(GroupInfo(
            jid=jid,
            name=item.get("Name") or item.get("name") or "",
            owner=item.get("OwnerJID") or item.get("owner") or "",
            created_at=_parse_created(item.get("CreatedAt") or item.get("created_at")),
        ))
    return groups


class WacliTransport(Transport):
    """Transport backed by a local wacli installation."""

    def __init__(self, wacli_path: str = "wacli", db_path: str = "~/.wacli/wacli.db"):
        self._wacli_path = wacli_path
        self._db_path = os.path.expanduser(db_path)
        self._process: Optional[asyncio.subprocess.Process] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._last_rowid: int = 0
        self._running = False
        self._send_lock = asyncio.Lock()
        # Dedup / echo state
        self._seen_rowids: set[int] = set()
        self._seen_hashes: dict[str, float] = {}     # "chat_jid:md5" -> timestamp
        self._echo_hashes: dict[str, float] = {}     # "chat_jid:md5" -> timestamp
        self._last_prune: float = 0.0

    # ── Lifecycle ──────────────────────────────────────────────

    async def connect(self) -> bool:
        resolved = shutil.which(self._wacli_path)
        if not resolved:
            logger.error(f"wacli binary not found ({self._wacli_path}). Install it and run `wacli auth`.")
            return False
        self._wacli_path = resolved
        self._running = True

        if not await self._start_sync():
            self._running = False
            return False

        if os.path.isfile(self._db_path):
            self._poll_task = asyncio.create_task(self._poll_loop())
        else:
            logger.error(f"wacli database not found at {self._db_path}; inbound messages will not work")

        logger.info("WhatsApp transport connected.")
        return True

    def is_connected(self) -> bool:
        # Sync is paused (process None) while a send holds the lock
        return self._running and (self._process is not None or self._send_lock.locked())

    async def close(self):
        self._running = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        await self._stop_sync()
        self._queue.put_nowait(None)
        logger.info("WhatsApp transport closed.")

    async def events(self) -> AsyncIterator[InboundMessage]:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            yield message

    # ── Sync process ───────────────────────────────────────────

    async def _start_sync(self) -> bool:
        await self._stop_sync()
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._wacli_path, 'sync', '--follow',
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to start wacli sync: {e}")
            self._process = None
            return False

        self._monitor_task = asyncio.create_task(self._monitor_loop())
        return True

    async def _stop_sync(self):
        # Stop monitor first so it won't auto-restart on exit.
        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
        self._monitor_task = None

        if self._process:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=5)
            except (asyncio.TimeoutError, ProcessLookupError):
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
            self._process = None

    async def _monitor_loop(self):
        """Restart sync if it dies unexpectedly."""
        try:
            if self._process:
                await self._process.wait()
            if not self._running:
                return
            logger.warning("wacli process ended unexpectedly, restarting...")
            self._process = None
            await asyncio.sleep(_RESTART_DELAY)
            # A send in flight saw sync already down and will not resume it,
            # so wait for the lock rather than skipping the restart.
            async with self._send_lock:
                if not self._running or self._process is not None:
                    return
                logger.info("Restarting wacli sync...")
                self._monitor_task = None
                if not await self._start_sync():
                    logger.error("Failed to restart wacli sync")
        except asyncio.CancelledError:
            pass

    # ── Inbound poller ─────────────────────────────────────────

    def _max_rowid(self) -> int:
        conn = sqlite3.connect(self._db_path, timeout=5)
        try:
            return conn.execute("SELECT MAX(rowid) FROM messages").fetchone()[0] or 0
        finally:
            conn.close()

    def _fetch_rows(self, after: int) -> list:
        conn = sqlite3.connect(self._db_path, timeout=5)
        conn.row_factory = sqlite3.Row
        try:
            return conn.execute(_POLL_SQL, (after,)).fetchall()
        finally:
            conn.close()

    async def _poll_loop(self):
        """Poll wacli's SQLite DB for new messages.

        SQLite reads are safe while sync writes (WAL mode).
        """
        try:
            self._last_rowid = await asyncio.to_thread(self._max_rowid)
            logger.info(f"WhatsApp poller started (last_rowid={self._last_rowid}, db={self._db_path})")
        except sqlite3.Error as e:
            logger.error(f"Failed to read wacli DB: {e}")
            return

        while self._running:
            try:
                await asyncio.sleep(_POLL_INTERVAL)
                if not self._running:
                    break
                rows = await asyncio.to_thread(self._fetch_rows, self._last_rowid)
                if rows:
                    logger.debug(f"poll: {len(rows)} new row(s) after rowid {self._last_rowid}")
                for row in rows:
                    self._last_rowid = row["rowid"]
                    message = self._accept(row)
                    if message is not None:
                        self._queue.put_nowait(message)
            except asyncio.CancelledError:
                break
            except sqlite3.Error as e:
                logger.error(f"Error in WhatsApp poll loop: {e}", exc_info=True)
                await asyncio.sleep(5)

    def _accept(self, row) -> Optional[InboundMessage]:
        """Dedup, echo and own-message filtering for one DB row."""
        now = time.time()
        if now - self._last_prune > 60:
            self._prune_caches()

        rowid = row["rowid"]
        if rowid in self._seen_rowids:
            return None
        self._seen_rowids.add(rowid)

        message = row_to_message(row)
        text = (row["text"] or "").strip()
        chat_jid = message.chat_id

        if text and chat_jid:
            h = content_hash(chat_jid, text)
            # Echo: something we sent ourselves a moment ago
            sent_at = self._echo_hashes.get(h)
            if sent_at is not None and (now - sent_at) < _ECHO_TTL:
                del self._echo_hashes[h]
                logger.debug(f"echo suppressed: {text[:60]}")
                return None
            seen_at = self._seen_hashes.get(h)
            if seen_at is not None and (now - seen_at) < _DEDUP_TTL:
                return None
            self._seen_hashes[h] = now

        # Own messages in groups are always the bot's replies
        if message.from_me and message.is_group:
            return None

        return message

    def _prune_caches(self):
        now = time.time()
        self._seen_hashes = {k: v for k, v in self._seen_hashes.items() if (now - v) < _DEDUP_TTL}
        self._echo_hashes = {k: v for k, v in self._echo_hashes.items() if (now - v) < _ECHO_TTL}
        if len(self._seen_rowids) > _DEDUP_MAX:
            sorted_ids = sorted(self._seen_rowids)
            self._seen_rowids = set(sorted_ids[-_DEDUP_MAX:])
        self._last_prune = now

    # ── Outbound ───────────────────────────────────────────────

    async def send_text(self, jid: str, text: str) -> None:
        async with self._send_lock:
            was_syncing = await self._pause_sync()
            try:
                await self._run(
                    [self._wacli_path, 'send', 'text', '--to', jid, '--message', text],
                    _SEND_TEXT_TIMEOUT, "send text",
                )
                self._echo_hashes[content_hash(jid, text.strip())] = time.time()
            finally:
                await self._resume_sync(was_syncing)

    async def send_image(self, jid: str, data: bytes, caption: str = "",
                         mime_type: str = "image/png") -> None:
        fd, path = tempfile.mkstemp(prefix="wagate_", suffix=_MIME_SUFFIX.get(mime_type, ".png"))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            cmd = [self._wacli_path, 'send', 'file', '--to', jid, '--file', path]
            if caption:
                cmd.extend(['--caption', caption])
            async with self._send_lock:
                was_syncing = await self._pause_sync()
                try:
                    await self._run(cmd, _SEND_FILE_TIMEOUT, "send file")
                finally:
                    await self._resume_sync(was_syncing)
            logger.info(f"Sent image to {jid} ({len(data)} bytes)")
        finally:
            try:
                os.unlink(path)
            except OSError:
                pass

    async def get_joined_groups(self) -> list[GroupInfo]:
        async with self._send_lock:
            was_syncing = await self._pause_sync()
            try:
                out = await self._run(
                    [self._wacli_path, 'groups', 'list', '--json'],
                    _QUERY_TIMEOUT, "groups list",
                )
            finally:
                await self._resume_sync(was_syncing)
        try:
            return parse_groups(out)
        except (json.JSONDecodeError, TypeError) as e:
            raise TransportError(f"unreadable groups list: {e}") from e

    async def _pause_sync(self) -> bool:
        """Caller must hold _send_lock."""
        was_syncing = self._process is not None
        if was_syncing:
            await self._stop_sync()
        return was_syncing

    async def _resume_sync(self, was_syncing: bool):
        if self._running and was_syncing:
            if not await self._start_sync():
                logger.error("Failed to restart wacli sync after send")

    async def _run(self, cmd: list[str], timeout: float, what: str) -> str:
        """Run one wacli command. Caller must hold _send_lock."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"wacli {what} could not start: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise TransportError(f"wacli {what} timed out after {timeout}s") from e

        if proc.returncode != 0:
            err = stderr.decode('utf-8', errors='replace') if stderr else ''
            raise TransportError(f"wacli {what} failed (rc={proc.returncode}): {err[:200]}")
        return stdout.decode('utf-8', errors='replace') if stdout else ''
