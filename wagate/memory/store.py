"""Per-conversation memory for assistant personas.

History is partitioned by (chat, persona): two personas answering in the
same chat never see each other's turns. Each partition is a FIFO log
capped at ``cap`` entries. The whole store is written to one JSON file
after every append.

File layout (compatible with older gateway deployments)::

    {
      "<chat_jid>|<persona>": [
        {"role": "user", "text": "...", "timestamp": 1700000000},
        ...
      ]
    }
"""

import asyncio
import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import asdict, dataclass
from typing import Optional

logger = logging.getLogger("wagate.memory")

DEFAULT_CAP = 50
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
_ROLES = (ROLE_USER, ROLE_ASSISTANT)


@dataclass(frozen=True)
class ConversationKey:
    chat_id: str
    persona: str

    @property
    def storage_key(self) -> str:
        return f"{self.chat_id}|{self.persona}"

    @classmethod
    def parse(cls, storage_key: str) -> "ConversationKey":
        chat_id, _, persona = storage_key.partition("|")
        return cls(chat_id, persona)


@dataclass(frozen=True)
class MemoryEntry:
    role: str
    text: str
    timestamp: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryEntry":
        return cls(
            role=str(data.get("role", "")),
            text=str(data.get("text", "")),
            timestamp=int(data.get("timestamp", 0) or 0),
        )


class ConversationMemory:
    """Bounded, persisted conversation log.

    ``append`` is the only mutator. A single lock guards all reads and
    writes, so concurrent appends for the same key never lose or duplicate
    an entry.
    """

    def __init__(self, path: Optional[str] = "memory.json", cap: int = DEFAULT_CAP):
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self.path = os.path.expanduser(path) if path else None
        self.cap = cap
        self._data: dict[str, list[MemoryEntry]] = {}
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()  # one writer at a time, snapshot order kept

    # ── Load / persist ─────────────────────────────────────────

    def load(self) -> int:
        """Load the store from disk. Returns the number of conversations.

        A missing file is an empty store. An unreadable or corrupt file is
        logged and also treated as empty.
        """
        if not self.path or not os.path.isfile(self.path):
            return 0
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = f.read()
            parsed = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Memory file {self.path} unreadable, starting empty: {e}")
            return 0
        if not isinstance(parsed, dict):
            logger.warning(f"Memory file {self.path} has unexpected shape, starting empty")
            return 0

        data: dict[str, list[MemoryEntry]] = {}
        for key, items in parsed.items():
            if not isinstance(items, list):
                continue
            entries = [MemoryEntry.from_dict(i) for i in items if isinstance(i, dict)]
            data[key] = entries[-self.cap:]

        with self._lock:
            self._data = data
        logger.info(f"Loaded memory for {len(data)} conversation(s) from {self.path}")
        return len(data)

    def persist(self):
        """Write the whole store to disk atomically (temp file + rename)."""
        if not self.path:
            return
        with self._write_lock:
            with self._lock:
                snapshot = {k: [e.to_dict() for e in v] for k, v in self._data.items()}
            self._write(snapshot)

    def _write(self, snapshot: dict):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".memory-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ── Mutation ───────────────────────────────────────────────

    def append(self, key: ConversationKey, role: str, text: str) -> MemoryEntry:
        """Append one entry and evict from the front past ``cap``."""
        if role not in _ROLES:
            raise ValueError(f"Unknown role: {role}")
        entry = MemoryEntry(role=role, text=text, timestamp=int(time.time()))
        with self._lock:
            log = self._data.setdefault(key.storage_key, [])
            log.append(entry)
            overflow = len(log) - self.cap
            if overflow > 0:
                del log[:overflow]
        return entry

    async def append_and_persist(self, key: ConversationKey, role: str, text: str) -> MemoryEntry:
        """Append, then write the store without blocking the event loop.

        The entry is visible to ``history`` before the file write starts.
        """
        entry = self.append(key, role, text)
        try:
            await asyncio.to_thread(self.persist)
        except OSError as e:
            logger.error(f"Failed to persist memory to {self.path}: {e}")
        return entry

    def clear(self, key: ConversationKey) -> int:
        with self._lock:
            removed = self._data.pop(key.storage_key, [])
        return len(removed)

    # ── Queries ────────────────────────────────────────────────

    def history(self, key: ConversationKey, limit: Optional[int] = None) -> list[MemoryEntry]:
        """Most recent entries for ``key``, oldest first.

        At most ``limit`` entries (none for ``limit <= 0``); ``None`` returns
        everything kept. The list is a copy.
        """
        if limit is not None and limit <= 0:
            return []
        with self._lock:
            log = self._data.get(key.storage_key, [])
            if limit is None:
                return list(log)
            return list(log[-limit:])

    def keys(self) -> list[ConversationKey]:
        with self._lock:
            return [ConversationKey.parse(k) for k in self._data]

    def stats(self) -> dict:
        with self._lock:
            return {
                "conversations": len(self._data),
                "entries": sum(len(v) for v in self._data.values()),
            }
