"""Tests for conversation memory."""

import asyncio
import json
import threading

import pytest

from wagate.memory import ROLE_ASSISTANT, ROLE_USER, ConversationKey, ConversationMemory

KEY = ConversationKey("6281234567890@s.whatsapp.net", "Apik")


@pytest.fixture
def store(tmp_path):
    return ConversationMemory(str(tmp_path / "memory.json"), cap=5)


class TestAppendHistory:
    def test_appended_entry_is_last(self, store):
        store.append(KEY, ROLE_USER, "halo")
        entry = store.append(KEY, ROLE_ASSISTANT, "hai juga")
        history = store.history(KEY, 10)
        assert history[-1] == entry
        assert [e.text for e in history] == ["halo", "hai juga"]

    def test_fifo_cap(self, store):
        for i in range(5 + 3):
            store.append(KEY, ROLE_USER, f"m{i}")
        history = store.history(KEY)
        assert len(history) == 5
        assert [e.text for e in history] == ["m3", "m4", "m5", "m6", "m7"]

    def test_history_limit(self, store):
        for i in range(4):
            store.append(KEY, ROLE_USER, f"m{i}")
        assert [e.text for e in store.history(KEY, 2)] == ["m2", "m3"]

    def test_history_limit_bounds(self, store):
        for i in range(5):
            store.append(KEY, ROLE_USER, f"m{i}")
        assert store.history(KEY, 0) == []
        assert store.history(KEY, -1) == []
        assert len(store.history(KEY, 1)) == 1
        assert len(store.history(KEY, 50)) == 5
        assert len(store.history(KEY)) == 5

    def test_history_is_a_copy(self, store):
        store.append(KEY, ROLE_USER, "halo")
        history = store.history(KEY)
        history.clear()
        assert len(store.history(KEY)) == 1

    def test_keys_are_partitioned_by_persona(self, store):
        store.append(KEY, ROLE_USER, "untuk apik")
        other = ConversationKey(KEY.chat_id, "Fiq")
        assert store.history(other) == []
        assert set(store.keys()) == {KEY}

    def test_unknown_role(self, store):
        with pytest.raises(ValueError):
            store.append(KEY, "system", "x")

    def test_concurrent_appends(self, store):
        store.cap = 1000

        def worker(n):
            for i in range(50):
                store.append(KEY, ROLE_USER, f"{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        texts = [e.text for e in store.history(KEY)]
        assert len(texts) == 200
        assert len(set(texts)) == 200

    def test_clear_and_stats(self, store):
        store.append(KEY, ROLE_USER, "a")
        store.append(KEY, ROLE_ASSISTANT, "b")
        assert store.stats() == {"conversations": 1, "entries": 2}
        assert store.clear(KEY) == 2
        assert store.stats() == {"conversations": 0, "entries": 0}


class TestPersistence:
    def test_round_trip_file_layout(self, store):
        store.append(KEY, ROLE_USER, "halo")
        store.persist()

        with open(store.path, encoding="utf-8") as f:
            raw = json.load(f)
        assert list(raw) == [KEY.storage_key]
        assert raw[KEY.storage_key][0]["role"] == "user"
        assert raw[KEY.storage_key][0]["text"] == "halo"

        fresh = ConversationMemory(store.path, cap=5)
        assert fresh.load() == 1
        assert [e.text for e in fresh.history(KEY)] == ["halo"]

    def test_load_trims_to_cap(self, tmp_path):
        path = tmp_path / "memory.json"
        entries = [{"role": "user", "text": str(i), "timestamp": i} for i in range(10)]
        path.write_text(json.dumps({KEY.storage_key: entries}))
        store = ConversationMemory(str(path), cap=3)
        store.load()
        assert [e.text for e in store.history(KEY)] == ["7", "8", "9"]

    def test_missing_file_is_empty(self, tmp_path):
        assert ConversationMemory(str(tmp_path / "nope.json")).load() == 0

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "memory.json"
        path.write_text("{not json")
        store = ConversationMemory(str(path))
        assert store.load() == 0
        assert store.stats()["entries"] == 0

    @pytest.mark.asyncio
    async def test_append_and_persist(self, store):
        await asyncio.gather(
            store.append_and_persist(KEY, ROLE_USER, "a"),
            store.append_and_persist(KEY, ROLE_ASSISTANT, "b"),
        )
        fresh = ConversationMemory(store.path, cap=5)
        fresh.load()
        assert sorted(e.text for e in fresh.history(KEY)) == ["a", "b"]

    def test_storage_key_parse(self):
        assert ConversationKey.parse(KEY.storage_key) == KEY

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            ConversationMemory(None, cap=0)
