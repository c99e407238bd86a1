# tests/unit/test_memory_backend.py
# Backend-level details the higher layers do not expose

import asyncio

import pytest

from clipshare.models.entry import UpdateStatus
from clipshare.store.backend import code_from_entry_key, entry_key, history_key, viewers_key
from clipshare.store.memory_backend import KeyedLock
from clipshare.utils.codes import CODE_ALPHABET, generate_code, is_valid_code


class TestKeys:

    def test_key_layout(self):
        assert entry_key("abc123") == "clip:abc123"
        assert viewers_key("abc123") == "clip:abc123:viewers"
        assert history_key("u1") == "history:u1"

    @pytest.mark.parametrize("key, expected", [
        ("clip:abc123", "abc123"),
        ("clip:abc123:viewers", None),
        ("history:u1", None),
        ("clip:", None),
    ])
    def test_code_from_entry_key(self, key, expected):
        assert code_from_entry_key(key) == expected


class TestCodes:

    def test_generated_codes_use_alphabet(self):
        for _ in range(100):
            code = generate_code(8)
            assert len(code) == 8
            assert set(code) <= set(CODE_ALPHABET)
            assert is_valid_code(code)

    @pytest.mark.parametrize("code", ["", "a:b", "a b", "x" * 65, "ab/cd"])
    def test_invalid_codes(self, code):
        assert not is_valid_code(code)


class TestKeyedLock:

    @pytest.mark.asyncio
    async def test_lock_released_and_dropped(self):
        locks = KeyedLock()

        async with locks.hold("k"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_key_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
        assert len(locks) == 0


class TestMemoryBackend:

    @pytest.mark.asyncio
    async def test_purge_drops_expired_keys(self, backend, clock):
        await backend.insert_entry("abc123", "x", 1, None, 10)
        await backend.push_history("u1", "abc123", 20, 100)
        clock.advance(30)

        assert backend.purge_expired() == 2

    @pytest.mark.asyncio
    async def test_replace_content_outcomes(self, backend):
        await backend.insert_entry("abc123", "x", 1, "u1", 100)

        assert (await backend.replace_content("abc123", "y", "u2")).status == UpdateStatus.FORBIDDEN
        assert (await backend.replace_content("zzz999", "y", "u1")).status == UpdateStatus.NOT_FOUND
        outcome = await backend.replace_content("abc123", "y", "u1")
        assert outcome.status == UpdateStatus.UPDATED
        assert outcome.ttl == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_mutation_stream_sees_inserts_and_updates(self, backend):
        stream = backend.content_mutations()
        first = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        await backend.insert_entry("abc123", "x", 1, "u1", 100)
        assert await asyncio.wait_for(first, 1) == "abc123"

        await backend.replace_content("abc123", "y", "u1")
        assert await asyncio.wait_for(stream.__anext__(), 1) == "abc123"
        await stream.aclose()
