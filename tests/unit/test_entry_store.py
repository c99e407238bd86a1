# tests/unit/test_entry_store.py
# Entry Store semantics against the in-memory backend

import asyncio

import pytest

from clipshare.errors import ForbiddenError, InternalError, NotFoundError, ValidationError
from clipshare.store.entries import EntryStore


class TestCreateAndGet:

    @pytest.mark.asyncio
    async def test_create_then_get_returns_content_with_count_one(self, entries):
        code = await entries.create("hello", owner_id="u1")

        entry = await entries.get(code)

        assert entry.content == "hello"
        assert entry.retrieval_count == 1
        assert entry.owner_id == "u1"
        assert entry.created_at is not None

    @pytest.mark.asyncio
    async def test_each_get_increments_count(self, entries):
        code = await entries.create("hello")

        counts = [(await entries.get(code)).retrieval_count for _ in range(3)]

        assert counts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_created_at_is_fixed(self, entries):
        code = await entries.create("hello", owner_id="u1")
        first = await entries.get(code)
        await entries.update(code, "world", "u1")

        second = await entries.get(code)

        assert second.created_at == first.created_at

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, entries):
        with pytest.raises(ValidationError):
            await entries.create("")

    @pytest.mark.asyncio
    async def test_unknown_code_not_found(self, entries):
        with pytest.raises(NotFoundError):
            await entries.get("nope42")

    @pytest.mark.asyncio
    async def test_malformed_code_not_found(self, entries):
        # Could collide with metadata keys if passed through
        with pytest.raises(NotFoundError):
            await entries.get("abc:viewers")

    @pytest.mark.asyncio
    async def test_no_owner_when_client_id_missing(self, entries):
        code = await entries.create("hello")

        entry = await entries.get(code)

        assert entry.owner_id is None


class TestExpiry:

    @pytest.mark.asyncio
    async def test_expired_entry_behaves_like_missing(self, entries, clock):
        code = await entries.create("hello", owner_id="u1")
        clock.advance(86400)

        with pytest.raises(NotFoundError):
            await entries.get(code)
        with pytest.raises(NotFoundError):
            await entries.update(code, "world", "u1")
        assert await entries.ttl(code) is None
        assert await entries.peek_many([code]) == [None]

    @pytest.mark.asyncio
    async def test_entry_alive_just_before_deadline(self, entries, clock):
        code = await entries.create("hello")
        clock.advance(86399)

        entry = await entries.get(code)

        assert entry.content == "hello"

    @pytest.mark.asyncio
    async def test_expired_code_can_be_reused(self, backend, guard, clock):
        codes = iter(["same01", "same01"])
        store = EntryStore(backend, guard, ttl_seconds=10, code_factory=lambda n: next(codes))
        await store.create("first")
        clock.advance(10)

        code = await store.create("second")

        assert (await store.get(code)).content == "second"


class TestCollisions:

    @pytest.mark.asyncio
    async def test_collision_retries_with_new_code(self, backend, guard):
        codes = iter(["dup001", "dup001", "fresh1"])
        store = EntryStore(backend, guard, code_factory=lambda n: next(codes))

        first = await store.create("one")
        second = await store.create("two")

        assert first == "dup001"
        assert second == "fresh1"
        assert (await store.get("dup001")).content == "one"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, backend, guard):
        store = EntryStore(backend, guard, max_attempts=3, code_factory=lambda n: "dup001")
        await store.create("one")

        with pytest.raises(InternalError):
            await store.create("two")

        assert (await store.get("dup001")).content == "one"


class TestCodeLength:

    @pytest.mark.asyncio
    async def test_longest_code_is_still_reachable(self, backend, guard):
        store = EntryStore(backend, guard, code_length=64)

        code = await store.create("hello")

        assert len(code) == 64
        assert (await store.get(code)).content == "hello"

    @pytest.mark.parametrize("length", [0, 65])
    def test_out_of_range_length_rejected(self, backend, guard, length):
        with pytest.raises(ValueError):
            EntryStore(backend, guard, code_length=length)


class TestConcurrentGets:

    @pytest.mark.asyncio
    async def test_counts_are_a_permutation(self, entries):
        code = await entries.create("hello")
        n = 50

        results = await asyncio.gather(*[entries.get(code) for _ in range(n)])

        assert sorted(e.retrieval_count for e in results) == list(range(1, n + 1))

    @pytest.mark.asyncio
    async def test_other_codes_unaffected(self, entries):
        a = await entries.create("a")
        b = await entries.create("b")

        await asyncio.gather(*[entries.get(a) for _ in range(5)])

        assert (await entries.get(b)).retrieval_count == 1


class TestUpdate:

    @pytest.mark.asyncio
    async def test_owner_update_replaces_content(self, entries):
        code = await entries.create("hello", owner_id="u1")

        await entries.update(code, "world", "u1")

        entry = await entries.get(code)
        assert entry.content == "world"
        assert entry.owner_id == "u1"

    @pytest.mark.asyncio
    async def test_update_keeps_retrieval_count(self, entries):
        code = await entries.create("hello", owner_id="u1")
        await entries.get(code)
        await entries.get(code)

        await entries.update(code, "world", "u1")

        assert (await entries.get(code)).retrieval_count == 3

    @pytest.mark.asyncio
    async def test_update_carries_remaining_ttl_forward(self, entries, clock):
        code = await entries.create("hello", owner_id="u1")
        clock.advance(3600)
        before = await entries.ttl(code)

        carried = await entries.update(code, "world", "u1")
        after = await entries.ttl(code)

        assert carried == pytest.approx(before)
        assert after == pytest.approx(86400 - 3600)
        assert after <= 86400

    @pytest.mark.asyncio
    async def test_updated_entry_still_expires_on_original_deadline(self, entries, clock):
        code = await entries.create("hello", owner_id="u1")
        clock.advance(86000)
        await entries.update(code, "world", "u1")
        clock.advance(400)

        with pytest.raises(NotFoundError):
            await entries.get(code)

    @pytest.mark.asyncio
    async def test_non_owner_forbidden_and_content_unchanged(self, entries):
        code = await entries.create("hello", owner_id="u1")

        with pytest.raises(ForbiddenError):
            await entries.update(code, "hacked", "u2")

        assert (await entries.get(code)).content == "hello"

    @pytest.mark.asyncio
    async def test_unowned_entry_forbidden(self, entries):
        code = await entries.create("hello")

        with pytest.raises(ForbiddenError):
            await entries.update(code, "world", "u1")

    @pytest.mark.asyncio
    async def test_missing_entry_not_found_before_ownership(self, entries):
        with pytest.raises(NotFoundError):
            await entries.update("gone01", "world", "u1")

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, entries):
        code = await entries.create("hello", owner_id="u1")

        with pytest.raises(ValidationError):
            await entries.update(code, "", "u1")


class TestRegisterOwner:

    @pytest.mark.asyncio
    async def test_register_owner_on_unowned_entry(self, entries):
        code = await entries.create("hello")

        assert await entries.register_owner(code, "u1") is True

        await entries.update(code, "world", "u1")
        assert (await entries.get(code)).content == "world"

    @pytest.mark.asyncio
    async def test_register_owner_never_replaces_owner(self, entries):
        code = await entries.create("hello", owner_id="u1")

        assert await entries.register_owner(code, "u2") is False
        assert (await entries.get(code)).owner_id == "u1"

    @pytest.mark.asyncio
    async def test_register_owner_on_missing_entry(self, entries):
        assert await entries.register_owner("gone01", "u1") is False


class TestViewers:

    @pytest.mark.asyncio
    async def test_distinct_viewers_counted(self, entries):
        code = await entries.create("hello")

        assert await entries.record_viewer(code, "u1") == 1
        assert await entries.record_viewer(code, "u2") == 2
        assert await entries.record_viewer(code, "u1") == 2

    @pytest.mark.asyncio
    async def test_each_viewer_expires_independently(self, entries, clock):
        code = await entries.create("hello")
        await entries.record_viewer(code, "u1")
        clock.advance(1800)
        await entries.record_viewer(code, "u2")
        clock.advance(1800)

        # u1 is an hour old now, u2 only half an hour
        assert await entries.record_viewer(code, "u3") == 2

    @pytest.mark.asyncio
    async def test_announcement_refreshes_presence(self, entries, clock):
        code = await entries.create("hello")
        await entries.record_viewer(code, "u1")
        clock.advance(3000)
        await entries.record_viewer(code, "u1")
        clock.advance(3000)

        assert await entries.record_viewer(code, "u2") == 2

    @pytest.mark.asyncio
    async def test_viewer_on_missing_entry_not_recorded(self, entries):
        assert await entries.record_viewer("gone01", "u1") is None

    @pytest.mark.asyncio
    async def test_viewers_vanish_with_entry(self, entries, clock):
        code = await entries.create("hello")
        await entries.record_viewer(code, "u1")
        clock.advance(86400)

        assert await entries.record_viewer(code, "u1") is None
