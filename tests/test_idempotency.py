"""
Unit tests for the idempotency cache.
"""
import asyncio

import pytest

from payment_gateway.core.idempotency import IdempotencyCache

RESPONSE = {"id": "3f1c0f4e-8f5b-4bb2-9a2e-1f5e1c1b7d10", "status": "Authorized"}


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestIdempotencyCache:
    """Test suite for IdempotencyCache."""

    @pytest.mark.unit
    def test_get_unknown_key(self) -> None:
        """Test an unknown key has no response."""
        assert IdempotencyCache().get("missing") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reserve_then_complete(self) -> None:
        """Test the owner's response becomes visible once completed."""
        cache = IdempotencyCache()

        assert cache.reserve("k1") is None
        assert cache.get("k1") is None

        cache.complete("k1", RESPONSE)

        assert cache.get("k1") == RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_returns_copy(self) -> None:
        """Test callers cannot mutate the cached response."""
        cache = IdempotencyCache()
        cache.put("k1", RESPONSE)

        cache.get("k1")["status"] = "Declined"

        assert cache.get("k1")["status"] == "Authorized"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_reserve_waits_for_owner(self) -> None:
        """Test a concurrent reservation waits until the owner completes."""
        cache = IdempotencyCache()
        assert cache.reserve("k1") is None

        waiter = cache.reserve("k1")
        assert waiter is not None
        assert not waiter.done()

        cache.complete("k1", RESPONSE)
        await asyncio.wait_for(waiter, timeout=1)

        assert cache.get("k1") == RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_release_wakes_waiters_and_frees_key(self) -> None:
        """Test releasing a reservation lets the key be reserved again."""
        cache = IdempotencyCache()
        cache.reserve("k1")
        waiter = cache.reserve("k1")

        cache.release("k1")
        await asyncio.wait_for(waiter, timeout=1)

        assert "k1" not in cache
        assert cache.reserve("k1") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_response_wins(self) -> None:
        """Test a second completion does not overwrite the stored response."""
        cache = IdempotencyCache()
        cache.reserve("k1")
        cache.complete("k1", RESPONSE)

        cache.complete("k1", {**RESPONSE, "status": "Declined"})

        assert cache.get("k1") == RESPONSE

    @pytest.mark.unit
    def test_put_is_insert_if_absent(self) -> None:
        """Test put only stores for a fresh key."""
        cache = IdempotencyCache()

        assert cache.put("k1", RESPONSE) is True
        assert cache.put("k1", {**RESPONSE, "status": "Declined"}) is False
        assert cache.get("k1") == RESPONSE

    @pytest.mark.unit
    def test_release_keeps_completed_entry(self) -> None:
        """Test release never drops a completed response."""
        cache = IdempotencyCache()
        cache.put("k1", RESPONSE)

        cache.release("k1")

        assert cache.get("k1") == RESPONSE

    @pytest.mark.unit
    def test_entries_expire_after_ttl(self) -> None:
        """Test completed entries expire once the TTL has elapsed."""
        clock = FakeClock()
        cache = IdempotencyCache(ttl_seconds=60, clock=clock)
        cache.put("k1", RESPONSE)

        clock.now += 59
        assert cache.get("k1") == RESPONSE

        clock.now += 1
        assert cache.get("k1") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_in_flight_entries_never_expire(self) -> None:
        """Test a reservation survives past the TTL."""
        clock = FakeClock()
        cache = IdempotencyCache(ttl_seconds=1, clock=clock)
        cache.reserve("k1")

        clock.now += 100

        assert cache.reserve("k1") is not None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unbounded_cache_never_walks_entries(self) -> None:
        """Test eviction is skipped entirely without a TTL or size limit."""
        cache = IdempotencyCache()
        for i in range(50):
            cache.put(f"k{i}", RESPONSE)

        def walk() -> None:
            pytest.fail("entries walked with no eviction limits")

        cache._oldest_completed = walk
        cache.reserve("fresh")
        cache.complete("fresh", RESPONSE)
        cache.put("other", RESPONSE)

        assert len(cache) == 52

    @pytest.mark.unit
    def test_ttl_eviction_stops_at_first_live_entry(self) -> None:
        """Test expiry only inspects entries up to the first one still live."""
        calls = []
        clock = FakeClock()

        def counting_clock() -> float:
            calls.append(clock.now)
            return clock.now

        cache = IdempotencyCache(ttl_seconds=60, clock=counting_clock)
        cache.put("old", RESPONSE)
        clock.now += 30
        for i in range(100):
            cache.put(f"k{i}", RESPONSE)
        clock.now += 30
        calls.clear()

        cache.put("new", RESPONSE)

        assert "old" not in cache
        assert cache.get("k0") == RESPONSE
        # one read for the expired entry, one for the first live entry per walk,
        # plus the timestamp of the new entry
        assert len(calls) <= 5

    @pytest.mark.unit
    def test_max_entries_evicts_oldest(self) -> None:
        """Test the oldest completed entry is evicted beyond max_entries."""
        cache = IdempotencyCache(max_entries=2)
        cache.put("k1", RESPONSE)
        cache.put("k2", RESPONSE)
        cache.put("k3", RESPONSE)

        assert "k1" not in cache
        assert cache.get("k2") == RESPONSE
        assert cache.get("k3") == RESPONSE
        assert len(cache) == 2
