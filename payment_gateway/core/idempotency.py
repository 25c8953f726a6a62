"""
Idempotency cache for preventing duplicate bank authorizations.

Entries move from RESERVED to COMPLETE. A key is reserved before the bank is
called, so concurrent requests with the same fresh key wait for the first one
instead of calling the bank again.
"""
import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class EntryState(str, Enum):
    RESERVED = "RESERVED"
    COMPLETE = "COMPLETE"


@dataclass
class IdempotencyEntry:
    """Cache slot for one idempotency key."""

    key: str
    state: EntryState
    done: Optional[asyncio.Future]
    response: Optional[Dict[str, Any]] = None
    completed_at: Optional[float] = field(default=None, repr=False)


class IdempotencyCache:
    """
    Maps idempotency keys to the response first produced for them.

    Defaults keep entries for the life of the process. A TTL and a maximum
    number of completed entries may be configured; in-flight reservations
    are never evicted.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize idempotency cache.

        Args:
            ttl_seconds: Lifetime of completed entries (None keeps them forever)
            max_entries: Maximum completed entries kept (None is unbounded)
            clock: Monotonic time source
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, IdempotencyEntry]" = OrderedDict()
        self._completed = 0

    def _is_expired(self, entry: IdempotencyEntry) -> bool:
        return (
            self.ttl_seconds is not None
            and entry.state is EntryState.COMPLETE
            and entry.completed_at is not None
            and self._clock() - entry.completed_at >= self.ttl_seconds
        )

    def _oldest_completed(self) -> Iterator[Tuple[str, IdempotencyEntry]]:
        # completed entries sit in completion order; reservations are skipped
        for key, entry in self._entries.items():
            if entry.state is EntryState.COMPLETE:
                yield key, entry

    def _drop(self, keys: List[str], event: str) -> None:
        for key in keys:
            del self._entries[key]
            self._completed -= 1
            logger.debug(event, idempotency_key=key)

    def _evict(self) -> None:
        if self.ttl_seconds is None and self.max_entries is None:
            return

        if self.ttl_seconds is not None:
            expired = []
            for key, entry in self._oldest_completed():
                if not self._is_expired(entry):
                    break
                expired.append(key)
            self._drop(expired, "idempotency_entry_expired")

        if self.max_entries is not None and self._completed > self.max_entries:
            overflow = islice(self._oldest_completed(), self._completed - self.max_entries)
            self._drop([key for key, _ in overflow], "idempotency_entry_evicted")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Return the completed response for a key.

        Args:
            key: The idempotency key

        Returns:
            Optional[Dict[str, Any]]: Copy of the cached response, None if absent,
            still in flight or expired
        """
        entry = self._entries.get(key)
        if entry is None or entry.state is not EntryState.COMPLETE or self._is_expired(entry):
            return None
        return dict(entry.response)

    def reserve(self, key: str) -> Optional[asyncio.Future]:
        """
        Reserve a key for the caller.

        No await happens between the lookup and the insert, so two flows on
        the same event loop can never both own a key.

        Returns:
            None if the caller now owns the key, otherwise a future that
            resolves once the current owner completes or releases it
        """
        self._evict()
        loop = asyncio.get_running_loop()
        entry = self._entries.get(key)
        if entry is not None:
            if entry.done is None:
                finished = loop.create_future()
                finished.set_result(None)
                return finished
            return asyncio.shield(entry.done)

        self._entries[key] = IdempotencyEntry(
            key=key,
            state=EntryState.RESERVED,
            done=loop.create_future(),
        )
        logger.debug("idempotency_key_reserved", idempotency_key=key)
        return None

    def complete(self, key: str, response: Dict[str, Any]) -> None:
        """
        Store the final response for a reserved key and wake waiters.

        The first response stored for a key wins.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.put(key, response)
            return
        if entry.state is EntryState.COMPLETE:
            logger.warning("idempotency_response_already_stored", idempotency_key=key)
            return

        entry.state = EntryState.COMPLETE
        self._completed += 1
        entry.response = dict(response)
        entry.completed_at = self._clock()
        self._entries.move_to_end(key)
        if entry.done is not None and not entry.done.done():
            entry.done.set_result(None)
        logger.info("idempotency_response_cached", idempotency_key=key)
        self._evict()

    def release(self, key: str) -> None:
        """Drop a reservation without a response so the key can be retried."""
        entry = self._entries.get(key)
        if entry is None or entry.state is EntryState.COMPLETE:
            return
        del self._entries[key]
        if entry.done is not None and not entry.done.done():
            entry.done.set_result(None)
        logger.info("idempotency_reservation_released", idempotency_key=key)

    def put(self, key: str, response: Dict[str, Any]) -> bool:
        """
        Insert a completed response if the key is absent.

        Returns:
            bool: True if stored, False if the key already had an entry
        """
        self._evict()
        if key in self._entries:
            return False
        self._entries[key] = IdempotencyEntry(
            key=key,
            state=EntryState.COMPLETE,
            done=None,
            response=dict(response),
            completed_at=self._clock(),
        )
        self._completed += 1
        self._evict()
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
