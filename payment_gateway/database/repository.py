"""Payment record store contract and the in-memory implementation."""
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

import structlog

from payment_gateway.database.models import PaymentRecord

logger = structlog.get_logger(__name__)


class PaymentStoreError(Exception):
    """Raised when a store operation breaks the store contract."""

    pass


class DuplicatePaymentError(PaymentStoreError):
    """Raised when adding a record whose id already exists."""

    pass


class UnknownPaymentError(PaymentStoreError):
    """Raised when updating a record that does not exist."""

    pass


class PaymentRecordStore(ABC):
    """
    Keyed storage for payment records.

    The orchestrator depends only on this contract:
    - add() fails if the id already exists
    - get() returns None for unknown ids
    - update() fails if the id does not exist
    - remove() tolerates ids that are already gone
    """

    @abstractmethod
    async def add(self, record: PaymentRecord) -> None:
        ...

    @abstractmethod
    async def get(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        ...

    @abstractmethod
    async def update(self, record: PaymentRecord) -> None:
        ...

    @abstractmethod
    async def remove(self, payment_id: uuid.UUID) -> None:
        ...


class InMemoryPaymentRecordStore(PaymentRecordStore):
    """Process-local store backed by a dict."""

    def __init__(self) -> None:
        self._records: Dict[uuid.UUID, PaymentRecord] = {}

    async def add(self, record: PaymentRecord) -> None:
        if record.id in self._records:
            raise DuplicatePaymentError(f"Payment {record.id} already exists")
        self._records[record.id] = record

    async def get(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        return self._records.get(payment_id)

    async def update(self, record: PaymentRecord) -> None:
        if record.id not in self._records:
            raise UnknownPaymentError(f"Payment {record.id} not found")
        self._records[record.id] = record

    async def remove(self, payment_id: uuid.UUID) -> None:
        if self._records.pop(payment_id, None) is None:
            logger.debug("payment_record_already_removed", payment_id=str(payment_id))

    def __len__(self) -> int:
        return len(self._records)
