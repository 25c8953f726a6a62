"""
Unit tests for payment records and the in-memory record store.
"""
import uuid

import pytest

from payment_gateway.database.models import PaymentRecord, PaymentStatus
from payment_gateway.database.repository import (
    DuplicatePaymentError,
    InMemoryPaymentRecordStore,
    UnknownPaymentError,
)


def pending_record() -> PaymentRecord:
    return PaymentRecord(
        id=uuid.uuid4(),
        status=PaymentStatus.PENDING,
        card_last_four=8877,
        expiry_month=4,
        expiry_year=2030,
        currency="GBP",
        amount=100,
    )


class TestPaymentRecord:
    """Test suite for PaymentRecord transitions."""

    @pytest.mark.unit
    def test_pending_to_authorized(self) -> None:
        """Test a pending record can become authorized."""
        record = pending_record()

        terminal = record.with_outcome(PaymentStatus.AUTHORIZED, "X", True)

        assert terminal.status == PaymentStatus.AUTHORIZED
        assert terminal.authorization_code == "X"
        assert terminal.id == record.id
        assert record.status == PaymentStatus.PENDING

    @pytest.mark.unit
    def test_terminal_record_is_final(self) -> None:
        """Test a terminal record cannot change status again."""
        terminal = pending_record().with_outcome(PaymentStatus.DECLINED, authorized=False)

        with pytest.raises(ValueError, match="Invalid transition"):
            terminal.with_outcome(PaymentStatus.AUTHORIZED, "X", True)

    @pytest.mark.unit
    def test_cannot_return_to_pending(self) -> None:
        """Test PENDING is not a valid outcome."""
        with pytest.raises(ValueError, match="PENDING -> PENDING"):
            pending_record().with_outcome(PaymentStatus.PENDING)


class TestInMemoryPaymentRecordStore:
    """Test suite for InMemoryPaymentRecordStore."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_add_and_get(self) -> None:
        """Test a stored record can be read back."""
        store = InMemoryPaymentRecordStore()
        record = pending_record()

        await store.add(record)

        assert await store.get(record.id) == record

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self) -> None:
        """Test unknown ids are absent rather than errors."""
        assert await InMemoryPaymentRecordStore().get(uuid.uuid4()) is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_add_duplicate_fails(self) -> None:
        """Test adding an existing id fails."""
        store = InMemoryPaymentRecordStore()
        record = pending_record()
        await store.add(record)

        with pytest.raises(DuplicatePaymentError):
            await store.add(record)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_unknown_fails(self) -> None:
        """Test updating a missing record fails."""
        store = InMemoryPaymentRecordStore()

        with pytest.raises(UnknownPaymentError):
            await store.update(pending_record())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_replaces_record(self) -> None:
        """Test update stores the terminal copy."""
        store = InMemoryPaymentRecordStore()
        record = pending_record()
        await store.add(record)

        await store.update(record.with_outcome(PaymentStatus.DECLINED, authorized=False))

        assert (await store.get(record.id)).status == PaymentStatus.DECLINED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self) -> None:
        """Test removing twice does not fail."""
        store = InMemoryPaymentRecordStore()
        record = pending_record()
        await store.add(record)

        await store.remove(record.id)
        await store.remove(record.id)

        assert await store.get(record.id) is None
        assert len(store) == 0
