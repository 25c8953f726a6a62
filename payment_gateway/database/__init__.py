"""Payment record storage."""
from .models import PaymentRecord, PaymentStatus
from .repository import (
    DuplicatePaymentError,
    InMemoryPaymentRecordStore,
    PaymentRecordStore,
    PaymentStoreError,
    UnknownPaymentError,
)

__all__ = [
    "PaymentRecord",
    "PaymentStatus",
    "PaymentRecordStore",
    "InMemoryPaymentRecordStore",
    "PaymentStoreError",
    "DuplicatePaymentError",
    "UnknownPaymentError",
]
