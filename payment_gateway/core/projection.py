"""Projection of payment records onto client-visible response shapes."""
from enum import Enum
from typing import Any, Dict

from payment_gateway.database.models import PaymentRecord, PaymentStatus


class PaymentOutcome(str, Enum):
    """Payment status as shown to clients."""

    AUTHORIZED = "Authorized"
    DECLINED = "Declined"
    REJECTED = "Rejected"


def outcome_for(status: PaymentStatus) -> PaymentOutcome:
    """Map a terminal record status to its client-visible outcome."""
    if status is PaymentStatus.AUTHORIZED:
        return PaymentOutcome.AUTHORIZED
    if status is PaymentStatus.DECLINED:
        return PaymentOutcome.DECLINED
    raise ValueError(f"Payment status {status.value} is not client-visible")


def _fields(record: PaymentRecord) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "card_last_four": record.card_last_four,
        "expiry_month": record.expiry_month,
        "expiry_year": record.expiry_year,
        "currency": record.currency,
        "amount": record.amount,
    }


def to_creation_response(record: PaymentRecord, outcome: PaymentOutcome) -> Dict[str, Any]:
    """
    Build the response returned from payment creation.

    The outcome is passed explicitly because a compensated payment is
    reported as Declined although its record no longer exists.
    """
    return {**_fields(record), "status": outcome.value}


def to_retrieval_response(record: PaymentRecord) -> Dict[str, Any]:
    """Build the response returned when a stored payment is fetched."""
    return {**_fields(record), "status": outcome_for(record.status).value}
