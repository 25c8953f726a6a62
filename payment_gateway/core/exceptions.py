"""Exceptions raised by payment processing."""
import uuid
from dataclasses import dataclass
from typing import List, Sequence


class PaymentError(Exception):
    """Base exception for payment processing errors."""

    pass


@dataclass(frozen=True)
class Violation:
    """A single failed validation check."""

    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class PaymentValidationError(PaymentError):
    """Raised when payment input validation fails."""

    def __init__(self, violations: Sequence[Violation]):
        self.violations: List[Violation] = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class PaymentNotFoundError(PaymentError):
    """Raised when a payment id is unknown (or not yet terminal)."""

    def __init__(self, payment_id: uuid.UUID):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found")
