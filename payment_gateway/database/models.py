"""Payment record model held by the payment record store."""
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class PaymentStatus(str, Enum):
    """Lifecycle status of a stored payment record."""

    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    DECLINED = "DECLINED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


@dataclass(frozen=True)
class PaymentRecord:
    """
    Durable unit of truth for a payment attempt.

    Records are created PENDING before the bank is called and replaced by a
    terminal copy exactly once. Card data is reduced to the last four digits.
    """

    id: uuid.UUID
    status: PaymentStatus
    card_last_four: int
    expiry_month: int
    expiry_year: int
    currency: str
    amount: int
    authorization_code: Optional[str] = None
    authorized: Optional[bool] = None

    def with_outcome(
        self,
        status: PaymentStatus,
        authorization_code: Optional[str] = None,
        authorized: Optional[bool] = None,
    ) -> "PaymentRecord":
        """Return a terminal copy of a pending record."""
        if self.status.is_terminal:
            raise ValueError(f"Invalid transition: {self.status.value} -> {status.value}")
        if not status.is_terminal:
            raise ValueError(f"Invalid transition: {self.status.value} -> {status.value}")
        return replace(
            self,
            status=status,
            authorization_code=authorization_code,
            authorized=authorized,
        )

    def __repr__(self) -> str:
        """String representation of PaymentRecord."""
        return (
            f"<PaymentRecord(id={self.id}, status={self.status.value}, "
            f"amount={self.amount}, currency={self.currency})>"
        )
