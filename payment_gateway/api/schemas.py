"""
Pydantic schemas for API request/response models.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from payment_gateway.core.projection import PaymentOutcome


class CreatePaymentRequest(BaseModel):
    """
    Request schema for creating a payment.

    Only JSON types are enforced here; range and format checks run in
    core.validation so every violation is reported together.
    """

    card_number: Optional[str] = Field(default=None, description="Card number (14-19 digits)")
    expiry_month: Optional[int] = Field(default=None, description="Expiry month (1-12)")
    expiry_year: Optional[int] = Field(default=None, description="Expiry year")
    currency: Optional[str] = Field(default=None, description="Currency code (USD, GBP, EUR)")
    amount: Optional[int] = Field(default=None, description="Amount in minor currency units")
    cvv: Optional[str] = Field(default=None, description="Card verification value (3-4 digits)")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "card_number": "2222405343248877",
                    "expiry_month": 4,
                    "expiry_year": 2030,
                    "currency": "GBP",
                    "amount": 100,
                    "cvv": "123",
                }
            ]
        }
    }

    def __repr__(self) -> str:
        last_four = self.card_number[-4:] if self.card_number else None
        return (
            f"CreatePaymentRequest(card_last_four={last_four!r}, "
            f"expiry_month={self.expiry_month}, expiry_year={self.expiry_year}, "
            f"currency={self.currency!r}, amount={self.amount})"
        )


class _PaymentView(BaseModel):
    id: str = Field(..., description="Payment ID")
    card_last_four: int = Field(..., alias="cardLastFour", description="Last four card digits")
    expiry_month: int = Field(..., alias="expiryMonth", description="Expiry month")
    expiry_year: int = Field(..., alias="expiryYear", description="Expiry year")
    currency: str = Field(..., description="Currency code")
    amount: int = Field(..., description="Amount in minor currency units")

    model_config = ConfigDict(populate_by_name=True)


class CreatePaymentResponse(_PaymentView):
    """Response schema for payment creation."""

    status: PaymentOutcome = Field(..., description="Authorized or Declined")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "3f1c0f4e-8f5b-4bb2-9a2e-1f5e1c1b7d10",
                    "status": "Authorized",
                    "cardLastFour": 8877,
                    "expiryMonth": 4,
                    "expiryYear": 2030,
                    "currency": "GBP",
                    "amount": 100,
                }
            ]
        },
    )


class PaymentResponse(_PaymentView):
    """Response schema for payment retrieval."""

    status: PaymentOutcome = Field(..., description="Authorized or Declined")


class ViolationResponse(BaseModel):
    """A single validation failure."""

    field: str = Field(..., description="Offending field")
    message: str = Field(..., description="What is wrong with it")


class RejectedPaymentResponse(BaseModel):
    """Response schema for a request rejected before processing."""

    status: PaymentOutcome = Field(default=PaymentOutcome.REJECTED)
    errors: List[ViolationResponse] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Response schema for non-payment errors."""

    message: str = Field(..., description="Error message")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
