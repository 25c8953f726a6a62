"""Core payment processing logic."""
from .exceptions import PaymentError, PaymentNotFoundError, PaymentValidationError, Violation
from .idempotency import IdempotencyCache
from .orchestrator import PaymentOrchestrator
from .projection import PaymentOutcome, to_creation_response, to_retrieval_response
from .validation import ValidatedPaymentRequest, validate_payment_request

__all__ = [
    "IdempotencyCache",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentOrchestrator",
    "PaymentOutcome",
    "PaymentValidationError",
    "ValidatedPaymentRequest",
    "Violation",
    "to_creation_response",
    "to_retrieval_response",
    "validate_payment_request",
]
