"""External integrations for payment processing."""
from .acquiring_bank import (
    AcquiringBankClient,
    AcquiringBankError,
    AuthorizationGateway,
    BankAuthorization,
)
from .circuit_breaker import (
    CallGate,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitState,
)

__all__ = [
    "AcquiringBankClient",
    "AcquiringBankError",
    "AuthorizationGateway",
    "BankAuthorization",
    "CallGate",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpenError",
    "CircuitState",
]
