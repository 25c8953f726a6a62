"""
Prometheus metrics for payment gateway monitoring.

Tracks:
- Payment request counts by client-visible status
- Payment processing duration
- Payment amounts
- Idempotency cache hits
- Acquiring bank calls and circuit breaker state
- Compensations (pending records removed)
"""
from prometheus_client import Counter, Gauge, Histogram

# Payment metrics
payment_requests_total = Counter(
    "payment_requests_total",
    "Total number of payment requests",
    ["status", "currency"],
)

payment_processing_duration_seconds = Histogram(
    "payment_processing_duration_seconds",
    "Payment processing duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

payment_amount_minor_units = Histogram(
    "payment_amount_minor_units",
    "Payment amounts in minor currency units",
    buckets=(0, 100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000),
)

payment_compensations_total = Counter(
    "payment_compensations_total",
    "Pending payment records removed after a failed authorization",
    ["reason"],  # downstream_failure, gate_open, timeout
)

# Idempotency metrics
idempotency_cache_hits_total = Counter(
    "idempotency_cache_hits_total",
    "Total idempotency cache lookups",
    ["source"],  # hit, wait, miss
)

# Acquiring bank metrics
bank_requests_total = Counter(
    "bank_requests_total",
    "Total acquiring bank authorization calls",
    ["outcome"],  # authorized, declined, failed, rejected_by_gate
)

bank_request_duration_seconds = Histogram(
    "bank_request_duration_seconds",
    "Acquiring bank call duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 10.0),
)

# Circuit breaker metrics
bank_circuit_breaker_state = Gauge(
    "bank_circuit_breaker_state",
    "Acquiring bank circuit breaker state (0=closed, 1=open, 2=half_open)",
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_request(status: str, currency: str, amount: int) -> None:
        """Record a payment request."""
        payment_requests_total.labels(status=status, currency=currency).inc()
        payment_amount_minor_units.observe(amount)

    @staticmethod
    def record_payment_duration(duration_seconds: float) -> None:
        """Record payment processing duration."""
        payment_processing_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_idempotency_cache_hit(source: str) -> None:
        """Record idempotency cache lookup."""
        idempotency_cache_hits_total.labels(source=source).inc()

    @staticmethod
    def record_bank_call(outcome: str, duration_seconds: float) -> None:
        """Record acquiring bank call."""
        bank_requests_total.labels(outcome=outcome).inc()
        bank_request_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_compensation(reason: str) -> None:
        """Record a pending record removal."""
        payment_compensations_total.labels(reason=reason).inc()

    @staticmethod
    def set_circuit_breaker_state(state: str) -> None:
        """Set circuit breaker state."""
        state_map = {"closed": 0, "open": 1, "half_open": 2}
        bank_circuit_breaker_state.set(state_map.get(state, 0))


# Export singleton instance
metrics = MetricsCollector()
