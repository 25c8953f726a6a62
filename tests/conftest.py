"""
Pytest configuration and fixtures.
"""
import json
from datetime import date
from typing import Any, AsyncGenerator, Awaitable, Callable, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from payment_gateway.api.main import create_app
from payment_gateway.config import Settings
from payment_gateway.core.idempotency import IdempotencyCache
from payment_gateway.core.orchestrator import PaymentOrchestrator
from payment_gateway.core.validation import ValidatedPaymentRequest
from payment_gateway.database.repository import InMemoryPaymentRecordStore
from payment_gateway.integrations.acquiring_bank import AcquiringBankClient
from payment_gateway.integrations.circuit_breaker import (
    CallGate,
    CircuitBreakerOpenError,
    CircuitState,
)

BANK_URL = "http://bank.test/payments"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: tests through the HTTP API")
    config.addinivalue_line("markers", "race: concurrent request scenarios")


class ForcedGate(CallGate):
    """Call gate whose state is set by the test."""

    def __init__(self, state: CircuitState = CircuitState.CLOSED) -> None:
        self.forced_state = state
        self.calls = 0

    @property
    def state(self) -> CircuitState:
        return self.forced_state

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        if self.forced_state is CircuitState.OPEN:
            raise CircuitBreakerOpenError("test", self.forced_state)
        self.calls += 1
        return await func(*args, **kwargs)


class FakeBank:
    """Scripted acquiring bank behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.status_code = 200
        self.body: Optional[Any] = {"authorized": True, "authorization_code": "0bb07405-6d44"}
        self.error: Optional[Exception] = None
        self.requests: List[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.error is not None:
            raise self.error
        if self.body is None:
            return httpx.Response(self.status_code)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_name="payment-gateway-test",
        app_env="test",
        log_level="DEBUG",
        bank_url=BANK_URL,
        circuit_minimum_number_of_calls=5,
        circuit_failure_rate_threshold=0.5,
    )


@pytest.fixture
def valid_payment_data() -> dict[str, Any]:
    """Sample payment request body."""
    return {
        "card_number": "2222405343248877",
        "expiry_month": 4,
        "expiry_year": date.today().year + 2,
        "currency": "GBP",
        "amount": 100,
        "cvv": "123",
    }


@pytest.fixture
def validated_request(valid_payment_data: dict[str, Any]) -> ValidatedPaymentRequest:
    return ValidatedPaymentRequest(**valid_payment_data)


@pytest.fixture
def store() -> InMemoryPaymentRecordStore:
    return InMemoryPaymentRecordStore()


@pytest.fixture
def fake_bank() -> FakeBank:
    return FakeBank()


@pytest.fixture
def forced_gate() -> ForcedGate:
    return ForcedGate()


@pytest_asyncio.fixture
async def bank_client(
    fake_bank: FakeBank, forced_gate: ForcedGate, test_settings: Settings
) -> AsyncGenerator[AcquiringBankClient, Any]:
    """Bank client talking to the fake bank through the forced gate."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_bank.handler))
    client = AcquiringBankClient(
        bank_url=BANK_URL,
        call_gate=forced_gate,
        http_client=http_client,
        settings=test_settings,
    )
    yield client
    await http_client.aclose()


@pytest.fixture
def orchestrator(
    store: InMemoryPaymentRecordStore,
    bank_client: AcquiringBankClient,
    test_settings: Settings,
) -> PaymentOrchestrator:
    return PaymentOrchestrator(
        store=store,
        gateway=bank_client,
        idempotency_cache=IdempotencyCache(),
        settings=test_settings,
    )


@pytest_asyncio.fixture
async def client(
    orchestrator: PaymentOrchestrator, test_settings: Settings
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(settings=test_settings, orchestrator=orchestrator)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
