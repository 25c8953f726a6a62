"""
Unit tests for the acquiring bank client.
"""
from typing import Any

import httpx
import pytest

from payment_gateway.integrations.acquiring_bank import (
    AcquiringBankClient,
    AcquiringBankError,
    BankAuthorization,
)
from payment_gateway.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitState,
)

AUTHORIZE_ARGS = {
    "card_number": "2222405343248877",
    "expiry_date": "04/2030",
    "currency": "GBP",
    "amount": 100,
    "cvv": "123",
}


class TestAcquiringBankClient:
    """Test suite for AcquiringBankClient."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_authorized_response(self, bank_client: AcquiringBankClient) -> None:
        """Test an approval is parsed into a BankAuthorization."""
        verdict = await bank_client.authorize(**AUTHORIZE_ARGS)

        assert verdict == BankAuthorization(authorized=True, authorization_code="0bb07405-6d44")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_payload(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test the bank receives the full card details."""
        await bank_client.authorize(**AUTHORIZE_ARGS)

        assert fake_bank.requests == [AUTHORIZE_ARGS]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_declined_response(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test a refusal is parsed with no authorization code."""
        fake_bank.body = {"authorized": False, "authorization_code": ""}

        verdict = await bank_client.authorize(**AUTHORIZE_ARGS)

        assert verdict.authorized is False

    @pytest.mark.unit
    @pytest.mark.parametrize("flag", ["false", "true", 1, None])
    def test_only_boolean_true_authorizes(self, flag: Any) -> None:
        """Test non-boolean authorized flags are read as declines."""
        verdict = BankAuthorization.from_payload({"authorized": flag, "authorization_code": "X"})

        assert verdict.authorized is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_string_flag_from_bank_is_declined(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test a bank answering "false" as a string is not treated as an approval."""
        fake_bank.body = {"authorized": "false", "authorization_code": ""}

        verdict = await bank_client.authorize(**AUTHORIZE_ARGS)

        assert verdict.authorized is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_body_returns_none(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test an empty body is reported as no verdict."""
        fake_bank.body = None

        assert await bank_client.authorize(**AUTHORIZE_ARGS) is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_raises(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test a non-2xx status raises AcquiringBankError."""
        fake_bank.status_code = 503
        fake_bank.body = None

        with pytest.raises(AcquiringBankError) as exc_info:
            await bank_client.authorize(**AUTHORIZE_ARGS)

        assert exc_info.value.status_code == 503

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error_raises(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test a connection failure raises AcquiringBankError."""
        fake_bank.error = httpx.ConnectError("connection refused")

        with pytest.raises(AcquiringBankError, match="Bank unreachable"):
            await bank_client.authorize(**AUTHORIZE_ARGS)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_body_raises(
        self, bank_client: AcquiringBankClient, fake_bank: Any
    ) -> None:
        """Test a non-object JSON body raises AcquiringBankError."""
        fake_bank.body = ["authorized"]

        with pytest.raises(AcquiringBankError, match="malformed"):
            await bank_client.authorize(**AUTHORIZE_ARGS)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_open_gate_skips_bank(
        self,
        bank_client: AcquiringBankClient,
        fake_bank: Any,
        forced_gate: Any,
    ) -> None:
        """Test no request is sent while the gate is open."""
        forced_gate.forced_state = CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpenError):
            await bank_client.authorize(**AUTHORIZE_ARGS)

        assert fake_bank.requests == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bank_errors_open_circuit(self, fake_bank: Any, test_settings: Any) -> None:
        """Test repeated bank errors trip a real circuit breaker."""
        fake_bank.status_code = 500
        fake_bank.body = None
        breaker = CircuitBreaker("bank", CircuitBreakerConfig(minimum_number_of_calls=5))
        async with httpx.AsyncClient(transport=httpx.MockTransport(fake_bank.handler)) as http:
            client = AcquiringBankClient(
                bank_url=test_settings.bank_url,
                call_gate=breaker,
                http_client=http,
                settings=test_settings,
            )
            for _ in range(5):
                with pytest.raises(AcquiringBankError):
                    await client.authorize(**AUTHORIZE_ARGS)

            with pytest.raises(CircuitBreakerOpenError):
                await client.authorize(**AUTHORIZE_ARGS)

        assert breaker.state is CircuitState.OPEN
        assert len(fake_bank.requests) == 5
