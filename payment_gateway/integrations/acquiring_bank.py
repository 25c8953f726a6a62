"""
Acquiring bank client.

Implements:
- Authorization requests against the bank simulator over HTTP
- Circuit breaker gating of every call
- Error wrapping so callers see one exception type for bank failures
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from payment_gateway.config import Settings, get_settings

from .circuit_breaker import CallGate, CircuitBreaker, CircuitBreakerConfig

logger = structlog.get_logger(__name__)


class AcquiringBankError(Exception):
    """Raised when the bank cannot be reached or answers with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize bank error.

        Args:
            message: Error message
            status_code: HTTP status returned by the bank, if any
            original_error: Underlying httpx exception
        """
        super().__init__(message)
        self.status_code = status_code
        self.original_error = original_error


@dataclass(frozen=True)
class BankAuthorization:
    """Verdict returned by the bank."""

    authorized: bool
    authorization_code: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BankAuthorization":
        return cls(
            authorized=payload.get("authorized") is True,
            authorization_code=payload.get("authorization_code"),
        )


class AuthorizationGateway(ABC):
    """Synchronous (per request) authorization call to the card issuer."""

    @abstractmethod
    async def authorize(
        self,
        card_number: str,
        expiry_date: str,
        currency: str,
        amount: int,
        cvv: str,
    ) -> Optional[BankAuthorization]:
        """
        Ask the issuer to authorize a payment.

        Returns:
            Optional[BankAuthorization]: The verdict, None if the bank sent none

        Raises:
            Exception: Any failure to obtain a verdict, including gate rejection
        """
        ...


class AcquiringBankClient(AuthorizationGateway):
    """
    HTTP client for the acquiring bank.

    Every request goes through the call gate; HTTP and transport errors are
    raised as AcquiringBankError so the gate counts them as failures.
    """

    def __init__(
        self,
        bank_url: Optional[str] = None,
        call_gate: Optional[CallGate] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize bank client.

        Args:
            bank_url: Authorization endpoint (defaults to settings.bank_url)
            call_gate: Gate wrapped around each call (defaults to a circuit breaker)
            http_client: Optional httpx client, owned by the caller if given
            settings: Optional settings (defaults to get_settings())
        """
        settings = settings or get_settings()
        self.bank_url = bank_url or settings.bank_url
        if call_gate is None:
            call_gate = CircuitBreaker("bank", CircuitBreakerConfig.from_settings(settings))
        self.call_gate = call_gate
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.bank_timeout_seconds))
        self._client = http_client

        logger.info("bank_client_initialized", bank_url=self.bank_url)

    async def _post(self, payload: Dict[str, Any]) -> Optional[BankAuthorization]:
        try:
            response = await self._client.post(self.bank_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "bank_http_error",
                status_code=e.response.status_code,
                error=str(e),
            )
            raise AcquiringBankError(
                f"Bank responded with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            logger.error("bank_transport_error", error=str(e), error_type=type(e).__name__)
            raise AcquiringBankError(f"Bank unreachable: {e}", original_error=e) from e

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise AcquiringBankError("Bank returned a malformed body", original_error=e) from e
        if body is None:
            return None
        if not isinstance(body, dict):
            raise AcquiringBankError("Bank returned a malformed body")
        return BankAuthorization.from_payload(body)

    async def authorize(
        self,
        card_number: str,
        expiry_date: str,
        currency: str,
        amount: int,
        cvv: str,
    ) -> Optional[BankAuthorization]:
        """
        Request an authorization from the bank.

        Args:
            card_number: Full card number
            expiry_date: Expiry as MM/YYYY
            currency: Currency code
            amount: Amount in minor units
            cvv: Card verification value

        Returns:
            Optional[BankAuthorization]: Bank verdict, None for an empty body

        Raises:
            AcquiringBankError: If the bank call fails
            CircuitBreakerOpenError: If the circuit rejects the call
        """
        logger.info(
            "requesting_bank_authorization",
            card_last_four=card_number[-4:],
            currency=currency,
            amount=amount,
        )
        payload = {
            "card_number": card_number,
            "expiry_date": expiry_date,
            "currency": currency,
            "amount": amount,
            "cvv": cvv,
        }
        verdict = await self.call_gate.call(self._post, payload)

        logger.info(
            "bank_authorization_received",
            authorized=verdict.authorized if verdict else None,
        )
        return verdict

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
