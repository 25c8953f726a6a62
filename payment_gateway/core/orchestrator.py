"""
Payment orchestrator with idempotency and compensation.

Orchestrates the payment flow:
1. Check the idempotency cache (return the stored response on a hit)
2. Reserve the idempotency key
3. Persist a PENDING payment record
4. Call the acquiring bank through its call gate
5. Update the record to AUTHORIZED or DECLINED
6. Cache and return the response

If the bank call fails or the gate rejects it, the PENDING record is removed
and the client receives a Declined response instead of an error.
"""
import asyncio
import time
import uuid
from typing import Any, Callable, Dict, Optional

import structlog

from payment_gateway.config import Settings, get_settings
from payment_gateway.database.models import PaymentRecord, PaymentStatus
from payment_gateway.database.repository import InMemoryPaymentRecordStore, PaymentRecordStore
from payment_gateway.integrations.acquiring_bank import (
    AcquiringBankClient,
    AuthorizationGateway,
    BankAuthorization,
)
from payment_gateway.integrations.circuit_breaker import CircuitBreakerOpenError
from payment_gateway.monitoring.metrics import metrics

from .exceptions import PaymentNotFoundError
from .idempotency import IdempotencyCache
from .projection import PaymentOutcome, outcome_for, to_creation_response, to_retrieval_response
from .validation import ValidatedPaymentRequest

logger = structlog.get_logger(__name__)


class PaymentOrchestrator:
    """
    Coordinates the idempotency cache, the record store and the bank.

    At most one bank call is made per idempotency key, and no record is left
    PENDING once process() returns or raises.
    """

    def __init__(
        self,
        store: Optional[PaymentRecordStore] = None,
        gateway: Optional[AuthorizationGateway] = None,
        idempotency_cache: Optional[IdempotencyCache] = None,
        cache_downstream_failures: Optional[bool] = None,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize payment orchestrator.

        Args:
            store: Payment record store
            gateway: Authorization gateway (defaults to the acquiring bank client)
            idempotency_cache: Optional idempotency cache
            cache_downstream_failures: Cache the Declined response of a failed
                bank call (defaults to settings)
            id_factory: Generator for payment ids
            settings: Optional settings (defaults to get_settings())
        """
        settings = settings or get_settings()
        # stores and caches define __len__, so an empty one is falsy
        self.store = store if store is not None else InMemoryPaymentRecordStore()
        self.gateway = gateway if gateway is not None else AcquiringBankClient(settings=settings)
        if idempotency_cache is None:
            idempotency_cache = IdempotencyCache(
                ttl_seconds=settings.idempotency_cache_ttl,
                max_entries=settings.idempotency_cache_max_entries,
            )
        self.idempotency_cache = idempotency_cache
        self.cache_downstream_failures = (
            settings.idempotency_cache_downstream_failures
            if cache_downstream_failures is None
            else cache_downstream_failures
        )
        self._id_factory = id_factory

        logger.info(
            "payment_orchestrator_initialized",
            cache_downstream_failures=self.cache_downstream_failures,
        )

    async def process(
        self, idempotency_key: str, request: ValidatedPaymentRequest
    ) -> Dict[str, Any]:
        """
        Process a validated payment request.

        Args:
            idempotency_key: Caller-supplied idempotency key
            request: Request that passed validation

        Returns:
            Dict[str, Any]: Creation response (status Authorized or Declined)
        """
        log = logger.bind(idempotency_key=idempotency_key)
        log.info("payment_processing_requested")

        while True:
            cached = self.idempotency_cache.get(idempotency_key)
            if cached is not None:
                metrics.record_idempotency_cache_hit("hit")
                log.info("payment_duplicate_detected", payment_id=cached["id"])
                return cached

            in_flight = self.idempotency_cache.reserve(idempotency_key)
            if in_flight is None:
                break

            metrics.record_idempotency_cache_hit("wait")
            log.info("payment_in_flight_waiting")
            await in_flight

        metrics.record_idempotency_cache_hit("miss")
        try:
            return await self._authorize(idempotency_key, request, log)
        except BaseException:
            self.idempotency_cache.release(idempotency_key)
            raise

    async def _authorize(
        self, idempotency_key: str, request: ValidatedPaymentRequest, log: Any
    ) -> Dict[str, Any]:
        record = PaymentRecord(
            id=self._id_factory(),
            status=PaymentStatus.PENDING,
            card_last_four=request.card_last_four,
            expiry_month=request.expiry_month,
            expiry_year=request.expiry_year,
            currency=request.currency,
            amount=request.amount,
        )
        log = log.bind(payment_id=str(record.id))
        await self.store.add(record)
        log.info("payment_pending_recorded", card_last_four=record.card_last_four)

        start_time = time.time()
        try:
            verdict = await self.gateway.authorize(
                card_number=request.card_number,
                expiry_date=request.expiry_date,
                currency=request.currency,
                amount=request.amount,
                cvv=request.cvv,
            )
        except CircuitBreakerOpenError as e:
            metrics.record_bank_call("rejected_by_gate", time.time() - start_time)
            return await self._compensate(idempotency_key, record, "gate_open", e, log)
        except asyncio.TimeoutError as e:
            metrics.record_bank_call("failed", time.time() - start_time)
            return await self._compensate(idempotency_key, record, "timeout", e, log)
        except Exception as e:
            metrics.record_bank_call("failed", time.time() - start_time)
            return await self._compensate(idempotency_key, record, "downstream_failure", e, log)
        except BaseException:
            await self.store.remove(record.id)
            log.warning("payment_cancelled_pending_removed")
            raise

        try:
            return await self._finalize(idempotency_key, record, verdict, start_time, log)
        except BaseException:
            await self.store.remove(record.id)
            log.error("payment_finalize_failed_pending_removed")
            raise

    async def _finalize(
        self,
        idempotency_key: str,
        record: PaymentRecord,
        verdict: Optional[BankAuthorization],
        start_time: float,
        log: Any,
    ) -> Dict[str, Any]:
        authorized = verdict is not None and verdict.authorized
        status = PaymentStatus.AUTHORIZED if authorized else PaymentStatus.DECLINED
        metrics.record_bank_call(
            "authorized" if authorized else "declined", time.time() - start_time
        )

        terminal = record.with_outcome(
            status,
            authorization_code=verdict.authorization_code if verdict else None,
            authorized=verdict.authorized if verdict else None,
        )
        await self.store.update(terminal)

        response = to_creation_response(terminal, outcome_for(status))
        self.idempotency_cache.complete(idempotency_key, response)

        log.info(
            "payment_processed",
            status=status.value,
            amount=terminal.amount,
            currency=terminal.currency,
            card_last_four=terminal.card_last_four,
        )
        return response

    async def _compensate(
        self,
        idempotency_key: str,
        record: PaymentRecord,
        reason: str,
        error: Exception,
        log: Any,
    ) -> Dict[str, Any]:
        """Remove the PENDING record and answer Declined."""
        await self.store.remove(record.id)
        metrics.record_compensation(reason)
        log.error(
            "payment_compensated",
            reason=reason,
            error=str(error),
            error_type=type(error).__name__,
        )

        response = to_creation_response(record, PaymentOutcome.DECLINED)
        if self.cache_downstream_failures:
            self.idempotency_cache.complete(idempotency_key, response)
        else:
            self.idempotency_cache.release(idempotency_key)
        return response

    async def get_payment(self, payment_id: uuid.UUID) -> Dict[str, Any]:
        """
        Get a terminal payment by id.

        Raises:
            PaymentNotFoundError: If the id is unknown or the payment is still PENDING
        """
        logger.info("payment_retrieval_requested", payment_id=str(payment_id))
        record = await self.store.get(payment_id)
        if record is None or not record.status.is_terminal:
            logger.warning("payment_retrieval_failed", payment_id=str(payment_id), reason="not_found")
            raise PaymentNotFoundError(payment_id)
        return to_retrieval_response(record)

    async def aclose(self) -> None:
        """Release resources held by the gateway."""
        aclose = getattr(self.gateway, "aclose", None)
        if aclose is not None:
            await aclose()
