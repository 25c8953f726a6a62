"""
API routes for payment processing.
"""
import time
import uuid
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from payment_gateway.config import Settings
from payment_gateway.core.exceptions import PaymentValidationError
from payment_gateway.core.orchestrator import PaymentOrchestrator
from payment_gateway.core.projection import PaymentOutcome
from payment_gateway.core.validation import validate_payment_request
from payment_gateway.monitoring.health import HealthCheck
from payment_gateway.monitoring.metrics import metrics

from .schemas import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    ErrorResponse,
    HealthCheckResponse,
    PaymentResponse,
    RejectedPaymentResponse,
)

logger = structlog.get_logger(__name__)

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
INVALID_LABEL = "invalid"

payment_router = APIRouter(prefix="/payment", tags=["payments"])
monitoring_router = APIRouter(tags=["monitoring"])


def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return request.app.state.orchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_health_check(request: Request) -> HealthCheck:
    return request.app.state.health_check


@payment_router.post(
    "",
    response_model=CreatePaymentResponse,
    status_code=status.HTTP_200_OK,
    summary="Create a payment",
    description="Authorize a card payment; repeated requests with the same Idempotency-Key return the first response",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": RejectedPaymentResponse},
    },
)
async def create_payment(
    payload: CreatePaymentRequest,
    idempotency_key: Optional[str] = Header(default=None, alias=IDEMPOTENCY_KEY_HEADER),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Create a new payment.

    Declines caused by an unreachable bank are returned as normal Declined
    responses, never as errors.
    """
    if idempotency_key is None or not idempotency_key.strip():
        logger.warning("api_create_payment_missing_idempotency_key")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required header '{IDEMPOTENCY_KEY_HEADER}'",
        )

    start_time = time.time()
    supported_currencies = settings.get_supported_currencies()
    try:
        request = validate_payment_request(
            payload.model_dump(),
            supported_currencies=supported_currencies,
        )
    except PaymentValidationError as e:
        logger.warning(
            "api_create_payment_validation_error",
            violations=[v.to_dict() for v in e.violations],
        )
        # client-supplied values never become label values
        currency = payload.currency if payload.currency in supported_currencies else INVALID_LABEL
        metrics.record_payment_request(
            PaymentOutcome.REJECTED.value, currency, max(payload.amount or 0, 0)
        )
        raise

    payment = await orchestrator.process(idempotency_key, request)

    duration = time.time() - start_time
    metrics.record_payment_request(payment["status"], request.currency, request.amount)
    metrics.record_payment_duration(duration)
    logger.info(
        "api_create_payment_success",
        payment_id=payment["id"],
        status=payment["status"],
        duration_seconds=duration,
    )
    return payment


@payment_router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Get a payment",
    description="Retrieve a processed payment by id",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
)
async def get_payment(
    payment_id: uuid.UUID,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Get payment by ID."""
    return await orchestrator.get_payment(payment_id)


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness check",
    description="Kubernetes liveness endpoint",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Liveness endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness check",
    description="Kubernetes readiness endpoint",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
