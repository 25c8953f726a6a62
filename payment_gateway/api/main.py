"""
Main FastAPI application.

Payment gateway API with:
- Request ID tracking
- Structured logging
- Error mapping (Rejected / 400 / 404)
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payment_gateway.config import Settings, get_settings
from payment_gateway.core.exceptions import PaymentNotFoundError, PaymentValidationError
from payment_gateway.core.orchestrator import PaymentOrchestrator
from payment_gateway.core.projection import PaymentOutcome
from payment_gateway.monitoring.health import HealthCheck
from payment_gateway.monitoring.logging import setup_logging

from .routes import monitoring_router, payment_router

logger = structlog.get_logger(__name__)


def _rejected(errors: list) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"status": PaymentOutcome.REJECTED.value, "errors": errors},
    )


def _body_field(error: dict) -> str:
    # json_invalid errors carry the byte offset, not a field name
    if error.get("type") == "json_invalid":
        return "body"
    return ".".join(str(part) for part in error["loc"][1:]) or "body"


async def payment_validation_handler(request: Request, exc: PaymentValidationError) -> JSONResponse:
    """Requests failing validation are rejected before processing."""
    return _rejected([v.to_dict() for v in exc.violations])


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Map framework validation errors.

    A malformed body is a rejected payment; a malformed path or header
    parameter is a plain bad request.
    """
    errors = exc.errors()
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        errors=[{"loc": list(e.get("loc", ())), "type": e.get("type")} for e in errors],
    )
    body_errors = [e for e in errors if e.get("loc") and e["loc"][0] == "body"]
    if body_errors:
        return _rejected(
            [
                {
                    "field": _body_field(e),
                    "message": e.get("msg", "Invalid value"),
                }
                for e in body_errors
            ]
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request parameter"},
    )


async def payment_not_found_handler(request: Request, exc: PaymentNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"message": "Page not found"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = {"message": exc.detail} if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
    """
    Add request ID to all requests for tracing.

    Also adds timing information and structured logging context.
    """
    request_id = str(uuid.uuid4())
    start_time = time.time()

    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    logger.info(
        "request_started",
        client_host=request.client.host if request.client else None,
    )

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=time.time() - start_time,
        )
        return response

    except Exception as e:
        logger.error(
            "request_failed",
            error=str(e),
            duration_seconds=time.time() - start_time,
        )
        raise

    finally:
        structlog.contextvars.clear_contextvars()


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[PaymentOrchestrator] = None,
    health_check: Optional[HealthCheck] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Optional settings (defaults to get_settings())
        orchestrator: Optional orchestrator (defaults to one wired to the bank)
        health_check: Optional health check (defaults to one watching the bank gate)

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    if orchestrator is None:
        orchestrator = PaymentOrchestrator(settings=settings)
    if health_check is None:
        health_check = HealthCheck(getattr(orchestrator.gateway, "call_gate", None))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            bank_url=settings.bank_url,
        )

        yield

        logger.info("application_shutdown")
        try:
            await orchestrator.aclose()
            logger.info("bank_client_closed")
        except Exception as e:
            logger.error("bank_client_shutdown_error", error=str(e))

    app = FastAPI(
        title="Payment Gateway",
        description=(
            "Card payment gateway forwarding authorizations to an acquiring bank. "
            "Features: idempotency keys, pending-record compensation and a circuit breaker."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.health_check = health_check

    app.middleware("http")(add_request_id_middleware)

    app.add_exception_handler(PaymentValidationError, payment_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PaymentNotFoundError, payment_not_found_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(payment_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": "1.0.0",
            "status": "operational",
            "environment": settings.app_env,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


app = create_app()


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "payment_gateway.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        # idempotency state is process-local, so a single worker serves all keys
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
