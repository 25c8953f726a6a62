"""
Health checks for liveness and readiness endpoints.

Checks:
- Acquiring bank circuit breaker state
"""
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

if TYPE_CHECKING:
    from payment_gateway.integrations.circuit_breaker import CallGate

logger = structlog.get_logger(__name__)


class HealthCheck:
    """
    Health check service for the payment gateway.

    Readiness reports unhealthy while the bank circuit is open, since every
    payment would be declined without reaching the bank.
    """

    def __init__(self, call_gate: Optional["CallGate"] = None) -> None:
        """
        Initialize health check service.

        Args:
            call_gate: Gate guarding the acquiring bank, if any
        """
        self.call_gate = call_gate

    def check_bank_circuit(self) -> Dict[str, Any]:
        """
        Check the acquiring bank circuit breaker.

        Returns:
            Dict[str, Any]: Circuit health status
        """
        if self.call_gate is None:
            return {
                "status": "healthy",
                "service": "bank_circuit",
                "message": "No call gate configured",
            }

        state = self.call_gate.state.value
        if state == "open":
            logger.warning("bank_circuit_health_check_failed", state=state)
            return {
                "status": "unhealthy",
                "service": "bank_circuit",
                "state": state,
                "message": "Bank circuit is open, payments are being declined",
            }

        return {
            "status": "healthy",
            "service": "bank_circuit",
            "state": state,
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks = {"bank_circuit": self.check_bank_circuit()}
        all_healthy = all(check["status"] == "healthy" for check in checks.values())

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness check.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """Readiness check, healthy only when the bank can be called."""
        return await self.check_all()
