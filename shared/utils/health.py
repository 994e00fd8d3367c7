"""
Health check utilities for Linkshelf services.
Provides dependency checks and status reporting for the health endpoints.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
from sqlalchemy import text

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.utils.redis_client import get_redis_client

logger = get_logger(__name__)

CRITICAL_CHECKS = ("database", "redis")


class HealthStatus(Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


def _elapsed_ms(start_time: datetime) -> float:
    return (datetime.now() - start_time).total_seconds() * 1000


class HealthChecker:
    """Runs the registered dependency checks for one service."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = get_logger(f"{service_name}.health")
        self.checks: List[Callable[[], HealthCheck]] = []
        self.settings = get_settings()

    def add_check(self, check_func: Callable[[], HealthCheck]):
        """Add a health check function."""
        self.checks.append(check_func)

    def check_database(self) -> HealthCheck:
        """Check database connectivity."""
        start_time = datetime.now()
        try:
            from shared.database.session import get_session_factory

            with get_session_factory()() as session:
                session.execute(text("SELECT 1"))

            return HealthCheck(
                name="database",
                status=HealthStatus.HEALTHY,
                message="Database connection successful",
                response_time_ms=_elapsed_ms(start_time),
            )
        except Exception as e:
            return HealthCheck(
                name="database",
                status=HealthStatus.UNHEALTHY,
                message=f"Database connection failed: {str(e)}",
                response_time_ms=_elapsed_ms(start_time),
            )

    def check_redis(self) -> HealthCheck:
        """Check Redis connectivity."""
        start_time = datetime.now()
        if get_redis_client(self.service_name).ping():
            return HealthCheck(
                name="redis",
                status=HealthStatus.HEALTHY,
                message="Redis connection successful",
                response_time_ms=_elapsed_ms(start_time),
            )
        return HealthCheck(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            message="Redis connection failed",
            response_time_ms=_elapsed_ms(start_time),
        )

    def check_telegram(self) -> HealthCheck:
        """Check that the Bot API accepts the configured token."""
        start_time = datetime.now()
        token = self.settings.telegram.token
        if not token:
            return HealthCheck(
                name="telegram",
                status=HealthStatus.UNHEALTHY,
                message="TELEGRAM_TOKEN is not configured",
            )
        try:
            with httpx.Client(timeout=5.0) as client:
                response = client.get(f"{self.settings.telegram.api_base}/bot{token}/getMe")
                response.raise_for_status()
                bot = response.json().get("result", {})

            return HealthCheck(
                name="telegram",
                status=HealthStatus.HEALTHY,
                message="Telegram Bot API reachable",
                response_time_ms=_elapsed_ms(start_time),
                details={"username": bot.get("username")},
            )
        except Exception as e:
            # never echo the token embedded in the request URL
            return HealthCheck(
                name="telegram",
                status=HealthStatus.UNHEALTHY,
                message=f"Telegram Bot API check failed: {type(e).__name__}",
                response_time_ms=_elapsed_ms(start_time),
            )

    def run_all_checks(self) -> Dict[str, Any]:
        """Run all registered health checks."""
        results = []
        overall_status = HealthStatus.HEALTHY

        for check_func in self.checks:
            try:
                result = check_func()
                results.append(result)

                if result.status == HealthStatus.UNHEALTHY:
                    overall_status = HealthStatus.UNHEALTHY
                elif (
                    result.status == HealthStatus.DEGRADED
                    and overall_status == HealthStatus.HEALTHY
                ):
                    overall_status = HealthStatus.DEGRADED

            except Exception as e:
                error_result = HealthCheck(
                    name=getattr(check_func, "__name__", "check"),
                    status=HealthStatus.UNHEALTHY,
                    message=f"Health check failed with exception: {str(e)}",
                )
                results.append(error_result)
                overall_status = HealthStatus.UNHEALTHY

        return {
            "service": self.service_name,
            "status": overall_status.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": [
                {
                    "name": check.name,
                    "status": check.status.value,
                    "message": check.message,
                    "response_time_ms": check.response_time_ms,
                    "details": check.details,
                    "timestamp": check.timestamp.isoformat(),
                }
                for check in results
            ],
        }

    def readiness(self) -> Dict[str, Any]:
        """Readiness is decided by the critical dependencies only."""
        health_data = self.run_all_checks()
        critical_checks = [
            check for check in health_data["checks"] if check["name"] in CRITICAL_CHECKS
        ]
        all_critical_healthy = all(check["status"] == "healthy" for check in critical_checks)

        return {
            "status": "ready" if all_critical_healthy else "not_ready",
            "service": self.service_name,
            "critical_dependencies": {
                check["name"]: check["status"] for check in critical_checks
            },
        }


def create_bot_health_checker() -> HealthChecker:
    """Create health checker for the bot service."""
    checker = HealthChecker("bot")
    checker.add_check(checker.check_database)
    if checker.settings.service.rate_limit_backend == "redis":
        checker.add_check(checker.check_redis)
    checker.add_check(checker.check_telegram)
    return checker


def create_extractor_health_checker() -> HealthChecker:
    """The extractor has no stateful dependencies; it is healthy while it runs."""
    return HealthChecker("extractor")
