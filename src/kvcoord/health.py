"""Backend health check."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kvcoord.backends.interface import KeyValueBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthCheckResult:
    """
    Result of a backend health check.

    Attributes:
        healthy: True if the backend answered
        message: Human-readable summary
        error: The exception raised by the probe, if any
    """

    healthy: bool
    message: str
    error: Exception | None = None


async def check_health(backend: KeyValueBackend) -> HealthCheckResult:
    """
    Probe the backend with ``ping()``.

    Never raises; failures are reported as an unhealthy result.
    """
    try:
        await backend.ping()
    except Exception as e:
        logger.warning("Key-value backend health check failed: %s", e)
        return HealthCheckResult(healthy=False, message=f"Backend unreachable: {e}", error=e)
    return HealthCheckResult(healthy=True, message="Backend reachable")
