"""Rate limiting for the payroll API."""

from .rate_limiter import (
    RATE_LIMITS,
    RateLimits,
    limiter,
    limit_calculator,
    limit_export,
    limit_health,
    limit_payroll,
    setup_rate_limiting,
)

__all__ = [
    "RATE_LIMITS",
    "RateLimits",
    "limiter",
    "limit_calculator",
    "limit_export",
    "limit_health",
    "limit_payroll",
    "setup_rate_limiting",
]
