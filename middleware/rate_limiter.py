"""
Request rate limiting for the payroll API.

The formula builder calls the calculator on every edit, so it gets a wide
budget; payroll runs evaluate a whole period and are kept narrow. Limits
are counted per studio when the frontend sends ``X-Studio-Id`` and per
client address otherwise.
"""

from dataclasses import dataclass
import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

STUDIO_HEADER = "X-Studio-Id"


@dataclass(frozen=True)
class RateLimits:
    """slowapi limit strings per endpoint group."""

    default: str = "100/minute"
    calculator: str = "300/minute"
    payroll: str = "10/minute"
    export: str = "20/minute"
    health: str = "300/minute"

    @classmethod
    def from_env(cls) -> "RateLimits":
        return cls(
            default=os.getenv("RATE_LIMIT_DEFAULT", cls.default),
            calculator=os.getenv("RATE_LIMIT_CALCULATOR", cls.calculator),
            payroll=os.getenv("RATE_LIMIT_PAYROLL", cls.payroll),
            export=os.getenv("RATE_LIMIT_EXPORT", cls.export),
            health=os.getenv("RATE_LIMIT_HEALTH", cls.health),
        )


RATE_LIMITS = RateLimits.from_env()


def rate_limit_key(request: Request) -> str:
    """Studio id when present, else the original client address."""
    studio_id = request.headers.get(STUDIO_HEADER)
    if studio_id:
        return f"studio:{studio_id}"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[RATE_LIMITS.default],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {rate_limit_key(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests, try again in a minute.",
            "detail": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Attach the limiter, its middleware and the 429 handler to ``app``."""
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    logger.info(f"Rate limiting configured: {RATE_LIMITS}")


def limit_calculator(func):
    return limiter.limit(RATE_LIMITS.calculator)(func)


def limit_payroll(func):
    return limiter.limit(RATE_LIMITS.payroll)(func)


def limit_export(func):
    return limiter.limit(RATE_LIMITS.export)(func)


def limit_health(func):
    return limiter.limit(RATE_LIMITS.health)(func)
