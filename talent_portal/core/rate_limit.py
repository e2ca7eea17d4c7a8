"""
In-memory rate limiting for API routes.

Presets are rate strings ("5/minute") counted by the `limits` library,
the same backend slowapi uses, in one process-wide MemoryStorage with a
fixed-window strategy. The storage evicts expired windows itself.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from slowapi.util import get_remote_address

from talent_portal.core.exceptions import RateLimitException

logger = logging.getLogger(__name__)


# Pre-configured rate limits for different route types
RATE_LIMITS: Dict[str, str] = {
    "email": "5/minute",
    "ai": "10/minute",
    "webhook": "100/minute",
    "admin": "30/minute",
    "auth": "10/minute",
}


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float
    retry_after: Optional[int] = None


class RateLimiter:
    """Fixed-window counter per preset and client."""

    def __init__(self, presets: Dict[str, str] = None):
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.items: Dict[str, RateLimitItem] = {
            name: parse(value) for name, value in (presets or RATE_LIMITS).items()
        }

    def check(self, name: str, identifier: str) -> RateLimitResult:
        """Count one request for `identifier` under preset `name`."""
        item = self.items[name]
        allowed = self.strategy.hit(item, name, identifier)
        reset_time, remaining = self.strategy.get_window_stats(item, name, identifier)

        retry_after = None
        if not allowed:
            retry_after = max(1, math.ceil(reset_time - time.time()))

        return RateLimitResult(
            allowed=allowed,
            remaining=remaining,
            reset_time=reset_time,
            retry_after=retry_after
        )

    def reset(self) -> None:
        self.storage.reset()


rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def rate_limited(name: str):
    """
    FastAPI dependency factory.

    Usage:
        @router.post("/x", dependencies=[Depends(rate_limited("email"))])
    """
    if name not in RATE_LIMITS:
        raise KeyError(f"Unknown rate limit preset: {name}")

    async def dependency(request: Request) -> RateLimitResult:
        client_ip = get_client_ip(request)
        result = rate_limiter.check(name, client_ip)
        if not result.allowed:
            logger.warning(f"Rate limit '{name}' exceeded for {client_ip}")
            raise RateLimitException(result.retry_after)
        return result

    return dependency
