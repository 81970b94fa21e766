"""
Rate limiting for The Product Report API
Uses in-memory storage with fixed windows per identifier
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request, status
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    max_requests: int
    window_seconds: int = 60


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    In-memory fixed-window rate limiter.

    A window opens on the first request for an identifier and lasts
    window_seconds; once max_requests have been counted the identifier is
    refused until the window resets. Refused requests are not counted.

    For production with multiple instances, consider using Redis.
    """

    def __init__(self, clock=time.time):
        self._windows: Dict[str, _Window] = {}
        self._clock = clock

    def check(self, identifier: str, max_requests: int, window_seconds: int = 60) -> RateLimitResult:
        """
        Count a request against identifier.

        Returns:
            RateLimitResult with allowed flag, remaining requests and the
            epoch time when the window resets
        """
        now = self._clock()
        window = self._windows.get(identifier)

        if window is None or window.reset_at < now:
            window = _Window(count=0, reset_at=now + window_seconds)
            self._windows[identifier] = window

        if window.count >= max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_at=window.reset_at)

        window.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=max_requests - window.count,
            reset_at=window.reset_at,
        )

    def check_config(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        return self.check(identifier, config.max_requests, config.window_seconds)

    def cleanup(self) -> int:
        """Drop windows that already reset; returns how many were dropped"""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if window.reset_at < now]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


# Pre-configured limits per endpoint type (requests per minute)
RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "standard": RateLimitConfig(max_requests=100),
    "ai_analysis": RateLimitConfig(max_requests=10),
    "batch_operations": RateLimitConfig(max_requests=5),
    "content_generation": RateLimitConfig(max_requests=20),
    "login": RateLimitConfig(max_requests=10),
    "semantic_search": RateLimitConfig(max_requests=30),
    "mobile_scan": RateLimitConfig(max_requests=30),
    "mobile_search": RateLimitConfig(max_requests=60),
    "mobile_feedback": RateLimitConfig(max_requests=5),
    "smart_scan": RateLimitConfig(max_requests=5),
}


def get_client_ip(request: Request, default: str = "anonymous") -> str:
    """Client IP, considering proxies (first X-Forwarded-For hop, then X-Real-IP)"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return default


def get_rate_limit_key(request: Request, user_id: Optional[str] = None) -> str:
    """Identifier for rate limiting: user when known, else client IP"""
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_client_ip(request)}"


def get_mobile_rate_limit_key(request: Request) -> str:
    """Mobile apps send a device fingerprint; fall back to IP"""
    fingerprint = request.headers.get("x-fingerprint")
    if fingerprint:
        return f"device:{fingerprint}"
    return get_rate_limit_key(request)


def rate_limit_response(reset_at: float, now: float = None) -> JSONResponse:
    """429 response with Retry-After computed from the window reset"""
    now = time.time() if now is None else now
    retry_after = max(0, math.ceil(reset_at - now))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "Rate limit exceeded",
            "retryAfter": retry_after,
            "message": f"Too many requests. Please try again in {retry_after} seconds.",
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Reset": str(int(reset_at)),
        },
    )


def apply_rate_limit(
    request: Request,
    config: RateLimitConfig,
    identifier: Optional[str] = None,
) -> Optional[JSONResponse]:
    """
    Count the request; returns None if allowed, a 429 response if limited.

    Usage:
        limited = apply_rate_limit(request, RATE_LIMITS["ai_analysis"])
        if limited:
            return limited
    """
    key = identifier or get_mobile_rate_limit_key(request)
    result = rate_limiter.check_config(key, config)
    if not result.allowed:
        logger.info(f"Rate limit exceeded for {key}")
        return rate_limit_response(result.reset_at)
    return None


async def run_periodic_cleanup(limiter: RateLimiter = None, interval: float = 5 * 60):
    """Drop expired windows forever; started in the app lifespan"""
    limiter = limiter or rate_limiter
    while True:
        await asyncio.sleep(interval)
        limiter.cleanup()
