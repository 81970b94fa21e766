"""
Cron job utilities

Scheduled jobs are plain HTTP endpoints hit by an external scheduler with
`Authorization: Bearer <CRON_SECRET>`. This module holds the secret check,
retry with exponential backoff, batch processing, a circuit breaker and the
audit-log bookkeeping shared by those endpoints.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import Header, HTTPException, status
from fastapi.responses import JSONResponse

from product_report.core.config import get_settings
from product_report.core.exceptions import CircuitOpenError
from product_report.repositories.audit_log_repository import create_audit_log

logger = logging.getLogger(__name__)


# ============================================================================
# Security - Cron secret verification
# ============================================================================

def is_valid_cron_secret(authorization: Optional[str]) -> bool:
    """True when the header is exactly `Bearer <CRON_SECRET>` and a secret is set"""
    cron_secret = get_settings().CRON_SECRET
    if not cron_secret or not authorization:
        return False
    return authorization == f"Bearer {cron_secret}"


def is_valid_api_key(api_key: Optional[str]) -> bool:
    expected = get_settings().PAYLOAD_API_SECRET
    return bool(expected) and api_key == expected


async def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """
    Dependency for cron endpoints.

    Requests are refused when CRON_SECRET is not configured.
    """
    if not is_valid_cron_secret(authorization):
        logger.warning("Cron request rejected: missing or invalid bearer secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


async def verify_cron_secret_or_api_key(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
):
    """Cron secret, or the CMS API key for manually triggered runs"""
    if is_valid_cron_secret(authorization) or is_valid_api_key(x_api_key):
        return
    logger.warning("Cron request rejected: no valid cron secret or API key")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized"
    )


# ============================================================================
# Retry
# ============================================================================

@dataclass
class JobResult:
    success: bool
    attempts: int
    duration: float
    data: Any = None
    error: Optional[str] = None


async def sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def backoff_delay(attempt: int, initial_delay: float, max_delay: float, exponential_base: float) -> float:
    """Exponential delay for a zero-based attempt, plus up to 30% jitter, capped"""
    base_delay = initial_delay * (exponential_base ** attempt)
    jitter = random.random() * 0.3 * base_delay
    return min(base_delay + jitter, max_delay)


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> JobResult:
    """
    Run fn, retrying on failure with exponential backoff and jitter.

    Never raises: the outcome is reported in the returned JobResult.
    max_retries counts retries, so fn runs at most max_retries + 1 times.
    CircuitOpenError is not retried.
    """
    start = time.monotonic()
    attempts = 0
    last_error: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        attempts += 1
        try:
            data = await fn()
            return JobResult(
                success=True,
                data=data,
                attempts=attempts,
                duration=time.monotonic() - start,
            )
        except Exception as e:
            last_error = e

            if attempt == max_retries or isinstance(e, CircuitOpenError):
                break

            delay = backoff_delay(attempt, initial_delay, max_delay, exponential_base)
            if on_retry:
                on_retry(attempt + 1, e, delay)
            else:
                logger.info(f"Retry: attempt {attempt + 1} failed, retrying in {delay:.2f}s...")

            await sleep(delay)

    return JobResult(
        success=False,
        error=str(last_error) if last_error else "Unknown error",
        attempts=attempts,
        duration=time.monotonic() - start,
    )


def retryable(fn: Callable[..., Awaitable[Any]], **retry_options):
    """
    Wrap a coroutine function so each call is retried.

    The wrapped function raises RuntimeError once retries are exhausted.
    """
    async def wrapper(*args, **kwargs):
        result = await with_retry(lambda: fn(*args, **kwargs), **retry_options)
        if result.success:
            return result.data
        raise RuntimeError(result.error or "Retryable function failed")

    wrapper.__name__ = getattr(fn, "__name__", "retryable")
    return wrapper


async def process_batch_with_retry(
    items: List[Any],
    processor: Callable[[Any], Awaitable[Any]],
    concurrency: int = 5,
    item_retries: int = 2,
    on_item_error: Optional[Callable[[Any, str], None]] = None,
) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """
    Process items in chunks of `concurrency`, retrying each item.

    Returns:
        (successful results, [{"item": item, "error": message}, ...])
    """
    successful: List[Any] = []
    failed: List[Dict[str, Any]] = []

    async def run(item):
        result = await with_retry(lambda: processor(item), max_retries=item_retries)
        if result.success:
            successful.append(result.data)
        else:
            failed.append({"item": item, "error": result.error or "Unknown error"})
            if on_item_error:
                on_item_error(item, result.error)

    for i in range(0, len(items), concurrency):
        batch = items[i:i + concurrency]
        await asyncio.gather(*(run(item) for item in batch))

    return successful, failed


# ============================================================================
# Circuit breaker
# ============================================================================

@dataclass
class _CircuitState:
    failures: int = 0
    last_failure: float = 0.0
    is_open: bool = False


class CircuitBreaker:
    """
    Per-key circuit breaker for external service calls.

    After failure_threshold consecutive failures the circuit opens and calls
    are refused until reset_seconds have passed; the next call is then let
    through as a trial.
    """

    def __init__(self, failure_threshold: int = 5, reset_seconds: float = 60.0, clock=time.monotonic):
        self.failure_threshold = failure_threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self._states: Dict[str, _CircuitState] = {}

    def state(self, key: str) -> _CircuitState:
        return self._states.setdefault(key, _CircuitState())

    async def call(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        state = self.state(key)

        if state.is_open:
            elapsed = self._clock() - state.last_failure
            if elapsed < self.reset_seconds:
                wait = int(self.reset_seconds - elapsed) + 1
                raise CircuitOpenError(f"Circuit breaker open for {key}. Retry after {wait}s")
            state.is_open = False
            state.failures = 0

        try:
            result = await fn()
        except Exception:
            state.failures += 1
            state.last_failure = self._clock()
            if state.failures >= self.failure_threshold:
                state.is_open = True
                logger.error(f"Circuit breaker: {key} tripped after {state.failures} failures")
            raise

        state.failures = 0
        return result


circuit_breaker = CircuitBreaker()


# ============================================================================
# Audit logging and handler wrapper
# ============================================================================

def log_cron_execution(job_name: str, status_: str, **metadata) -> None:
    """
    Record a cron run in the audit log.

    status_ is "started", "success" or "error". Logging failures are
    reported and swallowed so they never break the job itself.
    """
    create_audit_log(
        action="cron_execution",
        source_type="system",
        success=status_ != "error",
        error_message=metadata.get("error") if status_ == "error" else None,
        metadata={
            "jobName": job_name,
            "status": status_,
            **metadata,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def run_cron_job(
    job_name: str,
    handler: Callable[[], Awaitable[Any]],
    **retry_options,
) -> JSONResponse:
    """
    Run a job body with retry and audit logging, returning the JSON response
    the scheduler sees (200 on success, 500 with the last error otherwise).
    """
    log_cron_execution(job_name, "started")

    def on_retry(attempt: int, error: Exception, delay: float):
        logger.warning(f"{job_name}: attempt {attempt} failed: {error}. Retrying in {delay:.2f}s...")

    result = await with_retry(handler, on_retry=on_retry, **retry_options)
    duration_ms = round(result.duration * 1000)

    log_cron_execution(
        job_name,
        "success" if result.success else "error",
        duration=duration_ms,
        attempts=result.attempts,
        error=result.error,
        result=result.data,
    )

    if result.success:
        return JSONResponse(content={
            "success": True,
            "jobName": job_name,
            "data": result.data,
            "duration": duration_ms,
            "attempts": result.attempts,
        })

    return JSONResponse(
        status_code=500,
        content={
            "error": result.error,
            "jobName": job_name,
            "duration": duration_ms,
            "attempts": result.attempts,
        },
    )
