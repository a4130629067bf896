"""Base classes for provider adapters."""

import asyncio
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

import httpx

from marketdesk.config import (
    DEFAULT_PROVIDER_BACKOFF,
    DEFAULT_PROVIDER_MAX_RETRIES,
    DEFAULT_PROVIDER_TIMEOUT,
)
from marketdesk.logging import log, log_provider_call, log_provider_result
from marketdesk.providers.limiter import RateLimiters

T = TypeVar("T")


class FailureReason(str, Enum):
    """Why a provider call produced no data."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_KEY = "invalid_key"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    PARSE_ERROR = "parse_error"


class ProviderError(Exception):
    """
    Raised inside an adapter when an upstream call cannot produce data.

    Never escapes ProviderClient.call - it is converted to a failed
    ProviderResult there.
    """

    def __init__(
        self,
        reason: FailureReason,
        message: str = "",
        retryable: bool | None = None,
    ):
        super().__init__(message or reason.value)
        self.reason = reason
        self.message = message or reason.value
        # None means "let the retry policy decide from the reason"
        self.retryable = retryable


@dataclass
class ProviderResult(Generic[T]):
    """
    Outcome of one provider call.

    Either carries a value (possibly a degraded all-zero fallback) or a
    failure reason. Always returned as data so callers can keep going with
    other providers.
    """

    value: T | None = None
    reason: FailureReason | None = None
    message: str | None = None
    source: str = ""
    degraded: bool = False
    attempts: int = 1

    @classmethod
    def ok(
        cls, value: T, source: str = "", degraded: bool = False, attempts: int = 1
    ) -> "ProviderResult[T]":
        return cls(value=value, source=source, degraded=degraded, attempts=attempts)

    @classmethod
    def failed(
        cls,
        reason: FailureReason,
        message: str | None = None,
        source: str = "",
        attempts: int = 1,
    ) -> "ProviderResult[T]":
        return cls(reason=reason, message=message or reason.value, source=source, attempts=attempts)

    @property
    def succeeded(self) -> bool:
        return self.reason is None

    @property
    def usable(self) -> bool:
        """True when the value is real data (not a failure, not a fallback)."""
        return self.succeeded and not self.degraded and self.value is not None

    def unwrap_or(self, default: T) -> T:
        if self.usable:
            return self.value  # type: ignore[return-value]
        return default


@dataclass
class RetryPolicy:
    """Bounded retry with linear backoff for transient failures."""

    max_retries: int = DEFAULT_PROVIDER_MAX_RETRIES
    backoff_seconds: float = DEFAULT_PROVIDER_BACKOFF
    retry_on: frozenset[FailureReason] = field(
        default_factory=lambda: frozenset({FailureReason.TIMEOUT, FailureReason.UPSTREAM_ERROR})
    )

    def should_retry(self, error: ProviderError, attempt: int) -> bool:
        """Decide whether to retry after the given (1-based) attempt failed."""
        if attempt > self.max_retries:
            return False
        if error.retryable is not None:
            return error.retryable
        return error.reason in self.retry_on

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


def _failure_for_status(status_code: int, provider: str) -> ProviderError | None:
    """Map an HTTP status to a provider failure (None for success)."""
    if status_code < 400:
        return None
    if status_code in (401, 403):
        return ProviderError(FailureReason.INVALID_KEY, f"{provider}: invalid or missing API key")
    if status_code == 404:
        return ProviderError(FailureReason.NOT_FOUND, f"{provider}: not found")
    if status_code == 429:
        return ProviderError(FailureReason.RATE_LIMITED, f"{provider}: rate limited")
    if status_code >= 500:
        return ProviderError(FailureReason.UPSTREAM_ERROR, f"{provider}: HTTP {status_code}")
    return ProviderError(
        FailureReason.UPSTREAM_ERROR, f"{provider}: HTTP {status_code}", retryable=False
    )


class ProviderClient:
    """
    Shared HTTP plumbing for provider adapters.

    Owns the httpx client, the per-request timeout, the retry policy and the
    optional rate-limiter bucket. Adapters implement their operations as
    coroutines that raise ProviderError and wrap them with `call()`.
    """

    name: str = "provider"
    limiter_id: str | None = None

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        retry: RetryPolicy | None = None,
        limiters: RateLimiters | None = None,
        http: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.limiters = limiters
        self.client = http or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)

    def require_key(self) -> str:
        if not self.api_key:
            raise ProviderError(
                FailureReason.INVALID_KEY, f"{self.name}: API key not configured"
            )
        return self.api_key

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET a JSON document, raising ProviderError on any failure."""
        if self.limiters is not None and self.limiter_id:
            await self.limiters.acquire(self.limiter_id)

        try:
            response = await self.client.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise ProviderError(FailureReason.TIMEOUT, f"{self.name}: timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(FailureReason.UPSTREAM_ERROR, f"{self.name}: {e}") from e

        failure = _failure_for_status(response.status_code, self.name)
        if failure is not None:
            raise failure

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                FailureReason.PARSE_ERROR, f"{self.name}: response is not JSON"
            ) from e

    async def call(
        self,
        operation: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> ProviderResult[T]:
        """Run an adapter coroutine under the retry policy, returning data not exceptions."""
        log_provider_call(self.name, operation, {"args": args, **kwargs})

        attempt = 0
        while True:
            attempt += 1
            try:
                value = await fn(*args, **kwargs)
            except ProviderError as e:
                if self.retry.should_retry(e, attempt):
                    delay = self.retry.delay(attempt)
                    log(
                        "providers",
                        f"Retrying {self.name}.{operation}",
                        reason=e.reason.value,
                        attempt=attempt,
                        delay=delay,
                    )
                    await self._sleep(delay)
                    continue
                log_provider_result(self.name, operation, e.reason.value, attempt, e.message)
                return ProviderResult.failed(e.reason, e.message, source=self.name, attempts=attempt)
            except (KeyError, TypeError, ValueError, AttributeError, IndexError) as e:
                # Vendor payload did not have the shape the adapter expected
                message = f"{self.name}: unexpected response shape ({e})"
                log_provider_result(self.name, operation, "parse_error", attempt, message)
                return ProviderResult.failed(
                    FailureReason.PARSE_ERROR, message, source=self.name, attempts=attempt
                )

            log_provider_result(self.name, operation, "ok", attempt)
            return ProviderResult.ok(value, source=self.name, attempts=attempt)


def to_number(value: Any) -> float | None:
    """Coerce a vendor value ("1,234.5", "12.3%", None, "None") into a float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "").rstrip("%")
        if cleaned in ("", "-", "None", "null", "N/A"):
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def ensure_number(value: Any, default: float = 0.0) -> float:
    """Like to_number, but never returns None."""
    number = to_number(value)
    return default if number is None else number
