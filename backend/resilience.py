"""
Resilience patterns for Horizon News.
Implements HTTP fetching with per-attempt timeouts and exponential backoff.
"""

import asyncio
import dataclasses
import json as jsonlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx
import requests
import urllib3

from config import settings
from exceptions import FetchError, FetchTimeoutError, PayloadDecodeError
from logging_config import get_metrics_logger

logger = logging.getLogger(__name__)
metrics = get_metrics_logger()

# Sent on every attempt so retries never observe a cached response
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

# Upper bound for a single body read in the blocking fetcher
READ_CHUNK_SIZE = 8192


# =============================================================================
# Retry Configuration
# =============================================================================

@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = field(default_factory=lambda: settings().retry_max_attempts)
    base_delay: float = field(default_factory=lambda: settings().retry_base_delay)
    max_delay: Optional[float] = field(default_factory=lambda: settings().retry_max_delay)
    exponential_base: float = field(default_factory=lambda: settings().retry_exponential_base)
    timeout: float = field(default_factory=lambda: settings().fetch_timeout)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.base_delay <= 0:
            raise ValueError(f"base_delay must be positive, got {self.base_delay}")
        if self.max_delay is not None and self.max_delay <= 0:
            raise ValueError(f"max_delay must be positive, got {self.max_delay}")


@dataclass
class FetchAttempt:
    """Outcome of one execution of the underlying request."""

    index: int
    timeout: float
    duration_ms: float
    error: Optional[FetchError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the wait after a failed attempt using exponential backoff.

    Args:
        attempt: Index of the attempt that just failed (0-based)
        config: Retry configuration

    Returns:
        Delay in seconds, capped by ``max_delay`` only when one is set
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    if config.max_delay is not None:
        delay = min(delay, config.max_delay)
    return delay


def _resolve_config(
    config: Optional[RetryConfig],
    max_attempts: Optional[int],
    timeout: Optional[float],
) -> RetryConfig:
    retry_config = config or RetryConfig()
    overrides: dict[str, Any] = {}
    if max_attempts is not None:
        overrides["max_attempts"] = max(1, max_attempts)
    if timeout is not None:
        overrides["timeout"] = timeout
    if overrides:
        retry_config = dataclasses.replace(retry_config, **overrides)
    return retry_config


def _request_headers(headers: Optional[dict[str, str]]) -> dict[str, str]:
    merged = dict(headers or {})
    merged.update(NO_CACHE_HEADERS)
    return merged


def _check_url(url: str) -> None:
    if not url or not url.strip():
        raise ValueError("url must be a non-empty string")


def _check_status(status_code: int, url: str, attempt: int) -> None:
    if not 200 <= status_code < 300:
        raise FetchError(
            f"HTTP error! status: {status_code}",
            url=url,
            attempt=attempt,
            status_code_received=status_code,
        )


def _decode_error(e: ValueError, status_code: int, url: str, attempt: int) -> PayloadDecodeError:
    return PayloadDecodeError(
        f"Malformed JSON payload: {e}",
        url=url,
        attempt=attempt,
        status_code_received=status_code,
    )


def _timeout_error(timeout: float, url: str, attempt: int) -> FetchTimeoutError:
    return FetchTimeoutError(
        f"Request timed out after {timeout}s", url=url, attempt=attempt
    )


# =============================================================================
# Attempt Bookkeeping
# =============================================================================

class _AttemptLog:
    """
    Attempt history, verbose logging and metrics shared by both fetchers.

    The fetch loops only run attempts and sleep; everything they report
    goes through here so the async and blocking forms log the same lines.
    """

    def __init__(
        self,
        method: str,
        url: str,
        config: RetryConfig,
        verbose: bool,
        on_retry: Optional[Callable[[int, FetchError, float], None]],
    ):
        self.method = method
        self.url = url
        self.config = config
        self.verbose = verbose
        self.on_retry = on_retry
        self.attempts: list[FetchAttempt] = []
        self.started = time.monotonic()
        self._attempt_started = self.started

    def begin(self, attempt: int) -> None:
        if self.verbose:
            logger.info(
                f"Fetching {self.method} {self.url} "
                f"(attempt {attempt + 1}/{self.config.max_attempts})"
            )
        self._attempt_started = time.monotonic()

    def _record(self, attempt: int, error: Optional[FetchError]) -> None:
        self.attempts.append(FetchAttempt(
            index=attempt,
            timeout=self.config.timeout,
            duration_ms=(time.monotonic() - self._attempt_started) * 1000,
            error=error,
        ))

    def failed(self, attempt: int, error: FetchError) -> Optional[float]:
        """Record a failed attempt; return the backoff delay, or None when out of attempts."""
        self._record(attempt, error)
        if self.verbose:
            logger.warning(
                f"Attempt {attempt + 1}/{self.config.max_attempts} "
                f"failed for {self.url}: {error.message}"
            )

        if attempt >= self.config.max_attempts - 1:
            return None

        delay = calculate_delay(attempt, self.config)
        if self.verbose:
            logger.info(f"Waiting {delay:.2f}s before retrying {self.url}")
        if self.on_retry:
            self.on_retry(attempt, error, delay)
        return delay

    def succeeded(self, attempt: int) -> None:
        self._record(attempt, None)
        if self.verbose:
            logger.info(f"Fetched {self.url} on attempt {attempt + 1}")
        metrics.log_fetch(
            method=self.method,
            url=self.url,
            attempts=len(self.attempts),
            success=True,
            duration_ms=(time.monotonic() - self.started) * 1000,
        )

    def terminal_error(self) -> FetchError:
        """Build the terminal failure from the last attempt."""
        last_error = self.attempts[-1].error
        if self.verbose:
            last_error.attempts = list(self.attempts)
            logger.error(f"All {len(self.attempts)} attempts failed for {self.url}")
        metrics.log_fetch(
            method=self.method,
            url=self.url,
            attempts=len(self.attempts),
            success=False,
            duration_ms=(time.monotonic() - self.started) * 1000,
            error=last_error.message,
        )
        return last_error


# =============================================================================
# Async Fetcher
# =============================================================================

async def _attempt_async(
    client: httpx.AsyncClient,
    url: str,
    attempt: int,
    timeout: float,
    method: str,
    headers: dict[str, str],
    json: Any,
    content: Any,
) -> Any:
    try:
        # wait_for cancels the in-flight request when the deadline passes
        response = await asyncio.wait_for(
            client.request(
                method,
                url,
                headers=headers,
                json=json,
                content=content,
                timeout=timeout,
            ),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise _timeout_error(timeout, url, attempt) from e
    except httpx.HTTPError as e:
        raise FetchError(f"Request failed: {e}", url=url, attempt=attempt) from e

    _check_status(response.status_code, url, attempt)
    try:
        return response.json()
    except ValueError as e:
        raise _decode_error(e, response.status_code, url, attempt) from e


async def fetch_with_retry(
    url: str,
    *,
    method: str = "GET",
    headers: Optional[dict[str, str]] = None,
    json: Any = None,
    content: Any = None,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    verbose: bool = False,
    config: Optional[RetryConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    on_retry: Optional[Callable[[int, FetchError, float], None]] = None,
) -> Any:
    """
    Fetch a JSON resource, retrying failed attempts with exponential backoff.

    Each attempt runs under its own deadline of ``timeout`` seconds and is
    cancelled when the deadline passes. After a failed attempt ``n``
    (0-based) the call sleeps ``base_delay * exponential_base ** n``
    before trying again, except after the final attempt.

    Args:
        url: Resource to request
        method: HTTP method
        headers: Extra request headers
        json: JSON body
        content: Raw body
        max_attempts: Attempt budget; values below 1 mean a single attempt
        timeout: Per-attempt timeout in seconds
        verbose: Log every attempt and attach the attempt history to the
            terminal error
        config: RetryConfig supplying defaults for the above
        client: Client to send requests with; a private one is opened
            when omitted
        on_retry: Called with (attempt, error, delay) before each backoff

    Returns:
        The decoded JSON payload of the first successful attempt

    Raises:
        FetchError: The last attempt's error once every attempt failed
        ValueError: For an empty url or a non-positive timeout
    """
    _check_url(url)
    retry_config = _resolve_config(config, max_attempts, timeout)

    if client is None:
        async with httpx.AsyncClient() as owned_client:
            return await _fetch_async(
                owned_client, url, method, headers, json, content,
                retry_config, verbose, on_retry,
            )
    return await _fetch_async(
        client, url, method, headers, json, content,
        retry_config, verbose, on_retry,
    )


async def _fetch_async(
    client: httpx.AsyncClient,
    url: str,
    method: str,
    headers: Optional[dict[str, str]],
    json: Any,
    content: Any,
    retry_config: RetryConfig,
    verbose: bool,
    on_retry: Optional[Callable[[int, FetchError, float], None]],
) -> Any:
    request_headers = _request_headers(headers)
    log = _AttemptLog(method, url, retry_config, verbose, on_retry)

    for attempt in range(retry_config.max_attempts):
        log.begin(attempt)
        try:
            payload = await _attempt_async(
                client, url, attempt, retry_config.timeout,
                method, request_headers, json, content,
            )
        except FetchError as e:
            delay = log.failed(attempt, e)
            if delay is None:
                break
            await asyncio.sleep(delay)
            continue

        log.succeeded(attempt)
        return payload

    raise log.terminal_error()


# =============================================================================
# Blocking Fetcher
# =============================================================================

def _limit_socket_wait(response: requests.Response, remaining: float) -> None:
    # Next recv may block no longer than what is left of the deadline
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        sock.settimeout(remaining)


def _read_body(
    response: requests.Response,
    deadline: float,
    url: str,
    attempt: int,
    timeout: float,
) -> bytes:
    """Read the streamed body, failing the attempt once the deadline passes."""
    chunks = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise _timeout_error(timeout, url, attempt)
        _limit_socket_wait(response, remaining)
        try:
            # read1 returns whatever a single socket read yields
            chunk = response.raw.read1(READ_CHUNK_SIZE, decode_content=True)
        except urllib3.exceptions.TimeoutError as e:
            raise _timeout_error(timeout, url, attempt) from e
        except urllib3.exceptions.HTTPError as e:
            raise FetchError(f"Request failed: {e}", url=url, attempt=attempt) from e
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _attempt_sync(
    url: str,
    attempt: int,
    timeout: float,
    method: str,
    headers: dict[str, str],
    json: Any,
    content: Any,
) -> Any:
    deadline = time.monotonic() + timeout
    try:
        response = requests.request(
            method,
            url,
            headers=headers,
            json=json,
            data=content,
            timeout=timeout,
            stream=True,
        )
    except requests.exceptions.Timeout as e:
        raise _timeout_error(timeout, url, attempt) from e
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Request failed: {e}", url=url, attempt=attempt) from e

    with response:
        _check_status(response.status_code, url, attempt)
        body = _read_body(response, deadline, url, attempt, timeout)

    try:
        return jsonlib.loads(body)
    except ValueError as e:
        raise _decode_error(e, response.status_code, url, attempt) from e


def fetch_with_retry_sync(
    url: str,
    *,
    method: str = "GET",
    headers: Optional[dict[str, str]] = None,
    json: Any = None,
    content: Any = None,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    verbose: bool = False,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, FetchError, float], None]] = None,
) -> Any:
    """
    Blocking variant of :func:`fetch_with_retry` built on ``requests``.

    Same retry, backoff, logging and error semantics. ``timeout`` bounds
    connecting and waiting for the response headers; the body is then
    streamed against what is left of the same deadline, so a server that
    trickles bytes fails the attempt with FetchTimeoutError once
    ``timeout`` seconds have passed.
    """
    _check_url(url)
    retry_config = _resolve_config(config, max_attempts, timeout)
    request_headers = _request_headers(headers)
    log = _AttemptLog(method, url, retry_config, verbose, on_retry)

    for attempt in range(retry_config.max_attempts):
        log.begin(attempt)
        try:
            payload = _attempt_sync(
                url, attempt, retry_config.timeout,
                method, request_headers, json, content,
            )
        except FetchError as e:
            delay = log.failed(attempt, e)
            if delay is None:
                break
            time.sleep(delay)
            continue

        log.succeeded(attempt)
        return payload

    raise log.terminal_error()
