"""Async HTTP transport for the bloc REST store.

Each request goes through the full lifecycle:

1. Wait for a pacer slot.
2. Send the HTTP request with the bearer token.
3. On ``2xx`` -- return the parsed JSON response.
4. On ``429`` -- honour ``Retry-After``, sleep, and retry.
5. On ``5xx`` / network error -- exponential backoff and retry for
   ``GET`` and ``PATCH``; raise at once for ``POST`` and ``DELETE``
   (see :mod:`blocsync.store.retries`).
6. On non-retryable ``4xx`` -- raise the appropriate typed error immediately.
7. On max attempts exceeded -- raise :class:`BlocSyncRetryExhaustedError`.
"""

from __future__ import annotations

import asyncio
import json as _json
import sys
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from blocsync.config import BlocSyncConfig
from blocsync.errors import (
    BlocSyncAuthError,
    BlocSyncNetworkError,
    BlocSyncNotFoundError,
    BlocSyncPersistenceError,
    BlocSyncRetryExhaustedError,
    BlocSyncValidationError,
)
from blocsync.observability import get_logger, resolve_metrics
from blocsync.utils.redact import redact

from .rate_limit import RequestPacer
from .retries import RetryPolicy, is_transient_status

log = get_logger("blocsync.transport")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    """Raise the :class:`BlocSyncError` subclass for a non-retryable 4xx."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("message", response.text[:500])

    if status in (401, 403):
        raise BlocSyncAuthError(
            message=f"Not authorized for {method} {path}: {message}",
            context={"status_code": status, "operation": f"{method} {path}"},
        )
    if status == 404:
        raise BlocSyncNotFoundError(
            message=f"Resource not found on {method} {path}: {message}",
            context={"status_code": status, "path": path},
        )
    raise BlocSyncValidationError(
        message=f"Client error {status} on {method} {path}: {message}",
        context={"status_code": status, "body": body},
    )


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
    token: str | None = None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {"method": method, "url": url}
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(_json.dumps(redact(dump, token), indent=2, default=str), file=sys.stderr)


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class AsyncBlocTransport:
    """Asynchronous HTTP transport with auth, retry, and rate limiting.

    Parameters
    ----------
    config:
        A :class:`BlocSyncConfig` controlling all transport behaviour.
    transport:
        Optional ``httpx`` transport, e.g. :class:`httpx.MockTransport` in
        tests.
    """

    def __init__(
        self,
        config: BlocSyncConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._pacer = RequestPacer(config.rate_limit_rps, burst=10)
        self._retry = RetryPolicy.from_config(config)
        self._metrics = resolve_metrics(config)

        headers = {"Content-Type": "application/json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
            transport=transport,
        )

    # -- public API --------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute an HTTP request against the store.

        Parameters
        ----------
        method:
            HTTP method (``GET``, ``POST``, ``PATCH``, ``DELETE``).
        path:
            Path relative to ``base_url`` (e.g. ``/blocs``).
        **kwargs:
            Forwarded to :meth:`httpx.AsyncClient.request`.

        Returns
        -------
        Any
            Parsed JSON response body, or ``{}`` for an empty body.

        Raises
        ------
        BlocSyncAuthError
            On 401 and 403 responses.
        BlocSyncNotFoundError
            On 404 responses.
        BlocSyncValidationError
            On 400 and other non-retryable 4xx responses.
        BlocSyncRetryExhaustedError
            When all retry attempts have been exhausted.
        BlocSyncNetworkError
            On transport-level failures that cannot be retried.
        BlocSyncPersistenceError
            On a server error that may not be resent for *method*.
        """
        max_attempts = self._config.retry_max_attempts
        last_status: int | None = None

        for attempt in range(max_attempts):
            wait = await self._pacer.wait()
            if wait > 0:
                self._metrics.timing(
                    "blocsync.rate_limit_wait_ms",
                    wait * 1000,
                    tags={"method": method, "path": path},
                )

            t0 = time.monotonic()
            try:
                response = await self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                await asyncio.sleep(self._handle_network_exception(method, path, exc, attempt))
                continue
            elapsed_ms = (time.monotonic() - t0) * 1000

            last_status = response.status_code
            tags = {"method": method, "path": path, "status": str(response.status_code)}
            self._metrics.increment("blocsync.requests_total", tags=tags)
            self._metrics.timing("blocsync.request_duration_ms", elapsed_ms, tags=tags)

            if self._config.debug_dump_payload:
                self._debug_dump(method, response, kwargs.get("json"))

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            if response.status_code < 500 and not is_transient_status(response.status_code):
                _raise_for_status(response, method, path)

            if not self._retry.resendable(method, status_code=response.status_code):
                # The store may have applied a create or delete; do not resend it.
                raise BlocSyncPersistenceError(
                    f"Server error {response.status_code} on {method} {path}",
                    context={"operation": f"{method} {path}", "status": response.status_code},
                )
            if not self._retry.allows(method, attempt, status_code=response.status_code):
                break

            retry_after: float | None = None
            reason = "server_error"
            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                reason = "rate_limited"
                log.warning(
                    "Rate limited by bloc store",
                    extra={
                        "extra_fields": {
                            "op": "request",
                            "method": method,
                            "path": path,
                            "status_code": 429,
                            "retry_after": retry_after,
                            "attempt": attempt + 1,
                        }
                    },
                )

            delay = self._retry.delay(attempt, retry_after)
            self._metrics.increment(
                "blocsync.retries_total",
                tags={"method": method, "path": path, "reason": reason},
            )
            await asyncio.sleep(delay)

        # Network errors raise from _handle_network_exception; only statuses get here.
        raise BlocSyncRetryExhaustedError(
            message=(
                f"All {max_attempts} attempts exhausted for {method} {path} "
                f"(last status: {last_status})"
            ),
            context={"attempts": max_attempts, "last_status_code": last_status},
        )

    async def paginate(self, path: str, **kwargs: Any) -> AsyncIterator[dict]:
        """Yield every item of a cursor-paginated ``GET`` endpoint.

        The endpoint answers ``{"results": [...], "has_more": bool,
        "next_cursor": str | None}`` and accepts ``cursor`` and
        ``page_size`` query parameters.
        """
        params: dict[str, Any] = dict(kwargs.pop("params", None) or {})
        params["page_size"] = 100
        while True:
            data = await self.request("GET", path, params=params, **kwargs)
            for item in data.get("results", []):
                yield item
            cursor = data.get("next_cursor")
            if not data.get("has_more", False) or cursor is None:
                break
            params["cursor"] = cursor

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncBlocTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    def _handle_network_exception(
        self,
        method: str,
        path: str,
        exc: Exception,
        attempt: int,
    ) -> float:
        """Return the backoff delay, or raise when no retry is left."""
        self._metrics.increment(
            "blocsync.requests_total",
            tags={"method": method, "path": path, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={
                "extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": path,
                    "attempt": attempt + 1,
                    "error": str(exc),
                }
            },
        )
        if self._retry.allows(method, attempt, error=exc):
            self._metrics.increment(
                "blocsync.retries_total",
                tags={"method": method, "path": path, "reason": "network_error"},
            )
            return self._retry.delay(attempt)
        raise BlocSyncNetworkError(
            message=f"Network error on {method} {path}: {exc}",
            context={"url": path, "attempt": attempt + 1},
            cause=exc,
        ) from exc

    def _debug_dump(self, method: str, response: httpx.Response, payload: Any) -> None:
        try:
            body = response.json()
        except ValueError:
            body = response.text[:1000]
        _dump_payload(
            method, str(response.url), payload,
            response.status_code, body,
            token=self._config.token,
        )
