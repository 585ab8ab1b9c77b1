"""HTTP retry helper for upstream position fetches.

Retries only on transient server errors and rate limits. Never retries
client errors (401, 403, 404, 422) which indicate auth/config problems.
A ``deadline`` bounds the whole attempt sequence so a polling tick cannot
be held hostage by backoff sleeps.

Usage:
    from vesselwatch.utils.http_retry import retry_request

    resp = retry_request(client.get, url, params=params, deadline=20.0)
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_EXCEPTIONS = (httpx.ConnectError, httpx.TimeoutException)

# Short backoff: the next polling tick is the real retry
DEFAULT_DELAYS: list[float] = [1, 3]


def retry_request(
    request_fn: Callable[..., httpx.Response],
    *args: Any,
    delays: list[float] | None = None,
    deadline: float | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Call an httpx request function, retrying transient failures.

    Args:
        request_fn: Bound method like ``client.get``.
        *args: Positional args forwarded to request_fn (typically the URL).
        delays: Backoff delays in seconds between attempts. Default [1, 3].
        deadline: Seconds from now after which no further retry is scheduled;
            the last failure is raised instead. None = no budget.
        **kwargs: Keyword args forwarded to request_fn.

    Raises:
        httpx.HTTPStatusError: On non-retryable statuses, or a retryable one
            once retries or the deadline are exhausted.
        httpx.ConnectError / httpx.TimeoutException: Once retries are exhausted.
    """
    if delays is None:
        delays = DEFAULT_DELAYS
    give_up_at = time.monotonic() + deadline if deadline is not None else None

    for attempt in range(1 + len(delays)):
        last_attempt = attempt >= len(delays)
        try:
            resp = request_fn(*args, **kwargs)
        except _RETRYABLE_EXCEPTIONS as exc:
            if last_attempt or not _has_budget(give_up_at, delays[attempt]):
                raise
            _log_retry(type(exc).__name__, args, delays[attempt], attempt, len(delays))
            time.sleep(delays[attempt])
            continue

        if resp.status_code < 400:
            return resp
        if resp.status_code not in _RETRYABLE_STATUS_CODES or last_attempt:
            resp.raise_for_status()

        delay = delays[attempt]
        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                try:
                    delay = max(delay, float(retry_after))
                except (ValueError, TypeError):
                    pass
        if not _has_budget(give_up_at, delay):
            resp.raise_for_status()
        _log_retry(f"HTTP {resp.status_code}", args, delay, attempt, len(delays))
        time.sleep(delay)

    raise RuntimeError("retry_request exhausted retries without result")


def _has_budget(give_up_at: float | None, delay: float) -> bool:
    return give_up_at is None or time.monotonic() + delay < give_up_at


def _log_retry(reason: str, args: tuple, delay: float, attempt: int, total: int) -> None:
    logger.warning(
        "%s from %s — retrying in %.0fs (attempt %d/%d)",
        reason,
        _url_for_log(args),
        delay,
        attempt + 1,
        total,
    )


def _url_for_log(args: tuple) -> str:
    """Extract a loggable URL from request args."""
    if args and isinstance(args[0], (str, httpx.URL)):
        return str(args[0])[:120]
    return "<unknown>"
