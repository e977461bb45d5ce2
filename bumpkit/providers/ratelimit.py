"""Rate-limit bookkeeping driven by provider response headers."""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from ..context import Context
from ..exceptions import LLMError

logger = logging.getLogger(__name__)

HEADER_REMAINING_TOKENS = "x-ratelimit-remaining-tokens"
HEADER_REMAINING_REQUESTS = "x-ratelimit-remaining-requests"
HEADER_RESET_TOKENS = "x-ratelimit-reset-tokens"
HEADER_RESET_REQUESTS = "x-ratelimit-reset-requests"
HEADER_RETRY_AFTER = "retry-after"

DEFAULT_RETRY_AFTER = 5.0
# Approximate bytes-per-token ratio of a serialized request.
BYTES_PER_TOKEN = 4

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse ``"6m0s"``/``"20ms"``/``"1.5"`` style durations into seconds.

    Raises:
        ValueError: when ``value`` is not a recognisable duration.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass
    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def estimate_tokens(payload: bytes) -> int:
    return len(payload) // BYTES_PER_TOKEN


@dataclass
class RateLimitInfo:
    """Values read from one response; ``None`` means the header was absent."""

    remaining_tokens: Optional[int] = None
    remaining_requests: Optional[int] = None
    tokens_reset_in: Optional[float] = None
    requests_reset_in: Optional[float] = None


def _lookup(headers: Mapping[str, str], name: str) -> Optional[str]:
    # httpx.Headers is already case-insensitive; plain dicts are not.
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def parse_rate_limit_headers(headers: Mapping[str, str]) -> RateLimitInfo:
    """Read the ``x-ratelimit-*`` headers.

    Raises:
        LLMError: when a present header has an unparseable value.
    """
    info = RateLimitInfo()
    for attr, header in (
        ("remaining_tokens", HEADER_REMAINING_TOKENS),
        ("remaining_requests", HEADER_REMAINING_REQUESTS),
    ):
        raw = _lookup(headers, header)
        if raw is None:
            continue
        try:
            setattr(info, attr, int(raw))
        except ValueError as exc:
            raise LLMError(f"invalid {header} header") from exc
    for attr, header in (
        ("tokens_reset_in", HEADER_RESET_TOKENS),
        ("requests_reset_in", HEADER_RESET_REQUESTS),
    ):
        raw = _lookup(headers, header)
        if raw is None:
            continue
        try:
            setattr(info, attr, parse_duration(raw))
        except ValueError as exc:
            raise LLMError(f"invalid {header} header") from exc
    return info


def parse_retry_after(headers: Mapping[str, str]) -> float:
    """Return the server's ``Retry-After`` in seconds, or the default."""
    raw = _lookup(headers, HEADER_RETRY_AFTER)
    if raw is None:
        return DEFAULT_RETRY_AFTER
    try:
        seconds = float(raw)
    except ValueError:
        logger.warning("Ignoring unparseable Retry-After header %r", raw)
        return DEFAULT_RETRY_AFTER
    if seconds < 0:
        logger.warning("Ignoring negative Retry-After header %r", raw)
        return DEFAULT_RETRY_AFTER
    return seconds


class RateLimitBudget:
    """Shared view of the provider's remaining request and token budget.

    Counts are ``-1`` until the first response carrying the headers is
    seen. All state is guarded by one lock; waiting happens outside it.
    """

    def __init__(self, clock=time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self.remaining_tokens = -1
        self.remaining_requests = -1
        self.tokens_reset_at = 0.0
        self.requests_reset_at = 0.0

    def update(self, info: RateLimitInfo) -> None:
        now = self._clock()
        with self._lock:
            if info.remaining_tokens is not None:
                self.remaining_tokens = info.remaining_tokens
            if info.remaining_requests is not None:
                self.remaining_requests = info.remaining_requests
            if info.tokens_reset_in is not None:
                self.tokens_reset_at = now + info.tokens_reset_in
            if info.requests_reset_in is not None:
                self.requests_reset_at = now + info.requests_reset_in

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Apply response headers; unparseable headers only log a warning."""
        try:
            info = parse_rate_limit_headers(headers)
        except LLMError as exc:
            logger.warning("Failed to parse rate limit headers: %s", exc)
            return
        self.update(info)

    def wait_time(self, estimated_tokens: int) -> float:
        """Seconds to wait before a request of ``estimated_tokens`` may go out."""
        now = self._clock()
        with self._lock:
            wait = 0.0
            if self.remaining_requests == 0:
                wait = max(wait, self.requests_reset_at - now)
            if 0 <= self.remaining_tokens < estimated_tokens:
                wait = max(wait, self.tokens_reset_at - now)
            if self.remaining_tokens >= 0:
                logger.debug(
                    "Rate limit status: tokens=%d requests=%d",
                    self.remaining_tokens,
                    self.remaining_requests,
                )
        return max(0.0, wait)

    def wait_for_capacity(self, estimated_tokens: int, ctx: Context) -> None:
        wait = self.wait_time(estimated_tokens)
        if wait > 0:
            logger.info(
                "Waiting %.1fs for rate limit reset (estimated %d tokens)",
                wait,
                estimated_tokens,
            )
            ctx.sleep(wait, "rate limit wait")


_SHARED_LOCK = threading.Lock()
_SHARED_BUDGETS: dict = {}


def shared_budget(key: str = "") -> RateLimitBudget:
    """Return the process-wide budget for one provider endpoint.

    Drivers talking to the same ``base_url`` see one budget, so concurrent
    workflows account against the same ``x-ratelimit-*`` figures.
    """
    key = key.rstrip("/")
    with _SHARED_LOCK:
        budget = _SHARED_BUDGETS.get(key)
        if budget is None:
            budget = RateLimitBudget()
            _SHARED_BUDGETS[key] = budget
        return budget


def clear_shared_budgets() -> None:
    with _SHARED_LOCK:
        _SHARED_BUDGETS.clear()
