"""Retry/backoff wrapper around the upstream timeline API.

Every call made through ``RetryingTimelineClient.fetch``:

1. Waits on a process-wide concurrency gate (held only while a request is in
   flight, never while backing off).
2. Classifies failures: network errors, timeouts and 429/502/503/504 are
   retried; 404 means "no timeline" and returns None; anything else is terminal.
3. Backs off exponentially: the delay before attempt k+1 is
   ``min(max_delay, base_delay * 2 ** (k - 1))``.
4. Re-raises the last error once ``max_retries`` retries are exhausted.
"""

import logging
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import UpstreamError
from ..models import TimelineRecord
from .config import RetryConfig

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

# Fallback for errors surfaced only as text by lower layers
RETRYABLE_MESSAGE_RE = re.compile(
    r"ECONNRESET|ETIMEDOUT|connection reset|timed out|\b(?:429|502|503|504)\b",
    re.IGNORECASE,
)
NOT_FOUND_MESSAGE_RE = re.compile(r"\b404\b")

BackoffHook = Callable[[str, int, float, BaseException], None]


class ErrorClass(str, Enum):
    """How the retry client reacts to an upstream failure."""

    RETRYABLE = "retryable"
    NOT_FOUND = "not_found"
    TERMINAL = "terminal"


def _classify_status(status_code: Optional[int]) -> Optional[ErrorClass]:
    if status_code is None:
        return None
    if status_code == 404:
        return ErrorClass.NOT_FOUND
    if status_code in RETRYABLE_STATUS_CODES:
        return ErrorClass.RETRYABLE
    return ErrorClass.TERMINAL


def classify_error(exc: BaseException) -> ErrorClass:
    """Classify an exception raised by an upstream call."""
    if isinstance(exc, httpx.HTTPStatusError):
        return _classify_status(exc.response.status_code) or ErrorClass.TERMINAL

    if isinstance(exc, UpstreamError):
        by_status = _classify_status(exc.status_code)
        if by_status:
            return by_status

    if isinstance(
        exc,
        (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError),
    ):
        return ErrorClass.RETRYABLE

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorClass.RETRYABLE

    message = str(exc)
    if RETRYABLE_MESSAGE_RE.search(message):
        return ErrorClass.RETRYABLE
    if NOT_FOUND_MESSAGE_RE.search(message):
        return ErrorClass.NOT_FOUND
    return ErrorClass.TERMINAL


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) is ErrorClass.RETRYABLE


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff schedule for one upstream call.

    ``max_retries`` counts retries, so a call makes at most
    ``max_retries + 1`` attempts.
    """

    max_retries: int = 5
    base_delay: float = 0.25
    max_delay: float = 10.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "BackoffPolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay to sleep after failed ``attempt`` (1-based) before the next one."""
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        try:
            return min(self.max_delay, self.base_delay * 2 ** (attempt - 1))
        except OverflowError:
            return self.max_delay

    def delays(self) -> list[float]:
        """Full delay schedule when every attempt fails retryably."""
        return [self.delay_for(attempt) for attempt in range(1, self.max_attempts)]

    def wait_strategy(self) -> wait_exponential:
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay, exp_base=2)


class TimelineSource(Protocol):
    def get_timeline(self, match_id: str) -> Optional[TimelineRecord]: ...


class RetryingTimelineClient:
    """Upstream timeline lookups with classification, backoff and a concurrency gate.

    Usage:
        >>> raw = RiotTimelineClient(api_key="RGAPI-...", region="europe")
        >>> client = RetryingTimelineClient(raw, BackoffPolicy(), concurrency=20)
        >>> timeline = client.fetch("EUW1_7000000000")  # TimelineRecord or None
    """

    def __init__(
        self,
        client: TimelineSource,
        policy: Optional[BackoffPolicy] = None,
        concurrency: int = 20,
        sleep: Callable[[float], None] = time.sleep,
        on_backoff: Optional[BackoffHook] = None,
    ):
        """Initialize the retrying client.

        Args:
            client: Raw upstream client (one request per call)
            policy: Backoff schedule
            concurrency: Max simultaneous upstream requests across all threads
            sleep: Sleep function (tests inject a recorder)
            on_backoff: Called as ``hook(match_id, attempt, delay, error)`` before each sleep
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self.client = client
        self.policy = policy or BackoffPolicy()
        self.concurrency = concurrency
        self._gate = threading.BoundedSemaphore(concurrency)
        self._sleep = sleep
        self._on_backoff = on_backoff

        self._lock = threading.Lock()
        self._in_flight = 0
        self.stats = {
            "calls": 0,
            "retries": 0,
            "not_found": 0,
            "failures": 0,
        }

    @property
    def in_flight(self) -> int:
        """Requests currently holding the concurrency gate."""
        return self._in_flight

    def _count(self, key: str) -> None:
        with self._lock:
            self.stats[key] += 1

    def _attempt(self, match_id: str) -> Optional[TimelineRecord]:
        with self._gate:
            with self._lock:
                self._in_flight += 1
            try:
                return self.client.get_timeline(match_id)
            finally:
                with self._lock:
                    self._in_flight -= 1

    def _before_sleep(self, match_id: str) -> Callable[[RetryCallState], None]:
        def hook(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            self._count("retries")
            logger.warning(
                f"Upstream retry: matchId={match_id} "
                f"attempt={retry_state.attempt_number}/{self.policy.max_attempts} "
                f"backoff={delay:.2f}s error={exc}"
            )
            if self._on_backoff and exc is not None:
                self._on_backoff(match_id, retry_state.attempt_number, delay, exc)

        return hook

    def fetch(self, match_id: str) -> Optional[TimelineRecord]:
        """Fetch a timeline, retrying transient failures.

        Returns:
            TimelineRecord, or None when the upstream has no timeline for the match

        Raises:
            Exception: The last error, after retries are exhausted or on a terminal error
        """
        self._count("calls")
        retrying = Retrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait_strategy(),
            sleep=self._sleep,
            before_sleep=self._before_sleep(match_id),
            reraise=True,
        )

        try:
            timeline = retrying(self._attempt, match_id)
        except Exception as e:
            if classify_error(e) is ErrorClass.NOT_FOUND:
                self._count("not_found")
                logger.debug(f"Timeline not found upstream: matchId={match_id}")
                return None
            self._count("failures")
            logger.error(f"Upstream fetch failed: matchId={match_id} error={e}")
            raise

        if timeline is None:
            self._count("not_found")
        return timeline

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return self.stats.copy()
