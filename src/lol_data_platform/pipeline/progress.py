"""Progress and error tracking for export runs.

Counters are updated concurrently by worker threads; everything here is
observational and never gates what gets written.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import psutil

from ..models import TimelineOutcome
from .pool import WorkerPool

logger = logging.getLogger(__name__)

DEFAULT_ERROR_SAMPLE_SIZE = 10


@dataclass
class ExportResult:
    """Counters and sampled errors for one export run."""

    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    # Match stage
    processed: int = 0  # ids read from the cursor
    duplicates: int = 0
    matches_written: int = 0
    matches_missing: int = 0
    matches_disallowed: int = 0
    failed: int = 0  # match-stage failures

    # Timeline stage
    timelines_local: int = 0
    timelines_upstream: int = 0
    timelines_skipped: int = 0
    timelines_failed: int = 0

    batches: int = 0

    # First N error messages only
    errors: list[str] = field(default_factory=list)
    error_sample_size: int = DEFAULT_ERROR_SAMPLE_SIZE

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return (datetime.now() - self.started_at).total_seconds()

    @property
    def timelines_written(self) -> int:
        return self.timelines_local + self.timelines_upstream

    @property
    def success_rate(self) -> float:
        """Percentage of read ids whose match stage did not fail."""
        if not self.processed:
            return 100.0
        return (self.processed - self.failed) / self.processed * 100

    @property
    def rate(self) -> float:
        """Ids read per second."""
        elapsed = self.duration_seconds
        return self.processed / elapsed if elapsed > 0 else 0.0

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def _sample(self, message: str) -> None:
        if len(self.errors) < self.error_sample_size:
            self.errors.append(message)

    def record_match_failure(self, match_id: str, error: BaseException) -> None:
        with self._lock:
            self.failed += 1
            self._sample(f"{match_id}: {error}")

    def record_timeline(
        self,
        outcome: TimelineOutcome,
        match_id: str = "",
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            if outcome is TimelineOutcome.WRITTEN_LOCAL:
                self.timelines_local += 1
            elif outcome is TimelineOutcome.WRITTEN_UPSTREAM:
                self.timelines_upstream += 1
            elif outcome is TimelineOutcome.SKIPPED:
                self.timelines_skipped += 1
            else:
                self.timelines_failed += 1
                if error is not None:
                    self._sample(f"{match_id} (timeline): {error}")

    def finish(self) -> None:
        self.finished_at = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "processed": self.processed,
                "duplicates": self.duplicates,
                "matches_written": self.matches_written,
                "matches_missing": self.matches_missing,
                "matches_disallowed": self.matches_disallowed,
                "failed": self.failed,
                "timelines_local": self.timelines_local,
                "timelines_upstream": self.timelines_upstream,
                "timelines_skipped": self.timelines_skipped,
                "timelines_failed": self.timelines_failed,
                "batches": self.batches,
                "success_rate": round(self.success_rate, 1),
                "duration_seconds": round(self.duration_seconds, 1),
                "errors": list(self.errors),
            }


def memory_usage_mb() -> float:
    """Resident set size of this process in MiB."""
    return psutil.Process().memory_info().rss / 1024 / 1024


def format_progress(
    result: ExportResult,
    match_pool: WorkerPool,
    timeline_pool: WorkerPool,
) -> str:
    """One-line progress report: counts, throughput, memory and pool depth."""
    return (
        f"processed={result.processed} "
        f"failed={result.failed} "
        f"success={result.success_rate:.1f}% "
        f"rate={result.rate:.1f}/s "
        f"elapsed={result.duration_seconds:.1f}s "
        f"mem={memory_usage_mb():.0f}MB "
        f"match_q={match_pool.status()} "
        f"timeline_q={timeline_pool.status()}"
    )


def log_summary(result: ExportResult) -> None:
    """Log the end-of-run summary with sampled errors."""
    logger.info(
        f"Export completed: total={result.processed} "
        f"matches={result.matches_written} "
        f"timelines={result.timelines_written} "
        f"(local={result.timelines_local}, upstream={result.timelines_upstream}) "
        f"skipped={result.timelines_skipped} "
        f"failed={result.failed} timeline_failed={result.timelines_failed} "
        f"success={result.success_rate:.1f}% "
        f"avg_rate={result.rate:.1f}/s "
        f"total_time={result.duration_seconds:.1f}s"
    )

    if result.errors:
        logger.warning(f"Some exports failed: count={result.failed + result.timelines_failed}")
        for i, sample in enumerate(result.errors, 1):
            logger.warning(f"  {i}. {sample}")
