"""Timeline export stage.

Per task:

    LOOKUP_LOCAL --found--> NORMALIZE_WRITE --> WRITTEN_LOCAL
    LOOKUP_LOCAL --absent--> FETCH_UPSTREAM --frames--> NORMALIZE_WRITE --> WRITTEN_UPSTREAM
    FETCH_UPSTREAM --empty/absent--> SKIPPED
    any step --error--> FAILED

A local document only counts as found when it has at least one frame.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional, Protocol

from ..models import MatchExportResult, Provenance, TimelineOutcome, TimelineRecord
from .match_worker import RecordWriter, utc_now
from .normalize import normalize_timeline
from .partitioning import timeline_key
from .progress import ExportResult

logger = logging.getLogger(__name__)


class TimelineDocumentSource(Protocol):
    def get_timeline(self, match_id: str) -> Optional[dict[str, Any]]: ...


class UpstreamTimelineFetcher(Protocol):
    def fetch(self, match_id: str) -> Optional[TimelineRecord]: ...


class TimelineExportWorker:
    """Resolves and writes one timeline per ``process`` call."""

    def __init__(
        self,
        source: TimelineDocumentSource,
        store: RecordWriter,
        upstream: Optional[UpstreamTimelineFetcher],
        result: ExportResult,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the worker.

        Args:
            source: Local timeline store
            store: Object store writer
            upstream: Retrying upstream client; None disables the API fallback
            result: Shared run counters
            clock: Source of export timestamps
        """
        self.source = source
        self.store = store
        self.upstream = upstream
        self.result = result
        self.clock = clock

    def resolve(self, match_id: str) -> Optional[TimelineRecord]:
        """Find a non-empty timeline locally, then upstream.

        Raises:
            Exception: Local lookup errors and exhausted upstream retries
        """
        doc = self.source.get_timeline(match_id)
        if doc is not None:
            local = TimelineRecord.from_document(match_id, doc, Provenance.LOCAL_STORE)
            if local.has_frames:
                return local
            logger.debug(f"Local timeline for {match_id} has no frames")

        if self.upstream is None:
            return None

        remote = self.upstream.fetch(match_id)
        if remote is not None and remote.has_frames:
            return remote
        return None

    def process(self, task: MatchExportResult) -> TimelineOutcome:
        match_id = task.match_id
        error: Optional[BaseException] = None

        try:
            timeline = self.resolve(match_id)
            if timeline is None:
                outcome = TimelineOutcome.SKIPPED
                logger.debug(f"No timeline available for {match_id}")
            else:
                key = timeline_key(task.season, task.patch, task.queue, match_id)
                self.store.write_record(key, normalize_timeline(timeline, task, now=self.clock()))
                if timeline.source is Provenance.LOCAL_STORE:
                    outcome = TimelineOutcome.WRITTEN_LOCAL
                else:
                    outcome = TimelineOutcome.WRITTEN_UPSTREAM
                logger.debug(f"Exported timeline {match_id} ({timeline.source.value}) -> {key}")

        except Exception as e:
            error = e
            outcome = TimelineOutcome.FAILED
            logger.error(f"Timeline processing failed for {match_id}: {e}")

        self.result.record_timeline(outcome, match_id, error)
        return outcome
