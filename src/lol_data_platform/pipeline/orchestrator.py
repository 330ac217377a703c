"""Batch driver for the match/timeline lake export.

Orchestrates the flow:
    match id cursor → match export pool → timeline export pool → object store

Memory stays bounded by the batch size and pool concurrency rather than the
corpus size: the cursor projects only match ids, full documents are loaded
just-in-time by workers, and each batch array is cleared after dispatch.
Repeated ids are only dropped within the open batch; a repeat across batches
rewrites the same deterministic key.

Backpressure: the driver waits for every match-stage task of a batch before
reading further. Timeline tasks are handed off without waiting and drained
once at the end of the run (optionally throttled by a high watermark).
"""

import logging
import time
from collections.abc import Callable, Iterator
from concurrent.futures import as_completed
from datetime import datetime
from typing import Optional, Protocol

from ..ingestion.config import ExporterConfig, ExportSettings
from ..models import ExportFilters
from .match_worker import (
    MatchDocumentSource,
    MatchExportWorker,
    RecordWriter,
    utc_now,
)
from .pool import WorkerPool
from .progress import ExportResult, format_progress, log_summary
from .timeline_worker import (
    TimelineDocumentSource,
    TimelineExportWorker,
    UpstreamTimelineFetcher,
)

logger = logging.getLogger(__name__)


class MatchIdSource(Protocol):
    def iter_match_ids(self, filters: ExportFilters, batch_size: int = 100) -> Iterator[str]: ...


class ExportSource(MatchIdSource, MatchDocumentSource, TimelineDocumentSource, Protocol):
    """Everything the exporter reads from the operational store."""


class ExportOrchestrator:
    """Streams match ids in bounded batches through both worker pools.

    Usage:
        >>> orchestrator = ExportOrchestrator(source, store, upstream, settings)
        >>> result = orchestrator.run(ExportFilters(season=2025, patch_bucket="15.18"))
        >>> print(result.matches_written, result.timelines_written)
    """

    def __init__(
        self,
        source: ExportSource,
        store: RecordWriter,
        upstream: Optional[UpstreamTimelineFetcher] = None,
        settings: Optional[ExportSettings] = None,
        timeline_concurrency: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the orchestrator.

        Args:
            source: Match id cursor plus match/timeline document lookups
            store: Object store writer
            upstream: Retrying upstream timeline client (None disables fallback)
            settings: Batch and pool tuning
            timeline_concurrency: Timeline pool size (defaults to settings, then match concurrency)
            clock: Source of export timestamps
        """
        self.source = source
        self.store = store
        self.upstream = upstream
        self.settings = settings or ExportSettings()
        self.timeline_concurrency = (
            timeline_concurrency
            or self.settings.timeline_concurrency
            or self.settings.match_concurrency
        )
        self.clock = clock

    def run(self, filters: Optional[ExportFilters] = None) -> ExportResult:
        """Run one export.

        Per-task failures are counted in the result. Only cursor failures
        propagate.

        Raises:
            SourceCursorError: If the match id cursor fails
        """
        filters = filters or ExportFilters()
        settings = self.settings
        result = ExportResult(error_sample_size=settings.error_sample_size)

        logger.info(
            f"Starting export: batch_size={settings.batch_size} "
            f"match_concurrency={settings.match_concurrency} "
            f"timeline_concurrency={self.timeline_concurrency} "
            f"upstream_fallback={'on' if self.upstream else 'off'}"
        )
        if not filters.is_empty:
            logger.info(f"Filters: {filters}")

        match_pool = WorkerPool("match", settings.match_concurrency)
        timeline_pool = WorkerPool("timeline", self.timeline_concurrency)
        match_worker = MatchExportWorker(self.source, self.store, result, clock=self.clock)
        timeline_worker = TimelineExportWorker(
            self.source, self.store, self.upstream, result, clock=self.clock
        )

        completed = False
        try:
            batch: list[str] = []
            # Scoped to the open batch so memory does not grow with the corpus
            batch_ids: set[str] = set()

            for match_id in self.source.iter_match_ids(filters, settings.batch_size):
                if match_id in batch_ids:
                    result.increment("duplicates")
                    continue
                batch_ids.add(match_id)
                batch.append(match_id)
                result.increment("processed")

                at_checkpoint = result.processed % settings.progress_interval == 0
                if len(batch) >= settings.batch_size or at_checkpoint:
                    self._dispatch(batch, match_pool, timeline_pool, match_worker, timeline_worker, result)
                    batch = []
                    batch_ids.clear()

                if at_checkpoint:
                    logger.info(f"Progress: {format_progress(result, match_pool, timeline_pool)}")

            if batch:
                self._dispatch(batch, match_pool, timeline_pool, match_worker, timeline_worker, result)
                batch = []

            logger.info(
                f"Waiting for timeline queue to complete "
                f"(running/queued={timeline_pool.status()})"
            )
            timeline_pool.wait_idle()
            completed = True

        finally:
            match_pool.shutdown(cancel_pending=not completed)
            timeline_pool.shutdown(cancel_pending=not completed)

        result.finish()
        log_summary(result)
        return result

    def _dispatch(
        self,
        batch: list[str],
        match_pool: WorkerPool,
        timeline_pool: WorkerPool,
        match_worker: MatchExportWorker,
        timeline_worker: TimelineExportWorker,
        result: ExportResult,
    ) -> None:
        """Run one batch through the match stage, handing successes to the timeline pool."""
        started = time.monotonic()

        futures = [match_pool.submit(match_worker.process, match_id) for match_id in batch]
        for future in as_completed(futures):
            task = future.result()
            if task is not None:
                # Not awaited: timeline latency must not hold back the next batch
                timeline_pool.submit(timeline_worker.process, task)

        result.increment("batches")
        duration = time.monotonic() - started
        rate = len(batch) / duration if duration > 0 else 0.0
        logger.debug(
            f"Batch processed: size={len(batch)} duration={duration * 1000:.0f}ms rate={rate:.1f}/s "
            f"timeline_q={timeline_pool.status()}"
        )

        watermark = self.settings.timeline_high_watermark
        if watermark is not None and timeline_pool.outstanding > watermark:
            logger.info(
                f"Timeline backlog {timeline_pool.outstanding} above watermark {watermark}, pausing"
            )
            timeline_pool.wait_below(watermark)


def create_orchestrator(config: ExporterConfig) -> tuple[ExportOrchestrator, Callable[[], None]]:
    """Build an orchestrator wired to MongoDB, S3 and the Riot API.

    Returns:
        Tuple of (orchestrator, close). Call ``close()`` when the run is done.
    """
    from ..ingestion.client import RiotTimelineClient
    from ..ingestion.retry import BackoffPolicy, RetryingTimelineClient
    from ..storage import MongoMatchSource, S3ObjectStore

    source = MongoMatchSource.from_config(config.source)
    store = S3ObjectStore.from_config(config.object_store)

    raw_client: Optional[RiotTimelineClient] = None
    upstream: Optional[RetryingTimelineClient] = None
    if config.upstream.enabled:
        raw_client = RiotTimelineClient.from_config(config.upstream)
        upstream = RetryingTimelineClient(
            raw_client,
            BackoffPolicy.from_config(config.upstream.retry),
            concurrency=config.upstream.concurrency,
        )
    else:
        logger.warning("RIOT_API_KEY not set: timelines missing locally will be skipped")

    orchestrator = ExportOrchestrator(
        source=source,
        store=store,
        upstream=upstream,
        settings=config.export,
        timeline_concurrency=config.timeline_concurrency,
    )

    def close() -> None:
        if raw_client:
            raw_client.close()
        source.close()

    return orchestrator, close
