"""Match export stage.

For one match id: load the full document just-in-time, enforce the queue
allow-list, write the bronze match object, and hand partition metadata on to
the timeline stage. Nothing raised here escapes ``process``.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from ..models import MatchExportResult
from .normalize import normalize_match
from .partitioning import is_allowed_queue, match_key
from .progress import ExportResult

logger = logging.getLogger(__name__)


class MatchDocumentSource(Protocol):
    def get_match(self, match_id: str) -> Optional[dict[str, Any]]: ...


class RecordWriter(Protocol):
    def write_record(self, key: str, record: dict[str, Any]) -> int: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MatchExportWorker:
    """Exports one match per ``process`` call; safe to share across threads."""

    def __init__(
        self,
        source: MatchDocumentSource,
        store: RecordWriter,
        result: ExportResult,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.source = source
        self.store = store
        self.result = result
        self.clock = clock

    def process(self, match_id: str) -> Optional[MatchExportResult]:
        """Export one match.

        Returns:
            Partition metadata for the timeline stage, or None if the match was
            missing, not in an allowed queue, or failed
        """
        try:
            doc = self.source.get_match(match_id)
            if doc is None:
                self.result.increment("matches_missing")
                logger.debug(f"Match document missing: {match_id}")
                return None

            # Authoritative allow-list gate, independent of the store filter.
            # Checked on the raw document so malformed disallowed matches are never parsed.
            queue = (doc.get("info") or {}).get("queueId")
            if not is_allowed_queue(queue):
                self.result.increment("matches_disallowed")
                logger.debug(f"Skipping match {match_id}: queue {queue} not allowed")
                return None

            record = normalize_match(doc, now=self.clock())

            key = match_key(record["season"], record["patch"], record["queue"], record["matchId"])
            self.store.write_record(key, record)
            self.result.increment("matches_written")
            logger.debug(f"Exported match {match_id} -> {key}")

            return MatchExportResult(
                match_id=record["matchId"],
                season=record["season"],
                patch=record["patch"],
                queue=record["queue"],
            )

        except Exception as e:
            self.result.record_match_failure(match_id, e)
            logger.error(f"Match export failed for {match_id}: {e}")
            return None
