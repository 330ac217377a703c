"""Data containers shared by the ingestion, storage and pipeline layers."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Provenance(str, Enum):
    """Where a timeline was resolved from."""

    LOCAL_STORE = "local-store"
    UPSTREAM_API = "upstream-api"


class TimelineOutcome(str, Enum):
    """Terminal state of one timeline export task."""

    WRITTEN_LOCAL = "written_local"
    WRITTEN_UPSTREAM = "written_upstream"
    SKIPPED = "skipped"  # not available locally or upstream
    FAILED = "failed"


@dataclass
class ExportFilters:
    """Source query filters for one export run.

    When ``queues`` is empty the allow-list is used instead. The allow-list is
    re-checked for every document regardless of what is requested here.
    """

    season: Optional[int] = None
    patch_bucket: Optional[str] = None
    queues: list[int] = field(default_factory=list)
    since_updated_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.season is None
            and not self.patch_bucket
            and not self.queues
            and self.since_updated_at is None
        )


@dataclass(frozen=True)
class MatchExportResult:
    """Partition metadata emitted by a successful match export.

    This is the hand-off from the match stage to the timeline stage.
    """

    match_id: str
    season: Optional[int]
    patch: str
    queue: Optional[int]


@dataclass
class TimelineRecord:
    """Frames of one match timeline with their provenance."""

    match_id: str
    frames: list[dict[str, Any]]
    source: Provenance

    @property
    def has_frames(self) -> bool:
        return bool(self.frames)

    @classmethod
    def from_document(
        cls,
        match_id: str,
        doc: Optional[dict[str, Any]],
        source: Provenance,
    ) -> "TimelineRecord":
        """Build a record from a raw timeline document.

        Accepts both ``{"info": {"frames": [...]}}`` and ``{"frames": [...]}``;
        anything else yields an empty frame list.
        """
        frames: Any = None
        if doc:
            frames = (doc.get("info") or {}).get("frames")
            if frames is None:
                frames = doc.get("frames")
        return cls(
            match_id=match_id,
            frames=frames if isinstance(frames, list) else [],
            source=source,
        )
