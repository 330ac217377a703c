"""Bronze record normalization.

Records stay as raw as possible: the payload (``info`` or ``frames``) is passed
through untouched and only a few top-level partition fields are added.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from ..models import MatchExportResult, TimelineRecord
from .partitioning import patch_bucket, season_from_timestamp

SCHEMA_VERSION = 1


def _exported_at(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def match_id_of(doc: dict[str, Any]) -> Optional[str]:
    return (doc.get("metadata") or {}).get("matchId")


def normalize_match(doc: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """Build the bronze match record from a raw match document.

    The ``patch`` field holds the bucketed version so it matches the
    ``patch=`` partition folder.

    Raises:
        ValueError: If the document has no match id
    """
    match_id = match_id_of(doc)
    if not match_id:
        raise ValueError("Match document has no metadata.matchId")

    info = doc.get("info") or {}
    return {
        "matchId": match_id,
        "season": season_from_timestamp(info.get("gameCreation")),
        "patch": patch_bucket(info.get("gameVersion")),
        "queue": info.get("queueId"),
        "info": doc.get("info"),
        "schemaVersion": SCHEMA_VERSION,
        "exportedAt": _exported_at(now),
    }


def normalize_timeline(
    timeline: TimelineRecord,
    partition: MatchExportResult,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Build the bronze timeline record, tagged with its provenance."""
    return {
        "matchId": timeline.match_id,
        "season": partition.season,
        "patch": partition.patch,
        "queue": partition.queue,
        "frames": timeline.frames,
        "schemaVersion": SCHEMA_VERSION,
        "exportedAt": _exported_at(now),
        "source": timeline.source.value,
    }
