"""Partition derivation and object key building.

All functions here are pure: identical inputs always produce identical
outputs, with no I/O. Object keys follow the Hive-style layout consumed by
the lake's external tables:

    raw/matches/season=2025/patch=15.18/queue=420/matchId=EUW1_123.jsonl.gz
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

# Queues approved for analytics exports
ALLOWED_QUEUE_IDS: tuple[int, ...] = (440, 420, 400)
ALLOWED_QUEUE_ID_SET: frozenset[int] = frozenset(ALLOWED_QUEUE_IDS)

QUEUE_NAME_BY_ID: dict[int, str] = {
    420: "RANKED_SOLO_5x5",
    440: "RANKED_FLEX",
    400: "NORMAL_DRAFT",
}

RAW_MATCHES_PREFIX = "raw/matches"
RAW_TIMELINES_PREFIX = "raw/timelines"
OBJECT_SUFFIX = ".jsonl.gz"

UNKNOWN_PATCH = "unknown"

# First two or three numeric segments of a game version
PATCH_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")
# Characters that would add a path segment or a partition column to a key
UNSAFE_PATCH_RE = re.compile(r"[/=]")


def parse_patch(version: Optional[str]) -> Optional[tuple[str, str, Optional[str]]]:
    """Parse a game version loosely into (major, minor, micro).

    Examples:
        >>> parse_patch("15.18.1")
        ('15', '18', '1')
        >>> parse_patch("15.18.531.8881")
        ('15', '18', '531')
        >>> parse_patch("15.18")
        ('15', '18', None)
        >>> parse_patch("garbage") is None
        True
    """
    if not version:
        return None
    match = PATCH_RE.match(version.strip())
    if not match:
        return None
    major, minor, micro = match.groups()
    return major, minor, micro


def patch_bucket(version: Optional[str]) -> str:
    """Coarsen a game version to ``major.minor``.

    Unparseable versions are returned unchanged so nothing is silently merged
    into another bucket. A missing version, or one that would break the key
    layout (a ``/`` or ``=``), maps to ``unknown``.
    """
    parsed = parse_patch(version)
    if parsed:
        return f"{parsed[0]}.{parsed[1]}"
    cleaned = (version or "").strip()
    if not cleaned or UNSAFE_PATCH_RE.search(cleaned):
        return UNKNOWN_PATCH
    return cleaned


def season_from_timestamp(game_creation_ms: Optional[int | float]) -> Optional[int]:
    """Season is the UTC calendar year of the match creation time (epoch millis)."""
    if game_creation_ms is None:
        return None
    created = datetime.fromtimestamp(game_creation_ms / 1000, tz=timezone.utc)
    return created.year


def season_bounds_ms(season: int) -> tuple[int, int]:
    """Return the [start, end) epoch-millis range covered by a season."""
    start = datetime(season, 1, 1, tzinfo=timezone.utc)
    end = datetime(season + 1, 1, 1, tzinfo=timezone.utc)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def is_allowed_queue(queue_id: Any) -> bool:
    """Check a queue id against the export allow-list."""
    return isinstance(queue_id, int) and not isinstance(queue_id, bool) and queue_id in ALLOWED_QUEUE_ID_SET


def build_partition_key(
    prefix: str,
    season: Optional[int],
    patch: str,
    queue: Optional[int],
    match_id: str,
) -> str:
    """Build the object key for one record.

    Missing season or queue default to ``0`` so the key is always well formed.

    Raises:
        ValueError: If match_id is empty or would break the key layout
    """
    if not match_id or "/" in match_id:
        raise ValueError(f"Invalid match id for partition key: {match_id!r}")

    return (
        f"{prefix}/season={season if season is not None else 0}"
        f"/patch={patch}"
        f"/queue={queue if queue is not None else 0}"
        f"/matchId={match_id}{OBJECT_SUFFIX}"
    )


def match_key(season: Optional[int], patch: str, queue: Optional[int], match_id: str) -> str:
    return build_partition_key(RAW_MATCHES_PREFIX, season, patch, queue, match_id)


def timeline_key(season: Optional[int], patch: str, queue: Optional[int], match_id: str) -> str:
    return build_partition_key(RAW_TIMELINES_PREFIX, season, patch, queue, match_id)
