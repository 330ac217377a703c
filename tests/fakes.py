"""In-memory collaborators and sample documents shared by the unit tests."""

import threading
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any, Optional

from lol_data_platform.models import ExportFilters, Provenance, TimelineRecord

# 2025-09-20T12:00:00Z
GAME_CREATION_MS = 1758369600000
FIXED_NOW = datetime(2025, 10, 1, 8, 30, 0, tzinfo=timezone.utc)


# ============================================================================
# Sample Data
# ============================================================================

def make_match_doc(
    match_id: str,
    queue_id: Any = 420,
    game_version: str = "15.18.531.8881",
    game_creation: Optional[int] = GAME_CREATION_MS,
) -> dict[str, Any]:
    """Raw match document as stored in the matches collection."""
    return {
        "_id": f"oid-{match_id}",
        "metadata": {"matchId": match_id, "participants": ["p1", "p2"]},
        "info": {
            "gameCreation": game_creation,
            "gameVersion": game_version,
            "queueId": queue_id,
            "gameDuration": 1834,
            "participants": [{"puuid": "p1", "win": True}, {"puuid": "p2", "win": False}],
        },
    }


def make_frames(count: int = 3) -> list[dict[str, Any]]:
    return [
        {"timestamp": minute * 60000, "events": [{"type": "ITEM_PURCHASED"}], "participantFrames": {}}
        for minute in range(count)
    ]


def make_timeline_doc(match_id: str, frames: Optional[list] = None) -> dict[str, Any]:
    return {
        "metadata": {"matchId": match_id},
        "info": {"frames": make_frames() if frames is None else frames},
    }


# ============================================================================
# In-memory collaborators
# ============================================================================

class FakeSource:
    """Match/timeline store with an id cursor, backed by dicts."""

    def __init__(
        self,
        matches: Optional[dict[str, dict]] = None,
        timelines: Optional[dict[str, dict]] = None,
        ids: Optional[list[str]] = None,
        cursor_error: Optional[Exception] = None,
        cursor_error_after: int = 0,
    ):
        self.matches = matches or {}
        self.timelines = timelines or {}
        self.ids = ids if ids is not None else list(self.matches)
        self.cursor_error = cursor_error
        self.cursor_error_after = cursor_error_after
        self.fail_get_match: dict[str, Exception] = {}
        self.requested_filters: list[ExportFilters] = []
        self.requested_batch_sizes: list[int] = []

    def iter_match_ids(self, filters: ExportFilters, batch_size: int = 100) -> Iterator[str]:
        self.requested_filters.append(filters)
        self.requested_batch_sizes.append(batch_size)
        for i, match_id in enumerate(self.ids):
            if self.cursor_error is not None and i >= self.cursor_error_after:
                raise self.cursor_error
            yield match_id
        if self.cursor_error is not None and self.cursor_error_after >= len(self.ids):
            raise self.cursor_error

    def get_match(self, match_id: str) -> Optional[dict]:
        if match_id in self.fail_get_match:
            raise self.fail_get_match[match_id]
        return self.matches.get(match_id)

    def get_timeline(self, match_id: str) -> Optional[dict]:
        return self.timelines.get(match_id)


class FakeStore:
    """Object store keeping decoded records by key."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.writes: list[str] = []
        self.fail_match_ids: set[str] = set()
        self._lock = threading.Lock()

    def write_record(self, key: str, record: dict[str, Any]) -> int:
        if record.get("matchId") in self.fail_match_ids:
            raise RuntimeError(f"AccessDenied writing {key}")
        with self._lock:
            self.objects[key] = record
            self.writes.append(key)
        return 1

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))


class FakeUpstream:
    """Retrying-client stand-in: returns canned timelines, None, or raises."""

    def __init__(self, responses: Optional[dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: list[str] = []
        self.stall: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def fetch(self, match_id: str) -> Optional[TimelineRecord]:
        with self._lock:
            self.calls.append(match_id)
        if match_id in self.stall:
            self.stall[match_id].wait(timeout=10)
        response = self.responses.get(match_id)
        if isinstance(response, Exception):
            raise response
        return response


def upstream_timeline(match_id: str, frames: Optional[list] = None) -> TimelineRecord:
    return TimelineRecord(
        match_id=match_id,
        frames=make_frames() if frames is None else frames,
        source=Provenance.UPSTREAM_API,
    )
