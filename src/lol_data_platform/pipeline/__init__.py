"""Export pipeline for the League of Legends data lake.

This module republishes match and timeline documents from the operational
MongoDB store as immutable, partitioned bronze objects in S3.

Key Components:
- ExportOrchestrator: Streams match ids in bounded batches and drives both pools
- MatchExportWorker: Loads, filters, normalizes and writes one match
- TimelineExportWorker: Resolves a timeline locally or upstream and writes it
- WorkerPool: Bounded thread pool with observable running/queued depth
- partitioning: Pure season/patch derivation and object key building

Architecture:
    Mongo cursor (match ids only, newest first)
        ↓  batches of 100
    Match pool (C_m workers) → raw/matches/season=/patch=/queue=/matchId=
        ↓  on success, not awaited
    Timeline pool (C_t workers)
        ├─ local timeline with frames → raw/timelines/... (local-store)
        └─ otherwise Riot API via retry client (gate of N calls)
             ├─ frames → raw/timelines/... (upstream-api)
             └─ 404 / empty → skipped
"""

from lol_data_platform.pipeline.match_worker import MatchExportWorker
from lol_data_platform.pipeline.orchestrator import (
    ExportOrchestrator,
    create_orchestrator,
)
from lol_data_platform.pipeline.partitioning import (
    ALLOWED_QUEUE_IDS,
    build_partition_key,
    is_allowed_queue,
    match_key,
    patch_bucket,
    season_from_timestamp,
    timeline_key,
)
from lol_data_platform.pipeline.pool import WorkerPool
from lol_data_platform.pipeline.progress import ExportResult
from lol_data_platform.pipeline.timeline_worker import TimelineExportWorker

__all__ = [
    "ALLOWED_QUEUE_IDS",
    "ExportOrchestrator",
    "ExportResult",
    "MatchExportWorker",
    "TimelineExportWorker",
    "WorkerPool",
    "build_partition_key",
    "create_orchestrator",
    "is_allowed_queue",
    "match_key",
    "patch_bucket",
    "season_from_timestamp",
    "timeline_key",
]
