"""Ingestion layer for the Riot match/timeline export.

Provides:
- ExporterConfig: Configuration models for export runs
- RiotTimelineClient: HTTP client for the match-v5 timeline endpoint
- RetryingTimelineClient: Backoff, error classification and concurrency gate
"""

from .client import RiotTimelineClient
from .config import (
    ExporterConfig,
    ExportSettings,
    ObjectStoreConfig,
    RetryConfig,
    SourceStoreConfig,
    UpstreamConfig,
    load_exporter_config,
)
from .retry import BackoffPolicy, ErrorClass, RetryingTimelineClient, classify_error

__all__ = [
    "BackoffPolicy",
    "ErrorClass",
    "ExporterConfig",
    "ExportSettings",
    "ObjectStoreConfig",
    "RetryConfig",
    "RetryingTimelineClient",
    "RiotTimelineClient",
    "SourceStoreConfig",
    "UpstreamConfig",
    "classify_error",
    "load_exporter_config",
]
