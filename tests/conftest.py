"""Pytest configuration and fixtures for all tests."""

import pytest

from fakes import FIXED_NOW, FakeStore
from lol_data_platform.ingestion.config import (
    ExporterConfig,
    ExportSettings,
    ObjectStoreConfig,
    SourceStoreConfig,
)
from lol_data_platform.pipeline.progress import ExportResult


@pytest.fixture
def fixed_clock():
    """Clock returning a constant export timestamp."""
    return lambda: FIXED_NOW


@pytest.fixture
def export_result() -> ExportResult:
    return ExportResult()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def serial_settings() -> ExportSettings:
    """Single-worker pools for deterministic ordering."""
    return ExportSettings(
        match_concurrency=1,
        timeline_concurrency=1,
        batch_size=2,
        progress_interval=1000,
    )


@pytest.fixture
def exporter_config() -> ExporterConfig:
    return ExporterConfig(
        source=SourceStoreConfig(uri="mongodb://localhost:27017"),
        object_store=ObjectStoreConfig(bucket="riftcoach-raw"),
    )


@pytest.fixture
def env_vars() -> dict[str, str]:
    """Minimal environment for ExporterConfig.from_env."""
    return {
        "MONGO_URI": "mongodb://mongo:27017",
        "S3_BUCKET": "s3://riftcoach-raw/bronze",
        "RIOT_API_KEY": "RGAPI-test",
    }
