"""Exporter configuration models using Pydantic.

Supports configuration from:
1. Environment variables (``ExporterConfig.from_env``)
2. A YAML file (``load_exporter_config``), with secrets falling back to env
3. Explicit construction
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..exceptions import ConfigurationError


def normalize_bucket(raw: str) -> str:
    """Reduce ``s3://bucket/some/prefix`` or ``bucket/`` to the bare bucket name."""
    value = raw.strip()
    if value.startswith("s3://"):
        value = value[len("s3://"):]
        return value.split("/", 1)[0]
    return value.rstrip("/")


class SourceStoreConfig(BaseModel):
    """MongoDB source of match and timeline documents."""

    uri: str = Field(..., min_length=1, repr=False, description="MongoDB connection string")
    database: str = "rift-tracker"
    matches_collection: str = "matches"
    timelines_collection: str = "matches_timeline"


class ObjectStoreConfig(BaseModel):
    """S3 bucket receiving the bronze objects."""

    bucket: str = Field(..., min_length=1)
    region: str = "eu-west-1"
    endpoint_url: Optional[str] = None  # MinIO / localstack

    @field_validator("bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        """Accept s3:// URIs and trailing slashes, keep only the bucket."""
        bucket = normalize_bucket(v)
        if not bucket:
            raise ValueError("bucket must not be empty")
        return bucket


class RetryConfig(BaseModel):
    """Backoff configuration for upstream API calls."""

    max_retries: int = Field(default=5, ge=0, le=20)
    base_delay: float = Field(default=0.25, ge=0)  # seconds
    max_delay: float = Field(default=10.0, gt=0)  # seconds

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryConfig":
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay must not exceed max_delay")
        return self


class UpstreamConfig(BaseModel):
    """Riot match-v5 timeline API."""

    api_key: Optional[str] = Field(default=None, repr=False)
    region: str = "europe"  # routing cluster: americas, asia, europe, sea
    concurrency: int = Field(default=20, ge=1, description="Process-wide gate on in-flight calls")
    timeout: float = Field(default=30.0, gt=0, le=300)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class ExportSettings(BaseModel):
    """Batch driver and worker pool tuning."""

    match_concurrency: int = Field(default=20, ge=1)
    timeline_concurrency: Optional[int] = Field(
        default=None, ge=1, description="Defaults to the upstream concurrency"
    )
    batch_size: int = Field(default=100, ge=1)
    progress_interval: int = Field(default=1000, ge=1)
    error_sample_size: int = Field(default=10, ge=0)
    timeline_high_watermark: Optional[int] = Field(default=None, ge=0)


class ExporterConfig(BaseModel):
    """Complete exporter configuration."""

    source: SourceStoreConfig
    object_store: ObjectStoreConfig
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    export: ExportSettings = Field(default_factory=ExportSettings)

    @property
    def timeline_concurrency(self) -> int:
        return self.export.timeline_concurrency or self.upstream.concurrency

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExporterConfig":
        """Create configuration from environment variables.

        Environment variables:
        - MONGO_URI (required), MONGO_DB, MATCHES_COLLECTION, TIMELINES_COLLECTION
        - S3_BUCKET (required), AWS_REGION, S3_ENDPOINT_URL
        - RIOT_API_KEY, RIOT_REGION, RIOT_CONCURRENCY, RIOT_MAX_RETRIES
        - EXPORT_CONCURRENCY, TIMELINE_CONCURRENCY, EXPORT_BATCH_SIZE,
          TIMELINE_HIGH_WATERMARK

        Raises:
            ConfigurationError: If a required variable is missing or a value is invalid
        """
        env = os.environ if environ is None else environ
        return _build_config(_env_overrides({}, env))


def _env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Fill ``data`` from environment variables where the key is not already set."""
    mapping = {
        ("source", "uri"): "MONGO_URI",
        ("source", "database"): "MONGO_DB",
        ("source", "matches_collection"): "MATCHES_COLLECTION",
        ("source", "timelines_collection"): "TIMELINES_COLLECTION",
        ("object_store", "bucket"): "S3_BUCKET",
        ("object_store", "region"): "AWS_REGION",
        ("object_store", "endpoint_url"): "S3_ENDPOINT_URL",
        ("upstream", "api_key"): "RIOT_API_KEY",
        ("upstream", "region"): "RIOT_REGION",
        ("upstream", "concurrency"): "RIOT_CONCURRENCY",
        ("export", "match_concurrency"): "EXPORT_CONCURRENCY",
        ("export", "timeline_concurrency"): "TIMELINE_CONCURRENCY",
        ("export", "batch_size"): "EXPORT_BATCH_SIZE",
        ("export", "timeline_high_watermark"): "TIMELINE_HIGH_WATERMARK",
    }
    for (section, key), var in mapping.items():
        value = env.get(var)
        if value:
            _section(data, section).setdefault(key, value)

    max_retries = env.get("RIOT_MAX_RETRIES")
    if max_retries:
        retry = _section(_section(data, "upstream"), "retry")
        retry.setdefault("max_retries", max_retries)

    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    # YAML renders an empty section as None
    if data.get(name) is None:
        data[name] = {}
    return data[name]


def _build_config(data: dict[str, Any]) -> ExporterConfig:
    if not _section(data, "source").get("uri"):
        raise ConfigurationError("Missing required setting: MONGO_URI (source.uri)")
    if not _section(data, "object_store").get("bucket"):
        raise ConfigurationError("Missing required setting: S3_BUCKET (object_store.bucket)")

    try:
        return ExporterConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid exporter configuration: {e}") from e


def load_exporter_config(
    path: str | Path,
    environ: Optional[Mapping[str, str]] = None,
) -> ExporterConfig:
    """Load exporter configuration from a YAML file.

    Values missing from the file are read from the environment, so secrets
    (MONGO_URI, RIOT_API_KEY) need not be committed to the file.

    Args:
        path: Path to YAML configuration file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated ExporterConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If config is invalid or incomplete
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Exporter config not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Exporter config must be a mapping: {config_path}")

    env = os.environ if environ is None else environ
    return _build_config(_env_overrides(config_data, env))
