"""S3 object store writer for bronze records.

Each object holds exactly one record as a gzip-compressed JSON line. Writes
are plain overwrites, so re-running an export over the same range replaces
objects in place instead of duplicating them.
"""

import gzip
import json
import logging
import threading
from typing import Any, Optional

import boto3

from ..ingestion.config import ObjectStoreConfig

logger = logging.getLogger(__name__)


def encode_record(record: dict[str, Any]) -> bytes:
    """Serialize one record as a gzip-compressed, newline-terminated JSON line.

    The gzip header mtime is pinned so identical records encode to identical bytes.
    """
    line = json.dumps(record, default=str, separators=(",", ":")) + "\n"
    return gzip.compress(line.encode("utf-8"), mtime=0)


class S3ObjectStore:
    """Key-addressed writer over a single S3 bucket.

    The boto3 client is thread-safe and shared by every worker.
    """

    CONTENT_TYPE = "application/json"
    CONTENT_ENCODING = "gzip"

    def __init__(
        self,
        bucket: str,
        region: str = "eu-west-1",
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ):
        """Initialize the object store.

        Args:
            bucket: Bucket name (already normalized)
            region: AWS region of the bucket
            endpoint_url: Override endpoint (MinIO, localstack)
            client: Pre-built boto3 S3 client
        """
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )

        self._lock = threading.Lock()
        self.stats = {
            "objects": 0,
            "bytes": 0,
            "errors": 0,
        }

    @classmethod
    def from_config(cls, config: ObjectStoreConfig) -> "S3ObjectStore":
        return cls(
            bucket=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
        )

    def put_object(self, key: str, body: bytes) -> None:
        """Upload one compressed payload.

        Raises:
            botocore.exceptions.ClientError: On upload failure (after logging)
        """
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=self.CONTENT_TYPE,
                ContentEncoding=self.CONTENT_ENCODING,
            )
        except Exception as e:
            with self._lock:
                self.stats["errors"] += 1
            logger.error(f"S3 upload failed: bucket={self.bucket} key={key} error={e}")
            raise

        with self._lock:
            self.stats["objects"] += 1
            self.stats["bytes"] += len(body)
        logger.debug(f"Uploaded s3://{self.bucket}/{key} ({len(body)} bytes)")

    def write_record(self, key: str, record: dict[str, Any]) -> int:
        """Compress and upload one record.

        Returns:
            Compressed size in bytes
        """
        body = encode_record(record)
        self.put_object(key, body)
        return len(body)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return self.stats.copy()
