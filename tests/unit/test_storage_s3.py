"""Unit tests for the S3 object store."""

import gzip
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from lol_data_platform.ingestion.config import ObjectStoreConfig
from lol_data_platform.storage.s3 import S3ObjectStore, encode_record


class TestEncodeRecord:
    """Tests for gzip JSON-line encoding."""

    def test_single_json_line(self):
        """Test that the payload decompresses to one newline-terminated line."""
        body = encode_record({"matchId": "EUW1_1", "queue": 420})
        text = gzip.decompress(body).decode("utf-8")

        assert text.endswith("\n")
        assert text.count("\n") == 1
        assert json.loads(text) == {"matchId": "EUW1_1", "queue": 420}

    def test_deterministic_bytes(self):
        """Test that identical records encode to identical bytes."""
        record = {"matchId": "EUW1_1", "frames": [{"timestamp": 0}]}
        assert encode_record(record) == encode_record(dict(record))

    def test_non_json_values_stringified(self):
        body = encode_record({"updatedAt": datetime(2025, 1, 1, tzinfo=timezone.utc)})
        assert json.loads(gzip.decompress(body)) == {"updatedAt": "2025-01-01 00:00:00+00:00"}


class TestS3ObjectStore:
    """Tests for S3ObjectStore."""

    @pytest.fixture
    def s3_client(self):
        return MagicMock()

    @pytest.fixture
    def store(self, s3_client):
        return S3ObjectStore(bucket="riftcoach-raw", client=s3_client)

    def test_write_record(self, store, s3_client):
        """Test the upload parameters of one record."""
        key = "raw/matches/season=2025/patch=15.18/queue=420/matchId=EUW1_1.jsonl.gz"
        size = store.write_record(key, {"matchId": "EUW1_1"})

        s3_client.put_object.assert_called_once()
        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "riftcoach-raw"
        assert kwargs["Key"] == key
        assert kwargs["ContentType"] == "application/json"
        assert kwargs["ContentEncoding"] == "gzip"
        assert json.loads(gzip.decompress(kwargs["Body"])) == {"matchId": "EUW1_1"}
        assert size == len(kwargs["Body"])

    def test_rewrite_same_key_overwrites(self, store, s3_client):
        """Test that re-exporting uses the same key and payload."""
        record = {"matchId": "EUW1_1", "season": 2025}
        store.write_record("k", record)
        store.write_record("k", record)

        first, second = s3_client.put_object.call_args_list
        assert first.kwargs == second.kwargs

    def test_stats(self, store):
        store.write_record("a", {"matchId": "A"})
        store.write_record("b", {"matchId": "B"})

        stats = store.get_stats()
        assert stats["objects"] == 2
        assert stats["bytes"] > 0
        assert stats["errors"] == 0

    def test_upload_failure_propagates(self, store, s3_client):
        """Test that upload errors are counted and re-raised."""
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )

        with pytest.raises(ClientError):
            store.write_record("k", {"matchId": "EUW1_1"})

        assert store.get_stats()["errors"] == 1
        assert store.get_stats()["objects"] == 0

    def test_from_config_builds_boto3_client(self):
        config = ObjectStoreConfig(bucket="s3://lake", region="us-east-1", endpoint_url="http://localhost:9000")

        with patch("lol_data_platform.storage.s3.boto3") as mock_boto3:
            store = S3ObjectStore.from_config(config)

        mock_boto3.client.assert_called_once_with(
            "s3", region_name="us-east-1", endpoint_url="http://localhost:9000"
        )
        assert store.bucket == "lake"
        assert store.client is mock_boto3.client.return_value
