"""Unit tests for RiotTimelineClient."""

import httpx
import pytest

from fakes import make_frames
from lol_data_platform.exceptions import UpstreamError
from lol_data_platform.ingestion.client import RiotTimelineClient
from lol_data_platform.ingestion.config import UpstreamConfig
from lol_data_platform.ingestion.retry import BackoffPolicy, RetryingTimelineClient, is_retryable
from lol_data_platform.models import Provenance


def make_client(handler, region="europe"):
    """Client whose HTTP traffic is served by ``handler``."""
    http_client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url=f"https://{region}.api.riotgames.com",
    )
    return RiotTimelineClient(api_key="RGAPI-test", region=region, http_client=http_client)


class TestClientInit:
    """Tests for client construction."""

    def test_base_url(self):
        client = RiotTimelineClient(api_key="RGAPI-test", region="americas")
        assert client.base_url == "https://americas.api.riotgames.com"

    def test_region_case_insensitive(self):
        client = RiotTimelineClient(api_key="RGAPI-test", region="EUROPE")
        assert client.region == "europe"

    def test_unknown_region(self):
        with pytest.raises(ValueError, match="routing region"):
            RiotTimelineClient(api_key="RGAPI-test", region="euw1")

    def test_api_key_required(self):
        with pytest.raises(ValueError, match="api_key"):
            RiotTimelineClient(api_key="")

    def test_from_config(self):
        client = RiotTimelineClient.from_config(
            UpstreamConfig(api_key="RGAPI-test", region="asia", timeout=5)
        )
        assert client.region == "asia"
        assert client.timeout == 5

    def test_from_config_without_key(self):
        with pytest.raises(ValueError):
            RiotTimelineClient.from_config(UpstreamConfig())

    def test_lazy_http_client_headers(self):
        """Test that the lazily built client authenticates with X-Riot-Token."""
        client = RiotTimelineClient(api_key="RGAPI-test")
        http = client._get_client()
        try:
            assert http.headers["X-Riot-Token"] == "RGAPI-test"
            assert str(http.base_url).startswith("https://europe.api.riotgames.com")
            assert client._get_client() is http
        finally:
            client.close()
        assert client._client is None


class TestGetTimeline:
    """Tests for timeline fetches."""

    def test_success(self):
        """Test a timeline with frames."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json={"metadata": {"matchId": "EUW1_1"}, "info": {"frames": make_frames(3)}})

        with make_client(handler) as client:
            timeline = client.get_timeline("EUW1_1")

        assert seen["path"] == "/lol/match/v5/matches/EUW1_1/timeline"
        assert timeline.match_id == "EUW1_1"
        assert len(timeline.frames) == 3
        assert timeline.source is Provenance.UPSTREAM_API

    def test_not_found_returns_none(self):
        """Test that 404 means no timeline."""
        client = make_client(lambda request: httpx.Response(404, json={"status": {"status_code": 404}}))
        assert client.get_timeline("EUW1_1") is None

    def test_empty_body_returns_none(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        assert client.get_timeline("EUW1_1") is None

    def test_no_frames(self):
        """Test that a body without frames yields an empty record."""
        client = make_client(lambda request: httpx.Response(200, json={"info": {"frames": []}}))
        timeline = client.get_timeline("EUW1_1")

        assert timeline is not None
        assert not timeline.has_frames

    @pytest.mark.parametrize("status", [429, 500, 503, 403])
    def test_error_status_raises(self, status):
        """Test that other error statuses raise UpstreamError with the status code."""
        client = make_client(lambda request: httpx.Response(status))

        with pytest.raises(UpstreamError) as exc_info:
            client.get_timeline("EUW1_1")
        assert exc_info.value.status_code == status
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.parametrize("status,expected", [(429, True), (503, True), (500, False), (403, False)])
    def test_error_status_classification(self, status, expected):
        """Test that raised errors are classified by their status code."""
        client = make_client(lambda request: httpx.Response(status))

        with pytest.raises(UpstreamError) as exc_info:
            client.get_timeline("EUW1_1")
        assert is_retryable(exc_info.value) is expected

    def test_throttled_then_served_through_retrying_client(self):
        """Test that a 503 from the API is retried until the timeline is served."""
        responses = iter([
            httpx.Response(503),
            httpx.Response(200, json={"info": {"frames": make_frames(2)}}),
        ])
        delays = []

        retrying = RetryingTimelineClient(
            make_client(lambda request: next(responses)),
            BackoffPolicy(max_retries=2),
            sleep=delays.append,
        )
        timeline = retrying.fetch("EUW1_1")

        assert timeline is not None
        assert len(timeline.frames) == 2
        assert delays == [0.25]
        assert retrying.get_stats()["retries"] == 1

    def test_network_error_propagates(self):
        def handler(request):
            raise httpx.ConnectError("connection reset by peer", request=request)

        client = make_client(handler)
        with pytest.raises(httpx.ConnectError):
            client.get_timeline("EUW1_1")
