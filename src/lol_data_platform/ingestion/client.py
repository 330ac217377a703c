"""Riot match-v5 timeline API client.

Thin HTTP layer: one request per call, no retries. Retry, backoff and the
process-wide concurrency gate live in ``RetryingTimelineClient``.

Usage:
    >>> with RiotTimelineClient(api_key="RGAPI-...", region="europe") as client:
    ...     timeline = client.get_timeline("EUW1_7000000000")
"""

import logging
from typing import Optional

import httpx

from ..exceptions import UpstreamError
from ..models import Provenance, TimelineRecord
from .config import UpstreamConfig

logger = logging.getLogger(__name__)

ROUTING_REGIONS = ("americas", "asia", "europe", "sea")


class RiotTimelineClient:
    """Client for ``GET /lol/match/v5/matches/{matchId}/timeline``."""

    TIMELINE_PATH = "/lol/match/v5/matches/{match_id}/timeline"

    def __init__(
        self,
        api_key: str,
        region: str = "europe",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize the timeline client.

        Args:
            api_key: Riot API key sent as ``X-Riot-Token``
            region: Routing cluster (americas, asia, europe, sea)
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests inject a MockTransport here)
        """
        if not api_key:
            raise ValueError("api_key is required")
        if region.lower() not in ROUTING_REGIONS:
            raise ValueError(f"Unknown routing region: {region}")

        self.region = region.lower()
        self.timeout = timeout
        self._api_key = api_key
        self._client = http_client

    @classmethod
    def from_config(cls, config: UpstreamConfig) -> "RiotTimelineClient":
        if not config.api_key:
            raise ValueError("Upstream API key is not configured")
        return cls(api_key=config.api_key, region=config.region, timeout=config.timeout)

    @property
    def base_url(self) -> str:
        return f"https://{self.region}.api.riotgames.com"

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={"X-Riot-Token": self._api_key, "Accept": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_timeline(self, match_id: str) -> Optional[TimelineRecord]:
        """Fetch one match timeline.

        Returns:
            TimelineRecord (frames may be empty), or None if the match is unknown (404)

        Raises:
            UpstreamError: For any other non-2xx response, carrying the status code
            httpx.TransportError: For network failures and timeouts
        """
        response = self._get_client().get(self.TIMELINE_PATH.format(match_id=match_id))

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.debug(f"Timeline not found upstream: matchId={match_id}")
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Timeline request failed for {match_id}: HTTP {response.status_code}",
                status_code=response.status_code,
            ) from e

        body = response.json()
        if not body:
            return None

        return TimelineRecord.from_document(match_id, body, Provenance.UPSTREAM_API)
