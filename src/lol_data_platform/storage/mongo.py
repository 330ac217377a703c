"""MongoDB source of match and timeline documents.

This module provides:
- The filtered, id-only cursor the batch driver streams from
- Just-in-time lookup of full match documents by match id
- Local timeline lookup by match id
"""

import logging
import re
from collections.abc import Iterator
from typing import Any, Optional

from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..exceptions import SourceCursorError
from ..ingestion.config import SourceStoreConfig
from ..models import ExportFilters
from ..pipeline.partitioning import ALLOWED_QUEUE_IDS, season_bounds_ms

logger = logging.getLogger(__name__)

MATCH_ID_FIELD = "metadata.matchId"


def build_match_query(filters: ExportFilters) -> dict[str, Any]:
    """Translate export filters into a MongoDB query document.

    When no queues are requested the allow-list is used, so the store-side
    filter never widens beyond approved queues.
    """
    query: dict[str, Any] = {}

    if filters.season is not None:
        start, end = season_bounds_ms(filters.season)
        query["info.gameCreation"] = {"$gte": start, "$lt": end}

    if filters.patch_bucket:
        # "15.18" matches 15.18, 15.18.1, 15.18.531.8881 but not 15.180
        query["info.gameVersion"] = re.compile(
            rf"^{re.escape(filters.patch_bucket)}(\.|$)", re.IGNORECASE
        )

    queues = filters.queues or list(ALLOWED_QUEUE_IDS)
    query["info.queueId"] = {"$in": queues}

    if filters.since_updated_at is not None:
        query["updatedAt"] = {"$gte": filters.since_updated_at}

    return query


class MongoMatchSource:
    """Read-only access to the matches and timelines collections.

    Usage:
        >>> source = MongoMatchSource.from_config(config.source)
        >>> for match_id in source.iter_match_ids(ExportFilters(season=2025)):
        ...     doc = source.get_match(match_id)
        >>> source.close()
    """

    def __init__(self, config: SourceStoreConfig, client: Optional[MongoClient] = None):
        """Initialize the source.

        Args:
            config: Connection and collection names
            client: Pre-built client (shared, thread-safe)
        """
        self.config = config
        self.client = client if client is not None else MongoClient(config.uri)
        self._owns_client = client is None

        db = self.client[config.database]
        self.matches = db[config.matches_collection]
        self.timelines = db[config.timelines_collection]

    @classmethod
    def from_config(cls, config: SourceStoreConfig) -> "MongoMatchSource":
        return cls(config)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def iter_match_ids(self, filters: ExportFilters, batch_size: int = 100) -> Iterator[str]:
        """Stream match ids, newest first, without loading full documents.

        Raises:
            SourceCursorError: If the cursor cannot be opened or a read fails
        """
        query = build_match_query(filters)
        logger.info(f"Match query: {query}")

        try:
            with self.matches.find(
                query,
                projection={MATCH_ID_FIELD: 1, "_id": 0},
                sort=[("info.gameCreation", DESCENDING)],
                batch_size=batch_size,
            ) as cursor:
                for doc in cursor:
                    match_id = (doc.get("metadata") or {}).get("matchId")
                    if match_id:
                        yield match_id
                    else:
                        logger.debug(f"Skipping document without matchId: {doc}")
        except PyMongoError as e:
            raise SourceCursorError(f"Match cursor failed: {e}") from e

    def get_match(self, match_id: str) -> Optional[dict[str, Any]]:
        """Fetch the full match document, or None if it no longer exists."""
        return self.matches.find_one({MATCH_ID_FIELD: match_id})

    def get_timeline(self, match_id: str) -> Optional[dict[str, Any]]:
        """Fetch the locally stored timeline document, if any."""
        return self.timelines.find_one({MATCH_ID_FIELD: match_id})
