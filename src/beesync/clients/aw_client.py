"""ActivityWatch client - reads window events from a local aw-server."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..sync.http_client import BaseApiClient

logger = logging.getLogger(__name__)

DEFAULT_AW_URL = "http://localhost:5600"


@dataclass
class AWEvent:
    """Represents an ActivityWatch event."""

    id: int
    timestamp: datetime
    duration: float  # seconds
    data: dict

    @classmethod
    def from_dict(cls, data: dict) -> "AWEvent":
        """Create AWEvent from API response."""
        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        return cls(
            id=data.get("id") or 0,
            timestamp=timestamp,
            duration=float(data.get("duration", 0)),
            data=data.get("data", {}),
        )

    @property
    def app(self) -> str:
        return self.data.get("app") or ""

    @property
    def title(self) -> str:
        return self.data.get("title") or ""

    @property
    def end(self) -> datetime:
        return self.timestamp + timedelta(seconds=self.duration)


class AWClient(BaseApiClient):
    """Client for reading from an ActivityWatch server."""

    SERVICE_NAME = "ActivityWatch"

    def __init__(self, base_url: Optional[str] = None, timeout: int = 10, **kwargs):
        super().__init__(base_url or DEFAULT_AW_URL, timeout=timeout, **kwargs)

    def get_events(
        self,
        bucket_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = -1,
    ) -> list[AWEvent]:
        """Get events from a bucket.

        Args:
            bucket_id: The bucket to query
            start: Start time (inclusive)
            end: End time (inclusive)
            limit: Maximum events to return, -1 for every event in the range

        Returns:
            List of AWEvent objects, newest first
        """
        params: dict = {"limit": limit}
        if start:
            params["start"] = start.isoformat()
        if end:
            params["end"] = end.isoformat()

        response = self._request("GET", f"api/0/buckets/{bucket_id}/events", params=params)
        events = [AWEvent.from_dict(event) for event in response]
        logger.debug(f"Fetched {len(events)} events from {bucket_id}")
        return events
