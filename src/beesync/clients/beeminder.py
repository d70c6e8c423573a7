"""Beeminder API client - the goal-tracking service datapoints are written to."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..sync.http_client import BaseApiClient
from ..sync.models import Datapoint, to_utc

__all__ = ["BeeminderClient", "DEFAULT_BEEMINDER_URL"]

logger = logging.getLogger(__name__)

DEFAULT_BEEMINDER_URL = "https://www.beeminder.com/api/v1"
PAGE_SIZE = 300


class BeeminderClient(BaseApiClient):
    """Lists and appends datapoints on a user's goals.

    The auth token is either given directly or produced on first use by
    ``token_source``, so a secret that fails to resolve surfaces as an error
    of whichever module first talks to Beeminder rather than at startup.
    """

    SERVICE_NAME = "Beeminder"

    def __init__(
        self,
        username: str,
        auth_token: Optional[str] = None,
        token_source: Optional[Callable[[], str]] = None,
        base_url: str = DEFAULT_BEEMINDER_URL,
        page_size: int = PAGE_SIZE,
        **kwargs,
    ):
        super().__init__(base_url, **kwargs)
        if auth_token is None and token_source is None:
            raise ValueError("BeeminderClient needs auth_token or token_source")
        self.username = username
        self.page_size = page_size
        self._auth_token = auth_token
        self._token_source = token_source

    @property
    def auth_token(self) -> str:
        if self._auth_token is None:
            self._auth_token = self._token_source()
        return self._auth_token

    def _datapoints_endpoint(self, goal: str) -> str:
        return f"users/{self.username}/goals/{goal}/datapoints.json"

    def list_datapoints(self, goal: str, limit: Optional[int] = None) -> list[Datapoint]:
        """Fetch the goal's datapoints, oldest first.

        Args:
            goal: Goal slug
            limit: Only read the most recent ``limit`` datapoints; None reads every page

        Raises:
            UpstreamUnavailable: transport, auth or unknown-goal failure
        """
        endpoint = self._datapoints_endpoint(goal)
        collected: list[dict] = []
        page = 1

        # Pages are always full-sized: Beeminder offsets page N by (N - 1) * per
        while limit is None or len(collected) < limit:
            params = {
                "auth_token": self.auth_token,
                "sort": "timestamp",
                "page": page,
                "per": self.page_size,
            }
            batch = self._request("GET", endpoint, params=params)
            if not isinstance(batch, list):
                batch = []
            collected.extend(batch)

            # Beeminder signals the last page by returning a short one
            if len(batch) < self.page_size:
                break
            page += 1

        if limit is not None:
            # Newest first, so the head is the most recent ``limit``
            collected = collected[:limit]

        datapoints = [Datapoint.from_dict(goal, item) for item in collected]
        datapoints.sort(key=lambda dp: dp.timestamp)
        logger.debug(f"Read {len(datapoints)} datapoints from {self.username}/{goal}")
        return datapoints

    def create_datapoint(
        self,
        goal: str,
        value: float,
        timestamp: datetime,
        comment: str,
        daystamp: Optional[str] = None,
        requestid: Optional[str] = None,
    ) -> Datapoint:
        """Append one datapoint. Sent exactly once, never retried here.

        Raises:
            UpstreamRejected: Beeminder refused the datapoint (bad goal, auth, validation)
            UpstreamUnavailable: the request did not get an answer
        """
        form = {
            "auth_token": self.auth_token,
            "value": value,
            "timestamp": int(to_utc(timestamp).timestamp()),
            "comment": comment,
        }
        if daystamp:
            form["daystamp"] = daystamp
        if requestid:
            form["requestid"] = requestid

        response = self._request("POST", self._datapoints_endpoint(goal), data=form)
        if isinstance(response, dict) and "timestamp" in response:
            return Datapoint.from_dict(goal, response)

        return Datapoint(
            goal=goal,
            value=float(value),
            timestamp=to_utc(timestamp),
            comment=comment,
            daystamp=daystamp,
            requestid=requestid,
        )
