"""Watched videos -> one datapoint per distinct video title.

Videos are recognized in ActivityWatch window events by a marker in the
browser window title (``"<video> - YouTube — Mozilla Firefox"``). A video
counts once its cumulative focus time over the lookback window passes the
configured minimum.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..clients.aw_client import AWClient, AWEvent
from ..config import CleanTubeSettings
from ..sync.models import CandidateRecord, ExistingState
from ..sync.protocols import AWClientProtocol
from .base import IdentityScheme, SyncModule

logger = logging.getLogger(__name__)


@dataclass
class WatchedVideo:
    title: str
    seconds: float
    last_seen: datetime


def video_title(window_title: str, marker: str) -> Optional[str]:
    """Video name from a browser window title, None if it isn't a video page."""
    if marker not in window_title:
        return None
    title = window_title.split(marker, 1)[0].strip()
    return title or None


def aggregate_videos(events: list[AWEvent], marker: str) -> dict[str, WatchedVideo]:
    """Total watch time and last-seen time per video title."""
    videos: dict[str, WatchedVideo] = {}
    for event in events:
        title = video_title(event.title, marker)
        if title is None:
            continue
        video = videos.get(title)
        if video is None:
            videos[title] = WatchedVideo(title=title, seconds=event.duration, last_seen=event.end)
        else:
            video.seconds += event.duration
            video.last_seen = max(video.last_seen, event.end)
    return videos


class CleanTubeSync(SyncModule):
    kind = "clean_tube"
    identity = IdentityScheme.COMMENT

    def __init__(
        self,
        settings: CleanTubeSettings,
        client: Optional[AWClientProtocol] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client
        self.max_history = settings.max_datapoints
        self._now = now

    @property
    def goals(self) -> list[str]:
        return [self.settings.goal_name]

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = AWClient(self.settings.activity_watch_base_url, cancel_event=self.cancel_event)
            self._own("client", client)

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        end = self._now()
        start = end - timedelta(days=self.settings.lookback_days)
        events = self.client.get_events(self.settings.window_bucket, start=start, end=end, limit=-1)

        videos = aggregate_videos(events, self.settings.title_marker)
        minimum = self.settings.min_video_duration_seconds
        candidates = []
        for title in sorted(videos):
            video = videos[title]
            if video.seconds <= minimum:
                logger.debug(f"  '{title}' watched {video.seconds:.0f}s, below {minimum:.0f}s")
                continue
            candidates.append(
                CandidateRecord(
                    external_id=title,
                    occurred_at=video.last_seen,
                    value=1.0,
                    comment=title,
                    target_goal=self.settings.goal_name,
                )
            )
        return candidates
