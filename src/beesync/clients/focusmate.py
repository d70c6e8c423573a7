"""Focusmate API client - completed co-working sessions."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..sync.http_client import BaseApiClient
from ..sync.models import to_utc

logger = logging.getLogger(__name__)

DEFAULT_FOCUSMATE_URL = "https://api.focusmate.com/v1"

# The sessions endpoint rejects ranges longer than a year
MAX_RANGE = timedelta(days=365)


@dataclass
class FocusmateSession:
    """One session from the perspective of the API key's owner."""

    session_id: str
    start_time: datetime
    duration_ms: int
    title: str
    completed: bool
    partner_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "FocusmateSession":
        users = data.get("users") or []
        me = users[0] if users else {}
        partner = users[1] if len(users) > 1 else {}
        start = datetime.fromisoformat(data["startTime"].replace("Z", "+00:00"))
        return cls(
            session_id=str(data["sessionId"]),
            start_time=to_utc(start),
            duration_ms=int(data.get("duration", 0)),
            title=me.get("sessionTitle") or "",
            completed=bool(me.get("completed")),
            partner_id=partner.get("userId"),
        )

    @property
    def minutes(self) -> int:
        return self.duration_ms // 60000


class FocusmateClient(BaseApiClient):
    """Reads sessions and partner profiles."""

    SERVICE_NAME = "Focusmate"

    def __init__(self, api_key: str, base_url: str = DEFAULT_FOCUSMATE_URL, **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def _auth_headers(self) -> dict:
        return {"X-API-KEY": self.api_key}

    def get_sessions(self, start: datetime, end: datetime) -> list[FocusmateSession]:
        """All sessions starting in [start, end], oldest first.

        Long ranges are split into year-sized requests, every one of which
        must succeed.
        """
        sessions: dict[str, FocusmateSession] = {}
        window_start = to_utc(start)
        end = to_utc(end)

        while window_start < end:
            window_end = min(window_start + MAX_RANGE, end)
            response = self._request(
                "GET",
                "sessions",
                params={
                    "start": window_start.isoformat().replace("+00:00", "Z"),
                    "end": window_end.isoformat().replace("+00:00", "Z"),
                },
            )
            for item in response.get("sessions", []):
                session = FocusmateSession.from_dict(item)
                sessions[session.session_id] = session
            window_start = window_end

        logger.debug(f"Fetched {len(sessions)} Focusmate sessions")
        return sorted(sessions.values(), key=lambda s: s.start_time)

    def get_user_name(self, user_id: str) -> str:
        response = self._request("GET", f"users/{user_id}")
        user = response.get("user") or {}
        return user.get("name") or ""
