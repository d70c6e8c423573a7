"""Focusmate sessions -> one datapoint per completed session, plus auto-tag goals."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..clients.focusmate import FocusmateClient, FocusmateSession
from ..config import FocusmateSettings
from ..errors import BeeSyncError, SyncCancelled
from ..keys import SecretSpec
from ..sync.models import CandidateRecord, ExistingState, daystamp_for
from .base import IdentityScheme, SyncModule, timestamp_identity

logger = logging.getLogger(__name__)

# Nothing on Focusmate predates this; backfills start here
BACKFILL_START = datetime(2016, 1, 1, tzinfo=timezone.utc)
UNKNOWN_PARTNER = "unknown partner"


def find_matching_tags(tags: list[str], title: str) -> list[str]:
    """Configured tags that appear as ``#tag`` in the session title."""
    return [tag for tag in tags if f"#{tag}" in title]


class FocusmateSync(SyncModule):
    """Completed sessions, deduplicated by session start time.

    Sessions are matched to datapoints by their start timestamp only. Two
    sessions starting in the same second would collapse into one datapoint.
    """

    kind = "focusmate"
    identity = IdentityScheme.TIMESTAMP

    def __init__(
        self,
        settings: FocusmateSettings,
        client: Optional[FocusmateClient] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client
        self._now = now
        self._partner_names: dict[str, str] = {}

    @property
    def goals(self) -> list[str]:
        goals = [self.settings.goal_name]
        for tag in self.settings.auto_tags:
            if tag not in goals:
                goals.append(tag)
        return goals

    def secrets(self) -> dict[str, SecretSpec]:
        if self.client is not None:
            return {}
        return {"key": self.settings.key}

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = FocusmateClient(credentials["key"], cancel_event=self.cancel_event)
            self._own("client", client)

    def _partner_name(self, session: FocusmateSession) -> str:
        if not session.partner_id:
            return UNKNOWN_PARTNER
        if session.partner_id not in self._partner_names:
            try:
                name = self.client.get_user_name(session.partner_id) or UNKNOWN_PARTNER
            except SyncCancelled:
                raise
            except BeeSyncError as e:
                logger.debug(f"Partner lookup failed for {session.partner_id}: {e}")
                name = UNKNOWN_PARTNER
            self._partner_names[session.partner_id] = name
        return self._partner_names[session.partner_id]

    def _comment(self, session: FocusmateSession) -> str:
        start = session.start_time
        when = f"{start.strftime('%A')}, {start.strftime('%H:%M')} (UTC)"
        partner = self._partner_name(session)
        return f"{when}, {session.title} with {partner} for {session.minutes} mins"

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        goal = self.settings.goal_name
        latest = existing.last_synced(goal)

        if latest is None:
            if existing.is_empty(goal):
                logger.info(f"  No datapoints on {goal} yet, backfilling every session")
            else:
                logger.info(f"  Latest datapoint on {goal} is zero-valued, backfilling every session")
            start = BACKFILL_START
        else:
            start = latest.timestamp
        end = self._now() + timedelta(days=1)

        candidates = []
        for session in self.client.get_sessions(start, end):
            if not session.completed:
                continue
            if latest is not None and session.start_time <= latest.timestamp:
                continue

            record = dict(
                external_id=timestamp_identity(session.start_time),
                occurred_at=session.start_time,
                value=1.0,
                comment=self._comment(session),
                daystamp=daystamp_for(session.start_time),
                request_id=session.session_id,
            )
            candidates.append(CandidateRecord(target_goal=goal, **record))

            for tag in find_matching_tags(self.settings.auto_tags, session.title):
                candidates.append(CandidateRecord(target_goal=tag, **record))

        return candidates
