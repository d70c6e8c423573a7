"""Amazing Marvin category -> one datapoint per task completed in it."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..clients.marvin import MarvinClient, MarvinCredentials
from ..config import CategorySettings
from ..keys import SecretSpec
from ..sync.models import CandidateRecord, ExistingState, daystamp_for
from .base import IdentityScheme, SyncModule

logger = logging.getLogger(__name__)


class CategorySync(SyncModule):
    """Tasks marked done within the lookback window, keyed by task id."""

    kind = "category"
    identity = IdentityScheme.REQUEST_ID

    def __init__(
        self,
        settings: CategorySettings,
        client: Optional[MarvinClient] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client
        self._now = now

    @property
    def goals(self) -> list[str]:
        return [self.settings.goal_name]

    def secrets(self) -> dict[str, SecretSpec]:
        if self.client is not None:
            return {}
        return {
            "uri": self.settings.uri,
            "username": self.settings.username,
            "password": self.settings.password,
            "database_name": self.settings.database_name,
        }

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = MarvinClient(MarvinCredentials(**credentials), cancel_event=self.cancel_event)
            self._own("client", client)

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        since = self._now() - timedelta(days=self.settings.lookback_days)
        tasks = self.client.find_completed_tasks(self.settings.category, since)
        return [
            CandidateRecord(
                external_id=task.id,
                occurred_at=task.done_at,
                value=1.0,
                comment=task.title,
                target_goal=self.settings.goal_name,
                daystamp=daystamp_for(task.done_at),
                request_id=task.id,
            )
            for task in tasks
        ]
