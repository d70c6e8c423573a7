"""GitHub commits -> one datapoint per commit sha."""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..clients.github import GitHubClient
from ..config import GitHubSettings
from ..keys import SecretSpec
from ..sync.models import CandidateRecord, ExistingState, daystamp_for
from .base import IdentityScheme, SyncModule

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class GitHubSync(SyncModule):
    kind = "github"
    identity = IdentityScheme.REQUEST_ID

    def __init__(self, settings: GitHubSettings, client: Optional[GitHubClient] = None):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client

    @property
    def goals(self) -> list[str]:
        return [self.settings.goal_name]

    def secrets(self) -> dict[str, SecretSpec]:
        # Token is optional; it only lifts the anonymous rate limit
        if self.client is not None or self.settings.key is None:
            return {}
        return {"key": self.settings.key}

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = GitHubClient(token=credentials.get("key"), cancel_event=self.cancel_event)
            self._own("client", client)

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        latest = existing.last_synced(self.settings.goal_name)
        since = latest.timestamp if latest is not None else EPOCH
        logger.debug(f"  Fetching commits by {self.settings.username} since {since.isoformat()}")

        return [
            CandidateRecord(
                external_id=commit.sha,
                occurred_at=commit.committer_date,
                value=1.0,
                comment=f"{commit.repository}: {commit.summary}",
                target_goal=self.settings.goal_name,
                daystamp=daystamp_for(commit.committer_date),
                request_id=commit.sha,
            )
            for commit in self.client.get_commits(self.settings.username, since)
        ]
