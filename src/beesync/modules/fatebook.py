"""Fatebook questions -> one datapoint per question asked."""

from typing import Optional

from ..clients.fatebook import FatebookClient
from ..config import FatebookSettings
from ..keys import SecretSpec
from ..sync.models import CandidateRecord, ExistingState, daystamp_for
from .base import IdentityScheme, SyncModule


class FatebookSync(SyncModule):
    kind = "fatebook"
    identity = IdentityScheme.REQUEST_ID

    def __init__(self, settings: FatebookSettings, client: Optional[FatebookClient] = None):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client

    @property
    def goals(self) -> list[str]:
        return [self.settings.goal_name]

    def secrets(self) -> dict[str, SecretSpec]:
        return {} if self.client is not None else {"key": self.settings.key}

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = FatebookClient(credentials["key"], cancel_event=self.cancel_event)
            self._own("client", client)

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        return [
            CandidateRecord(
                external_id=question.id,
                occurred_at=question.created_at,
                value=1.0,
                comment=question.title,
                target_goal=self.settings.goal_name,
                daystamp=daystamp_for(question.created_at),
                request_id=question.id,
            )
            for question in self.client.get_questions()
        ]
