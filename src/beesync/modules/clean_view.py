"""Daily browser-title review -> one datapoint per local day, 1 clean / 0 flagged."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

from ..clients.aw_client import AWClient, AWEvent
from ..clients.openai import GptClassifier, OpenAIClient
from ..config import CleanViewSettings
from ..keys import SecretSpec
from ..sync.models import CandidateRecord, ExistingState, daystamp_for
from ..sync.protocols import AWClientProtocol, ClassifierProtocol
from .base import IdentityScheme, SyncModule

logger = logging.getLogger(__name__)

NO_TITLES_COMMENT = "🫙 No titles."
APPROVED_COMMENT = "✨ GPT approved."
FLAGGED_COMMENT = "💦 Flagged by classifier."


def render_prompt(template: str, titles: list[str]) -> str:
    return template.replace("{{titles}}", "\n".join(titles))


def browser_titles(
    events: list[AWEvent], markers: list[str], min_duration: float
) -> list[str]:
    """Distinct browser window titles focused longer than ``min_duration`` seconds."""
    markers = [m.lower() for m in markers]
    titles = {
        event.title
        for event in events
        if event.duration > min_duration and any(m in event.title.lower() for m in markers)
    }
    return sorted(titles)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class CleanViewSync(SyncModule):
    """Classifies each complete day before today; a day is written at most once.

    Days that already have a datapoint are neither re-fetched nor sent to the
    classifier again, and their datapoints are left as they are.
    """

    kind = "clean_view"
    identity = IdentityScheme.DAYSTAMP

    def __init__(
        self,
        settings: CleanViewSettings,
        client: Optional[AWClientProtocol] = None,
        classifier: Optional[ClassifierProtocol] = None,
        now: Callable[[], datetime] = _local_now,
    ):
        super().__init__(settings.name)
        self.settings = settings
        self.client = client
        self.classifier = classifier
        self._now = now

    @property
    def goals(self) -> list[str]:
        return [self.settings.goal_name]

    def secrets(self) -> dict[str, SecretSpec]:
        if self.classifier is not None:
            return {}
        return {"openai_key": self.settings.openai_key}

    def connect(self, credentials: dict[str, str]) -> None:
        if self.client is None:
            client = AWClient(self.settings.activity_watch_base_url, cancel_event=self.cancel_event)
            self._own("client", client)
        if self.classifier is None:
            openai = OpenAIClient(
                credentials["openai_key"],
                self.settings.openai_model,
                cancel_event=self.cancel_event,
            )
            self._own("classifier", GptClassifier(openai))

    def days(self) -> Iterator[tuple[datetime, datetime]]:
        """(start, end) of each complete local day in the lookback window, oldest first."""
        today = self._now().replace(hour=0, minute=0, second=0, microsecond=0)
        for offset in range(self.settings.lookback_days, 0, -1):
            start = today - timedelta(days=offset)
            yield start, start + timedelta(days=1)

    def _judge(self, titles: list[str]) -> tuple[float, str]:
        if not titles:
            return 1.0, NO_TITLES_COMMENT

        prompt = render_prompt(self.settings.prompt_template, titles)
        verdict = self.classifier.classify(prompt, titles)
        if verdict.label == 1:
            return 1.0, APPROVED_COMMENT
        return 0.0, verdict.reason or FLAGGED_COMMENT

    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        goal = self.settings.goal_name
        logged_days = existing.identities(goal)
        candidates = []

        for start, end in self.days():
            daystamp = daystamp_for(start)
            if daystamp in logged_days:
                logger.debug(f"  {daystamp} already has a datapoint")
                continue

            events = self.client.get_events(self.settings.window_bucket, start=start, end=end, limit=-1)
            titles = browser_titles(
                events,
                self.settings.browser_markers,
                self.settings.min_window_duration_seconds,
            )
            value, comment = self._judge(titles)
            logger.info(f"  {daystamp}: {'clean' if value == 1.0 else 'dirty'} ({len(titles)} titles)")

            candidates.append(
                CandidateRecord(
                    external_id=daystamp,
                    occurred_at=start,
                    value=value,
                    comment=comment,
                    target_goal=goal,
                    daystamp=daystamp,
                )
            )
        return candidates
