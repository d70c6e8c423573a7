"""Fatebook API client - forecasting questions."""

import logging
from dataclasses import dataclass
from datetime import datetime

from ..sync.http_client import BaseApiClient
from ..sync.models import to_utc

logger = logging.getLogger(__name__)

DEFAULT_FATEBOOK_URL = "https://fatebook.io/api"
PAGE_LIMIT = 1000


@dataclass
class Question:
    id: str
    title: str
    created_at: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        created = datetime.fromisoformat(data["createdAt"].replace("Z", "+00:00"))
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            created_at=to_utc(created),
        )


class FatebookClient(BaseApiClient):
    SERVICE_NAME = "Fatebook"

    def __init__(self, api_key: str, base_url: str = DEFAULT_FATEBOOK_URL, **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def get_questions(self) -> list[Question]:
        """Every question of the key's owner, following ``nextCursor`` when the API pages."""
        questions: list[Question] = []
        params = {"apiKey": self.api_key, "limit": PAGE_LIMIT}

        while True:
            response = self._request("GET", "v0/getQuestions", params=params)
            questions.extend(Question.from_dict(item) for item in response.get("items", []))

            cursor = response.get("nextCursor")
            if not cursor:
                break
            params = {**params, "cursor": cursor}

        logger.debug(f"Fetched {len(questions)} Fatebook questions")
        return questions
