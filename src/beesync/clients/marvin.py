"""Amazing Marvin client - queries the CouchDB sync database with ``_find``."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..errors import UpstreamUnavailable
from ..sync.http_client import BaseApiClient

logger = logging.getLogger(__name__)

FIND_PAGE_SIZE = 200


@dataclass(frozen=True)
class MarvinCredentials:
    uri: str
    username: str
    password: str
    database_name: str


@dataclass
class MarvinTask:
    id: str
    title: str
    done_at: datetime

    @classmethod
    def from_doc(cls, doc: dict) -> "MarvinTask":
        if "_id" not in doc:
            raise UpstreamUnavailable("Amazing Marvin task missing _id field")
        done_at = doc.get("doneAt")
        if not isinstance(done_at, (int, float)):
            raise UpstreamUnavailable(f"Amazing Marvin task {doc['_id']} missing doneAt field")
        return cls(
            id=doc["_id"],
            title=doc.get("title") or "Untitled task",
            done_at=datetime.fromtimestamp(done_at / 1000, tz=timezone.utc),
        )


class MarvinClient(BaseApiClient):
    SERVICE_NAME = "Amazing Marvin"

    def __init__(self, credentials: MarvinCredentials, **kwargs):
        super().__init__(credentials.uri, **kwargs)
        self.credentials = credentials

    def find_docs(self, selector: dict) -> list[dict]:
        """All documents matching a Mango selector, following bookmarks to the end."""
        endpoint = f"{self.credentials.database_name}/_find"
        auth = (self.credentials.username, self.credentials.password)
        body: dict = {"selector": selector, "limit": FIND_PAGE_SIZE}
        docs: list[dict] = []

        while True:
            # _find is a read even though it is a POST
            response = self._request("POST", endpoint, json=body, auth=auth, read=True)
            batch = response.get("docs", [])
            docs.extend(doc for doc in batch if isinstance(doc, dict))

            bookmark = response.get("bookmark")
            if len(batch) < FIND_PAGE_SIZE or not bookmark:
                break
            body = {**body, "bookmark": bookmark}

        return docs

    def get_category_id(self, title: str) -> str:
        docs = self.find_docs({"db": "Categories", "title": title})
        if not docs:
            raise UpstreamUnavailable(f"No category found with title '{title}'")
        if len(docs) > 1:
            raise UpstreamUnavailable(
                f"Found {len(docs)} categories with title '{title}', expected exactly one"
            )
        return docs[0]["_id"]

    def find_completed_tasks(self, category_title: str, since: datetime) -> list[MarvinTask]:
        """Tasks in the category marked done at or after ``since``."""
        category_id = self.get_category_id(category_title)
        selector = {
            "db": "Tasks",
            "parentId": category_id,
            "done": True,
            "doneAt": {"$gte": int(since.timestamp() * 1000)},
        }
        tasks = [MarvinTask.from_doc(doc) for doc in self.find_docs(selector)]
        logger.debug(f"Found {len(tasks)} completed tasks in '{category_title}'")
        return tasks
