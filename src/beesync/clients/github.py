"""GitHub REST client - commits authored by a user across their repositories."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from ..sync.http_client import BaseApiClient
from ..sync.models import to_utc

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_URL = "https://api.github.com"
PER_PAGE = 100


@dataclass
class Commit:
    sha: str
    message: str
    repository: str
    committer_date: datetime

    @property
    def summary(self) -> str:
        lines = self.message.splitlines()
        return lines[0].strip() if lines else ""


class GitHubClient(BaseApiClient):
    """Read-only GitHub client. The token is optional and only raises rate limits."""

    SERVICE_NAME = "GitHub"

    def __init__(self, token: Optional[str] = None, base_url: str = DEFAULT_GITHUB_URL, **kwargs):
        super().__init__(base_url, **kwargs)
        self.token = token

    def _auth_headers(self) -> dict:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _paginate(self, endpoint: str, params: dict) -> Iterator[dict]:
        """Yield items from every page, following ``Link: rel="next"``."""
        # 409: repository is empty
        response = self._send("GET", endpoint, params=params, ok_statuses=(409,))
        while True:
            if response.status_code == 409:
                return
            yield from response.json()

            next_url = response.links.get("next", {}).get("url")
            if not next_url:
                return
            response = self._send("GET", next_url, ok_statuses=(409,))

    def get_user_repositories(self, username: str) -> list[str]:
        repos = self._paginate(f"users/{username}/repos", {"per_page": PER_PAGE})
        return [repo["full_name"] for repo in repos]

    def get_repository_commits(self, repo: str, username: str, since: datetime) -> list[Commit]:
        params = {
            "author": username,
            "since": to_utc(since).isoformat().replace("+00:00", "Z"),
            "per_page": PER_PAGE,
        }
        commits = []
        for item in self._paginate(f"repos/{repo}/commits", params):
            details = item["commit"]
            date = datetime.fromisoformat(details["committer"]["date"].replace("Z", "+00:00"))
            commits.append(
                Commit(
                    sha=item["sha"],
                    message=details.get("message") or "",
                    repository=repo,
                    committer_date=to_utc(date),
                )
            )
        return commits

    def get_commits(self, username: str, since: datetime) -> list[Commit]:
        """Commits by ``username`` since ``since`` in every repository they own, oldest first."""
        commits: list[Commit] = []
        for repo in self.get_user_repositories(username):
            commits.extend(self.get_repository_commits(repo, username, since))
        logger.debug(f"Fetched {len(commits)} commits for {username}")
        return sorted(commits, key=lambda c: c.committer_date)
