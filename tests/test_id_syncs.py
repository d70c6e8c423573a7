"""Tests for the id-keyed syncs: Fatebook, Amazing Marvin category, GitHub."""

from datetime import timedelta
from unittest.mock import Mock

from beesync.clients.fatebook import Question
from beesync.clients.github import Commit
from beesync.clients.marvin import MarvinTask
from beesync.config import CategorySettings, FatebookSettings, GitHubSettings
from beesync.keys import CmdSecret, EnvSecret
from beesync.modules.category import CategorySync
from beesync.modules.fatebook import FatebookSync
from beesync.modules.github import EPOCH, GitHubSync
from beesync.sync.engine import SyncEngine

from fakes import InMemoryGoals, utc

NOW = utc(2025, 6, 1, 12)


class TestFatebookSync:
    def setup_method(self):
        self.goals = InMemoryGoals()
        self.engine = SyncEngine(self.goals)
        self.client = Mock()
        self.client.get_questions.return_value = [
            Question(id="q2", title="Will it rain?", created_at=utc(2025, 5, 2)),
            Question(id="q1", title="Ship by Friday?", created_at=utc(2025, 5, 1)),
        ]
        self.module = FatebookSync(FatebookSettings(key=EnvSecret("FATEBOOK")), client=self.client)

    def test_creates_one_datapoint_per_question(self):
        summary = self.engine.run([self.module]).get("fatebook")

        assert summary.created == 2
        assert [dp.comment for dp in self.goals.created] == ["Ship by Friday?", "Will it rain?"]
        assert [dp.requestid for dp in self.goals.created] == ["q1", "q2"]
        assert self.goals.created[0].goal == "fatebook"

    def test_known_questions_skipped(self):
        self.goals.add("fatebook", utc(2025, 5, 1), requestid="q1")

        summary = self.engine.run([self.module]).get("fatebook")

        assert summary.skipped == 1
        assert [dp.requestid for dp in self.goals.created] == ["q2"]

    def test_idempotent(self):
        self.engine.run([self.module])

        assert self.engine.run([self.module]).get("fatebook").created == 0

    def test_close_releases_client_built_in_connect(self):
        module = FatebookSync(FatebookSettings(key=EnvSecret("FATEBOOK")))
        module.connect({"key": "fb-key"})
        client = module.client

        module.close()

        assert module.client is None
        assert client._session is None


class TestCategorySync:
    def setup_method(self):
        self.goals = InMemoryGoals()
        self.engine = SyncEngine(self.goals)
        self.client = Mock()
        self.client.find_completed_tasks.return_value = [
            MarvinTask(id="t1", title="Pay rent", done_at=utc(2025, 5, 28, 9)),
            MarvinTask(id="t2", title="Call mom", done_at=utc(2025, 5, 29, 18)),
        ]
        settings = CategorySettings(
            uri=EnvSecret("AM_URI"),
            username=EnvSecret("AM_USER"),
            password=CmdSecret("pass am"),
            database_name=EnvSecret("AM_DB"),
            category="Must Do",
            goal_name="mustdo",
        )
        self.module = CategorySync(settings, client=self.client, now=lambda: NOW)

    def test_queries_lookback_window(self):
        self.engine.run([self.module])

        self.client.find_completed_tasks.assert_called_once_with("Must Do", NOW - timedelta(days=14))

    def test_creates_datapoints_keyed_by_task_id(self):
        self.goals.add("mustdo", utc(2025, 5, 28, 9), requestid="t1")

        summary = self.engine.run([self.module]).get("category")

        assert summary.created == 1
        dp = self.goals.created[0]
        assert dp.requestid == "t2"
        assert dp.comment == "Call mom"
        assert dp.timestamp == utc(2025, 5, 29, 18)

    def test_declares_all_four_secrets(self):
        settings = self.module.settings
        module = CategorySync(settings)

        assert set(module.secrets()) == {"uri", "username", "password", "database_name"}


class TestGitHubSync:
    def setup_method(self):
        self.goals = InMemoryGoals()
        self.engine = SyncEngine(self.goals)
        self.client = Mock()
        self.client.get_commits.return_value = [
            Commit(sha="aaa", message="Fix parser\n\nDetails", repository="me/tool",
                   committer_date=utc(2025, 5, 1, 10)),
            Commit(sha="bbb", message="Add docs", repository="me/site",
                   committer_date=utc(2025, 5, 2, 10)),
        ]
        self.module = GitHubSync(GitHubSettings(goal_name="commits", username="me"), client=self.client)

    def test_first_run_reads_from_epoch(self):
        self.engine.run([self.module])

        self.client.get_commits.assert_called_once_with("me", EPOCH)

    def test_comment_has_repo_and_first_line(self):
        self.engine.run([self.module])

        assert [dp.comment for dp in self.goals.created] == ["me/tool: Fix parser", "me/site: Add docs"]
        assert [dp.requestid for dp in self.goals.created] == ["aaa", "bbb"]

    def test_incremental_from_latest_and_dedup_by_sha(self):
        self.goals.add("commits", utc(2025, 5, 1, 10), requestid="aaa")

        summary = self.engine.run([self.module]).get("github")

        self.client.get_commits.assert_called_once_with("me", utc(2025, 5, 1, 10))
        assert summary.created == 1
        assert self.goals.created[0].requestid == "bbb"

    def test_zero_valued_latest_datapoint_reads_from_epoch(self):
        self.goals.add("commits", utc(2025, 5, 1, 10), requestid="aaa")
        self.goals.add("commits", utc(2025, 5, 3), value=0, comment="RECOMMITTED")

        summary = self.engine.run([self.module]).get("github")

        self.client.get_commits.assert_called_once_with("me", EPOCH)
        assert [dp.requestid for dp in self.goals.created] == ["bbb"]
        assert summary.skipped == 1

    def test_token_is_optional(self):
        module = GitHubSync(GitHubSettings(goal_name="commits", username="me"))

        assert module.secrets() == {}
        module.connect({})
        assert module.client.token is None

    def test_token_used_when_configured(self):
        module = GitHubSync(GitHubSettings(goal_name="commits", username="me", key=EnvSecret("GH")))

        assert module.secrets() == {"key": EnvSecret("GH")}
        module.connect({"key": "ghp_x"})
        assert module.client._get_headers()["Authorization"] == "Bearer ghp_x"
