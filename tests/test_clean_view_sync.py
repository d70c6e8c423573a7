"""Tests for the AI-reviewed daily browsing sync."""

import threading
from datetime import timedelta

from beesync.config import CleanViewSettings
from beesync.keys import EnvSecret
from beesync.modules.clean_view import (
    APPROVED_COMMENT,
    NO_TITLES_COMMENT,
    CleanViewSync,
    browser_titles,
    render_prompt,
)
from beesync.sync.engine import SyncEngine
from beesync.sync.protocols import Classification

from fakes import FakeAW, FakeClassifier, InMemoryGoals, utc, window_event

NOW = utc(2025, 6, 4, 15, 0)


class KeywordClassifier:
    """Flags any day whose titles mention 'reddit'."""

    def __init__(self):
        self.calls = []

    def classify(self, prompt, titles):
        self.calls.append(titles)
        if any("reddit" in t.lower() for t in titles):
            return Classification(label=0, reason="Spent time on reddit")
        return Classification(label=1)


def make_module(aw, classifier, lookback_days=3) -> CleanViewSync:
    settings = CleanViewSettings(
        window_bucket="aw-watcher-window_host",
        goal_name="cleanview",
        openai_key=EnvSecret("OPENAI_API_KEY"),
        prompt_template="Any distractions?\n{{titles}}",
        lookback_days=lookback_days,
        min_window_duration_seconds=10.0,
    )
    return CleanViewSync(settings, client=aw, classifier=classifier, now=lambda: NOW)


def test_render_prompt():
    assert render_prompt("Check:\n{{titles}}\nEnd", ["a", "b"]) == "Check:\na\nb\nEnd"


def test_browser_titles_filters_by_marker_and_duration():
    t = utc(2025, 6, 1, 9)
    events = [
        window_event(t, 30, "Docs — Mozilla Firefox"),
        window_event(t, 30, "Docs — Mozilla Firefox"),
        window_event(t, 5, "Quick — Brave"),
        window_event(t, 300, "main.py - Visual Studio Code", app="code"),
    ]

    assert browser_titles(events, ["firefox", "brave"], 10.0) == ["Docs — Mozilla Firefox"]


class TestCleanViewSync:
    def setup_method(self):
        self.goals = InMemoryGoals()
        self.engine = SyncEngine(self.goals)
        self.aw = FakeAW([
            window_event(utc(2025, 6, 1, 9), 60, "Python docs — Mozilla Firefox"),
            window_event(utc(2025, 6, 3, 22), 90, "r/python - Reddit — Mozilla Firefox"),
            window_event(utc(2025, 6, 4, 9), 90, "Today — Mozilla Firefox"),
        ])
        self.classifier = KeywordClassifier()

    def test_one_datapoint_per_complete_day(self):
        summary = self.engine.run([make_module(self.aw, self.classifier)]).get("clean_view")

        assert summary.created == 3
        by_day = {dp.daystamp: dp for dp in self.goals.created}
        assert sorted(by_day) == ["20250601", "20250602", "20250603"]
        assert by_day["20250601"].value == 1.0
        assert by_day["20250601"].comment == APPROVED_COMMENT
        assert by_day["20250602"].value == 1.0
        assert by_day["20250602"].comment == NO_TITLES_COMMENT
        assert by_day["20250603"].value == 0.0
        assert by_day["20250603"].comment == "Spent time on reddit"

    def test_empty_day_skips_classifier(self):
        self.engine.run([make_module(self.aw, self.classifier)])

        assert len(self.classifier.calls) == 2

    def test_days_already_logged_are_not_reclassified(self):
        self.goals.add("cleanview", utc(2025, 6, 3), value=1.0, daystamp="20250603")

        summary = self.engine.run([make_module(self.aw, self.classifier)]).get("clean_view")

        assert summary.created == 2
        assert self.classifier.calls == [["Python docs — Mozilla Firefox"]]
        # existing day keeps its original value
        stored = [dp for dp in self.goals.datapoints["cleanview"] if dp.daystamp == "20250603"]
        assert len(stored) == 1
        assert stored[0].value == 1.0

    def test_second_run_creates_nothing(self):
        module = make_module(self.aw, self.classifier)
        self.engine.run([module])

        summary = self.engine.run([module]).get("clean_view")

        assert summary.created == 0
        assert len(self.classifier.calls) == 2

    def test_day_windows(self):
        module = make_module(self.aw, FakeClassifier(), lookback_days=2)

        days = list(module.days())

        assert days == [
            (utc(2025, 6, 2), utc(2025, 6, 3)),
            (utc(2025, 6, 3), utc(2025, 6, 4)),
        ]

    def test_flagged_day_without_reason(self):
        aw = FakeAW([window_event(utc(2025, 6, 3, 9), 60, "x — Mozilla Firefox")])
        module = make_module(aw, FakeClassifier(label=0), lookback_days=1)

        self.engine.run([module])

        dp = self.goals.created[0]
        assert dp.value == 0.0
        assert dp.comment

    def test_prompt_contains_titles(self):
        classifier = FakeClassifier()
        module = make_module(self.aw, classifier, lookback_days=1)

        self.engine.run([module])

        prompt, titles = classifier.calls[0]
        assert prompt == "Any distractions?\nr/python - Reddit — Mozilla Firefox"
        assert titles == ["r/python - Reddit — Mozilla Firefox"]


class TestCleanViewClients:
    def test_connect_builds_and_close_releases_clients(self):
        module = make_module(None, None)
        module.cancel_event = threading.Event()

        module.connect({"openai_key": "sk"})
        aw, classifier = module.client, module.classifier
        assert classifier.client.cancel_event is module.cancel_event

        module.close()

        assert module.client is None
        assert module.classifier is None
        assert aw._session is None
        assert classifier.client._session is None

    def test_injected_collaborators_are_not_closed(self):
        aw = FakeAW()
        classifier = FakeClassifier()
        module = make_module(aw, classifier)

        module.connect({})
        module.close()

        assert module.client is aw
        assert not aw.closed
        assert module.classifier is classifier
