"""Tests for the Focusmate session sync."""

from datetime import timedelta

from beesync.config import FocusmateSettings
from beesync.keys import EnvSecret
from beesync.modules.focusmate import BACKFILL_START, FocusmateSync, find_matching_tags
from beesync.sync.engine import ModuleState, SyncEngine

from fakes import FakeFocusmate, InMemoryGoals, session, utc

NOW = utc(2025, 6, 1, 12, 0)


def make_module(fm: FakeFocusmate, auto_tags=None) -> FocusmateSync:
    settings = FocusmateSettings(
        goal_name="focusmate",
        key=EnvSecret("FOCUSMATE_API_KEY"),
        auto_tags=auto_tags or [],
    )
    return FocusmateSync(settings, client=fm, now=lambda: NOW)


class TestFindMatchingTags:
    def test_matches_hashtags_only(self):
        assert find_matching_tags(["deep", "write"], "Draft #write chapter") == ["write"]

    def test_plain_word_is_not_a_tag(self):
        assert find_matching_tags(["write"], "write chapter") == []


class TestFocusmateSync:
    def setup_method(self):
        self.goals = InMemoryGoals()
        self.engine = SyncEngine(self.goals)
        self.sessions = [
            session("s1", utc(2023, 1, 10, 8, 0)),
            session("s2", utc(2024, 5, 2, 14, 30)),
            session("s3", utc(2025, 5, 30, 9, 0)),
        ]
        self.fm = FakeFocusmate(self.sessions, names={"partner-1": "Ada"})

    def test_first_run_backfills_every_session(self):
        summary = self.engine.run([make_module(self.fm)]).get("focusmate")

        assert summary.created == 3
        assert [dp.timestamp for dp in self.goals.created] == [s.start_time for s in self.sessions]
        assert self.fm.ranges[0][0] == BACKFILL_START
        assert self.fm.ranges[0][1] == NOW + timedelta(days=1)

    def test_incremental_run_only_takes_sessions_after_latest(self):
        latest = utc(2024, 5, 2, 14, 30)
        self.goals.add("focusmate", latest)

        summary = self.engine.run([make_module(self.fm)]).get("focusmate")

        assert self.fm.ranges[0][0] == latest
        assert summary.created == 1
        assert self.goals.created[0].timestamp == utc(2025, 5, 30, 9, 0)

    def test_zero_valued_latest_datapoint_triggers_backfill(self):
        self.goals.add("focusmate", utc(2024, 5, 2, 14, 30))
        self.goals.add("focusmate", utc(2025, 5, 31, 0, 0), value=0, comment="RECOMMITTED")

        summary = self.engine.run([make_module(self.fm)]).get("focusmate")

        assert self.fm.ranges[0][0] == BACKFILL_START
        # s2 is already logged at its start time
        assert summary.created == 2
        assert [dp.timestamp for dp in self.goals.created] == [
            utc(2023, 1, 10, 8, 0),
            utc(2025, 5, 30, 9, 0),
        ]

    def test_second_run_creates_nothing(self):
        module = make_module(self.fm)
        self.engine.run([module])

        summary = self.engine.run([module]).get("focusmate")

        assert summary.created == 0
        assert len(self.goals.datapoints["focusmate"]) == 3

    def test_incomplete_sessions_are_ignored(self):
        self.fm.sessions.append(session("s4", utc(2025, 5, 31, 9, 0), completed=False))

        summary = self.engine.run([make_module(self.fm)]).get("focusmate")

        assert summary.created == 3

    def test_comment_describes_session(self):
        self.fm.sessions = [session("s1", utc(2025, 5, 30, 9, 5), title="Taxes", minutes=25)]

        self.engine.run([make_module(self.fm)])

        dp = self.goals.created[0]
        assert dp.comment == "Friday, 09:05 (UTC), Taxes with Ada for 25 mins"
        assert dp.daystamp == "20250530"
        assert dp.requestid == "s1"

    def test_unknown_partner_when_lookup_fails(self):
        self.fm.sessions = [session("s1", utc(2025, 5, 30, 9, 0), partner_id="gone")]

        self.engine.run([make_module(self.fm)])

        assert "with unknown partner" in self.goals.created[0].comment

    def test_auto_tag_fans_out_to_tag_goal(self):
        self.fm.sessions = [session("s1", utc(2025, 5, 30, 9, 0), title="Thesis #deep")]
        module = make_module(self.fm, auto_tags=["deep", "admin"])

        summary = self.engine.run([module]).get("focusmate")

        assert summary.created == 2
        goals = [dp.goal for dp in self.goals.created]
        assert goals == ["focusmate", "deep"]
        primary, tagged = self.goals.created
        assert primary.comment == tagged.comment
        assert primary.timestamp == tagged.timestamp
        assert self.goals.datapoints["admin"] == []

    def test_failed_tag_datapoint_is_not_duplicated_on_primary(self):
        self.fm.sessions = [session("s1", utc(2025, 5, 30, 9, 0), title="Thesis #deep")]
        module = make_module(self.fm, auto_tags=["deep"])
        self.goals.reject = lambda goal, comment: goal == "deep"

        summary = self.engine.run([module]).get("focusmate")

        assert summary.state is ModuleState.DONE
        assert summary.created == 1
        assert len(summary.errors) == 1
        assert len(self.goals.datapoints["focusmate"]) == 1

    def test_declares_secret_only_without_injected_client(self):
        settings = FocusmateSettings(goal_name="focusmate", key=EnvSecret("FM"))

        assert FocusmateSync(settings).secrets() == {"key": EnvSecret("FM")}
        assert make_module(self.fm).secrets() == {}
