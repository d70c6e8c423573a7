"""Records exchanged between the engine, the goal client and sync modules."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

__all__ = [
    "Datapoint",
    "CandidateRecord",
    "ExistingState",
    "daystamp_for",
    "to_utc",
]


def to_utc(dt: datetime) -> datetime:
    """Normalize to an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def daystamp_for(dt: datetime) -> str:
    """Beeminder daystamp (YYYYMMDD) of a datetime in its own timezone."""
    return dt.strftime("%Y%m%d")


@dataclass(frozen=True)
class Datapoint:
    """A datapoint already stored on a goal. Never modified by beesync."""

    goal: str
    value: float
    timestamp: datetime
    comment: str = ""
    daystamp: Optional[str] = None
    requestid: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, goal: str, data: dict) -> "Datapoint":
        """Create Datapoint from a Beeminder API datapoint object."""
        timestamp = datetime.fromtimestamp(int(data["timestamp"]), tz=timezone.utc)
        return cls(
            goal=goal,
            value=float(data.get("value", 0)),
            timestamp=timestamp,
            comment=data.get("comment") or "",
            daystamp=data.get("daystamp"),
            requestid=data.get("requestid") or None,
            id=data.get("id"),
        )


@dataclass(frozen=True)
class CandidateRecord:
    """A record fetched from a source service that may become a datapoint."""

    external_id: str
    occurred_at: datetime
    value: float
    comment: str
    target_goal: str
    daystamp: Optional[str] = None
    request_id: Optional[str] = None


class ExistingState:
    """What a goal service already holds, per goal, oldest first."""

    def __init__(
        self,
        datapoints: dict[str, list[Datapoint]],
        identity_of: Callable[[Datapoint], Optional[str]],
    ):
        self._datapoints = {
            goal: sorted(points, key=lambda dp: dp.timestamp)
            for goal, points in datapoints.items()
        }
        self._identity_of = identity_of

    @property
    def goals(self) -> list[str]:
        return list(self._datapoints)

    def is_empty(self, goal: str) -> bool:
        return not self._datapoints.get(goal)

    def latest(self, goal: str) -> Optional[Datapoint]:
        points = self._datapoints.get(goal)
        return points[-1] if points else None

    def last_synced(self, goal: str) -> Optional[Datapoint]:
        """Latest datapoint, or None when it is zero-valued.

        Beeminder writes zero-valued datapoints of its own (e.g. after a
        derail), so those are no evidence that a sync ever ran.
        """
        latest = self.latest(goal)
        if latest is None or latest.value == 0:
            return None
        return latest

    def identities(self, goal: str) -> set[str]:
        """Identities recovered from the goal's datapoints, using the module's scheme."""
        found = set()
        for dp in self._datapoints.get(goal, []):
            identity = self._identity_of(dp)
            if identity:
                found.add(identity)
        return found
