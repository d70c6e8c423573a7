"""Protocol types for the engine and sync module collaborators.

Defines the interfaces the engine and modules require, so tests can hand in
in-memory fakes instead of HTTP clients.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from ..clients.aw_client import AWEvent
from .models import Datapoint


@dataclass(frozen=True)
class Classification:
    """Binary verdict from a classifier: 1 passes, 0 fails."""

    label: int
    reason: str = ""


@runtime_checkable
class GoalClientProtocol(Protocol):
    """Interface for reading and appending goal datapoints."""

    def list_datapoints(self, goal: str, limit: Optional[int] = None) -> list[Datapoint]: ...

    def create_datapoint(
        self,
        goal: str,
        value: float,
        timestamp: datetime,
        comment: str,
        daystamp: Optional[str] = None,
        requestid: Optional[str] = None,
    ) -> Datapoint: ...


@runtime_checkable
class AWClientProtocol(Protocol):
    """Interface for reading events from ActivityWatch."""

    def get_events(
        self,
        bucket_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = -1,
    ) -> list[AWEvent]: ...


@runtime_checkable
class ClassifierProtocol(Protocol):
    """Opaque text classifier."""

    def classify(self, prompt: str, titles: list[str]) -> Classification: ...
