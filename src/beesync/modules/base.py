"""Contract every sync module implements for the engine."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional

from ..keys import SecretSpec
from ..sync.models import CandidateRecord, Datapoint, ExistingState, to_utc

__all__ = ["IdentityScheme", "SyncModule", "timestamp_identity"]


def timestamp_identity(dt: datetime) -> str:
    """Identity of an instant at the goal service's one-second resolution."""
    return str(int(to_utc(dt).timestamp()))


class IdentityScheme(Enum):
    """Where a module's external id lives on a stored datapoint."""

    REQUEST_ID = "requestid"
    COMMENT = "comment"
    DAYSTAMP = "daystamp"
    # Heuristic: two records starting in the same second collapse into one
    TIMESTAMP = "timestamp"

    def identity_of(self, dp: Datapoint) -> Optional[str]:
        if self is IdentityScheme.REQUEST_ID:
            return dp.requestid
        if self is IdentityScheme.COMMENT:
            return dp.comment
        if self is IdentityScheme.DAYSTAMP:
            return dp.daystamp
        return timestamp_identity(dp.timestamp)


class SyncModule(ABC):
    """One external service feeding one or more goals.

    The engine drives a module through: ``secrets`` -> ``connect`` ->
    ``fetch_candidates`` -> ``close``. A module only reads from its service;
    writing to the goal service and deduplication are the engine's job.
    """

    kind = "module"
    identity = IdentityScheme.REQUEST_ID

    # Newest datapoints read per goal when building the dedup index; None reads all
    max_history: Optional[int] = None

    # Set by the engine before ``connect``; clients stop retrying once it is set
    cancel_event: Optional[threading.Event] = None

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.kind
        self._owned_clients: list[str] = []

    def _own(self, attr: str, client) -> None:
        """Store a client built in ``connect`` so ``close`` releases it."""
        setattr(self, attr, client)
        self._owned_clients.append(attr)

    def close(self) -> None:
        """Close the clients this module built. Injected clients are left open."""
        for attr in self._owned_clients:
            client = getattr(self, attr, None)
            if client is not None:
                client.close()
            setattr(self, attr, None)
        self._owned_clients.clear()

    @property
    @abstractmethod
    def goals(self) -> list[str]:
        """Goals this module writes to, primary goal first."""

    def secrets(self) -> dict[str, SecretSpec]:
        """Secrets to resolve before the module runs, by name."""
        return {}

    def connect(self, credentials: dict[str, str]) -> None:
        """Build service clients from resolved secrets."""

    def identity_of(self, dp: Datapoint) -> Optional[str]:
        return self.identity.identity_of(dp)

    @abstractmethod
    def fetch_candidates(self, existing: ExistingState) -> list[CandidateRecord]:
        """Fetch records from the service.

        ``existing`` may be used to narrow the fetch (e.g. only records after
        the latest datapoint). Every page of the source must be read before
        returning; a partial list silently drops real records.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
