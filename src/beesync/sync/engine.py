"""Sync engine - drives each configured module against the goal service.

Per module: resolve secrets, read the goal's existing datapoints, ask the
module for candidates, drop the ones already represented, create the rest
oldest first. Nothing is kept between runs; the goal service's datapoints
are the only record of what has been synced.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ..errors import BeeSyncError, ModuleFetchFailed, SyncCancelled
from ..keys import SecretResolver
from ..modules.base import SyncModule
from .models import CandidateRecord, ExistingState
from .protocols import GoalClientProtocol

__all__ = ["ModuleState", "ModuleSummary", "RunResult", "SyncEngine"]

logger = logging.getLogger(__name__)


class ModuleState(Enum):
    IDLE = "idle"
    RESOLVING_SECRETS = "resolving-secrets"
    FETCHING_EXISTING = "fetching-existing"
    FETCHING_CANDIDATES = "fetching-candidates"
    DIFFING = "diffing"
    POSTING = "posting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass
class ModuleSummary:
    """Outcome of one module in one run."""

    name: str
    state: ModuleState = ModuleState.IDLE
    discovered: int = 0
    skipped: int = 0
    created: int = 0
    errors: list[str] = field(default_factory=list)
    failed_stage: Optional[ModuleState] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.state is ModuleState.DONE and not self.errors

    def describe(self) -> str:
        line = (
            f"{self.name}: {self.state.value}, {self.discovered} discovered, "
            f"{self.skipped} skipped, {self.created} created"
        )
        if self.errors:
            line += f", {len(self.errors)} error(s): " + "; ".join(self.errors)
        return line


@dataclass
class RunResult:
    """Per-module summaries of one pass over all modules."""

    summaries: list[ModuleSummary] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        # Module failures are reported, they don't fail the run
        return not self.cancelled

    @property
    def created(self) -> int:
        return sum(s.created for s in self.summaries)

    @property
    def all_failed(self) -> bool:
        return bool(self.summaries) and not any(s.success for s in self.summaries)

    def get(self, name: str) -> Optional[ModuleSummary]:
        for summary in self.summaries:
            if summary.name == name:
                return summary
        return None


class SyncEngine:
    """Core sync engine that orchestrates modules -> goal service data flow."""

    def __init__(
        self,
        goals: GoalClientProtocol,
        resolver: Optional[SecretResolver] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.goals = goals
        self.resolver = resolver or SecretResolver()
        self._cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop at the next stage boundary. A create already sent is left to finish."""
        self._cancel_event.set()

    @property
    def cancel_event(self) -> threading.Event:
        """Shared with HTTP clients so their retry waits stop on cancel."""
        return self._cancel_event

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise SyncCancelled("Sync cancelled")

    def run(self, modules: Iterable[SyncModule]) -> RunResult:
        """Sync every module in order. One module failing never stops the next."""
        result = RunResult()
        for module in modules:
            if self.is_cancelled:
                result.summaries.append(ModuleSummary(name=module.name, state=ModuleState.SKIPPED))
                continue
            result.summaries.append(self.sync_module(module))

        result.cancelled = self.is_cancelled
        if not result.summaries:
            logger.info("No sync modules configured")
        elif result.all_failed:
            logger.warning("Every sync module failed")
        return result

    def sync_module(self, module: SyncModule) -> ModuleSummary:
        """Run one module to completion, recording any failure in its summary."""
        summary = ModuleSummary(name=module.name)
        logger.info(f"Syncing {module.name}")

        try:
            summary.state = ModuleState.RESOLVING_SECRETS
            self._check_cancelled()
            credentials = self.resolver.resolve_all(module.secrets())
            module.cancel_event = self._cancel_event
            module.connect(credentials)

            summary.state = ModuleState.FETCHING_EXISTING
            self._check_cancelled()
            existing = ExistingState(
                {goal: self.goals.list_datapoints(goal, limit=module.max_history) for goal in module.goals},
                module.identity_of,
            )

            summary.state = ModuleState.FETCHING_CANDIDATES
            self._check_cancelled()
            try:
                candidates = list(module.fetch_candidates(existing))
            except SyncCancelled:
                raise
            except Exception as e:
                raise ModuleFetchFailed(module.name, e) from e
            summary.discovered = len(candidates)

            summary.state = ModuleState.DIFFING
            self._check_cancelled()
            new_candidates = self._diff(module, candidates, existing)
            summary.skipped = summary.discovered - len(new_candidates)

            summary.state = ModuleState.POSTING
            for candidate in new_candidates:
                self._check_cancelled()
                self._post(candidate, summary)

            summary.state = ModuleState.DONE

        except SyncCancelled as e:
            summary.failed_stage = summary.state
            summary.state = ModuleState.CANCELLED
            summary.error = e
            summary.errors.append(f"cancelled while {summary.failed_stage.value}")
            logger.warning(f"{module.name}: cancelled while {summary.failed_stage.value}")

        except BeeSyncError as e:
            self._fail(summary, e)
            logger.error(f"{module.name}: failed while {summary.failed_stage.value}: {e}")

        except Exception as e:
            self._fail(summary, e)
            logger.exception(f"{module.name}: unexpected error while {summary.failed_stage.value}: {e}")

        finally:
            module.close()

        logger.info(summary.describe())
        return summary

    @staticmethod
    def _fail(summary: ModuleSummary, error: Exception) -> None:
        summary.failed_stage = summary.state
        summary.state = ModuleState.FAILED
        summary.error = error
        summary.errors.append(f"{type(error).__name__}: {error}")

    def _diff(
        self,
        module: SyncModule,
        candidates: list[CandidateRecord],
        existing: ExistingState,
    ) -> list[CandidateRecord]:
        """Candidates not yet represented on their goal, oldest first, one per external id."""
        known: dict[str, set[str]] = {goal: existing.identities(goal) for goal in existing.goals}
        new_candidates: list[CandidateRecord] = []

        for candidate in sorted(candidates, key=lambda c: c.occurred_at):
            goal = candidate.target_goal
            if goal not in known:
                # Not declared by the module, read it now so it is still deduplicated
                points = self.goals.list_datapoints(goal, limit=module.max_history)
                known[goal] = ExistingState({goal: points}, module.identity_of).identities(goal)

            if candidate.external_id in known[goal]:
                logger.debug(f"  {goal}: '{candidate.external_id}' already logged")
                continue

            known[goal].add(candidate.external_id)
            new_candidates.append(candidate)

        return new_candidates

    def _post(self, candidate: CandidateRecord, summary: ModuleSummary) -> None:
        goal = candidate.target_goal
        try:
            self.goals.create_datapoint(
                goal,
                value=candidate.value,
                timestamp=candidate.occurred_at,
                comment=candidate.comment,
                daystamp=candidate.daystamp,
                requestid=candidate.request_id,
            )
        except BeeSyncError as e:
            # Left for the next run, whose read-back will find it missing
            summary.errors.append(f"{goal}: {e}")
            logger.warning(f"  Failed to create datapoint on {goal} for '{candidate.external_id}': {e}")
            return
        except Exception as e:
            summary.errors.append(f"{goal}: {type(e).__name__}: {e}")
            logger.exception(f"  Unexpected error creating datapoint on {goal}: {e}")
            return

        summary.created += 1
        logger.info(f"  Created {goal} datapoint: {candidate.comment}")
