"""Executor — apply an action plan to one backend.

A plan is split into batches (one per action kind). Each batch moves through

    PLANNED -> CONFIRMED -> EXECUTING -> COMPLETED

or ends early in ABORTED when it is a dry run, the user declines the
confirmation prompt, or the backend is report-only. Declining one batch never
affects the others. Inside a batch every identifier is attempted on its own;
a failure is recorded and the batch moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from applists.backends.base import BackendAdapter, ExecutionResult, Outcome
from applists.sync.reconciler import ActionKind, ActionPlan, Policy

log = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class BatchState(Enum):
    PLANNED = "planned"
    CONFIRMED = "confirmed"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ABORTED = "aborted"


_TRANSITIONS: dict[BatchState, frozenset[BatchState]] = {
    BatchState.PLANNED: frozenset({BatchState.CONFIRMED, BatchState.ABORTED}),
    BatchState.CONFIRMED: frozenset({BatchState.EXECUTING}),
    BatchState.EXECUTING: frozenset({BatchState.COMPLETED}),
    BatchState.COMPLETED: frozenset(),
    BatchState.ABORTED: frozenset(),
}


class AbortReason:
    DRY_RUN = "dry-run"
    DECLINED = "declined by user"
    REPORT_ONLY = "install manually"


@dataclass
class Batch:
    """All actions of one kind for one backend."""

    action: ActionKind
    identifiers: tuple[str, ...]
    description: str
    leaf_removal: bool = False
    state: BatchState = BatchState.PLANNED
    abort_reason: str = ""
    results: list[ExecutionResult] = field(default_factory=list)

    def advance(self, state: BatchState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Batch cannot go from {self.state.value} to {state.value}")
        self.state = state

    def abort(self, reason: str) -> None:
        self.advance(BatchState.ABORTED)
        self.abort_reason = reason
        self.results = [
            ExecutionResult.skipped(ident, self.action, reason) for ident in self.identifiers
        ]

    @property
    def reached_execution(self) -> bool:
        return self.state is BatchState.COMPLETED


@dataclass
class ExecutionReport:
    batches: list[Batch] = field(default_factory=list)
    cleanup: ExecutionResult | None = None

    @property
    def results(self) -> list[ExecutionResult]:
        results = [r for batch in self.batches for r in batch.results]
        if self.cleanup is not None:
            results.append(self.cleanup)
        return results

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def failures(self) -> list[ExecutionResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]


def uninstall_leaves(adapter: BackendAdapter) -> list[ExecutionResult]:
    """Remove everything by repeatedly uninstalling the current leaves.

    Removing leaves first means nothing is uninstalled while something else
    still depends on it. Stops when no leaves remain, when a round leaves the
    leaf set unchanged, or when every remaining leaf has already been tried
    once; packages that cannot be removed (pinned, cyclic) are left behind.
    """
    results: list[ExecutionResult] = []
    attempted: set[str] = set()
    leaves = adapter.query_leaves()
    while leaves:
        pending = sorted(leaves - attempted)
        if not pending:
            break
        for ident in pending:
            attempted.add(ident)
            results.append(_apply(adapter, ActionKind.UNINSTALL, ident))
        remaining = adapter.query_leaves()
        if remaining == leaves:
            break
        leaves = remaining

    if leaves:
        log.warning(
            "%s: %d package(s) could not be removed: %s",
            adapter.title,
            len(leaves),
            ", ".join(sorted(leaves)),
        )
    return results


def _apply(adapter: BackendAdapter, action: ActionKind, ident: str) -> ExecutionResult:
    try:
        if action is ActionKind.INSTALL:
            return adapter.install(ident)
        if action is ActionKind.REINSTALL:
            return adapter.reinstall(ident)
        return adapter.uninstall(ident)
    except Exception as e:
        log.warning("%s: %s %s raised an error: %s", adapter.title, action.value, ident, e)
        return ExecutionResult.failed(ident, action, str(e))


def describe_batch(adapter: BackendAdapter, action: ActionKind, count: int, leaf_removal: bool) -> str:
    if leaf_removal:
        return f"{adapter.title}: uninstall all {count} installed, leaves first"
    return f"{adapter.title}: {action.value} {count} item(s)"


class Executor:
    """Runs plans against backends with dry-run, confirmation and force gating.

    Args:
        dry_run: Never touch the system; every batch ends ABORTED.
        force: Skip confirmation prompts.
        confirm: Called with a batch description; returns True to proceed.
                 Without one, batches that need confirmation are declined.
    """

    def __init__(self, *, dry_run: bool = False, force: bool = False, confirm: ConfirmFn | None = None):
        self.dry_run = dry_run
        self.force = force
        self.confirm = confirm

    def plan_batches(self, adapter: BackendAdapter, plan: ActionPlan) -> list[Batch]:
        recreate = plan.policy is Policy.RECREATE_EXPLICIT
        if recreate:
            order = (ActionKind.UNINSTALL, ActionKind.INSTALL)
        else:
            order = (ActionKind.INSTALL, ActionKind.REINSTALL, ActionKind.UNINSTALL)

        batches = []
        for action in order:
            identifiers = plan.actions(action)
            if not identifiers:
                continue
            leaf_removal = recreate and action is ActionKind.UNINSTALL and adapter.uses_leaf_removal
            batches.append(
                Batch(
                    action=action,
                    identifiers=identifiers,
                    description=describe_batch(adapter, action, len(identifiers), leaf_removal),
                    leaf_removal=leaf_removal,
                )
            )
        return batches

    def execute(self, adapter: BackendAdapter, plan: ActionPlan) -> ExecutionReport:
        report = ExecutionReport(batches=self.plan_batches(adapter, plan))
        removed = False
        for batch in report.batches:
            self._run_batch(adapter, batch)
            if batch.action is ActionKind.UNINSTALL and batch.reached_execution:
                removed = True

        # runs even when some removals failed
        if removed:
            report.cleanup = adapter.cleanup()
        return report

    def _run_batch(self, adapter: BackendAdapter, batch: Batch) -> None:
        if adapter.is_report_only:
            batch.abort(AbortReason.REPORT_ONLY)
            return
        if self.dry_run:
            batch.abort(AbortReason.DRY_RUN)
            return
        if not self.force and not self._confirmed(batch):
            log.warning("%s: skipped", batch.description)
            batch.abort(AbortReason.DECLINED)
            return

        batch.advance(BatchState.CONFIRMED)
        batch.advance(BatchState.EXECUTING)
        if batch.leaf_removal:
            batch.results.extend(uninstall_leaves(adapter))
        else:
            for ident in batch.identifiers:
                batch.results.append(_apply(adapter, batch.action, ident))
        batch.advance(BatchState.COMPLETED)

    def _confirmed(self, batch: Batch) -> bool:
        if self.confirm is None:
            return False
        return bool(self.confirm(batch.description))
