"""Tests for plan execution: gating, isolation, leaf removal, idempotence."""

import pytest

from applists.backends.base import Outcome
from applists.sync.executor import AbortReason, Batch, BatchState, Executor, uninstall_leaves
from applists.sync.reconciler import ActionKind, Policy, reconcile

from fakes import SimulatedBackend


def _forced() -> Executor:
    return Executor(force=True)


def _sync(backend: SimulatedBackend, wanted: set[str], policy: Policy, executor: Executor | None = None):
    plan = reconcile(wanted, backend.snapshot(), backend.resolve_policy(policy))
    return plan, (executor or _forced()).execute(backend, plan)


# --- Batch state machine ---


def test_batch_happy_path_transitions():
    batch = Batch(ActionKind.INSTALL, ("a",), "install 1")
    batch.advance(BatchState.CONFIRMED)
    batch.advance(BatchState.EXECUTING)
    batch.advance(BatchState.COMPLETED)
    assert batch.reached_execution


def test_batch_cannot_skip_confirmation():
    batch = Batch(ActionKind.INSTALL, ("a",), "install 1")
    with pytest.raises(RuntimeError):
        batch.advance(BatchState.EXECUTING)


def test_aborted_batch_is_terminal():
    batch = Batch(ActionKind.UNINSTALL, ("a", "b"), "uninstall 2")
    batch.abort(AbortReason.DECLINED)
    assert batch.state == BatchState.ABORTED
    assert [r.outcome for r in batch.results] == [Outcome.SKIPPED, Outcome.SKIPPED]
    with pytest.raises(RuntimeError):
        batch.advance(BatchState.CONFIRMED)


# --- Dry run ---


def test_dry_run_never_mutates_and_reports_reconciler_plan():
    backend = SimulatedBackend({"b", "c", "d"})
    plan = reconcile({"a", "b"}, backend.snapshot(), Policy.PRUNE_EXTRAS)
    report = Executor(dry_run=True, force=True).execute(backend, plan)

    assert backend.calls == []
    assert backend.cleanups == 0
    assert all(b.state == BatchState.ABORTED for b in report.batches)
    planned = {b.action: b.identifiers for b in report.batches}
    assert planned == {ActionKind.INSTALL: plan.to_install, ActionKind.UNINSTALL: plan.to_uninstall}
    assert all(r.reason == AbortReason.DRY_RUN for r in report.results)


def test_dry_run_recreate_does_not_walk_leaves():
    backend = SimulatedBackend({"a", "b"}, deps={"a": {"b"}}, leaf_removal=True, recreate=True)
    plan = reconcile({"a"}, backend.snapshot(), Policy.RECREATE_EXPLICIT)
    Executor(dry_run=True).execute(backend, plan)
    assert backend.calls == []
    assert backend.installed == {"a", "b"}


# --- Confirmation ---


def test_declining_one_batch_leaves_others_running():
    backend = SimulatedBackend({"x"})
    asked = []

    def confirm(description: str) -> bool:
        asked.append(description)
        return "install" in description and "uninstall" not in description

    plan, report = _sync(backend, {"a"}, Policy.PRUNE_EXTRAS, Executor(confirm=confirm))

    assert len(asked) == 2
    states = {b.action: b.state for b in report.batches}
    assert states == {ActionKind.INSTALL: BatchState.COMPLETED, ActionKind.UNINSTALL: BatchState.ABORTED}
    assert backend.installed == {"a", "x"}
    assert backend.cleanups == 0


def test_no_confirm_callback_declines():
    backend = SimulatedBackend()
    _, report = _sync(backend, {"a"}, Policy.INSTALL_MISSING, Executor())
    assert backend.calls == []
    assert report.batches[0].abort_reason == AbortReason.DECLINED


def test_force_skips_confirmation():
    def confirm(description: str) -> bool:
        raise AssertionError("should not be asked")

    backend = SimulatedBackend()
    _sync(backend, {"a"}, Policy.INSTALL_MISSING, Executor(force=True, confirm=confirm))
    assert backend.installed == {"a"}


# --- Failure isolation ---


def test_single_failure_does_not_abort_batch():
    backend = SimulatedBackend(broken={"b"})
    _, report = _sync(backend, {"a", "b", "c"}, Policy.INSTALL_MISSING)

    assert backend.installed == {"a", "c"}
    assert report.count(Outcome.SUCCEEDED) == 2
    assert [(r.identifier, r.reason) for r in report.failures] == [("b", "broken package")]
    assert report.batches[0].state == BatchState.COMPLETED


def test_adapter_exception_is_recorded_as_failure():
    class Exploding(SimulatedBackend):
        def install(self, ident):
            if ident == "bad":
                raise OSError("disk full")
            return super().install(ident)

    backend = Exploding()
    _, report = _sync(backend, {"bad", "good"}, Policy.INSTALL_MISSING)
    assert backend.installed == {"good"}
    assert report.failures[0].identifier == "bad"
    assert "disk full" in report.failures[0].reason


def test_report_only_backend_never_mutates():
    backend = SimulatedBackend({"Safari.app"}, report_only=True)
    _, report = _sync(backend, {"Safari.app", "Things.app"}, Policy.PRUNE_EXTRAS)
    assert backend.calls == []
    assert [r.identifier for r in report.results] == ["Things.app"]
    assert report.results[0].reason == AbortReason.REPORT_ONLY


# --- Cleanup ---


def test_cleanup_runs_after_partially_failed_removal():
    backend = SimulatedBackend({"a", "b"}, pinned={"a"})
    _, report = _sync(backend, set(), Policy.PRUNE_EXTRAS)
    assert backend.cleanups == 1
    assert report.cleanup is not None
    assert len(report.failures) == 1


def test_no_cleanup_without_removals():
    backend = SimulatedBackend({"a"})
    _, report = _sync(backend, {"a", "b"}, Policy.PRUNE_EXTRAS)
    assert backend.cleanups == 0
    assert report.cleanup is None


# --- Idempotence and convergence ---


@pytest.mark.parametrize("policy", [Policy.INSTALL_MISSING, Policy.PRUNE_EXTRAS])
def test_second_run_plans_nothing(policy):
    backend = SimulatedBackend({"b", "c", "d"}, requested={"b"})
    wanted = {"a", "b", "c"}
    _sync(backend, wanted, policy)
    plan, _ = _sync(backend, wanted, policy)
    assert plan.is_empty


def test_prune_with_explicit_subset_is_idempotent():
    backend = SimulatedBackend({"b", "c", "d", "lib"}, explicit={"c", "d"})
    wanted = {"a", "b", "c"}
    first, _ = _sync(backend, wanted, Policy.PRUNE_EXTRAS)
    assert first.to_uninstall == ("d",)
    second, _ = _sync(backend, wanted, Policy.PRUNE_EXTRAS)
    assert second.is_empty
    assert "lib" in backend.installed


@pytest.mark.parametrize(
    "installed",
    [set(), {"a"}, {"a", "b", "c"}, {"x", "y", "z"}, {"b", "stale"}],
)
def test_recreate_converges_to_want_list(installed):
    backend = SimulatedBackend(installed, recreate=True)
    wanted = {"a", "b"}
    _, report = _sync(backend, wanted, Policy.RECREATE_EXPLICIT)
    assert backend.installed == wanted
    assert report.batches[-1].action == ActionKind.INSTALL
    if installed:
        assert report.batches[0].action == ActionKind.UNINSTALL


def test_recreate_with_leaf_removal_converges():
    backend = SimulatedBackend(
        {"app", "lib", "libdep", "old"},
        deps={"app": {"lib"}, "lib": {"libdep"}},
        leaf_removal=True,
        recreate=True,
    )
    _, report = _sync(backend, {"app", "new"}, Policy.RECREATE_EXPLICIT)
    assert backend.installed == {"app", "new"}
    removed = [ident for op, ident in backend.calls if op == "uninstall"]
    # dependents always go before their dependencies
    assert removed.index("app") < removed.index("lib") < removed.index("libdep")
    assert backend.cleanups == 1


def test_unsupported_recreate_downgrades_to_prune():
    backend = SimulatedBackend({"a", "x"})
    plan, _ = _sync(backend, {"a"}, Policy.RECREATE_EXPLICIT)
    assert plan.policy == Policy.PRUNE_EXTRAS
    assert backend.installed == {"a"}


# --- Leaf removal ---


def test_leaf_removal_terminates_on_irreducible_cycle():
    backend = SimulatedBackend({"x", "y"}, pinned={"x", "y"}, leaf_removal=True)
    results = uninstall_leaves(backend)
    assert sorted(r.identifier for r in results) == ["x", "y"]
    assert all(r.outcome == Outcome.FAILED for r in results)


def test_leaf_removal_terminates_on_dependency_cycle():
    backend = SimulatedBackend(
        {"top", "a", "b"}, deps={"top": {"a"}, "a": {"b"}, "b": {"a"}}, leaf_removal=True
    )
    results = uninstall_leaves(backend)
    assert [r.identifier for r in results] == ["top"]
    assert backend.installed == {"a", "b"}


def test_leaf_removal_does_not_retry_stuck_leaf():
    backend = SimulatedBackend(
        {"a", "b", "pinned"}, deps={"a": {"b"}}, pinned={"pinned"}, leaf_removal=True
    )
    results = uninstall_leaves(backend)
    attempts = [r.identifier for r in results]
    assert attempts == ["a", "pinned", "b"]
    assert backend.installed == {"pinned"}
