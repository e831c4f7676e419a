"""Sync engine — reconcile every selected backend, one after another.

Per backend: list file present? -> CLI available? -> load want list ->
snapshot installed state -> reconcile -> execute. Backends share nothing but
the executor's confirmation settings, so a problem in one never stops the
next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from applists.backends import BackendAdapter, CommandRunner, ExecutionResult, create_backends
from applists.config import SyncConfig
from applists.errors import CommandError, ListFileError
from applists.lists.store import ListStore
from applists.sync.executor import ConfirmFn, ExecutionReport, Executor
from applists.sync.reconciler import ActionPlan, Policy, reconcile

log = logging.getLogger(__name__)


class SkipReason:
    NO_LIST = "no list file"
    UNAVAILABLE = "not installed"
    UNREADABLE = "unreadable list file"


@dataclass
class BackendReport:
    """Everything that happened to one backend during a run."""

    key: str
    title: str
    policy: Policy | None = None
    requested_policy: Policy | None = None
    wanted: frozenset[str] = frozenset()
    plan: ActionPlan | None = None
    execution: ExecutionReport | None = None
    skipped_reason: str = ""
    query_failed: bool = False
    explicit_tracking: bool = True
    report_only: bool = False

    @property
    def skipped(self) -> bool:
        return bool(self.skipped_reason)

    @property
    def results(self) -> list[ExecutionResult]:
        return self.execution.results if self.execution else []

    @property
    def failures(self) -> list[ExecutionResult]:
        return self.execution.failures if self.execution else []


@dataclass
class SyncReport:
    dry_run: bool = False
    backends: list[BackendReport] = field(default_factory=list)

    @property
    def failures(self) -> list[tuple[BackendReport, ExecutionResult]]:
        return [(b, r) for b in self.backends for r in b.failures]

    def get(self, key: str) -> BackendReport | None:
        return next((b for b in self.backends if b.key == key), None)


class SyncEngine:
    """Runs the reconcile/execute cycle for each backend in order."""

    def __init__(
        self,
        config: SyncConfig,
        executor: Executor,
        backends: list[BackendAdapter],
        store: ListStore | None = None,
    ):
        self.config = config
        self.executor = executor
        self.backends = backends
        self.store = store or ListStore(config.outdir)
        self._prepared: set[tuple[str, ...]] = set()

    def run(self) -> SyncReport:
        mode = " (dry-run)" if self.config.dry_run else ""
        log.info("Starting sync%s from %s", mode, self.store.directory)
        report = SyncReport(dry_run=self.config.dry_run)
        for adapter in self.backends:
            report.backends.append(self.sync_backend(adapter))
        return report

    def sync_backend(self, adapter: BackendAdapter) -> BackendReport:
        report = BackendReport(key=adapter.key, title=adapter.title, report_only=adapter.is_report_only)

        if not self.store.exists(adapter.list_file):
            log.debug("%s: no %s, skipping", adapter.title, adapter.list_file)
            report.skipped_reason = SkipReason.NO_LIST
            return report
        if not adapter.is_available():
            log.warning("%s: '%s' not found, skipping", adapter.title, adapter.executable)
            report.skipped_reason = SkipReason.UNAVAILABLE
            return report

        try:
            report.wanted = self.store.load_list(adapter.list_file, adapter.parse_line)
        except ListFileError as e:
            log.warning("%s: cannot read %s, skipping: %s", adapter.title, e.path, e.detail)
            report.skipped_reason = SkipReason.UNREADABLE
            return report

        requested = self.config.policy_for(adapter.key)
        policy = adapter.resolve_policy(requested)
        if policy is not requested:
            log.debug("%s: %s not supported, using %s", adapter.title, requested.value, policy.value)
        report.requested_policy = requested
        report.policy = policy

        self._prepare(adapter)

        state = adapter.snapshot()
        if state.query_failed:
            log.warning(
                "%s: installed set unknown; every listed item is treated as missing", adapter.title
            )
        report.query_failed = state.query_failed
        report.explicit_tracking = adapter.supports_explicit_tracking

        plan = reconcile(report.wanted, state, policy)
        for ident in plan.already_present:
            log.debug("%s: %s already installed", adapter.title, ident)
        report.plan = plan

        log.info(
            "%s (%s): %d to install, %d to reinstall, %d to uninstall",
            adapter.title,
            policy.value,
            len(plan.to_install),
            len(plan.to_reinstall),
            len(plan.to_uninstall),
        )
        report.execution = self.executor.execute(adapter, plan)
        return report

    def _prepare(self, adapter: BackendAdapter) -> None:
        """Run a backend family's one-off preparation command (``brew update``)."""
        argv = adapter.prepare_argv
        if not argv or self.config.dry_run or argv in self._prepared:
            return
        self._prepared.add(argv)
        try:
            adapter.runner.run(list(argv))
        except CommandError as e:
            log.warning("%s: preparation failed: %s", adapter.title, e.reason)


def run_sync(
    config: SyncConfig,
    *,
    confirm: ConfirmFn | None = None,
    runner: CommandRunner | None = None,
) -> SyncReport:
    """Build backends and an executor from ``config`` and run a full sync."""
    backends = create_backends(config.types, runner, pip_command=config.settings.pip_command)
    executor = Executor(dry_run=config.dry_run, force=config.force, confirm=confirm)
    return SyncEngine(config, executor, backends).run()
