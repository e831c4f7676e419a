"""Render sync plans and results for the terminal."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from applists.backends.base import Outcome
from applists.sync.engine import BackendReport, SyncReport
from applists.sync.executor import AbortReason, BatchState
from applists.sync.reconciler import ActionKind, Policy

_VERBS = {
    ActionKind.INSTALL: "install",
    ActionKind.REINSTALL: "reinstall",
    ActionKind.UNINSTALL: "uninstall",
}


def backend_notes(backend: BackendReport) -> list[str]:
    notes = []
    if backend.skipped_reason:
        notes.append(f"skipped: {backend.skipped_reason}")
    if backend.query_failed:
        notes.append("installed set unknown")
    pruning = backend.policy is not None and backend.policy is not Policy.INSTALL_MISSING
    if pruning and not backend.explicit_tracking:
        notes.append("explicit tracking unavailable")
    if backend.policy and backend.requested_policy and backend.policy is not backend.requested_policy:
        notes.append(f"{backend.requested_policy.value} unsupported")
    if backend.execution:
        for batch in backend.execution.batches:
            if batch.state is BatchState.ABORTED and batch.abort_reason == AbortReason.DECLINED:
                notes.append(f"{batch.action.value} declined")
    return notes


def summary_table(report: SyncReport) -> Table:
    title = "Sync plan (dry-run)" if report.dry_run else "Sync results"
    table = Table(title=title)
    table.add_column("Backend", style="cyan")
    table.add_column("Policy", style="dim")
    table.add_column("Wanted", justify="right")
    table.add_column("Install", justify="right")
    table.add_column("Reinstall", justify="right")
    table.add_column("Uninstall", justify="right")
    if not report.dry_run:
        table.add_column("OK", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Notes")

    for backend in report.backends:
        plan = backend.plan
        row = [
            backend.title,
            backend.policy.value if backend.policy else "-",
            str(len(backend.wanted)) if not backend.skipped else "-",
            str(len(plan.to_install)) if plan else "-",
            str(len(plan.to_reinstall)) if plan else "-",
            str(len(plan.to_uninstall)) if plan else "-",
        ]
        if not report.dry_run:
            execution = backend.execution
            for outcome in (Outcome.SUCCEEDED, Outcome.FAILED, Outcome.SKIPPED):
                row.append(str(execution.count(outcome)) if execution else "-")
        row.append(", ".join(backend_notes(backend)))
        table.add_row(*row)
    return table


def print_report(console: Console, report: SyncReport) -> None:
    """Per-backend planned actions, then the summary table, then every failure."""
    for backend in report.backends:
        if backend.plan is None or backend.plan.is_empty:
            continue
        console.print(f"\n[bold]{backend.title}[/]")
        if backend.report_only:
            for ident in backend.plan.to_install:
                console.print(f"  [yellow]![/] install manually: {ident}")
            continue
        prefix = "would " if report.dry_run else ""
        for batch in backend.execution.batches if backend.execution else []:
            verb = _VERBS[batch.action]
            if batch.leaf_removal:
                console.print(f"  [dim]-[/] {prefix}uninstall every installed package, leaves first")
            for ident in batch.identifiers:
                console.print(f"  [dim]-[/] {prefix}{verb} {ident}")
        if not report.dry_run and backend.execution and backend.execution.cleanup:
            cleanup = backend.execution.cleanup
            status = "[green]ok[/]" if cleanup.outcome is Outcome.SUCCEEDED else "[red]failed[/]"
            console.print(f"  [dim]-[/] cleanup ({cleanup.identifier}): {status}")

    console.print()
    console.print(summary_table(report))

    failures = report.failures
    if failures:
        console.print(f"\n[red]{len(failures)} action(s) failed:[/]")
        for backend, result in failures:
            console.print(
                f"  [red]x[/] {backend.title}: {result.action.value} {result.identifier}: {result.reason}"
            )
    elif not report.dry_run:
        console.print("\n[green]Sync complete.[/]")
