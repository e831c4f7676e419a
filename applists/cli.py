"""applists CLI — keep this machine in line with its app lists."""

import click
from rich.console import Console
from rich.table import Table

from applists import __version__
from applists.errors import ConfigError
from applists.log import configure_logging

console = Console()


def _validate_types(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]) -> tuple[str, ...]:
    from applists.config import parse_types

    try:
        parse_types(value)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e
    return value


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool):
    """applists — reconcile installed packages and apps with plain-text lists.

    Each package manager has its own list file in the list directory
    (~/.applists by default). The lists are the source of truth.
    """
    configure_logging(verbose=verbose, force=True)


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--dry-run", "-n", is_flag=True, help="Show planned actions, change nothing")
@click.option("--prune", is_flag=True, help="Also uninstall top-level items missing from the lists")
@click.option(
    "--recreate-explicit",
    is_flag=True,
    help="Brew formulae and pip: uninstall everything, then install the list",
)
@click.option("--force", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option(
    "--types",
    "-t",
    multiple=True,
    callback=_validate_types,
    help="Comma-separated backend types (default: all), e.g. brew,npm",
)
@click.option("--outdir", "-o", default=None, help="List directory (must match $OUTDIR if both are set)")
def sync(
    dry_run: bool,
    prune: bool,
    recreate_explicit: bool,
    force: bool,
    types: tuple[str, ...],
    outdir: str | None,
):
    """Install what the lists want; with --prune, remove what they don't."""
    from applists.config import build_config
    from applists.sync.engine import run_sync
    from applists.sync.report import print_report

    try:
        config = build_config(
            outdir=outdir,
            types=types,
            prune=prune,
            recreate_explicit=recreate_explicit,
            dry_run=dry_run,
            force=force,
        )
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    label = " (dry-run)" if dry_run else ""
    console.print(f"\n[bold blue]applists[/] — Syncing from {config.outdir}{label}\n")

    report = run_sync(config, confirm=_confirm)
    print_report(console, report)


def _confirm(description: str) -> bool:
    return click.confirm(f"Proceed to {description}?", default=False)


# ── Backends ─────────────────────────────────────────────────────────


@main.command()
@click.option("--outdir", "-o", default=None, help="List directory (must match $OUTDIR if both are set)")
def backends(outdir: str | None):
    """List known backend types, their list files and availability."""
    from applists.backends import create_backends
    from applists.config import load_settings, resolve_outdir

    try:
        directory = resolve_outdir(outdir)
        settings = load_settings(directory) if directory.is_dir() else None
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=f"Backends ({directory})")
    table.add_column("Type", style="cyan")
    table.add_column("List file")
    table.add_column("List", justify="center")
    table.add_column("CLI", justify="center")
    table.add_column("Capabilities")

    pip_command = settings.pip_command if settings else None
    for adapter in create_backends(pip_command=pip_command):
        has_list = "[green]Y[/]" if (directory / adapter.list_file).is_file() else "[dim]N[/]"
        available = "[green]Y[/]" if adapter.is_available() else "[red]N[/]"
        caps = sorted(c.value for c in adapter.capabilities)
        if adapter.supports_recreate:
            caps.append("recreate")
        table.add_row(adapter.key, adapter.list_file, has_list, available, ", ".join(caps))

    console.print(table)


if __name__ == "__main__":
    main()
