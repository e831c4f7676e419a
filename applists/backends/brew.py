"""Homebrew backends: taps, formulae and casks.

Brew identifiers are fully qualified names used as-is
(``user/repo``, ``user/repo/formula``, ``cask``).
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from applists.backends.base import BackendAdapter, Capability, CommandRunner, ExecutionResult
from applists.errors import CommandError
from applists.sync.reconciler import ActionKind, InstalledState

log = logging.getLogger(__name__)

BREW = "brew"


def cask_token(name: str) -> str:
    """Trailing path segment of a cask name (``user/tap/foo`` -> ``foo``)."""
    return name.rsplit("/", 1)[-1]


class _BrewBackend(BackendAdapter):
    family = "brew"
    executable = BREW
    prepare_argv = (BREW, "update")


class BrewTaps(_BrewBackend):
    """Taps are only ever added.

    ``brew untap`` refuses a tap that still has installed formulae, so
    pruning would mostly produce failures; prune and recreate fall back to
    install-missing.
    """

    key = "brew-taps"
    title = "Brew taps"
    list_file = "brew-taps.txt"
    capabilities = frozenset({Capability.QUERY, Capability.INSTALL})

    def _query_installed(self) -> frozenset[str] | None:
        return self._query_lines([BREW, "tap"])

    def install_argv(self, ident: str) -> list[str]:
        return [BREW, "tap", ident]


class BrewFormulae(_BrewBackend):
    """Formulae, with leaves as the prune domain.

    Only leaves (formulae nothing else depends on) are ever pruned, so a
    dependency of a wanted formula is never removed. The requested set comes
    from ``brew info --json=v2 --installed``; when it cannot be read, wanted
    formulae that are present only as dependencies are left alone instead of
    being reinstalled to mark them as requested.
    """

    key = "brew-formulae"
    title = "Brew formulae"
    list_file = "brew-formulae.txt"
    supports_recreate = True
    uses_leaf_removal = True
    supports_explicit_tracking = True

    def snapshot(self) -> InstalledState:
        installed = self._query_installed()
        if installed is None:
            return InstalledState(query_failed=True)
        leaves = self._query_leaves_or_none()
        if leaves is None:
            log.warning("%s: leaves unknown, nothing will be pruned", self.title)
            leaves = frozenset()
        requested = self._query_requested()
        if requested is None:
            self.supports_explicit_tracking = False
        return InstalledState.of(installed, explicit=leaves, requested=requested)

    def query_leaves(self) -> frozenset[str]:
        leaves = self._query_leaves_or_none()
        return leaves if leaves is not None else frozenset()

    def _query_installed(self) -> frozenset[str] | None:
        return self._query_lines([BREW, "list", "--formula", "--full-name"])

    def _query_leaves_or_none(self) -> frozenset[str] | None:
        try:
            result = self.runner.run([BREW, "leaves", "--full-name"])
        except CommandError:
            # older brew has no --full-name
            return self._query_lines([BREW, "leaves"])
        return frozenset(line.strip() for line in result.stdout.splitlines() if line.strip())

    def _query_requested(self) -> frozenset[str] | None:
        def on_request(data: dict) -> list[str]:
            return [
                formula["full_name"]
                for formula in data.get("formulae", [])
                if any(inst.get("installed_on_request") for inst in formula.get("installed", []))
            ]

        return self._query_json([BREW, "info", "--json=v2", "--installed"], on_request)

    def install_argv(self, ident: str) -> list[str]:
        return [BREW, "install", ident]

    def reinstall_argv(self, ident: str) -> list[str]:
        return [BREW, "reinstall", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return [BREW, "uninstall", ident]

    def cleanup(self) -> ExecutionResult | None:
        try:
            self.runner.run([BREW, "autoremove"])
        except CommandError as e:
            log.warning("%s: brew autoremove failed: %s", self.title, e.reason)
            return ExecutionResult.failed("autoremove", ActionKind.CLEANUP, e.reason)
        return ExecutionResult.succeeded("autoremove", ActionKind.CLEANUP)


class BrewCasks(_BrewBackend):
    """Casks. Install output goes to one log file per cask in a private temp dir."""

    key = "brew-casks"
    title = "Brew casks"
    list_file = "brew-casks.txt"

    def __init__(self, runner: CommandRunner | None = None, log_dir: str | Path | None = None):
        super().__init__(runner)
        self._log_dir = Path(log_dir) if log_dir else None

    @property
    def log_dir(self) -> Path:
        if self._log_dir is None:
            self._log_dir = Path(tempfile.mkdtemp(prefix="applists-casks-"))
        return self._log_dir

    def _query_installed(self) -> frozenset[str] | None:
        return self._query_lines([BREW, "list", "--cask", "--full-name"])

    def install_argv(self, ident: str) -> list[str]:
        return [BREW, "install", "--cask", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return [BREW, "uninstall", "--cask", cask_token(ident)]

    def install(self, ident: str) -> ExecutionResult:
        log_path = self.log_dir / f"{cask_token(ident)}.log"
        log.info("%s: installing %s (logs: %s)", self.title, ident, log_path)
        argv = self.install_argv(ident)
        try:
            result = self.runner.run(argv, check=False)
        except CommandError as e:
            log_path.write_text(e.reason + "\n", encoding="utf-8")
            log.warning("%s: failed to install %s: %s", self.title, ident, e.reason)
            return ExecutionResult.failed(ident, ActionKind.INSTALL, e.reason)

        log_path.write_text(result.stdout + result.stderr, encoding="utf-8")
        if result.returncode != 0:
            reason = f"exited with status {result.returncode}, see {log_path}"
            log.warning("%s: failed to install %s: %s", self.title, ident, reason)
            return ExecutionResult.failed(ident, ActionKind.INSTALL, reason)
        log.info("%s: installed %s", self.title, ident)
        return ExecutionResult.succeeded(ident, ActionKind.INSTALL)
