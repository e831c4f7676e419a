"""Backend adapter base — one package manager behind a uniform interface.

Each adapter supplies three things: how to read its want-list lines into
identifiers, how to snapshot what is installed, and the argv for its
install/uninstall commands. Everything else (planning, gating, failure
isolation) is shared and lives in ``applists.sync``.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from applists.errors import CommandError
from applists.lists.store import strip_inline_comment
from applists.sync.reconciler import ActionKind, InstalledState, Policy

log = logging.getLogger(__name__)


class Capability(Enum):
    QUERY = "query"
    INSTALL = "install"
    UNINSTALL = "uninstall"


FULL_CAPABILITIES = frozenset({Capability.QUERY, Capability.INSTALL, Capability.UNINSTALL})
REPORT_ONLY = frozenset({Capability.QUERY})


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one action on one identifier."""

    identifier: str
    action: ActionKind
    outcome: Outcome
    reason: str = ""

    @classmethod
    def succeeded(cls, identifier: str, action: ActionKind) -> ExecutionResult:
        return cls(identifier, action, Outcome.SUCCEEDED)

    @classmethod
    def failed(cls, identifier: str, action: ActionKind, reason: str) -> ExecutionResult:
        return cls(identifier, action, Outcome.FAILED, reason)

    @classmethod
    def skipped(cls, identifier: str, action: ActionKind, reason: str) -> ExecutionResult:
        return cls(identifier, action, Outcome.SKIPPED, reason)


@dataclass
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner:
    """Blocking subprocess wrapper. No timeout: installs run to completion."""

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def run(self, argv: list[str], *, check: bool = True) -> CommandResult:
        log.debug("Running: %s", " ".join(argv))
        try:
            proc = subprocess.run(argv, capture_output=True, text=True)
        except OSError as e:
            raise CommandError(argv, None, str(e)) from e

        result = CommandResult(
            argv=list(argv),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if check and proc.returncode != 0:
            raise CommandError(argv, proc.returncode, result.stderr)
        return result


class BackendAdapter:
    """Base class for all package/app backends."""

    key: ClassVar[str]
    title: ClassVar[str]
    list_file: ClassVar[str]
    family: ClassVar[str | None] = None
    executable: str | None = None
    capabilities: ClassVar[frozenset[Capability]] = FULL_CAPABILITIES

    supports_recreate: ClassVar[bool] = False
    uses_leaf_removal: ClassVar[bool] = False
    supports_explicit_tracking: bool = False

    structured_lines: ClassVar[bool] = False  # "ID # comment" lines
    line_pattern: ClassVar[re.Pattern[str] | None] = None
    protected: ClassVar[frozenset[str]] = frozenset()  # never pruned
    prepare_argv: ClassVar[tuple[str, ...] | None] = None

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or CommandRunner()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key}>"

    # ── Capabilities and policy ──────────────────────────────────────

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def is_report_only(self) -> bool:
        return not self.can(Capability.INSTALL)

    def is_available(self) -> bool:
        if self.executable is None:
            return True
        return self.runner.which(self.executable) is not None

    def resolve_policy(self, requested: Policy) -> Policy:
        """Downgrade a requested policy to the strongest one this backend supports."""
        policy = requested
        if policy is Policy.RECREATE_EXPLICIT and not self.supports_recreate:
            policy = Policy.PRUNE_EXTRAS
        if policy is Policy.PRUNE_EXTRAS and not self.can(Capability.UNINSTALL):
            policy = Policy.INSTALL_MISSING
        return policy

    # ── Identity ─────────────────────────────────────────────────────

    def normalize(self, raw: str) -> str:
        """Map a listed or queried name to this backend's identifier."""
        return raw.strip()

    def parse_line(self, line: str) -> str | None:
        field = strip_inline_comment(line) if self.structured_lines else line.strip()
        ident = self.normalize(field)
        if not ident:
            return None
        if self.line_pattern is not None and not self.line_pattern.fullmatch(ident):
            return None
        return ident

    # ── Query ────────────────────────────────────────────────────────

    def query(self) -> frozenset[str]:
        """Currently installed identifiers; empty (with a warning) if listing fails."""
        installed = self._query_installed()
        return installed if installed is not None else frozenset()

    def snapshot(self) -> InstalledState:
        installed = self._query_installed()
        if installed is None:
            return InstalledState(query_failed=True)
        return self._protect(InstalledState.of(installed))

    def query_leaves(self) -> frozenset[str]:
        raise NotImplementedError(f"{self.title} has no dependency leaves")

    def _query_installed(self) -> frozenset[str] | None:
        raise NotImplementedError

    def _protect(self, state: InstalledState) -> InstalledState:
        if not self.protected:
            return state
        return InstalledState(
            installed=state.installed,
            explicit=state.prunable - self.protected,
            requested=state.requested,
            query_failed=state.query_failed,
        )

    def _query_lines(
        self,
        argv: list[str],
        extract: Callable[[str], Iterable[str]] | None = None,
        *,
        check: bool = True,
    ) -> frozenset[str] | None:
        """Run a listing command and normalize each extracted name.

        Returns ``None`` when the command fails so callers can tell "nothing
        installed" from "could not find out". With ``check=False`` a non-zero
        exit only counts as a failure when the command printed nothing.
        """
        try:
            result = self.runner.run(argv, check=check)
        except CommandError as e:
            log.warning("%s: could not list installed items: %s", self.title, e.reason)
            return None
        if result.returncode != 0:
            error = CommandError(argv, result.returncode, result.stderr)
            if not result.stdout.strip():
                log.warning("%s: could not list installed items: %s", self.title, error.reason)
                return None
            log.debug("%s: using listing output despite %s", self.title, error.reason)
        names = extract(result.stdout) if extract else result.stdout.splitlines()
        return frozenset(ident for ident in (self.normalize(n) for n in names) if ident)

    def _query_json(
        self, argv: list[str], extract: Callable[[Any], Iterable[str]], *, check: bool = True
    ) -> frozenset[str] | None:
        def parse(stdout: str) -> Iterable[str]:
            return extract(json.loads(stdout or "null"))

        try:
            return self._query_lines(argv, parse, check=check)
        except (ValueError, TypeError, AttributeError) as e:
            log.warning("%s: unreadable output from '%s': %s", self.title, " ".join(argv), e)
            return None

    # ── Mutations ────────────────────────────────────────────────────

    def install_argv(self, ident: str) -> list[str]:
        raise NotImplementedError

    def uninstall_argv(self, ident: str) -> list[str]:
        raise NotImplementedError

    def reinstall_argv(self, ident: str) -> list[str]:
        return self.install_argv(ident)

    def install(self, ident: str) -> ExecutionResult:
        return self._attempt(ActionKind.INSTALL, ident, self.install_argv(ident))

    def reinstall(self, ident: str) -> ExecutionResult:
        return self._attempt(ActionKind.REINSTALL, ident, self.reinstall_argv(ident))

    def uninstall(self, ident: str) -> ExecutionResult:
        return self._attempt(ActionKind.UNINSTALL, ident, self.uninstall_argv(ident))

    def cleanup(self) -> ExecutionResult | None:
        """Backend-wide tidy-up after removals; ``None`` when there is nothing to do."""
        return None

    def _attempt(self, action: ActionKind, ident: str, argv: list[str]) -> ExecutionResult:
        try:
            self.runner.run(argv)
        except CommandError as e:
            log.warning("%s: failed to %s %s: %s", self.title, action.value, ident, e.reason)
            return ExecutionResult.failed(ident, action, e.reason)
        log.info("%s: %s %s", self.title, _PAST_TENSE[action], ident)
        return ExecutionResult.succeeded(ident, action)


_PAST_TENSE = {
    ActionKind.INSTALL: "installed",
    ActionKind.REINSTALL: "reinstalled",
    ActionKind.UNINSTALL: "uninstalled",
    ActionKind.CLEANUP: "cleaned up",
}
