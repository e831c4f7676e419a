"""User-site pip packages.

Identifiers are distribution names with any ``==version`` pin removed. The
prune domain is ``pip list --user --not-required``; if pip cannot produce it
the full user set is used instead, which may prune packages that only exist
as dependencies of other user packages.
"""

from __future__ import annotations

import logging
from typing import Any

from applists.backends.base import BackendAdapter, CommandRunner
from applists.sync.reconciler import InstalledState

log = logging.getLogger(__name__)

PIP_CANDIDATES = ("pip3", "pip")


def strip_pin(spec: str) -> str:
    return spec.split("==", 1)[0].strip()


def _names(data: Any) -> list[str]:
    return [entry["name"] for entry in data or []]


class PipUser(BackendAdapter):
    key = "pip"
    title = "pip user packages"
    list_file = "pip-user.txt"
    supports_recreate = True
    supports_explicit_tracking = True

    def __init__(self, runner: CommandRunner | None = None, command: str | None = None):
        super().__init__(runner)
        self._command = command

    @property
    def executable(self) -> str:
        if self._command is None:
            found = next((c for c in PIP_CANDIDATES if self.runner.which(c)), None)
            self._command = found or PIP_CANDIDATES[0]
        return self._command

    def normalize(self, raw: str) -> str:
        return strip_pin(raw)

    def snapshot(self) -> InstalledState:
        installed = self._query_installed()
        if installed is None:
            return InstalledState(query_failed=True)
        explicit = self._query_json(
            [self.executable, "list", "--user", "--not-required", "--format=json"], _names
        )
        if explicit is None:
            log.warning(
                "%s: cannot tell top-level packages from dependencies; "
                "treating every user package as explicit",
                self.title,
            )
            self.supports_explicit_tracking = False
        return InstalledState.of(installed, explicit=explicit)

    def _query_installed(self) -> frozenset[str] | None:
        return self._query_json([self.executable, "list", "--user", "--format=json"], _names)

    def install_argv(self, ident: str) -> list[str]:
        return [self.executable, "install", "--user", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return [self.executable, "uninstall", "-y", ident]
