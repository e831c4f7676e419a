"""Error taxonomy.

Only ``ConfigError`` is allowed to abort a run. Everything else raised while
talking to a package manager is caught where it happens and turned into a
warning or a recorded item result.
"""

from __future__ import annotations


class AppListsError(Exception):
    """Base class for all applists errors."""


class ConfigError(AppListsError):
    """Structural problem with the configuration; fatal before any batch runs."""


class CommandError(AppListsError):
    """An external command could not be started or exited non-zero."""

    def __init__(self, argv: list[str], returncode: int | None = None, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(self.reason)

    @property
    def reason(self) -> str:
        cmd = " ".join(self.argv)
        if self.returncode is None:
            detail = f"could not run '{cmd}'"
        else:
            detail = f"'{cmd}' exited with status {self.returncode}"
        last_line = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        return f"{detail}: {last_line}" if last_line else detail


class ListFileError(AppListsError):
    """A want-list file exists but cannot be read or decoded."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")
