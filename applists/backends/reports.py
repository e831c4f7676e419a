"""Query-only backends: things applists can check but not install.

Missing items are reported so they can be installed by hand.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from applists.backends.base import REPORT_ONLY, BackendAdapter, CommandRunner

ARC_EXTENSION_ID = re.compile(r"[a-z]{16,}")


def _default_app_dirs() -> list[Path]:
    return [Path("/Applications"), Path.home() / "Applications"]


def _default_arc_dirs() -> list[Path]:
    support = Path.home() / "Library" / "Application Support" / "Arc"
    return [support / "User Data", support]


class ManualApps(BackendAdapter):
    """App bundles expected in /Applications or ~/Applications."""

    key = "manual-apps"
    title = "Manual apps"
    list_file = "manual-apps.txt"
    capabilities = REPORT_ONLY

    def __init__(self, runner: CommandRunner | None = None, app_dirs: Iterable[Path] | None = None):
        super().__init__(runner)
        self.app_dirs = list(app_dirs) if app_dirs is not None else _default_app_dirs()

    def _query_installed(self) -> frozenset[str] | None:
        found: set[str] = set()
        for app_dir in self.app_dirs:
            if app_dir.is_dir():
                found.update(entry.name for entry in app_dir.iterdir())
        return frozenset(found)


class ArcExtensions(BackendAdapter):
    """Arc browser extensions, tracked by their 32-letter store IDs."""

    key = "arc-extensions"
    title = "Arc extensions"
    list_file = "arc-extensions.txt"
    capabilities = REPORT_ONLY
    structured_lines = True
    line_pattern = ARC_EXTENSION_ID

    def __init__(self, runner: CommandRunner | None = None, arc_dirs: Iterable[Path] | None = None):
        super().__init__(runner)
        self.arc_dirs = list(arc_dirs) if arc_dirs is not None else _default_arc_dirs()

    def _query_installed(self) -> frozenset[str] | None:
        base = next((d for d in self.arc_dirs if d.is_dir()), None)
        if base is None:
            return frozenset()
        ids: set[str] = set()
        for ext_dir in base.rglob("Extensions"):
            if not ext_dir.is_dir():
                continue
            ids.update(
                child.name
                for child in ext_dir.iterdir()
                if child.is_dir() and ARC_EXTENSION_ID.fullmatch(child.name)
            )
        return frozenset(ids)
