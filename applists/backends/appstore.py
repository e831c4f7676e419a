"""Mac App Store apps via the ``mas`` CLI.

Want-list lines look like ``497799835 # Xcode``; only the numeric ID counts.
"""

from __future__ import annotations

import re

from applists.backends.base import BackendAdapter

MAS = "mas"


class MacAppStore(BackendAdapter):
    key = "appstore"
    title = "App Store apps"
    list_file = "appstore-apps.txt"
    executable = MAS
    structured_lines = True
    line_pattern = re.compile(r"[0-9]+")

    def _query_installed(self) -> frozenset[str] | None:
        def app_ids(stdout: str) -> list[str]:
            ids = []
            for line in stdout.splitlines():
                fields = line.split()
                if fields and self.line_pattern.fullmatch(fields[0]):
                    ids.append(fields[0])
            return ids

        return self._query_lines([MAS, "list"], app_ids)

    def install_argv(self, ident: str) -> list[str]:
        return [MAS, "install", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return [MAS, "uninstall", ident]
