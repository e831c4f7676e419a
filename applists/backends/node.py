"""Global JavaScript packages: npm, Yarn (classic) and pnpm.

Identifiers are package names without a version: a trailing ``@version`` is
stripped while a leading ``@scope/`` is kept, so ``@babel/core@7.0.0``
becomes ``@babel/core`` and ``lodash@4.17.21`` becomes ``lodash``.
"""

from __future__ import annotations

import re
from typing import Any

from applists.backends.base import BackendAdapter

_YARN_INFO = re.compile(r'info "([^"]+)"')


def strip_version(spec: str) -> str:
    spec = spec.strip()
    at = spec.find("@", 1 if spec.startswith("@") else 0)
    return spec[:at] if at > 0 else spec


class _NodeBackend(BackendAdapter):
    def normalize(self, raw: str) -> str:
        return strip_version(raw)


class NpmGlobal(_NodeBackend):
    key = "npm"
    title = "npm globals"
    list_file = "npm-global.txt"
    executable = "npm"
    protected = frozenset({"npm", "corepack"})

    def _query_installed(self) -> frozenset[str] | None:
        def names(data: Any) -> list[str]:
            return list((data or {}).get("dependencies", {}))

        # npm exits 1 on extraneous or invalid packages but still prints the tree
        return self._query_json(["npm", "list", "-g", "--depth=0", "--json"], names, check=False)

    def install_argv(self, ident: str) -> list[str]:
        return ["npm", "install", "-g", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return ["npm", "uninstall", "-g", ident]


class YarnGlobal(_NodeBackend):
    key = "yarn"
    title = "Yarn globals"
    list_file = "yarn-global.txt"
    executable = "yarn"

    def _query_installed(self) -> frozenset[str] | None:
        def names(stdout: str) -> list[str]:
            return _YARN_INFO.findall(stdout)

        return self._query_lines(["yarn", "global", "list", "--depth=0"], names)

    def install_argv(self, ident: str) -> list[str]:
        return ["yarn", "global", "add", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return ["yarn", "global", "remove", ident]


class PnpmGlobal(_NodeBackend):
    key = "pnpm"
    title = "pnpm globals"
    list_file = "pnpm-global.txt"
    executable = "pnpm"

    def _query_installed(self) -> frozenset[str] | None:
        def names(data: Any) -> list[str]:
            # one entry per global store directory
            entries = data if isinstance(data, list) else [data or {}]
            found: list[str] = []
            for entry in entries:
                found.extend(entry.get("dependencies", {}))
            return found

        return self._query_json(["pnpm", "list", "-g", "--depth=0", "--json"], names)

    def install_argv(self, ident: str) -> list[str]:
        return ["pnpm", "add", "-g", ident]

    def uninstall_argv(self, ident: str) -> list[str]:
        return ["pnpm", "remove", "-g", ident]
