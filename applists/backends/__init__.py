"""Backend registry — every package/app source applists knows about.

Order matters: taps before formulae before casks, and the order here is the
order backends are reconciled and reported in.
"""

from __future__ import annotations

from collections.abc import Iterable

from applists.backends.appstore import MacAppStore
from applists.backends.base import (
    BackendAdapter,
    Capability,
    CommandResult,
    CommandRunner,
    ExecutionResult,
    Outcome,
)
from applists.backends.brew import BrewCasks, BrewFormulae, BrewTaps
from applists.backends.node import NpmGlobal, PnpmGlobal, YarnGlobal
from applists.backends.pip import PipUser
from applists.backends.reports import ArcExtensions, ManualApps

BACKEND_CLASSES: tuple[type[BackendAdapter], ...] = (
    BrewTaps,
    BrewFormulae,
    BrewCasks,
    MacAppStore,
    ManualApps,
    ArcExtensions,
    NpmGlobal,
    YarnGlobal,
    PnpmGlobal,
    PipUser,
)

BACKENDS: dict[str, type[BackendAdapter]] = {cls.key: cls for cls in BACKEND_CLASSES}

# Family aliases accepted wherever a type key is.
TYPE_ALIASES: dict[str, tuple[str, ...]] = {
    "brew": tuple(cls.key for cls in BACKEND_CLASSES if cls.family == "brew"),
}


def known_type_keys() -> list[str]:
    return sorted(set(BACKENDS) | set(TYPE_ALIASES))


def create_backends(
    selected: Iterable[str] | None = None,
    runner: CommandRunner | None = None,
    *,
    pip_command: str | None = None,
) -> list[BackendAdapter]:
    """Instantiate the selected backends in registry order (all when ``selected`` is empty)."""
    keys = set(selected or ())
    runner = runner or CommandRunner()
    backends: list[BackendAdapter] = []
    for cls in BACKEND_CLASSES:
        if keys and cls.key not in keys:
            continue
        if cls is PipUser:
            backends.append(PipUser(runner, command=pip_command))
        else:
            backends.append(cls(runner))
    return backends


__all__ = [
    "BACKENDS",
    "BACKEND_CLASSES",
    "TYPE_ALIASES",
    "BackendAdapter",
    "Capability",
    "CommandResult",
    "CommandRunner",
    "ExecutionResult",
    "Outcome",
    "create_backends",
    "known_type_keys",
]
