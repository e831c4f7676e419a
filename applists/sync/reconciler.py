"""Reconciler — turn (want list, installed state, policy) into an action plan.

Everything in this module is pure: no commands are run, nothing is logged.
The same inputs always produce the same plan, and every sequence in the plan
is sorted lexicographically so output and execution order are deterministic.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class Policy(Enum):
    """How far a backend is pushed towards its want list."""

    INSTALL_MISSING = "install-missing"
    PRUNE_EXTRAS = "prune-extras"
    RECREATE_EXPLICIT = "recreate-explicit"

    @classmethod
    def parse(cls, value: str) -> Policy:
        """Accept the enum value or its short alias (install/prune/recreate)."""
        normalized = value.strip().lower()
        for policy in cls:
            if normalized in (policy.value, policy.value.split("-")[0]):
                return policy
        raise ValueError(f"Unknown policy: {value!r}")


class ActionKind(Enum):
    INSTALL = "install"
    REINSTALL = "reinstall"
    UNINSTALL = "uninstall"
    CLEANUP = "cleanup"  # backend-wide, never part of a plan


@dataclass(frozen=True)
class InstalledState:
    """Snapshot of what a backend currently has installed.

    ``installed`` is everything present. ``explicit`` is the subset that may be
    pruned (Brew leaves, pip packages nothing else requires); ``None`` means the
    backend cannot tell explicit from dependency-pulled installs, in which case
    the full installed set stands in for it. ``requested`` is the subset the
    user asked for directly (Brew ``installed_on_request``); when known, wanted
    items that are present but not requested get reinstalled to promote them.
    """

    installed: frozenset[str] = frozenset()
    explicit: frozenset[str] | None = None
    requested: frozenset[str] | None = None
    query_failed: bool = False

    @classmethod
    def of(
        cls,
        installed: Iterable[str],
        explicit: Iterable[str] | None = None,
        requested: Iterable[str] | None = None,
        query_failed: bool = False,
    ) -> InstalledState:
        return cls(
            installed=frozenset(installed),
            explicit=None if explicit is None else frozenset(explicit),
            requested=None if requested is None else frozenset(requested),
            query_failed=query_failed,
        )

    @property
    def prunable(self) -> frozenset[str]:
        return self.installed if self.explicit is None else self.explicit


@dataclass(frozen=True)
class ActionPlan:
    """Disjoint, sorted action sequences for one backend."""

    policy: Policy
    to_install: tuple[str, ...] = ()
    to_reinstall: tuple[str, ...] = ()
    to_uninstall: tuple[str, ...] = ()
    already_present: tuple[str, ...] = field(default=(), compare=False)

    @property
    def is_empty(self) -> bool:
        return not (self.to_install or self.to_reinstall or self.to_uninstall)

    @property
    def action_count(self) -> int:
        return len(self.to_install) + len(self.to_reinstall) + len(self.to_uninstall)

    def actions(self, kind: ActionKind) -> tuple[str, ...]:
        if kind is ActionKind.INSTALL:
            return self.to_install
        if kind is ActionKind.REINSTALL:
            return self.to_reinstall
        if kind is ActionKind.UNINSTALL:
            return self.to_uninstall
        raise ValueError(f"Plans carry no {kind.value} actions")


def reconcile(
    wanted: Iterable[str],
    state: InstalledState,
    policy: Policy = Policy.INSTALL_MISSING,
) -> ActionPlan:
    """Compute the action plan for one backend.

    - INSTALL_MISSING: install ``wanted - installed``; never uninstall.
    - PRUNE_EXTRAS: as above, plus uninstall ``prunable - wanted``.
    - RECREATE_EXPLICIT: uninstall everything installed, then install
      everything wanted, including items already present.

    Under the first two policies a wanted item that is installed but not in
    ``state.requested`` is scheduled for reinstall instead of being treated as
    satisfied.
    """
    want = frozenset(wanted)

    if policy is Policy.RECREATE_EXPLICIT:
        return ActionPlan(
            policy=policy,
            to_install=tuple(sorted(want)),
            to_uninstall=tuple(sorted(state.installed)),
        )

    present = want & state.installed
    if state.requested is not None:
        to_reinstall = present - state.requested
    else:
        to_reinstall = frozenset()

    to_uninstall: frozenset[str] = frozenset()
    if policy is Policy.PRUNE_EXTRAS:
        to_uninstall = state.prunable - want

    return ActionPlan(
        policy=policy,
        to_install=tuple(sorted(want - state.installed)),
        to_reinstall=tuple(sorted(to_reinstall)),
        to_uninstall=tuple(sorted(to_uninstall)),
        already_present=tuple(sorted(present - to_reinstall)),
    )
