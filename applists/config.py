"""Configuration — where the want lists live and what a run should do.

Sources, strongest first: command-line flags, the ``OUTDIR`` environment
variable, the optional ``applists.yaml`` settings file inside the out
directory. A disagreement between ``--outdir`` and ``OUTDIR`` is an error,
not a precedence question.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from applists.backends import BACKENDS, TYPE_ALIASES, known_type_keys
from applists.errors import ConfigError
from applists.sync.reconciler import Policy

ENV_OUTDIR = "OUTDIR"
SETTINGS_FILE = "applists.yaml"


def default_outdir() -> Path:
    return Path.home() / ".applists"


def resolve_outdir(cli_value: str | Path | None, environ: Mapping[str, str] | None = None) -> Path:
    """Pick the out directory from ``--outdir``, ``OUTDIR`` or the default."""
    environ = os.environ if environ is None else environ
    env_value = environ.get(ENV_OUTDIR) or None

    cli_path = Path(cli_value).expanduser() if cli_value else None
    env_path = Path(env_value).expanduser() if env_value else None

    if cli_path and env_path and cli_path.resolve() != env_path.resolve():
        raise ConfigError(
            f"{ENV_OUTDIR}={env_path} conflicts with --outdir {cli_path}; unset one or make them match"
        )
    return cli_path or env_path or default_outdir()


def check_outdir(outdir: Path) -> Path:
    """The out directory must exist and be readable; lists are never written during a sync."""
    if not outdir.exists():
        raise ConfigError(f"List directory does not exist: {outdir}")
    if not outdir.is_dir():
        raise ConfigError(f"List directory is not a directory: {outdir}")
    if not os.access(outdir, os.R_OK | os.X_OK):
        raise ConfigError(f"List directory is not readable: {outdir}")
    return outdir


def parse_types(values: Iterable[str]) -> frozenset[str]:
    """Expand comma-separated type keys and aliases into backend keys.

    An empty result means "every backend".
    """
    selected: set[str] = set()
    for value in values:
        for key in (part.strip() for part in value.split(",")):
            if not key:
                continue
            if key in TYPE_ALIASES:
                selected.update(TYPE_ALIASES[key])
            elif key in BACKENDS:
                selected.add(key)
            else:
                raise ConfigError(
                    f"Unknown type: {key!r} (expected one of: {', '.join(known_type_keys())})"
                )
    return frozenset(selected)


@dataclass
class Settings:
    """Contents of ``applists.yaml``; every field optional."""

    types: frozenset[str] = frozenset()
    policies: dict[str, Policy] = field(default_factory=dict)
    pip_command: str | None = None


def load_settings(outdir: str | Path) -> Settings:
    path = Path(outdir) / SETTINGS_FILE
    if not path.is_file():
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    types = data.get("types") or []
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        raise ConfigError(f"{path}: 'types' must be a list of type keys")

    raw_policies = data.get("policies") or {}
    if not isinstance(raw_policies, dict):
        raise ConfigError(f"{path}: 'policies' must be a mapping of type to policy")

    policies: dict[str, Policy] = {}
    for type_key, value in raw_policies.items():
        try:
            policy = Policy.parse(str(value))
        except ValueError as e:
            raise ConfigError(f"{path}: {e}") from e
        for key in parse_types([str(type_key)]):
            policies[key] = policy

    pip_command = data.get("pip_command")
    return Settings(
        types=parse_types(str(t) for t in types),
        policies=policies,
        pip_command=str(pip_command) if pip_command else None,
    )


@dataclass
class SyncConfig:
    """Resolved inputs for one sync run."""

    outdir: Path
    policy: Policy = Policy.INSTALL_MISSING
    types: frozenset[str] = frozenset()
    dry_run: bool = False
    force: bool = False
    settings: Settings = field(default_factory=Settings)

    def policy_for(self, backend_key: str) -> Policy:
        return self.settings.policies.get(backend_key, self.policy)


def build_config(
    *,
    outdir: str | Path | None = None,
    types: Iterable[str] = (),
    prune: bool = False,
    recreate_explicit: bool = False,
    dry_run: bool = False,
    force: bool = False,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Resolve flags, environment and settings file into a ``SyncConfig``.

    Raises:
        ConfigError: On any structural problem. Nothing has run yet.
    """
    resolved = check_outdir(resolve_outdir(outdir, environ))
    settings = load_settings(resolved)

    if recreate_explicit:
        policy = Policy.RECREATE_EXPLICIT
    elif prune:
        policy = Policy.PRUNE_EXTRAS
    else:
        policy = Policy.INSTALL_MISSING

    selected = parse_types(types) or settings.types
    return SyncConfig(
        outdir=resolved,
        policy=policy,
        types=selected,
        dry_run=dry_run,
        force=force,
        settings=settings,
    )
