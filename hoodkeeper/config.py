"""
hoodkeeper.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for the role hierarchy, super-admin list and sync
tuning.  Secrets (``DATABASE_URL``, ``BOT_API_KEY``, ``DISCORD_TOKEN``,
``JWT_SECRET``, ``CRON_SECRET``) stay in the environment / ``.env``.

The loaded :class:`HoodkeeperConfig` is immutable and is handed to the
rank resolver and permission evaluator when they are built, so nothing
downstream reads process state at call time.

Usage::

    from hoodkeeper.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.admin_role_ids)        # frozenset({'1468816181854081229'})
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import yaml

from hoodkeeper.errors import ConfigurationError


def parse_id_list(raw: str | Iterable | None) -> frozenset[str]:
    """Normalize a comma-separated string or a list of ids into a set.

    Blank entries are dropped, so ``""`` and ``None`` both become an empty
    set rather than ``{""}``.
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, int):
        parts = [str(raw)]
    else:
        parts = [str(p) for p in raw]
    return frozenset(p.strip() for p in parts if p and p.strip())


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HoodkeeperConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Role hierarchy (Discord role ids)
    admin_role_ids: frozenset[str]
    leader_role_ids: frozenset[str]
    coleader_role_ids: frozenset[str]

    # Lateral roles and bypass list
    bar_collector_role_ids: frozenset[str] = frozenset()
    super_admin_ids: frozenset[str] = frozenset()

    # Discord
    guild_id: int | None = None

    # Sync tuning
    sync_interval_minutes: int = 60
    roster_timeout_seconds: float = 10.0
    allow_empty_prune: bool = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HoodkeeperConfig:
    """Read *path* and return a :class:`HoodkeeperConfig` instance.

    Raises
    ------
    ConfigurationError
        If the file is missing or a required key is absent.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it.",
            phase="config",
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return config_from_dict(raw)


def config_from_dict(raw: dict) -> HoodkeeperConfig:
    """Build a config from an already-parsed mapping."""
    try:
        roles = raw["roles"]
        community_name = raw["community_name"]
    except KeyError as exc:
        raise ConfigurationError(f"Missing required config key: {exc.args[0]}") from exc

    sync = raw.get("sync") or {}
    return HoodkeeperConfig(
        community_name=community_name,
        admin_role_ids=parse_id_list(roles.get("admin")),
        leader_role_ids=parse_id_list(roles.get("leader")),
        coleader_role_ids=parse_id_list(roles.get("coleader")),
        bar_collector_role_ids=parse_id_list(roles.get("bar_collector")),
        super_admin_ids=parse_id_list(raw.get("super_admin_ids")),
        guild_id=int(raw["guild_id"]) if raw.get("guild_id") else None,
        sync_interval_minutes=int(sync.get("interval_minutes", 60)),
        roster_timeout_seconds=float(sync.get("roster_timeout_seconds", 10.0)),
        allow_empty_prune=bool(sync.get("allow_empty_prune", False)),
    )
