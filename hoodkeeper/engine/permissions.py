"""
hoodkeeper.engine.permissions — Capability Evaluator
=====================================================

Answers "may this principal do X?" with three layers, first hit wins:

    1. Super-admin user ids        → always allowed
    2. Database rules (if any)     → allowed iff a rule for one of the
                                     principal's roles lists the capability
    3. Hardcoded hierarchy         → allowed iff the principal's role level
                                     meets the capability's minimum

Layer 3 only runs when no rules were supplied at all, so access control
works on a fresh install before an admin has configured anything.  Once
rules exist they are authoritative.

Pure and side-effect free; safe to call from any thread.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

__all__ = [
    "Capability",
    "PermissionEvaluator",
    "PermissionRule",
    "RoleHierarchy",
    "RoleLevel",
]


class Capability(enum.StrEnum):
    """Named dashboard permissions.  Values match the stored rule strings."""
    VIEW_ADMIN_DASHBOARD = "VIEW_ADMIN_DASHBOARD"
    MANAGE_FARM_DATA = "MANAGE_FARM_DATA"
    MANAGE_NEIGHBORHOODS = "MANAGE_NEIGHBORHOODS"
    MANAGE_EVENTS = "MANAGE_EVENTS"
    MANAGE_FARM_NAMES = "MANAGE_FARM_NAMES"
    VIEW_BAR_LEADERBOARD = "VIEW_BAR_LEADERBOARD"
    MANAGE_GIVEAWAYS = "MANAGE_GIVEAWAYS"
    MANAGE_EMBEDS = "MANAGE_EMBEDS"


class RoleLevel(enum.IntEnum):
    """Hierarchy levels.  Higher subsumes lower."""
    MEMBER = 0
    CO_LEADER = 1
    LEADER = 2
    ADMIN = 3


# Minimum level per capability when no DB rules exist.
FALLBACK_MIN_LEVEL: dict[Capability, RoleLevel] = {
    Capability.VIEW_ADMIN_DASHBOARD: RoleLevel.CO_LEADER,
    Capability.MANAGE_FARM_DATA: RoleLevel.ADMIN,
    Capability.MANAGE_NEIGHBORHOODS: RoleLevel.ADMIN,
    Capability.MANAGE_EVENTS: RoleLevel.ADMIN,
    Capability.MANAGE_FARM_NAMES: RoleLevel.CO_LEADER,
    Capability.VIEW_BAR_LEADERBOARD: RoleLevel.ADMIN,
    Capability.MANAGE_GIVEAWAYS: RoleLevel.ADMIN,
    Capability.MANAGE_EMBEDS: RoleLevel.ADMIN,
}

# Capabilities the bar-collector role grants sideways, regardless of level.
BAR_COLLECTOR_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.VIEW_ADMIN_DASHBOARD,
    Capability.MANAGE_FARM_DATA,
    Capability.VIEW_BAR_LEADERBOARD,
})


@dataclass(frozen=True, slots=True)
class RoleHierarchy:
    """Discord role ids for each hierarchy level, plus the bypass list."""

    admin_role_ids: frozenset[str] = field(default_factory=frozenset)
    leader_role_ids: frozenset[str] = field(default_factory=frozenset)
    coleader_role_ids: frozenset[str] = field(default_factory=frozenset)
    bar_collector_role_ids: frozenset[str] = field(default_factory=frozenset)
    super_admin_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_config(cls, cfg) -> RoleHierarchy:
        """Build from a :class:`~hoodkeeper.config.HoodkeeperConfig`."""
        return cls(
            admin_role_ids=cfg.admin_role_ids,
            leader_role_ids=cfg.leader_role_ids,
            coleader_role_ids=cfg.coleader_role_ids,
            bar_collector_role_ids=cfg.bar_collector_role_ids,
            super_admin_ids=cfg.super_admin_ids,
        )


@dataclass(frozen=True, slots=True)
class PermissionRule:
    """One stored rule: holders of ``role_id`` get ``capabilities``."""

    role_id: str
    capabilities: frozenset[Capability]
    role_name: str | None = None

    @classmethod
    def from_names(
        cls, role_id: str, names: Iterable[str], role_name: str | None = None
    ) -> PermissionRule:
        """Parse stored capability strings, dropping unknown ones."""
        caps: set[Capability] = set()
        for name in names or ():
            try:
                caps.add(Capability(name))
            except ValueError:
                logger.warning(
                    "Ignoring unknown capability %r on role %s", name, role_id,
                    extra={"role_id": role_id},
                )
        return cls(str(role_id), frozenset(caps), role_name)


class PermissionEvaluator:
    """Capability checks bound to one immutable :class:`RoleHierarchy`."""

    def __init__(self, hierarchy: RoleHierarchy) -> None:
        self.hierarchy = hierarchy

    # -------------------------------------------------------------------
    # Hierarchy
    # -------------------------------------------------------------------
    def role_level(self, role_ids: Iterable[str]) -> RoleLevel:
        """Highest level implied by any of *role_ids*."""
        held = set(role_ids or ())
        if not held:
            return RoleLevel.MEMBER
        h = self.hierarchy
        if not held.isdisjoint(h.admin_role_ids):
            return RoleLevel.ADMIN
        if not held.isdisjoint(h.leader_role_ids):
            return RoleLevel.LEADER
        if not held.isdisjoint(h.coleader_role_ids):
            return RoleLevel.CO_LEADER
        return RoleLevel.MEMBER

    def has_min_role_level(self, role_ids: Iterable[str], minimum: RoleLevel) -> bool:
        return self.role_level(role_ids) >= minimum

    def is_super_admin(self, principal_id: str | None) -> bool:
        return principal_id is not None and principal_id in self.hierarchy.super_admin_ids

    # -------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------
    def has_capability(
        self,
        role_ids: Iterable[str],
        principal_id: str | None,
        rules: Sequence[PermissionRule] | None,
        capability: Capability,
    ) -> bool:
        """Return ``True`` if the principal may use *capability*."""
        if self.is_super_admin(principal_id):
            return True

        held = set(role_ids or ())
        if rules:
            return any(
                rule.role_id in held and capability in rule.capabilities
                for rule in rules
            )

        return self._fallback_allows(held, capability)

    def capabilities_for(
        self,
        role_ids: Iterable[str],
        principal_id: str | None,
        rules: Sequence[PermissionRule] | None,
    ) -> frozenset[Capability]:
        """Every capability the principal holds."""
        held = list(role_ids or ())
        return frozenset(
            cap for cap in Capability
            if self.has_capability(held, principal_id, rules, cap)
        )

    def _fallback_allows(self, held: set[str], capability: Capability) -> bool:
        if (
            capability in BAR_COLLECTOR_CAPABILITIES
            and not held.isdisjoint(self.hierarchy.bar_collector_role_ids)
        ):
            return True
        return self.role_level(held) >= FALLBACK_MIN_LEVEL[capability]
