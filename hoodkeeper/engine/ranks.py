"""
hoodkeeper.engine.ranks — Rank Precedence Resolver
===================================================

Maps one member to one :class:`Rank`.  Evaluated top to bottom, first
match wins:

    1. Hood's fixed leader id          → Leader
    2. In the hood's fixed co-leaders  → Co-Leader
    3. Holds a global co-leader role   → Co-Leader
    4. Holds a global elder role       → Elder
    5. Otherwise                       → Member

Per-hood overrides sit above the global mapping because the co-leader
role is shared by every hood's co-leaders and says nothing about *which*
hood someone leads.

Pure calculation, no Discord I/O, no DB I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from hoodkeeper.config import parse_id_list
from hoodkeeper.database.models import Rank

__all__ = ["HoodOverrides", "RankResolver", "Rank", "RoleMapping", "resolve_rank"]


@dataclass(frozen=True, slots=True)
class HoodOverrides:
    """Fixed per-hood rank assignments."""

    fixed_leader_id: str | None = None
    fixed_coleader_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        fixed_leader_id: str | None,
        fixed_coleader_ids: str | Iterable | None,
    ) -> HoodOverrides:
        """Accept a list or a comma-separated string for the co-leaders."""
        leader = str(fixed_leader_id).strip() if fixed_leader_id else None
        return cls(leader or None, parse_id_list(fixed_coleader_ids))


@dataclass(frozen=True, slots=True)
class RoleMapping:
    """Global Discord role ids that imply a rank in every hood."""

    coleader_role_ids: frozenset[str] = field(default_factory=frozenset)
    elder_role_ids: frozenset[str] = field(default_factory=frozenset)


def resolve_rank(
    principal_id: str,
    role_ids: Iterable[str],
    hood: HoodOverrides,
    global_coleader_role_ids: frozenset[str],
    global_elder_role_ids: frozenset[str],
) -> Rank:
    """Return the rank for *principal_id* in *hood*."""
    if hood.fixed_leader_id is not None and principal_id == hood.fixed_leader_id:
        return Rank.LEADER
    if principal_id in hood.fixed_coleader_ids:
        return Rank.CO_LEADER

    held = set(role_ids)
    if not held.isdisjoint(global_coleader_role_ids):
        return Rank.CO_LEADER
    if not held.isdisjoint(global_elder_role_ids):
        return Rank.ELDER
    return Rank.MEMBER


class RankResolver:
    """:func:`resolve_rank` bound to one immutable :class:`RoleMapping`."""

    def __init__(self, mapping: RoleMapping) -> None:
        self.mapping = mapping

    def resolve(self, principal_id: str, role_ids: Iterable[str], hood: HoodOverrides) -> Rank:
        return resolve_rank(
            principal_id,
            role_ids,
            hood,
            self.mapping.coleader_role_ids,
            self.mapping.elder_role_ids,
        )
