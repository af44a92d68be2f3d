"""
hoodkeeper.services.permission_service — Rule Loading & Capability Checks
==========================================================================

Reads ``role_permissions`` rows and feeds them to the pure
:class:`~hoodkeeper.engine.permissions.PermissionEvaluator`.  Rule CRUD
lives in the admin dashboard; this module only reads.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from hoodkeeper.database.models import RolePermission
from hoodkeeper.engine.permissions import (
    Capability,
    PermissionEvaluator,
    PermissionRule,
    RoleLevel,
)

logger = logging.getLogger(__name__)


def load_permission_rules(engine: Engine) -> list[PermissionRule]:
    """Fetch every stored rule, ordered by role name."""
    with Session(engine) as session:
        rows = session.scalars(
            select(RolePermission).order_by(RolePermission.role_name)
        ).all()
        return [
            PermissionRule.from_names(r.role_id, r.permissions or [], r.role_name)
            for r in rows
        ]


class PermissionService:
    """Capability checks against the live rule table."""

    def __init__(self, engine: Engine, evaluator: PermissionEvaluator) -> None:
        self.engine = engine
        self.evaluator = evaluator

    def role_level(self, role_ids: Iterable[str]) -> RoleLevel:
        return self.evaluator.role_level(role_ids)

    def has_capability(
        self,
        role_ids: Iterable[str],
        principal_id: str | None,
        capability: Capability,
    ) -> bool:
        rules = load_permission_rules(self.engine)
        allowed = self.evaluator.has_capability(role_ids, principal_id, rules, capability)
        if not rules:
            logger.debug("No permission rules stored; used hierarchy fallback for %s", capability)
        return allowed

    def capabilities_for(
        self, role_ids: Iterable[str], principal_id: str | None
    ) -> frozenset[Capability]:
        rules = load_permission_rules(self.engine)
        return self.evaluator.capabilities_for(role_ids, principal_id, rules)
