"""
hoodkeeper.api.routes.districts — Read-only roster & permission views
======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from hoodkeeper.api.deps import (
    get_current_principal,
    get_permission_service,
    get_store,
)
from hoodkeeper.database.engine import run_db
from hoodkeeper.services.membership_store import MembershipStore
from hoodkeeper.services.permission_service import PermissionService

router = APIRouter(tags=["districts"])


@router.get("/districts/{district_id}/members")
async def list_district_members(
    district_id: str,
    store: MembershipStore = Depends(get_store),
):
    """Stored roster for a district, Leader first."""
    district = await run_db(store.load_district, district_id)
    if district is None:
        raise HTTPException(404, "District not found")
    members = await run_db(store.list_members, district_id)
    return {
        "district": {"id": district.id, "name": district.name, "leader": district.leader_name},
        "members": members,
    }


@router.get("/permissions/me")
async def my_permissions(
    principal: dict = Depends(get_current_principal),
    perms: PermissionService = Depends(get_permission_service),
):
    """Capabilities and hierarchy level of the calling principal."""
    roles = [str(r) for r in principal.get("roles") or []]
    caps = await run_db(perms.capabilities_for, roles, str(principal["sub"]))
    return {
        "id": str(principal["sub"]),
        "role_level": int(perms.role_level(roles)),
        "capabilities": sorted(c.value for c in caps),
    }
