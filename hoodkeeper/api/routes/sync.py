"""
hoodkeeper.api.routes.sync — Manual and scheduled roster sync
==============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hoodkeeper.api.deps import get_reconciler, require_capability, verify_cron_secret
from hoodkeeper.engine.permissions import Capability
from hoodkeeper.services.reconciliation_service import RosterReconciler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["sync"])

# Phase → HTTP status for aborted syncs
_PHASE_STATUS = {
    "config": 400,
    "fetch": 502,
    "load": 500,
    "upsert": 500,
    "prune": 500,
}


class SyncHoodRequest(BaseModel):
    district_id: str
    allow_empty_prune: bool | None = None


@router.post("/admin/sync-hood")
async def sync_hood(
    body: SyncHoodRequest,
    admin: dict = Depends(require_capability(Capability.MANAGE_NEIGHBORHOODS)),
    reconciler: RosterReconciler = Depends(get_reconciler),
):
    """Reconcile one district's roster right now."""
    logger.info("Manual sync of district %s requested by %s", body.district_id, admin["sub"])
    result = await reconciler.reconcile(
        body.district_id, allow_empty_prune=body.allow_empty_prune
    )
    if not result.ok:
        return JSONResponse(result.to_dict(), status_code=_PHASE_STATUS.get(result.phase, 500))
    return result.to_dict()


@router.get("/cron/sync", dependencies=[Depends(verify_cron_secret)])
async def cron_sync(reconciler: RosterReconciler = Depends(get_reconciler)):
    """Reconcile every district that has a Discord role."""
    summary = await reconciler.reconcile_all()
    return {"success": True, **summary}
