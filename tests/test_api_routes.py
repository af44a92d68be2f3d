"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the HTTP surface with the FastAPI TestClient:

- Auth guards on the manual sync endpoint
- Cron secret on the sweep endpoint
- Roster and permission read views
- Health endpoint availability

The engine, permission service and reconciler dependencies are overridden
with an in-memory database and a fake roster source.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from conftest import FakeRosterSource, add_district, make_token, set_role_mapping

from hoodkeeper.api import main as main_mod
from hoodkeeper.api.routes import districts as districts_routes
from hoodkeeper.api.routes import sync as sync_routes
from hoodkeeper.config import HoodkeeperConfig
from hoodkeeper.errors import UpstreamError
from hoodkeeper.services.membership_store import MembershipStore
from hoodkeeper.services.reconciliation_service import RosterReconciler
from hoodkeeper.services.roster_client import RosterEntry

ADMIN_ROLE = "A1"
COLEADER_ROLE = "C1"
SUPER_ADMIN = "424242"

TEST_CONFIG = HoodkeeperConfig(
    community_name="Test Hoods",
    admin_role_ids=frozenset({ADMIN_ROLE}),
    leader_role_ids=frozenset({"L1"}),
    coleader_role_ids=frozenset({COLEADER_ROLE}),
    super_admin_ids=frozenset({SUPER_ADMIN}),
)


@pytest.fixture
def source() -> FakeRosterSource:
    return FakeRosterSource({
        "R100": [
            RosterEntry("U1", "[FARM] Daisy [87]", ("R100",)),
            RosterEntry("U2", "Bob", ("R100", "R9")),
        ],
    })


@pytest.fixture
def api(db_engine, source):
    """TestClient wired to in-memory SQLite and the fake roster source."""
    from fastapi.testclient import TestClient

    add_district(db_engine, "hood-1", hood_id="R100", leader_discord_id="U1")
    set_role_mapping(db_engine, coleader="R9")

    reconciler = RosterReconciler(MembershipStore(db_engine), source, fetch_timeout=2)
    app = main_mod.app
    app.dependency_overrides[main_mod.get_engine] = lambda: db_engine
    app.dependency_overrides[districts_routes.get_permission_service] = (
        lambda: _permission_service(db_engine)
    )
    app.dependency_overrides[sync_routes.get_reconciler] = lambda: reconciler
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def _permission_service(engine):
    from hoodkeeper.engine.permissions import PermissionEvaluator, RoleHierarchy
    from hoodkeeper.services.permission_service import PermissionService

    return PermissionService(engine, PermissionEvaluator(RoleHierarchy.from_config(TEST_CONFIG)))


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Manual sync
# ===========================================================================
class TestSyncHood:
    URL = "/api/admin/sync-hood"

    def test_no_token_returns_401(self, api):
        assert api.post(self.URL, json={"district_id": "hood-1"}).status_code == 401

    def test_garbage_token_returns_401(self, api):
        resp = api.post(self.URL, json={"district_id": "hood-1"}, headers=_auth("nope"))
        assert resp.status_code == 401

    def test_coleader_forbidden(self, api):
        token = make_token("5", roles=[COLEADER_ROLE])
        resp = api.post(self.URL, json={"district_id": "hood-1"}, headers=_auth(token))
        assert resp.status_code == 403

    def test_admin_syncs(self, api, db_engine):
        token = make_token("5", roles=[ADMIN_ROLE])
        resp = api.post(self.URL, json={"district_id": "hood-1"}, headers=_auth(token))

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["count"] == 2
        assert body["leader_name"] == "Daisy"
        assert MembershipStore(db_engine).member_ids("hood-1") == {"U1", "U2"}

    def test_super_admin_without_roles(self, api):
        resp = api.post(self.URL, json={"district_id": "hood-1"},
                        headers=_auth(make_token(SUPER_ADMIN)))
        assert resp.status_code == 200

    def test_unknown_district_is_400(self, api):
        token = make_token("5", roles=[ADMIN_ROLE])
        resp = api.post(self.URL, json={"district_id": "missing"}, headers=_auth(token))
        assert resp.status_code == 400
        assert resp.json()["phase"] == "config"
        assert resp.json()["success"] is False

    def test_fetch_failure_is_502(self, api, source):
        source.error = UpstreamError("Bot API returned 503", status_code=503)
        token = make_token("5", roles=[ADMIN_ROLE])
        resp = api.post(self.URL, json={"district_id": "hood-1"}, headers=_auth(token))
        assert resp.status_code == 502
        assert resp.json()["phase"] == "fetch"

    def test_missing_body_is_422(self, api):
        token = make_token("5", roles=[ADMIN_ROLE])
        assert api.post(self.URL, json={}, headers=_auth(token)).status_code == 422


# ===========================================================================
# Scheduled sweep
# ===========================================================================
class TestCronSync:
    URL = "/api/cron/sync"

    def test_wrong_secret_401(self, api):
        with patch.dict(os.environ, {"CRON_SECRET": "s3cret"}):
            assert api.get(self.URL, headers=_auth("wrong")).status_code == 401

    def test_unset_secret_is_server_error(self, api):
        with patch.dict(os.environ, {"CRON_SECRET": ""}):
            resp = api.get(self.URL, headers=_auth("anything"))
        assert resp.status_code == 500
        assert resp.json()["phase"] == "config"

    def test_sweeps_all_districts(self, api):
        with patch.dict(os.environ, {"CRON_SECRET": "s3cret"}):
            resp = api.get(self.URL, headers=_auth("s3cret"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["synced_count"] == 1
        assert body["results"][0]["hood"] == "Sunny Acres"


# ===========================================================================
# Read views
# ===========================================================================
class TestDistrictMembers:
    def test_unknown_district_404(self, api):
        assert api.get("/api/districts/missing/members").status_code == 404

    def test_lists_members_leader_first(self, api):
        token = make_token("5", roles=[ADMIN_ROLE])
        api.post("/api/admin/sync-hood", json={"district_id": "hood-1"}, headers=_auth(token))

        resp = api.get("/api/districts/hood-1/members")

        assert resp.status_code == 200
        body = resp.json()
        assert body["district"] == {"id": "hood-1", "name": "Sunny Acres", "leader": "Daisy"}
        assert [m["rank"] for m in body["members"]] == ["Leader", "Co-Leader"]


class TestMyPermissions:
    def test_requires_token(self, api):
        assert api.get("/api/permissions/me").status_code == 401

    def test_coleader_fallback(self, api):
        resp = api.get("/api/permissions/me", headers=_auth(make_token("5", roles=[COLEADER_ROLE])))
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == "5"
        assert body["role_level"] == 1
        assert body["capabilities"] == ["MANAGE_FARM_NAMES", "VIEW_ADMIN_DASHBOARD"]

    def test_member_has_nothing(self, api):
        resp = api.get("/api/permissions/me", headers=_auth(make_token("5", roles=["X"])))
        assert resp.json()["capabilities"] == []
        assert resp.json()["role_level"] == 0
