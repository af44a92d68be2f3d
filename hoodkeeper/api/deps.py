"""
hoodkeeper.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

import os
import secrets
from collections.abc import Callable
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from hoodkeeper.config import HoodkeeperConfig, load_config
from hoodkeeper.database.engine import create_db_engine
from hoodkeeper.engine.permissions import Capability, PermissionEvaluator, RoleHierarchy
from hoodkeeper.errors import ConfigurationError
from hoodkeeper.services.membership_store import MembershipStore
from hoodkeeper.services.permission_service import PermissionService
from hoodkeeper.services.reconciliation_service import RosterReconciler
from hoodkeeper.services.roster_client import HttpRosterSource

_WEAK_SECRETS = frozenset({
    "hoodkeeper-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> HoodkeeperConfig:
    return load_config(os.getenv("HOODKEEPER_CONFIG", "config.yaml"))


def get_store(engine: Annotated[Engine, Depends(get_engine)]) -> MembershipStore:
    return MembershipStore(engine)


@lru_cache(maxsize=1)
def get_reconciler() -> RosterReconciler:
    """One reconciler per process so the per-district locks are shared."""
    cfg = get_config()
    return RosterReconciler(
        MembershipStore(get_engine()),
        HttpRosterSource.from_env(timeout=cfg.roster_timeout_seconds),
        fetch_timeout=cfg.roster_timeout_seconds,
        allow_empty_prune=cfg.allow_empty_prune,
    )


def get_permission_service(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[HoodkeeperConfig, Depends(get_config)],
) -> PermissionService:
    return PermissionService(engine, PermissionEvaluator(RoleHierarchy.from_config(cfg)))


def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer JWT and return its payload.  401 if invalid.

    Payload shape: ``{"sub": <discord id>, "username": ..., "roles": [...]}``.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return payload


def require_capability(capability: Capability) -> Callable[..., dict]:
    """Dependency factory: 403 unless the principal holds *capability*."""

    def _check(
        principal: Annotated[dict, Depends(get_current_principal)],
        perms: Annotated[PermissionService, Depends(get_permission_service)],
    ) -> dict:
        roles = [str(r) for r in principal.get("roles") or []]
        if not perms.has_capability(roles, str(principal["sub"]), capability):
            raise HTTPException(status.HTTP_403_FORBIDDEN, f"Missing permission {capability}")
        return principal

    return _check


def verify_cron_secret(authorization: Annotated[str | None, Header()] = None) -> None:
    """Guard for scheduler-triggered endpoints (``Bearer <CRON_SECRET>``)."""
    expected = os.getenv("CRON_SECRET", "")
    if not expected:
        raise ConfigurationError("CRON_SECRET is not set", phase="config")
    supplied = (authorization or "").removeprefix("Bearer ")
    if not secrets.compare_digest(supplied, expected):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
