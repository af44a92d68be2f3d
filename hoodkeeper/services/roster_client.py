"""
hoodkeeper.services.roster_client — Roster Fetch
=================================================

Pulls the full list of members holding one Discord role from the bot's
HTTP API::

    GET {BOT_API_URL}/members/list?roleId=<role id>
    x-api-key: {BOT_API_KEY}

    → {"members": [{"id": "...", "username": "...", "nickname": "...",
                    "roles": ["..."]}, ...]}

Older bot builds nest the identity as ``{"user": {"id", "username"},
"roles": [...]}``; both shapes are accepted.

The whole roster is one snapshot: any transport error, non-2xx status or
malformed body raises :class:`UpstreamError` and nothing is returned.  An
empty ``members`` list is a legitimate answer, not an error.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from hoodkeeper.errors import ConfigurationError, RosterAuthError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class RosterEntry:
    """One fetched member.  ``principal_id`` is ``None`` when unusable."""

    principal_id: str | None
    display_name: str | None = None
    role_ids: tuple[str, ...] = field(default_factory=tuple)


class RosterSource(Protocol):
    """Anything that can produce a roster snapshot for a Discord role."""

    async def fetch_roster(self, role_id: str) -> list[RosterEntry]: ...


def normalize_member(raw: Any) -> RosterEntry:
    """Turn one API member object into a :class:`RosterEntry`.

    Display name preference: nickname → displayName → username.
    """
    if not isinstance(raw, dict):
        return RosterEntry(None)

    user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
    principal_id = user.get("id") or raw.get("id")

    display_name = (
        raw.get("nickname")
        or raw.get("displayName")
        or user.get("username")
        or raw.get("username")
    )

    roles = raw.get("roles")
    if roles is None:
        roles = raw.get("_roles") or []
    role_ids = tuple(str(r) for r in roles if r) if isinstance(roles, list) else ()

    return RosterEntry(
        principal_id=str(principal_id) if principal_id else None,
        display_name=display_name,
        role_ids=role_ids,
    )


class HttpRosterSource:
    """Roster source backed by the bot's REST API.

    Parameters
    ----------
    base_url:
        Bot API root, e.g. ``http://localhost:3001/api``.
    api_key:
        Sent as ``x-api-key``.
    timeout:
        Seconds for the whole request.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> HttpRosterSource:
        """Build from ``BOT_API_URL`` / ``BOT_API_KEY``.

        Raises :class:`ConfigurationError` if either is missing.
        """
        base_url = os.getenv("BOT_API_URL", "").strip()
        api_key = os.getenv("BOT_API_KEY", "").strip()

        missing = []
        if not base_url:
            missing.append("BOT_API_URL")
        if not api_key:
            missing.append("BOT_API_KEY")
        if missing:
            raise ConfigurationError(
                "Roster API is not configured: missing " + ", ".join(missing)
            )
        return cls(base_url, api_key, timeout=timeout)

    async def fetch_roster(self, role_id: str) -> list[RosterEntry]:
        url = f"{self.base_url}/members/list"
        headers = {"x-api-key": self.api_key, "Content-Type": "application/json"}
        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=transport) as client:
                resp = await client.get(url, params={"roleId": role_id}, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                f"Roster fetch timed out after {self.timeout}s for role {role_id}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Roster fetch failed for role {role_id}: {exc}") from exc

        if resp.status_code in (401, 403):
            raise RosterAuthError(
                f"Bot API rejected credentials ({resp.status_code}); check BOT_API_KEY",
                status_code=resp.status_code,
            )
        if not resp.is_success:
            raise UpstreamError(
                f"Bot API error {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError("Bot API returned a non-JSON body") from exc

        members = payload.get("members") if isinstance(payload, dict) else None
        if not isinstance(members, list):
            raise UpstreamError("Bot API response has no 'members' list")

        logger.info("Fetched %d members for role %s", len(members), role_id)
        return [normalize_member(m) for m in members]
