"""
hoodkeeper.services.membership_store — Roster Persistence
==========================================================

Synchronous SQLAlchemy implementation of everything the reconciler needs
from the database.  Call through :func:`~hoodkeeper.database.engine.run_db`
from async code.

Write methods translate driver errors into :class:`PersistenceError`
tagged with the phase they belong to (``upsert`` / ``prune`` / ``leader``).
Each write runs in its own transaction, so a failed upsert leaves the
store exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hoodkeeper.config import parse_id_list
from hoodkeeper.database.engine import get_session
from hoodkeeper.database.models import AppConfig, District, HoodMembership, Rank
from hoodkeeper.engine.ranks import HoodOverrides, RoleMapping
from hoodkeeper.errors import PersistenceError

logger = logging.getLogger(__name__)

COLEADER_ROLE_KEY = "coleader_role_id"
ELDER_ROLE_KEY = "elder_role_id"


@dataclass(frozen=True, slots=True)
class DistrictInfo:
    id: str
    name: str
    hood_id: str | None
    overrides: HoodOverrides
    leader_name: str | None = None


@dataclass(frozen=True, slots=True)
class MemberRecord:
    """A resolved membership row, ready to upsert."""

    user_id: str
    username: str
    rank: Rank
    level: int | None = None


def _district_info(row: District) -> DistrictInfo:
    return DistrictInfo(
        id=row.id,
        name=row.name,
        hood_id=row.hood_id or None,
        overrides=HoodOverrides.build(row.leader_discord_id, row.coleader_discord_ids),
        leader_name=row.leader,
    )


class MembershipStore:
    """Store contract over one SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def load_district(self, district_id: str) -> DistrictInfo | None:
        with Session(self.engine) as session:
            row = session.get(District, district_id)
            return _district_info(row) if row is not None else None

    def list_syncable_districts(self) -> list[DistrictInfo]:
        """Every district that has a Discord role to sync from."""
        with Session(self.engine) as session:
            rows = session.scalars(
                select(District)
                .where(District.hood_id.is_not(None), District.hood_id != "")
                .order_by(District.name)
            ).all()
            return [_district_info(r) for r in rows]

    def load_role_mapping(self) -> RoleMapping:
        """Read the global co-leader / elder role lists from ``app_config``."""
        with Session(self.engine) as session:
            rows = session.scalars(
                select(AppConfig).where(AppConfig.key.in_([COLEADER_ROLE_KEY, ELDER_ROLE_KEY]))
            ).all()
            values = {r.key: r.value for r in rows}
        mapping = RoleMapping(
            coleader_role_ids=parse_id_list(values.get(COLEADER_ROLE_KEY)),
            elder_role_ids=parse_id_list(values.get(ELDER_ROLE_KEY)),
        )
        logger.debug(
            "Global role mapping: co-leader=%s elder=%s",
            sorted(mapping.coleader_role_ids), sorted(mapping.elder_role_ids),
        )
        return mapping

    def member_ids(self, district_id: str) -> set[str]:
        with Session(self.engine) as session:
            return set(session.scalars(
                select(HoodMembership.user_id).where(HoodMembership.hood_id == district_id)
            ).all())

    def list_members(self, district_id: str) -> list[dict]:
        """Stored roster ordered Leader → Co-Leader → Elder → Member, then name."""
        with Session(self.engine) as session:
            rows = session.scalars(
                select(HoodMembership).where(HoodMembership.hood_id == district_id)
            ).all()
            members = [
                {
                    "user_id": r.user_id,
                    "username": r.username,
                    "rank": r.rank.value,
                    "level": r.level,
                }
                for r in rows
            ]
        members.sort(key=lambda m: (Rank(m["rank"]).sort_key, m["username"].lower()))
        return members

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def upsert_memberships(self, district_id: str, records: Iterable[MemberRecord]) -> int:
        """Insert or update every record keyed by (user_id, district_id).

        All-or-nothing.  Rows whose username, rank and level already match
        are left untouched.  Returns the number of rows inserted or changed.
        """
        try:
            with get_session(self.engine) as session:
                existing = {
                    m.user_id: m
                    for m in session.scalars(
                        select(HoodMembership).where(HoodMembership.hood_id == district_id)
                    ).all()
                }
                changed = 0
                for rec in records:
                    row = existing.get(rec.user_id)
                    if row is None:
                        row = HoodMembership(
                            user_id=rec.user_id,
                            hood_id=district_id,
                            username=rec.username,
                            rank=rec.rank,
                            level=rec.level,
                        )
                        session.add(row)
                        existing[rec.user_id] = row
                        changed += 1
                    elif (row.username, row.rank, row.level) != (rec.username, rec.rank, rec.level):
                        row.username = rec.username
                        row.rank = rec.rank
                        row.level = rec.level
                        changed += 1
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Membership upsert failed: {exc}", group_id=district_id, phase="upsert"
            ) from exc
        return changed

    def delete_members(self, district_id: str, user_ids: Iterable[str]) -> int:
        """Delete exactly *user_ids* from the district's roster."""
        ids = list(user_ids)
        if not ids:
            return 0
        try:
            with get_session(self.engine) as session:
                result = session.execute(
                    delete(HoodMembership).where(
                        HoodMembership.hood_id == district_id,
                        HoodMembership.user_id.in_(ids),
                    )
                )
                return result.rowcount
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Membership prune failed: {exc}", group_id=district_id, phase="prune"
            ) from exc

    def set_leader_name(self, district_id: str, name: str) -> bool:
        """Store *name* as the district's leader display name.

        Returns ``True`` if the stored value changed.
        """
        try:
            with get_session(self.engine) as session:
                row = session.get(District, district_id)
                if row is None or row.leader == name:
                    return False
                row.leader = name
                return True
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Leader name update failed: {exc}", group_id=district_id, phase="leader"
            ) from exc
