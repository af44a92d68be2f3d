"""
hoodkeeper.services.reconciliation_service — Hood Roster Reconciliation
========================================================================

Converges the ``hood_memberships`` rows for one district onto the members
currently holding the district's Discord role.

How it works:
    1. **Fetch** the full roster for the district's role as one snapshot.
       Any failure aborts before a single write.
    2. **Resolve** each member: sanitize the display name, compute the rank
       (fixed overrides → global role mapping → Member).  Entries with no
       id are skipped and counted.
    3. **Upsert** every resolved row in one transaction.  A failure here
       aborts before pruning.
    4. **Prune** rows for users who are no longer in the snapshot
       (read → diff → delete, never delete-all-and-reinsert).
    5. **Leader** — if exactly one member resolved to Leader, copy their
       name onto the district.  Best effort; never fails the sync.

Running it twice against an unchanged roster writes nothing the second
time.

An empty snapshot never prunes on its own: a deleted role or an upstream
hiccup returning ``[]`` would otherwise wipe the hood.  Pass
``allow_empty_prune=True`` (or set ``sync.allow_empty_prune``) to opt in.

Concurrency: one :class:`asyncio.Lock` per district serialises syncs of the
same hood; different hoods never wait on each other.  Once the write phase
starts it runs to completion even if the caller is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from hoodkeeper.database.engine import run_db
from hoodkeeper.database.models import Rank
from hoodkeeper.engine.names import parse_display_name
from hoodkeeper.engine.ranks import RankResolver
from hoodkeeper.errors import (
    ConfigurationError,
    HoodkeeperError,
    PartialIdentityWarning,
    PersistenceError,
    UpstreamError,
)
from hoodkeeper.services.membership_store import DistrictInfo, MemberRecord, MembershipStore
from hoodkeeper.services.roster_client import RosterEntry, RosterSource

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one district sync.

    ``count`` is the number of resolved members; ``error`` / ``phase`` are
    set when the sync aborted.
    """

    group_id: str
    count: int = 0
    upserted: int = 0
    pruned: int = 0
    skipped: int = 0
    prune_skipped: bool = False
    leader_name: str | None = None
    error: str | None = None
    phase: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["success"] = self.ok
        return data


@dataclass
class _Resolved:
    records: list[MemberRecord]
    fetched_ids: set[str]
    skipped: int
    leaders: list[MemberRecord]


class RosterReconciler:
    """Runs fetch → resolve → upsert → prune → leader for one district.

    Parameters
    ----------
    store:
        The :class:`MembershipStore` to converge.
    source:
        Where rosters come from (HTTP bot API or a live guild).
    fetch_timeout:
        Seconds to wait for the roster before giving up.
    allow_empty_prune:
        Default for pruning when the snapshot is empty.
    """

    def __init__(
        self,
        store: MembershipStore,
        source: RosterSource,
        *,
        fetch_timeout: float | None = 10.0,
        allow_empty_prune: bool = False,
    ) -> None:
        self.store = store
        self.source = source
        self.fetch_timeout = fetch_timeout
        self.allow_empty_prune = allow_empty_prune
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def is_running(self, group_id: str) -> bool:
        lock = self._locks.get(group_id)
        return lock is not None and lock.locked()

    async def reconcile(
        self, group_id: str, *, allow_empty_prune: bool | None = None
    ) -> ReconciliationResult:
        """Sync one district.  Errors are returned on the result, not raised."""
        if allow_empty_prune is None:
            allow_empty_prune = self.allow_empty_prune

        # Unknown or unlinked districts never get a lock entry.
        try:
            await self._load_district(group_id)
        except HoodkeeperError as exc:
            return _failed(group_id, exc)

        async with self._locks[group_id]:
            try:
                return await self._reconcile_locked(group_id, allow_empty_prune)
            except HoodkeeperError as exc:
                return _failed(group_id, exc)

    async def reconcile_all(self) -> dict:
        """Sync every district with a Discord role, concurrently.

        One district failing never stops the others.
        """
        try:
            districts = await run_db(self.store.list_syncable_districts)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not list districts: {exc}", phase="load") from exc

        if not districts:
            logger.info("No districts configured for sync.")
            return {"synced_count": 0, "results": []}

        outcomes = await asyncio.gather(
            *(self.reconcile(d.id) for d in districts), return_exceptions=True
        )

        results: list[dict] = []
        for district, outcome in zip(districts, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(
                    "Unexpected error syncing district %s", district.id,
                    exc_info=outcome,
                    extra={"group_id": district.id},
                )
                outcome = ReconciliationResult(
                    group_id=district.id, error=str(outcome), phase="unknown"
                )
            results.append({"hood": district.name, **outcome.to_dict()})

        synced = sum(1 for r in results if r["success"])
        logger.info("Sync sweep complete: %d/%d districts succeeded", synced, len(results))
        return {"synced_count": synced, "results": results}

    # -------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------
    async def _load_district(self, group_id: str) -> DistrictInfo:
        try:
            district = await run_db(self.store.load_district, group_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not load district config: {exc}", group_id=group_id, phase="load"
            ) from exc

        if district is None:
            raise ConfigurationError(f"District {group_id} does not exist", group_id=group_id)
        if not district.hood_id:
            raise ConfigurationError(
                f"District {group_id} has no Discord role to sync from", group_id=group_id
            )
        return district

    async def _reconcile_locked(
        self, group_id: str, allow_empty_prune: bool
    ) -> ReconciliationResult:
        # Re-read under the lock; overrides may have changed while waiting.
        district = await self._load_district(group_id)
        try:
            mapping = await run_db(self.store.load_role_mapping)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not load role mapping: {exc}", group_id=group_id, phase="load"
            ) from exc

        entries = await self._fetch(district)
        resolved = self._resolve(district, entries, RankResolver(mapping))

        write = asyncio.ensure_future(self._apply(district, resolved, allow_empty_prune))
        return await _run_to_completion(write, group_id)

    async def _fetch(self, district: DistrictInfo) -> list[RosterEntry]:
        try:
            return await asyncio.wait_for(
                self.source.fetch_roster(district.hood_id), timeout=self.fetch_timeout
            )
        except TimeoutError as exc:
            raise UpstreamError(
                f"Roster fetch timed out after {self.fetch_timeout}s", group_id=district.id
            ) from exc
        except UpstreamError as exc:
            exc.group_id = district.id
            raise

    def _resolve(
        self, district: DistrictInfo, entries: list[RosterEntry], resolver: RankResolver
    ) -> _Resolved:
        by_id: dict[str, MemberRecord] = {}
        skipped = 0

        for entry in entries:
            if not entry.principal_id:
                skipped += 1
                logger.warning(
                    "Skipping roster entry with no user id in district %s: %r",
                    district.id, entry,
                    extra={"group_id": district.id, "phase": "resolve"},
                )
                continue
            if entry.principal_id in by_id:
                logger.debug("Duplicate roster entry for %s ignored", entry.principal_id)
                continue

            parsed = parse_display_name(entry.display_name)
            rank = resolver.resolve(entry.principal_id, entry.role_ids, district.overrides)
            by_id[entry.principal_id] = MemberRecord(
                user_id=entry.principal_id,
                username=parsed.clean_name,
                rank=rank,
                level=parsed.level,
            )

        if skipped:
            warnings.warn(
                PartialIdentityWarning(
                    f"{skipped} roster entries without a user id skipped for district {district.id}"
                ),
                stacklevel=2,
            )

        records = list(by_id.values())
        leaders = [r for r in records if r.rank is Rank.LEADER]
        return _Resolved(records, set(by_id), skipped, leaders)

    async def _apply(
        self, district: DistrictInfo, resolved: _Resolved, allow_empty_prune: bool
    ) -> ReconciliationResult:
        result = ReconciliationResult(
            group_id=district.id,
            count=len(resolved.records),
            skipped=resolved.skipped,
        )

        result.upserted = await run_db(
            self.store.upsert_memberships, district.id, resolved.records
        )

        try:
            current = await run_db(self.store.member_ids, district.id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not read current roster: {exc}", group_id=district.id, phase="prune"
            ) from exc

        stale = current - resolved.fetched_ids
        if stale and not resolved.fetched_ids and not allow_empty_prune:
            result.prune_skipped = True
            logger.warning(
                "Empty roster for district %s (role %s); keeping %d stored members. "
                "Re-run with allow_empty_prune to clear them.",
                district.id, district.hood_id, len(stale),
                extra={"group_id": district.id, "phase": "prune"},
            )
        else:
            result.pruned = await run_db(self.store.delete_members, district.id, stale)

        await self._propagate_leader(district, resolved, result)

        logger.info(
            "Synced district %s: %d members, %d changed, %d pruned, %d skipped",
            district.id, result.count, result.upserted, result.pruned, result.skipped,
            extra={"group_id": district.id},
        )
        return result

    async def _propagate_leader(
        self, district: DistrictInfo, resolved: _Resolved, result: ReconciliationResult
    ) -> None:
        if len(resolved.leaders) != 1:
            if len(resolved.leaders) > 1:
                logger.warning(
                    "District %s resolved %d leaders; leader name left unchanged",
                    district.id, len(resolved.leaders),
                    extra={"group_id": district.id, "phase": "leader"},
                )
            return

        leader = resolved.leaders[0]
        try:
            await run_db(self.store.set_leader_name, district.id, leader.username)
            result.leader_name = leader.username
        except PersistenceError as exc:
            logger.warning(
                "Leader name update failed for district %s: %s", district.id, exc.message,
                extra={"group_id": district.id, "phase": "leader"},
            )


def _failed(group_id: str, exc: HoodkeeperError) -> ReconciliationResult:
    exc.group_id = exc.group_id or group_id
    logger.error(
        "Sync of district %s aborted in %s phase: %s",
        group_id, exc.phase, exc.message,
        extra={"group_id": group_id, "phase": exc.phase},
    )
    return ReconciliationResult(group_id=group_id, error=exc.message, phase=exc.phase)


async def _run_to_completion(task: asyncio.Future, group_id: str):
    """Await *task*, refusing to abandon it if the caller is cancelled.

    The cancellation is re-raised once the task has finished.
    """
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        logger.warning(
            "Cancellation requested mid-write for district %s; finishing sync first",
            group_id,
            extra={"group_id": group_id},
        )
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                continue
        raise
