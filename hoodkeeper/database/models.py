"""
hoodkeeper.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- map_districts     — Neighborhoods ("hoods"), each synced from one Discord role
- hood_memberships  — Resolved roster per hood, keyed by (user_id, hood_id)
- app_config        — Global key/value config (co-leader / elder role mappings)
- role_permissions  — Capability rules keyed by Discord role id

Membership rows are owned by the reconciler: created/updated on sync and
deleted only when a user drops off the fetched roster.  Districts, config
and permission rules are managed elsewhere and are read-only here.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Hoodkeeper ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Rank(enum.StrEnum):
    """A member's resolved standing inside one hood."""
    LEADER = "Leader"
    CO_LEADER = "Co-Leader"
    ELDER = "Elder"
    MEMBER = "Member"

    @property
    def sort_key(self) -> int:
        return _RANK_ORDER[self]


_RANK_ORDER: dict[Rank, int] = {
    Rank.LEADER: 0,
    Rank.CO_LEADER: 1,
    Rank.ELDER: 2,
    Rank.MEMBER: 3,
}


# ---------------------------------------------------------------------------
# District — one neighborhood, synced from a Discord role
# ---------------------------------------------------------------------------
class District(Base):
    """A hood.  ``hood_id`` is the Discord role whose holders form the roster.

    ``leader_discord_id`` / ``coleader_discord_ids`` are fixed per-hood
    overrides that beat the global role mapping during rank resolution.
    ``leader`` is the display name shown on the hood card; the reconciler
    keeps it in step with whoever resolves to Leader.
    """
    __tablename__ = "map_districts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hood_id: Mapped[str | None] = mapped_column(String(32), default=None)
    leader_discord_id: Mapped[str | None] = mapped_column(String(32), default=None)
    coleader_discord_ids: Mapped[list | None] = mapped_column(JSONB, default=list)
    leader: Mapped[str | None] = mapped_column(String(100), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    memberships: Mapped[list[HoodMembership]] = relationship(
        back_populates="district", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_map_districts_hood_id", "hood_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<District id={self.id!r} name={self.name!r} role={self.hood_id!r}>"


# ---------------------------------------------------------------------------
# HoodMembership — one row per (user, hood)
# ---------------------------------------------------------------------------
class HoodMembership(Base):
    __tablename__ = "hood_memberships"

    user_id: Mapped[str] = mapped_column(String(32), primary_key=True)  # Discord snowflake
    hood_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("map_districts.id", ondelete="CASCADE"), primary_key=True
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    rank: Mapped[Rank] = mapped_column(
        Enum(
            Rank,
            name="hood_rank",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=Rank.MEMBER,
    )
    level: Mapped[int | None] = mapped_column(Integer, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    district: Mapped[District] = relationship(back_populates="memberships")

    __table_args__ = (
        Index("ix_hood_memberships_hood_id", "hood_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<HoodMembership user={self.user_id} hood={self.hood_id} "
            f"rank={self.rank.value!r}>"
        )


# ---------------------------------------------------------------------------
# AppConfig — global key/value configuration
# ---------------------------------------------------------------------------
class AppConfig(Base):
    """Global key/value settings.

    Keys read by the reconciler:
    - ``coleader_role_id`` — comma-separated Discord role ids → Co-Leader
    - ``elder_role_id``    — comma-separated Discord role ids → Elder
    """
    __tablename__ = "app_config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<AppConfig key={self.key!r}>"


# ---------------------------------------------------------------------------
# RolePermission — capability rules per Discord role
# ---------------------------------------------------------------------------
class RolePermission(Base):
    __tablename__ = "role_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[str] = mapped_column(String(32), nullable=False)
    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    permissions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_role_permissions_role_id", "role_id"),
    )

    def __repr__(self) -> str:
        return f"<RolePermission role={self.role_id} name={self.role_name!r}>"
