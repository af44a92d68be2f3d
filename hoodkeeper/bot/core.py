"""
hoodkeeper.bot.core — Bot Instance & Cog Loader
================================================

:class:`HoodkeeperBot` carries the shared config, DB engine, store and
permission evaluator so every Cog can reach them via ``self.bot.*``.  The
reconciler is built lazily once the guild is available, using the guild's
own member cache as the roster source.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from hoodkeeper.bot.roster import GuildRosterSource
from hoodkeeper.config import HoodkeeperConfig
from hoodkeeper.engine.permissions import PermissionEvaluator, RoleHierarchy
from hoodkeeper.services.membership_store import MembershipStore
from hoodkeeper.services.permission_service import PermissionService
from hoodkeeper.services.reconciliation_service import RosterReconciler

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "hoodkeeper.bot.cogs.sync",
]


class HoodkeeperBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`HoodkeeperConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    """

    def __init__(self, cfg: HoodkeeperConfig, engine: Engine) -> None:
        # GUILD_MEMBERS is privileged: enable it in the Developer Portal.
        intents = discord.Intents.default()
        intents.members = True
        intents.presences = False

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description=f"{cfg.community_name} roster keeper",
        )

        self.cfg = cfg
        self.engine = engine
        self.store = MembershipStore(engine)
        self.permissions = PermissionService(
            engine, PermissionEvaluator(RoleHierarchy.from_config(cfg))
        )
        self._reconciler: RosterReconciler | None = None

    @property
    def reconciler(self) -> RosterReconciler | None:
        """The guild-backed reconciler, or ``None`` before the guild is cached."""
        if self._reconciler is None and self.cfg.guild_id:
            guild = self.get_guild(self.cfg.guild_id)
            if guild is not None:
                self._reconciler = RosterReconciler(
                    self.store,
                    GuildRosterSource(guild),
                    fetch_timeout=self.cfg.roster_timeout_seconds,
                    allow_empty_prune=self.cfg.allow_empty_prune,
                )
        return self._reconciler

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every Cog extension; one broken Cog doesn't stop the rest."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        if self.reconciler is None:
            logger.warning(
                "Guild %s not available; roster sync disabled until it is.",
                self.cfg.guild_id,
            )
