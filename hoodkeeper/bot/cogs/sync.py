"""
hoodkeeper.bot.cogs.sync — Scheduled and on-demand roster sync
===============================================================

- **Sync loop** — every ``sync.interval_minutes`` reconciles all districts.
- **/sync-hood** — reconciles one district now.  Requires the
  ``MANAGE_NEIGHBORHOODS`` capability.

Failures are logged and reported, never retried here; the next loop tick
is the retry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands, tasks

from hoodkeeper.database.engine import run_db
from hoodkeeper.engine.permissions import Capability

if TYPE_CHECKING:
    from hoodkeeper.bot.core import HoodkeeperBot

logger = logging.getLogger(__name__)


def has_capability(capability: Capability):
    """App-command check against the stored permission rules."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: HoodkeeperBot = interaction.client  # type: ignore[assignment]
        roles = [str(r.id) for r in getattr(interaction.user, "roles", [])]
        return await run_db(
            bot.permissions.has_capability, roles, str(interaction.user.id), capability
        )
    return app_commands.check(predicate)


class RosterSync(commands.Cog, name="RosterSync"):
    """Keeps hood rosters in step with their Discord roles."""

    def __init__(self, bot: HoodkeeperBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.sync_loop.change_interval(minutes=self.bot.cfg.sync_interval_minutes)
        self.sync_loop.start()

    async def cog_unload(self) -> None:
        self.sync_loop.cancel()

    # -------------------------------------------------------------------
    # Periodic sweep
    # -------------------------------------------------------------------
    @tasks.loop(minutes=60)
    async def sync_loop(self):
        reconciler = self.bot.reconciler
        if reconciler is None:
            logger.warning("Skipping roster sync: guild not cached yet", extra={"task": "sync"})
            return
        try:
            summary = await reconciler.reconcile_all()
            logger.info(
                "Roster sync task complete: %d/%d districts",
                summary["synced_count"], len(summary["results"]),
            )
        except Exception:
            logger.exception("Roster sync task failed", extra={"task": "sync"})

    @sync_loop.before_loop
    async def _wait_sync(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # /sync-hood
    # -------------------------------------------------------------------
    @app_commands.command(name="sync-hood", description="Sync one hood's roster from its role now.")
    @app_commands.describe(district_id="Database id of the hood to sync")
    @has_capability(Capability.MANAGE_NEIGHBORHOODS)
    async def sync_hood(self, interaction: discord.Interaction, district_id: str) -> None:
        reconciler = self.bot.reconciler
        if reconciler is None:
            await interaction.response.send_message("❌ Guild not ready yet.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await reconciler.reconcile(district_id)
        if result.ok:
            msg = (
                f"✅ Synced **{result.count}** members "
                f"({result.upserted} changed, {result.pruned} removed)."
            )
            if result.prune_skipped:
                msg += "\n⚠️ Roster came back empty; existing members were kept."
        else:
            msg = f"❌ Sync failed during **{result.phase}**: {result.error}"
        await interaction.followup.send(msg, ephemeral=True)


async def setup(bot: HoodkeeperBot) -> None:
    await bot.add_cog(RosterSync(bot))
