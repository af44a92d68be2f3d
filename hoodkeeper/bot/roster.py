"""
hoodkeeper.bot.roster — Roster source backed by the live guild
===============================================================

Inside the bot process there is no need to call our own HTTP API: the
guild's member cache already knows who holds each role.  Requires the
GUILD_MEMBERS privileged intent.
"""

from __future__ import annotations

import logging

import discord

from hoodkeeper.errors import UpstreamError
from hoodkeeper.services.roster_client import RosterEntry

logger = logging.getLogger(__name__)


def entry_from_member(member: discord.Member) -> RosterEntry:
    return RosterEntry(
        principal_id=str(member.id),
        display_name=member.nick or member.display_name,
        role_ids=tuple(str(r.id) for r in member.roles if not r.is_default()),
    )


class GuildRosterSource:
    """:class:`~hoodkeeper.services.roster_client.RosterSource` over a guild."""

    def __init__(self, guild: discord.Guild) -> None:
        self.guild = guild

    async def fetch_roster(self, role_id: str) -> list[RosterEntry]:
        try:
            if not self.guild.chunked:
                await self.guild.chunk()
        except discord.HTTPException as exc:
            raise UpstreamError(f"Could not load guild members: {exc}") from exc

        try:
            role = self.guild.get_role(int(role_id))
        except ValueError as exc:
            raise UpstreamError(f"Invalid role id {role_id!r}") from exc

        # A missing role is not an empty roster; refuse rather than prune.
        if role is None:
            raise UpstreamError(f"Role {role_id} not found in guild {self.guild.id}")

        entries = [entry_from_member(m) for m in role.members if not m.bot]
        logger.info("Read %d members holding role %s from guild cache", len(entries), role.name)
        return entries
