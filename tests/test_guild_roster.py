"""
tests/test_guild_roster.py — Guild-cache Roster Source
=======================================================
Uses MagicMock stand-ins for discord.py guild, role and member objects.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import run_async

from hoodkeeper.bot.roster import GuildRosterSource, entry_from_member
from hoodkeeper.errors import UpstreamError


def _role(role_id: int, default: bool = False) -> MagicMock:
    role = MagicMock()
    role.id = role_id
    role.is_default.return_value = default
    return role


def _member(member_id: int, display: str, *, nick=None, roles=(), bot=False) -> MagicMock:
    member = MagicMock()
    member.id = member_id
    member.nick = nick
    member.display_name = display
    member.roles = list(roles)
    member.bot = bot
    return member


def _guild(role=None, chunked=True) -> MagicMock:
    guild = MagicMock()
    guild.id = 1
    guild.chunked = chunked
    guild.chunk = AsyncMock()
    guild.get_role.return_value = role
    return guild


class TestEntryFromMember:
    def test_nick_preferred_and_everyone_dropped(self):
        m = _member(10, "daisy", nick="[FARM] Daisy", roles=[_role(1, default=True), _role(100)])
        entry = entry_from_member(m)
        assert entry.principal_id == "10"
        assert entry.display_name == "[FARM] Daisy"
        assert entry.role_ids == ("100",)

    def test_falls_back_to_display_name(self):
        assert entry_from_member(_member(10, "daisy")).display_name == "daisy"


class TestGuildRosterSource:
    def test_lists_role_members_without_bots(self):
        role = _role(100)
        role.name = "Sunny Acres"
        role.members = [_member(10, "daisy"), _member(11, "helper", bot=True)]
        guild = _guild(role)

        entries = run_async(GuildRosterSource(guild).fetch_roster("100"))

        assert [e.principal_id for e in entries] == ["10"]
        guild.get_role.assert_called_once_with(100)
        guild.chunk.assert_not_awaited()

    def test_chunks_when_cache_incomplete(self):
        role = _role(100)
        role.members = []
        guild = _guild(role, chunked=False)

        assert run_async(GuildRosterSource(guild).fetch_roster("100")) == []
        guild.chunk.assert_awaited_once()

    def test_missing_role_is_an_error_not_empty(self):
        with pytest.raises(UpstreamError, match="not found"):
            run_async(GuildRosterSource(_guild(None)).fetch_roster("100"))

    def test_non_numeric_role_id(self):
        with pytest.raises(UpstreamError, match="Invalid role id"):
            run_async(GuildRosterSource(_guild()).fetch_roster("abc"))
