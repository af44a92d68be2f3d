"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from hoodkeeper.config import config_from_dict, load_config, parse_id_list
from hoodkeeper.engine.permissions import RoleHierarchy
from hoodkeeper.errors import ConfigurationError

MINIMAL = {
    "community_name": "Hay Hoods",
    "roles": {"admin": ["1"], "leader": "2", "coleader": "3, 4"},
}


class TestParseIdList:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, set()),
            ("", set()),
            ("1, 2,,3 ", {"1", "2", "3"}),
            (["1", 2], {"1", "2"}),
            (123456789012345678, {"123456789012345678"}),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert parse_id_list(raw) == expected


class TestConfigFromDict:
    def test_minimal(self):
        cfg = config_from_dict(MINIMAL)
        assert cfg.community_name == "Hay Hoods"
        assert cfg.admin_role_ids == {"1"}
        assert cfg.coleader_role_ids == {"3", "4"}
        assert cfg.bar_collector_role_ids == frozenset()
        assert cfg.guild_id is None
        assert cfg.sync_interval_minutes == 60
        assert cfg.allow_empty_prune is False

    def test_sync_section(self):
        cfg = config_from_dict({
            **MINIMAL,
            "guild_id": "42",
            "super_admin_ids": ["7"],
            "sync": {"interval_minutes": 15, "roster_timeout_seconds": 3, "allow_empty_prune": True},
        })
        assert cfg.guild_id == 42
        assert cfg.super_admin_ids == {"7"}
        assert cfg.sync_interval_minutes == 15
        assert cfg.roster_timeout_seconds == 3.0
        assert cfg.allow_empty_prune is True

    @pytest.mark.parametrize("missing", ["roles", "community_name"])
    def test_required_keys(self, missing):
        raw = {k: v for k, v in MINIMAL.items() if k != missing}
        with pytest.raises(ConfigurationError, match=missing):
            config_from_dict(raw)

    def test_frozen(self):
        cfg = config_from_dict(MINIMAL)
        with pytest.raises(AttributeError):
            cfg.community_name = "other"

    def test_feeds_role_hierarchy(self):
        hierarchy = RoleHierarchy.from_config(config_from_dict(MINIMAL))
        assert hierarchy.leader_role_ids == {"2"}


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "community_name: Test\n"
            "roles:\n"
            "  admin: ['10']\n"
            "  leader: '20'\n"
            "  coleader: '30'\n"
            "sync:\n"
            "  interval_minutes: 5\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.admin_role_ids == {"10"}
        assert cfg.sync_interval_minutes == 5

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)
