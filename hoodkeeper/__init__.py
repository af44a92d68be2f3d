"""
Hoodkeeper — Neighborhood Roster Sync & Permissions for Discord Communities
============================================================================
Keeps each neighborhood ("hood") roster in the database in step with the
Discord role that defines it, resolves every member's rank, and answers
"may this user do X?" for the admin dashboard.

Package layout::

    hoodkeeper/
    ├── config.py          # YAML → typed, immutable config
    ├── errors.py          # ConfigurationError / UpstreamError / PersistenceError
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # Districts, memberships, config, permission rules
    ├── engine/
    │   ├── names.py       # Display-name sanitizer
    │   ├── ranks.py       # Rank precedence resolver
    │   └── permissions.py # Capability evaluator + role hierarchy
    ├── services/
    │   ├── roster_client.py          # Roster fetch (bot HTTP API / guild)
    │   ├── membership_store.py       # Upsert / prune / leader writes
    │   ├── reconciliation_service.py # fetch → resolve → upsert → prune
    │   └── permission_service.py     # Rule loading + capability checks
    ├── api/               # FastAPI: sync, cron, permission endpoints
    └── bot/               # discord.py bot running the periodic sync
"""

__version__ = "0.1.0"
