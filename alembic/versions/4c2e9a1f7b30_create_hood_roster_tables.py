"""Create hood roster, app config and role permission tables

Revision ID: 4c2e9a1f7b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c2e9a1f7b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create map_districts, hood_memberships, app_config, role_permissions."""
    op.create_table(
        "map_districts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("hood_id", sa.String(32), nullable=True),
        sa.Column("leader_discord_id", sa.String(32), nullable=True),
        sa.Column(
            "coleader_discord_ids",
            postgresql.JSONB(),
            nullable=True,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("leader", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_map_districts_hood_id", "map_districts", ["hood_id"], unique=True)

    op.create_table(
        "hood_memberships",
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column(
            "hood_id",
            sa.String(64),
            sa.ForeignKey("map_districts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("rank", sa.String(16), nullable=False, server_default="Member"),
        sa.Column("level", sa.Integer(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("user_id", "hood_id", name="pk_hood_memberships"),
        sa.CheckConstraint(
            "rank IN ('Leader', 'Co-Leader', 'Elder', 'Member')",
            name="ck_hood_memberships_rank",
        ),
    )
    op.create_index("ix_hood_memberships_hood_id", "hood_memberships", ["hood_id"])

    op.create_table(
        "app_config",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("role_id", sa.String(32), nullable=False),
        sa.Column("role_name", sa.String(100), nullable=False),
        sa.Column(
            "permissions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_role_permissions_role_id", "role_permissions", ["role_id"])


def downgrade() -> None:
    op.drop_index("ix_role_permissions_role_id", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_table("app_config")
    op.drop_index("ix_hood_memberships_hood_id", table_name="hood_memberships")
    op.drop_table("hood_memberships")
    op.drop_index("ix_map_districts_hood_id", table_name="map_districts")
    op.drop_table("map_districts")
