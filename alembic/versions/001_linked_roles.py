"""Initial schema: linked_roles.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "linked_roles",
        sa.Column("discord_id", sa.String(255), nullable=False),
        sa.Column("site", sa.String(255), nullable=False),
        sa.Column("xauth_id", sa.String(255), nullable=False),
        sa.Column("xauth_username", sa.String(255), nullable=False),
        sa.Column("discord_access_token", sa.Text, nullable=False),
        sa.Column("discord_refresh_token", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("discord_id", "site"),
    )
    op.create_index("ix_linked_roles_site", "linked_roles", ["site"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_linked_roles_site", table_name="linked_roles")
    op.drop_table("linked_roles")
