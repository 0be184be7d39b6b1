"""Create objects, organizations, bindings and role tables.

Revision ID: 001_orgbase
Revises: None
Create Date: 2026-10-17

Rollback: drop org_role_assignments, user_org_bindings, organizations, objects
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_orgbase"
down_revision = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")


def upgrade() -> None:
    # --- objects ---
    op.create_table(
        "objects",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column(
            "seq",
            sa.BigInteger(),
            sa.Identity(always=False),
            nullable=False,
            unique=True,
            comment="strict creation order for cursors",
        ),
        sa.Column("org_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(255), nullable=False),
        sa.Column("data", postgresql.JSON(), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSON(),
            nullable=False,
            server_default=sa.text("'{}'::json"),
        ),
        sa.Column(
            "links",
            postgresql.ARRAY(sa.String(255)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
    )
    op.create_index("ix_objects_org_type_seq", "objects", ["org_id", "type", "seq"])
    op.create_index("ix_objects_links", "objects", ["links"], postgresql_using="gin")

    # --- organizations ---
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
    )

    # --- user_org_bindings ---
    op.create_table(
        "user_org_bindings",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column(
            "org_id",
            sa.String(128),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column(
            "active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
        sa.UniqueConstraint("user_id", "org_id", name="uq_binding_user_org"),
    )
    op.create_index("ix_user_org_bindings_user_id", "user_org_bindings", ["user_id"])

    # --- org_role_assignments ---
    op.create_table(
        "org_role_assignments",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column(
            "org_id",
            sa.String(128),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.UniqueConstraint("org_id", "user_id", name="uq_role_org_user"),
    )


def downgrade() -> None:
    op.drop_table("org_role_assignments")
    op.drop_index("ix_user_org_bindings_user_id", table_name="user_org_bindings")
    op.drop_table("user_org_bindings")
    op.drop_table("organizations")
    op.drop_index("ix_objects_links", table_name="objects")
    op.drop_index("ix_objects_org_type_seq", table_name="objects")
    op.drop_table("objects")
