"""SQLAlchemy ORM models.

  objects                 -> ObjectRow (every polymorphic document)
  organizations           -> OrganizationRow (tenant registry)
  user_org_bindings       -> OrgBindingRow
  org_role_assignments    -> RoleAssignmentRow

These models live in the Infrastructure layer and implement persistence
for Port interfaces. Domain code never imports this module.
"""

from __future__ import annotations

import uuid as _uuid
from datetime import datetime  # noqa: TC003 -- SQLAlchemy resolves Mapped[] annotations at runtime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text("now()")


def _timestamp() -> Any:
    return mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=_NOW)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ObjectRow(Base):
    """Polymorphic document.

    ``data``/``metadata`` use the json type (text preserved verbatim);
    filters compare the jsonb value at a path. ``seq`` is an identity column
    giving a strict creation order for cursors.
    """

    __tablename__ = "objects"
    __mapper_args__ = {"eager_defaults": True}  # noqa: RUF012

    id: Mapped[_uuid.UUID] = mapped_column(_UUID, primary_key=True, default=_uuid.uuid4)
    seq: Mapped[int] = mapped_column(
        sa.BigInteger(),
        sa.Identity(always=False),
        nullable=False,
        unique=True,
    )
    org_id: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    type: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(postgresql.JSON(), nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        postgresql.JSON(),
        nullable=False,
        default=dict,
    )
    links: Mapped[list[str]] = mapped_column(
        postgresql.ARRAY(sa.String(255)),
        nullable=False,
        default=list,
        server_default=sa.text("'{}'"),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp()

    __table_args__ = (
        sa.Index("ix_objects_org_type_seq", "org_id", "type", "seq"),
        sa.Index("ix_objects_links", "links", postgresql_using="gin"),
    )


class OrganizationRow(Base):
    """Registered tenant."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(sa.String(128), primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False, server_default="")
    is_active: Mapped[bool] = mapped_column(nullable=False, server_default=sa.text("true"))
    created_at: Mapped[datetime] = _timestamp()


class OrgBindingRow(Base):
    """User -> organization binding; at most one active per user."""

    __tablename__ = "user_org_bindings"

    id: Mapped[_uuid.UUID] = mapped_column(_UUID, primary_key=True, default=_uuid.uuid4)
    user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False, index=True)
    org_id: Mapped[str] = mapped_column(
        sa.String(128),
        sa.ForeignKey("organizations.id"),
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(nullable=False, server_default=sa.text("false"))
    created_at: Mapped[datetime] = _timestamp()

    __table_args__ = (sa.UniqueConstraint("user_id", "org_id", name="uq_binding_user_org"),)


class RoleAssignmentRow(Base):
    """A user's single role in one organization."""

    __tablename__ = "org_role_assignments"

    id: Mapped[_uuid.UUID] = mapped_column(_UUID, primary_key=True, default=_uuid.uuid4)
    org_id: Mapped[str] = mapped_column(
        sa.String(128),
        sa.ForeignKey("organizations.id"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    __table_args__ = (sa.UniqueConstraint("org_id", "user_id", name="uq_role_org_user"),)
