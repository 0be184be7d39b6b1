"""Shared domain types used across layers.

These types flow through Port interfaces and must remain stable.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

# -- Polymorphic object store --


@dataclass(frozen=True)
class ObjectRecord:
    """One polymorphic document.

    ``deleted_at`` set means soft-deleted; the record is still returned by
    id lookups. ``seq`` is the store-assigned creation order.
    """

    id: UUID
    org_id: str
    type: str
    data: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)
    links: list[str] = field(default_factory=list)
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    seq: int = 0

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used by the HTTP layer."""
        return {
            "id": str(self.id),
            "type": self.type,
            "data": self.data,
            "metadata": self.metadata,
            "links": list(self.links),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class ObjectPage:
    """A page of list results with an opaque continuation cursor."""

    items: list[ObjectRecord] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass(frozen=True)
class NewObject:
    """Input for bulk creation."""

    type: str
    data: dict[str, Any]
    metadata: dict[str, Any] | None = None
    links: list[str] | None = None


# -- Directory (bindings / roles) --


@dataclass(frozen=True)
class OrgBinding:
    """Which organization a user is operating against."""

    user_id: str
    org_id: str
    active: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class RoleAssignment:
    """A user's single role within one organization."""

    user_id: str
    org_id: str
    role: str


# -- Jobs --


class JobStatus(enum.Enum):
    """AI job lifecycle. ``pending`` is initial; the other two are terminal."""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


# -- Outbound providers --


@dataclass(frozen=True)
class ProviderReceipt:
    """Successful provider call, identified by the provider's receipt id."""

    receipt_id: str | None
    raw: dict[str, Any] = field(default_factory=dict)
