"""
Nexus Compliance - Audit Log Model

Append-only, hash-chained audit log. Each row stores the hash of its own
canonical payload and points at the previous row for the same entity, so
a broken link or an edited payload is detectable. Rows are numbered per
entity; the unique (entity_type, entity_id, sequence_number) constraint
stops two writers from appending to the same link.

This table should have no UPDATE or DELETE permissions.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, JSONType, utcnow


class AuditLog(BaseModel):
    """Tamper-evident audit entry."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "sequence_number", name="uq_audit_entity_sequence"),
    )

    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamp that is hashed; kept separate from created_at
    logged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    action_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    previous_action_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
