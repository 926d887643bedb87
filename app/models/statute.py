"""
Nexus Compliance - Statute Override Model

Firm-entered changes to state nexus law (a new threshold, a repealed
transaction test) recorded ahead of the reference data. An override is
PENDING until a partner validates it; rejection is a soft delete.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class ValidationStatus(str, Enum):
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


class StatuteOverride(BaseModel):
    """A firm-entered statute change for one state and tax type."""

    __tablename__ = "statute_overrides"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    state_code: Mapped[str] = mapped_column(String(2), nullable=False, index=True)
    tax_type: Mapped[str] = mapped_column(String(50), nullable=False)
    change_type: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    citation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    entered_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    validation_status: Mapped[str] = mapped_column(
        String(20),
        default=ValidationStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    validated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
