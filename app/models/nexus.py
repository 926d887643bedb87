"""
Nexus Compliance - Nexus Alert & Activity Models

Threshold alerts raised per client and state, and the activity feed that
records monitoring events.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.client import Client


class AlertPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NexusAlertStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class NexusActivityType(str, Enum):
    MONITORING = "monitoring"
    THRESHOLD_APPROACHING = "threshold_approaching"
    THRESHOLD_BREACH = "threshold_breach"
    REGISTRATION = "registration"
    FILING = "filing"
    REVIEW = "review"


class NexusAlert(BaseModel):
    """Nexus threshold alert for a client in one state."""

    __tablename__ = "nexus_alerts"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    state_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True, index=True)
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default=AlertPriority.MEDIUM.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=NexusAlertStatus.OPEN.value, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    threshold_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    current_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    penalty_risk: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    client: Mapped["Client"] = relationship("Client", back_populates="nexus_alerts")


class NexusActivity(BaseModel):
    """Timeline entry for nexus monitoring."""

    __tablename__ = "nexus_activities"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    state_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    threshold_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="completed", nullable=False)

    client: Mapped["Client"] = relationship("Client", back_populates="nexus_activities")
