"""
Nexus Compliance - Client Models

Clients of the firm and their per-state nexus position.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, JSONType, utcnow

if TYPE_CHECKING:
    from app.models.organization import Organization
    from app.models.nexus import NexusAlert, NexusActivity
    from app.models.alert import Alert, Task


class RiskLevel(str, Enum):
    """Client risk tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StateStatus(str, Enum):
    """Per-state nexus status shown on the map."""
    COMPLIANT = "compliant"
    WARNING = "warning"
    CRITICAL = "critical"
    TRANSIT = "transit"
    PENDING = "pending"
    MONITORING = "monitoring"


class Client(BaseModel):
    """A business served by the firm."""

    __tablename__ = "clients"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    legal_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    annual_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), default=RiskLevel.MEDIUM.value, nullable=False)
    penalty_exposure: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), default=0, nullable=True)
    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    tags: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Primary contact
    contact_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="clients")
    client_states: Mapped[List["ClientState"]] = relationship(
        "ClientState",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    nexus_alerts: Mapped[List["NexusAlert"]] = relationship(
        "NexusAlert",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    nexus_activities: Mapped[List["NexusActivity"]] = relationship(
        "NexusActivity",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    alerts: Mapped[List["Alert"]] = relationship(
        "Alert",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="client",
        cascade="all, delete-orphan",
    )


class ClientState(BaseModel):
    """Revenue position of a client in one state."""

    __tablename__ = "client_states"

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
    state_code: Mapped[str] = mapped_column(String(2), nullable=False, index=True)
    state_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=StateStatus.MONITORING.value, nullable=False)
    threshold_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    current_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    registration_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    penalty_risk: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    client: Mapped["Client"] = relationship("Client", back_populates="client_states")
