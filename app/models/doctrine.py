"""
Nexus Compliance - Doctrine Rule Models

Firm doctrine rules record a standing position ("we do not register in
WA for this activity pattern") so the same judgment call is applied
consistently. Client rules take effect immediately; office and firm rules
wait for partner approval. Every change bumps the rule version and leaves
a version event with before and after snapshots, which is what rollback
restores from.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, JSONType, utcnow


class DoctrineScope(str, Enum):
    CLIENT = "client"
    OFFICE = "office"
    FIRM = "firm"


class DoctrineStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    REJECTED = "rejected"
    DISABLED = "disabled"


class DoctrineDecision(str, Enum):
    NO_REGISTRATION = "NO_REGISTRATION"
    NO_ACTION = "NO_ACTION"
    REGISTER = "REGISTER"
    IMMEDIATE_ACTION = "IMMEDIATE_ACTION"
    MONITOR = "MONITOR"


class DoctrineRule(BaseModel):
    """A firm position applied to matching alerts."""

    __tablename__ = "doctrine_rules"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True, index=True)
    tax_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    activity_pattern: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    posture: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    decision: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    office_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=DoctrineStatus.DRAFT.value, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    rationale_internal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    approvals: Mapped[List["DoctrineApproval"]] = relationship(
        "DoctrineApproval",
        back_populates="rule",
        cascade="all, delete-orphan",
    )
    version_events: Mapped[List["DoctrineVersionEvent"]] = relationship(
        "DoctrineVersionEvent",
        back_populates="rule",
        cascade="all, delete-orphan",
    )
    impact_metrics: Mapped[Optional["DoctrineImpactMetrics"]] = relationship(
        "DoctrineImpactMetrics",
        back_populates="rule",
        cascade="all, delete-orphan",
        uselist=False,
    )


class DoctrineApproval(BaseModel):
    """One partner's approve or reject decision on a rule."""

    __tablename__ = "doctrine_approvals"

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctrine_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    approver_role: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    rule: Mapped["DoctrineRule"] = relationship("DoctrineRule", back_populates="approvals")


class DoctrineVersionEvent(BaseModel):
    """
    Snapshot pair for one change to a rule.

    sequence_number orders a rule's events; approvals and disables keep
    the rule version, so to_version alone does not.
    """

    __tablename__ = "doctrine_version_events"
    __table_args__ = (
        UniqueConstraint("rule_id", "sequence_number", name="uq_doctrine_event_sequence"),
    )

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctrine_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    from_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    to_version: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_snapshot: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_snapshot: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    rule: Mapped["DoctrineRule"] = relationship("DoctrineRule", back_populates="version_events")


class DoctrineImpactMetrics(BaseModel):
    """Running totals of how often a rule has been applied."""

    __tablename__ = "doctrine_impact_metrics"

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctrine_rules.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    total_clients_affected: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_memos_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue_covered: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0, nullable=False)
    last_applied_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rule: Mapped["DoctrineRule"] = relationship("DoctrineRule", back_populates="impact_metrics")
