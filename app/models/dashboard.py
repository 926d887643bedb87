"""
Nexus Compliance - Generated Dashboard Model

A personalized dashboard produced from the intake form. The LLM-generated
sections are stored as JSON so the dashboard renders without regeneration.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, JSONType, utcnow

if TYPE_CHECKING:
    from app.models.organization import Organization


class GeneratedDashboard(BaseModel):
    """Persisted output of one dashboard generation run."""

    __tablename__ = "generated_dashboards"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Firm that asked for the dashboard; the seeded portfolio lives under organization_id
    requested_by_organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    unique_url: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    client_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    key_metrics: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    states_monitored: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    personalized_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Raw generated sections
    generated_clients: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    generated_alerts: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    generated_tasks: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    generated_analytics: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    generated_system_health: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    generated_nexus_alerts: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    generated_nexus_activities: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    generated_client_states: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="dashboards",
        foreign_keys=[organization_id],
    )
