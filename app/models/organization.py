"""
Nexus Compliance - Organization Model

An organization is a CPA firm (or a generated demo firm) that owns clients,
users, dashboards and memos.
"""

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, JSONType

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.client import Client
    from app.models.dashboard import GeneratedDashboard


class Organization(BaseModel):
    """Multi-tenant firm record."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    clients: Mapped[List["Client"]] = relationship(
        "Client",
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    dashboards: Mapped[List["GeneratedDashboard"]] = relationship(
        "GeneratedDashboard",
        back_populates="organization",
        foreign_keys="GeneratedDashboard.organization_id",
        cascade="all, delete-orphan",
    )
