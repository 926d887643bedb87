"""
Nexus Compliance - PII Detection Log

Records every time a user was shown a PII warning for an upload and what
they decided.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, JSONType


class PIIAction(str, Enum):
    SHOWN = "SHOWN"
    OVERRIDE = "OVERRIDE"
    AUTO_EXCLUDED = "AUTO_EXCLUDED"


class PIIDetection(BaseModel):
    """PII warning decision for an upload."""

    __tablename__ = "pii_detections"

    upload_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    pii_types: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    pii_columns: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    severity: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    total_issues: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
