"""
Nexus Compliance - Nexus Memo Models

Nexus study memoranda. Once sealed a memo is immutable: its content and
PDF hashes are stored and every later integrity check is logged in
memo_hash_verifications.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, JSONType, utcnow


class MemoType(str, Enum):
    INITIAL = "INITIAL"
    SUPPLEMENTAL = "SUPPLEMENTAL"


class MemoStatus(str, Enum):
    DRAFT = "DRAFT"
    SEALED = "SEALED"


class VerificationResult(str, Enum):
    VERIFIED = "VERIFIED"
    TAMPERED = "TAMPERED"
    NOT_SEALED = "NOT_SEALED"


class NexusMemo(BaseModel):
    """Nexus determination memorandum."""

    __tablename__ = "nexus_memos"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    memo_type: Mapped[str] = mapped_column(String(20), default=MemoType.INITIAL.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=MemoStatus.DRAFT.value, nullable=False)

    sections: Mapped[list] = mapped_column(JSONType, nullable=False)
    conclusion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recommendations: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    attestation: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    statute_versions: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Sealing
    is_sealed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_editable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sealed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sealed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    document_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    pdf_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Versioning
    is_supplemental: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supersedes_memo_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("nexus_memos.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    verifications: Mapped[List["MemoHashVerification"]] = relationship(
        "MemoHashVerification",
        back_populates="memo",
        cascade="all, delete-orphan",
        order_by="MemoHashVerification.verified_at.desc()",
    )


class MemoHashVerification(BaseModel):
    """Log row for a seal or a later integrity check."""

    __tablename__ = "memo_hash_verifications"

    memo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("nexus_memos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    verification_type: Mapped[str] = mapped_column(String(20), nullable=False)
    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    verification_result: Mapped[str] = mapped_column(String(20), nullable=False)
    computed_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    stored_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    memo: Mapped["NexusMemo"] = relationship("NexusMemo", back_populates="verifications")
