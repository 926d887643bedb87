"""
Nexus Compliance - Nexus Memo Service

Drafting, sealing and integrity verification of nexus memoranda.

A sealed memo carries three SHA-256 hashes:
- content_hash over the canonical JSON of its substantive fields
- pdf_hash over the rendered PDF, when one exists
- document_hash over content_hash + pdf_hash

Sealed memos are read-only. Corrections are made through supplemental memos
that point at the memo they supersede.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.base import utcnow
from app.models.client import Client
from app.models.memo import (
    MemoHashVerification,
    MemoStatus,
    MemoType,
    NexusMemo,
    VerificationResult,
)
from app.services.audit_service import AuditService
from app.services.memo_pdf_service import MemoPDFService
from app.services.nexus_engine import NexusEngine
from app.utils.document_hash import canonical_json, normalize_timestamp, sha256_hex
from app.utils.error_handling import MemoSealedException, NotFoundException

logger = logging.getLogger(__name__)


HASH_ALGORITHM = "SHA-256"
VERIFICATION_SEALED = "SEALED"
VERIFICATION_CHECK = "VERIFICATION"
EDITABLE_FIELDS = ("title", "sections", "conclusion", "recommendations", "attestation", "statute_versions")
MEMO_ENTITY = "nexus_memo"

SEVERITY_HEADINGS = {
    "CRITICAL": "Immediate action",
    "HIGH": "Action required",
    "MEDIUM": "Monitor closely",
    "LOW": "Informational",
}


# ===========================================
# HASHING
# ===========================================

def memo_content(memo: NexusMemo) -> Dict[str, Any]:
    """Fields covered by the content hash."""
    return {
        "client_id": str(memo.client_id) if memo.client_id else None,
        "title": memo.title,
        "sections": memo.sections,
        "conclusion": memo.conclusion,
        "recommendations": memo.recommendations,
        "attestation": memo.attestation,
        "statute_versions": memo.statute_versions,
        "created_at": normalize_timestamp(memo.created_at),
    }


def combine_hashes(content_hash: str, pdf_hash: Optional[str]) -> str:
    return sha256_hex(content_hash + pdf_hash if pdf_hash else content_hash)


def generate_memo_hash(memo: NexusMemo, pdf_bytes: Optional[bytes] = None) -> Dict[str, Optional[str]]:
    """
    Compute the content, PDF and document hashes of a memo.

    Returns:
        Dict with contentHash, pdfHash (None without a PDF) and documentHash
    """
    content_hash = sha256_hex(canonical_json(memo_content(memo)))
    pdf_hash = sha256_hex(pdf_bytes) if pdf_bytes else None
    return {
        "contentHash": content_hash,
        "pdfHash": pdf_hash,
        "documentHash": combine_hashes(content_hash, pdf_hash),
    }


def generate_verification_certificate(verification: Dict[str, Any]) -> Dict[str, Any]:
    """Certificate summarising one integrity check."""
    verified = bool(verification.get("verified"))
    return {
        "certificateId": str(uuid.uuid4()),
        "verificationResult": "PASSED" if verified else "FAILED",
        "documentHash": verification.get("storedHash"),
        "verificationHash": verification.get("currentHash"),
        "hashesMatch": verified,
        "algorithm": HASH_ALGORITHM,
        "sealedAt": verification.get("sealedAt"),
        "verifiedAt": verification.get("verificationTimestamp"),
        "status": verification.get("status"),
        "message": (
            "Document integrity verified. This document has not been altered since sealing."
            if verified else
            "TAMPER DETECTED: Document has been modified after sealing. "
            "Do not rely on this version for legal defense."
        ),
    }


# ===========================================
# MEMO DRAFTING FROM ALERTS
# ===========================================

def _format_amount(value: Any) -> str:
    try:
        return f"${float(value):,.0f}"
    except (TypeError, ValueError):
        return str(value)


def build_memo_from_alerts(
    client_name: str,
    alerts: List[Dict[str, Any]],
    summary: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Draft memo content from nexus engine alerts.

    Returns:
        Dict with title, sections, conclusion and recommendations
    """
    summary = summary or {}
    state_alerts = [
        a for a in NexusEngine.sort_alerts(alerts) if a.get("state") and a.get("state") != "N/A"
    ]
    states = sorted({a["state"] for a in state_alerts})
    by_severity = summary.get("bySeverity") or {}
    critical = by_severity.get("CRITICAL", 0)
    high = by_severity.get("HIGH", 0)

    overview = (
        f"This memorandum documents the economic nexus review performed for {client_name}. "
        f"The review produced {len(alerts)} finding(s) across {len(states)} state(s)."
    )
    if critical or high:
        overview += f"\n\n{critical} critical and {high} high severity finding(s) require prompt attention."

    sections: List[Dict[str, Any]] = [{
        "id": "executive_summary",
        "title": "Executive Summary",
        "content": overview,
        "items": [f"{state}: {sum(1 for a in state_alerts if a['state'] == state)} finding(s)" for state in states],
    }]

    analysis_items = []
    for alert in state_alerts:
        facts = alert.get("facts") or {}
        line = f"{alert.get('stateName', alert['state'])} ({alert['state']}) - {alert.get('title', '')}"
        if facts.get("actualRevenue") is not None and facts.get("threshold") is not None:
            line += f": {_format_amount(facts['actualRevenue'])} against a {_format_amount(facts['threshold'])} threshold"
        heading = SEVERITY_HEADINGS.get(alert.get("severity"))
        if heading:
            line += f" [{heading}]"
        analysis_items.append(line)

    sections.append({
        "id": "state_analysis",
        "title": "State-by-State Analysis",
        "content": "Findings are ordered by severity." if analysis_items else "No state-level findings.",
        "items": analysis_items,
    })

    quality = [a for a in alerts if a.get("type") == "DATA_QUALITY"]
    if quality:
        sections.append({
            "id": "data_quality",
            "title": "Data Quality",
            "content": "The following data issues limit the reliability of this review.",
            "items": [a.get("description", "") for a in quality],
        })

    recommendations: List[str] = []
    for alert in alerts:
        recommendation = alert.get("recommendation")
        if recommendation and recommendation not in recommendations:
            recommendations.append(recommendation)

    sections.append({
        "id": "recommendations",
        "title": "Recommendations",
        "content": "Recommended next steps, highest severity first.",
        "items": recommendations,
    })

    if critical or high:
        conclusion = (
            f"{client_name} has established or is at risk of economic nexus in "
            f"{len(states)} state(s). Registration and filing obligations should be addressed."
        )
    elif states:
        conclusion = f"{client_name} should continue monitoring activity in {len(states)} state(s)."
    else:
        conclusion = f"No economic nexus exposure was identified for {client_name}."

    return {
        "title": f"Economic Nexus Memorandum - {client_name}",
        "sections": sections,
        "conclusion": conclusion,
        "recommendations": recommendations,
    }


# ===========================================
# SERVICE
# ===========================================

class MemoService:
    """Service for nexus memo lifecycle operations."""

    def __init__(self, db: AsyncSession, pdf_service: Optional[MemoPDFService] = None):
        self.db = db
        self.pdf_service = pdf_service or MemoPDFService()
        self.audit = AuditService(db)
        self.storage_path = Path(settings.memo_pdf_storage_path)

    async def create_memo(
        self,
        organization_id: uuid.UUID,
        client_id: uuid.UUID,
        title: str,
        sections: List[Dict[str, Any]],
        memo_type: Optional[str] = None,
        conclusion: Optional[str] = None,
        recommendations: Optional[List[str]] = None,
        attestation: Optional[Dict[str, Any]] = None,
        statute_versions: Optional[Dict[str, Any]] = None,
        is_supplemental: bool = False,
        supersedes_memo_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> NexusMemo:
        """
        Create a draft memo.

        Raises:
            ValueError: If title or sections are missing
        """
        if not title or not sections:
            raise ValueError("title and sections are required")

        memo = NexusMemo(
            organization_id=organization_id,
            client_id=client_id,
            title=title,
            memo_type=memo_type or MemoType.INITIAL.value,
            sections=sections,
            conclusion=conclusion or None,
            recommendations=recommendations if isinstance(recommendations, list) else None,
            attestation=attestation,
            statute_versions=statute_versions,
            is_supplemental=is_supplemental,
            supersedes_memo_id=supersedes_memo_id,
            status=MemoStatus.DRAFT.value,
            is_editable=True,
            created_by=created_by,
        )
        self.db.add(memo)
        await self.db.flush()

        await self.audit.log_action(
            "MEMO_GENERATED",
            MEMO_ENTITY,
            memo.id,
            user_id=created_by,
            organization_id=organization_id,
            details={"title": title, "memo_type": memo.memo_type, "supersedes": str(supersedes_memo_id) if supersedes_memo_id else None},
        )
        await self.db.commit()
        await self.db.refresh(memo)

        logger.info(f"Created {memo.memo_type} memo {memo.id} for client {client_id}")
        return memo

    async def get_memo(self, memo_id: uuid.UUID) -> Optional[NexusMemo]:
        result = await self.db.execute(select(NexusMemo).where(NexusMemo.id == memo_id))
        return result.scalar_one_or_none()

    async def _require_memo(self, memo_id: uuid.UUID) -> NexusMemo:
        memo = await self.get_memo(memo_id)
        if not memo:
            raise NotFoundException("Memo", memo_id)
        return memo

    async def get_client_name(self, client_id: uuid.UUID) -> Optional[str]:
        result = await self.db.execute(select(Client.name).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def list_memos(
        self,
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> List[Tuple[NexusMemo, Optional[str], Optional[str]]]:
        """Memos newest first, with the client's name and legal name."""
        query = (
            select(NexusMemo, Client.name, Client.legal_name)
            .outerjoin(Client, NexusMemo.client_id == Client.id)
            .where(NexusMemo.organization_id == organization_id)
        )
        if client_id:
            query = query.where(NexusMemo.client_id == client_id)
        if status:
            query = query.where(NexusMemo.status == status.upper())
        query = query.order_by(desc(NexusMemo.created_at))

        result = await self.db.execute(query)
        return [(memo, name, legal_name) for memo, name, legal_name in result.all()]

    async def update_memo(self, memo_id: uuid.UUID, updates: Dict[str, Any]) -> NexusMemo:
        """
        Update a draft memo. Empty values leave the field unchanged.

        Raises:
            NotFoundException: If the memo does not exist
            MemoSealedException: If the memo is sealed
        """
        memo = await self._require_memo(memo_id)
        if memo.is_sealed:
            raise MemoSealedException(memo_id, "updated")

        for field in EDITABLE_FIELDS:
            value = updates.get(field)
            if value:
                setattr(memo, field, value)

        await self.db.commit()
        await self.db.refresh(memo)
        return memo

    # ===========================================
    # PDF
    # ===========================================

    def pdf_path(self, memo_id: uuid.UUID) -> Path:
        return self.storage_path / f"{memo_id}.pdf"

    def store_pdf(self, memo_id: uuid.UUID, pdf_bytes: bytes) -> Path:
        path = self.pdf_path(memo_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(pdf_bytes)
        return path

    def load_pdf(self, memo_id: uuid.UUID) -> Optional[bytes]:
        path = self.pdf_path(memo_id)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            return f.read()

    async def get_pdf(self, memo_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> bytes:
        """
        The sealed PDF if one is stored, otherwise a fresh rendering.

        Raises:
            NotFoundException: If the memo does not exist
        """
        memo = await self._require_memo(memo_id)
        pdf_bytes = self.load_pdf(memo.id) if memo.is_sealed else None
        if pdf_bytes is None:
            client_name = await self.get_client_name(memo.client_id)
            pdf_bytes = self.pdf_service.render_memo_pdf(memo, client_name)

        await self.audit.log_action(
            "MEMO_DOWNLOADED",
            MEMO_ENTITY,
            memo.id,
            user_id=user_id,
            organization_id=memo.organization_id,
            details={"sealed": memo.is_sealed, "size": len(pdf_bytes)},
        )
        await self.db.commit()
        return pdf_bytes

    # ===========================================
    # SEALING AND VERIFICATION
    # ===========================================

    async def seal_memo(
        self,
        memo_id: uuid.UUID,
        user_id: uuid.UUID,
        pdf_bytes: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        """
        Seal a memo. Without an uploaded PDF one is rendered and stored.

        Raises:
            NotFoundException: If the memo does not exist
            MemoSealedException: If the memo is already sealed
        """
        memo = await self._require_memo(memo_id)
        if memo.is_sealed:
            raise MemoSealedException(memo_id, "sealed again")

        content_hash = generate_memo_hash(memo)["contentHash"]
        memo.sealed_at = utcnow()
        memo.sealed_by = user_id
        memo.content_hash = content_hash

        if pdf_bytes is None:
            client_name = await self.get_client_name(memo.client_id)
            pdf_bytes = self.pdf_service.render_memo_pdf(memo, client_name)
        self.store_pdf(memo.id, pdf_bytes)

        hashes = generate_memo_hash(memo, pdf_bytes)
        memo.pdf_hash = hashes["pdfHash"]
        memo.document_hash = hashes["documentHash"]
        memo.is_sealed = True
        memo.is_editable = False
        memo.status = MemoStatus.SEALED.value

        self.db.add(MemoHashVerification(
            memo_id=memo.id,
            verification_type=VERIFICATION_SEALED,
            verified_by=user_id,
            verification_result=VerificationResult.VERIFIED.value,
            computed_hash=hashes["documentHash"],
            stored_hash=hashes["documentHash"],
            details={"algorithm": HASH_ALGORITHM, "contentHash": content_hash, "pdfHash": hashes["pdfHash"]},
        ))
        await self.audit.log_action(
            "MEMO_SEALED",
            MEMO_ENTITY,
            memo.id,
            user_id=user_id,
            organization_id=memo.organization_id,
            details={"document_hash": hashes["documentHash"]},
        )
        await self.db.commit()
        await self.db.refresh(memo)

        logger.info(f"Sealed memo {memo.id} with document hash {hashes['documentHash'][:12]}")
        return {
            "memo": memo,
            "hash": hashes["documentHash"],
            "sealed": True,
            "sealedAt": memo.sealed_at,
            "sealedBy": user_id,
        }

    async def verify_memo_integrity(
        self,
        memo_id: uuid.UUID,
        pdf_bytes: Optional[bytes] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """
        Recompute a sealed memo's document hash and compare with the stored one.

        The PDF half of the hash comes from an uploaded PDF when given, then
        the stored PDF file, then the pdf_hash recorded at sealing.

        Raises:
            NotFoundException: If the memo does not exist
        """
        memo = await self._require_memo(memo_id)
        timestamp = utcnow()

        if not memo.is_sealed:
            self.db.add(MemoHashVerification(
                memo_id=memo.id,
                verification_type=VERIFICATION_CHECK,
                verified_by=user_id,
                verification_result=VerificationResult.NOT_SEALED.value,
                verified_at=timestamp,
            ))
            await self.db.commit()
            return {
                "verified": False,
                "reason": "Memo has not been sealed",
                "status": VerificationResult.NOT_SEALED.value,
            }

        source = "upload"
        if pdf_bytes is None:
            pdf_bytes = self.load_pdf(memo.id)
            source = "stored_file"

        if pdf_bytes is not None:
            current = generate_memo_hash(memo, pdf_bytes)
        else:
            source = "stored_hash"
            content_hash = generate_memo_hash(memo)["contentHash"]
            current = {
                "contentHash": content_hash,
                "pdfHash": memo.pdf_hash,
                "documentHash": combine_hashes(content_hash, memo.pdf_hash),
            }

        verified = current["documentHash"] == memo.document_hash
        result = VerificationResult.VERIFIED if verified else VerificationResult.TAMPERED

        self.db.add(MemoHashVerification(
            memo_id=memo.id,
            verification_type=VERIFICATION_CHECK,
            verified_by=user_id,
            verification_result=result.value,
            computed_hash=current["documentHash"],
            stored_hash=memo.document_hash,
            details={
                "algorithm": HASH_ALGORITHM,
                "pdfSource": source,
                "contentMatches": current["contentHash"] == memo.content_hash,
                "pdfMatches": current["pdfHash"] == memo.pdf_hash,
            },
            verified_at=timestamp,
        ))
        await self.audit.log_action(
            "HASH_VERIFIED" if verified else "TAMPER_DETECTED",
            MEMO_ENTITY,
            memo.id,
            user_id=user_id,
            organization_id=memo.organization_id,
            details={"computed_hash": current["documentHash"], "stored_hash": memo.document_hash},
        )
        await self.db.commit()

        if not verified:
            logger.warning(f"Tamper detected on memo {memo.id}")

        return {
            "verified": verified,
            "storedHash": memo.document_hash,
            "currentHash": current["documentHash"],
            "sealedAt": memo.sealed_at.isoformat() if memo.sealed_at else None,
            "sealedBy": str(memo.sealed_by) if memo.sealed_by else None,
            "verificationTimestamp": timestamp.isoformat(),
            "status": result.value,
        }

    async def get_verification_history(self, memo_id: uuid.UUID) -> List[MemoHashVerification]:
        result = await self.db.execute(
            select(MemoHashVerification)
            .where(MemoHashVerification.memo_id == memo_id)
            .order_by(desc(MemoHashVerification.verified_at))
        )
        return list(result.scalars().all())

    # ===========================================
    # VERSIONS
    # ===========================================

    async def get_versions(self, memo_id: uuid.UUID) -> List[NexusMemo]:
        """The memo and every memo it transitively supersedes, newest first."""
        versions: List[NexusMemo] = []
        seen = set()
        current = await self.get_memo(memo_id)
        while current and current.id not in seen:
            versions.append(current)
            seen.add(current.id)
            if not current.supersedes_memo_id:
                break
            current = await self.get_memo(current.supersedes_memo_id)

        return sorted(versions, key=lambda m: normalize_timestamp(m.created_at) or "", reverse=True)

    async def create_supplemental(
        self,
        memo_id: uuid.UUID,
        organization_id: uuid.UUID,
        title: str,
        sections: List[Dict[str, Any]],
        conclusion: Optional[str] = None,
        recommendations: Optional[List[str]] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> NexusMemo:
        """
        Create a supplemental memo that supersedes an existing one.

        Raises:
            NotFoundException: If the original memo does not exist
        """
        original = await self.get_memo(memo_id)
        if not original:
            raise NotFoundException("Memo", memo_id, message="Original memo not found")

        return await self.create_memo(
            organization_id=organization_id,
            client_id=original.client_id,
            title=title,
            sections=sections,
            memo_type=MemoType.SUPPLEMENTAL.value,
            conclusion=conclusion,
            recommendations=recommendations,
            statute_versions=original.statute_versions,
            is_supplemental=True,
            supersedes_memo_id=original.id,
            created_by=created_by,
        )

    async def create_from_alerts(
        self,
        organization_id: uuid.UUID,
        client_id: uuid.UUID,
        alerts: List[Dict[str, Any]],
        summary: Optional[Dict[str, Any]] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> NexusMemo:
        """Draft a memo for a client from nexus engine output."""
        client_name = await self.get_client_name(client_id) or "Client"
        draft = build_memo_from_alerts(client_name, alerts, summary)
        return await self.create_memo(
            organization_id=organization_id,
            client_id=client_id,
            title=draft["title"],
            sections=draft["sections"],
            conclusion=draft["conclusion"],
            recommendations=draft["recommendations"],
            created_by=created_by,
        )


def serialize_memo(
    memo: NexusMemo,
    client_name: Optional[str] = None,
    legal_name: Optional[str] = None,
) -> Dict[str, Any]:
    data = {
        "id": str(memo.id),
        "organization_id": str(memo.organization_id),
        "client_id": str(memo.client_id),
        "title": memo.title,
        "memo_type": memo.memo_type,
        "status": memo.status,
        "sections": memo.sections,
        "conclusion": memo.conclusion,
        "recommendations": memo.recommendations,
        "attestation": memo.attestation,
        "statute_versions": memo.statute_versions,
        "is_sealed": memo.is_sealed,
        "is_editable": memo.is_editable,
        "sealed_at": memo.sealed_at.isoformat() if memo.sealed_at else None,
        "sealed_by": str(memo.sealed_by) if memo.sealed_by else None,
        "document_hash": memo.document_hash,
        "content_hash": memo.content_hash,
        "pdf_hash": memo.pdf_hash,
        "is_supplemental": memo.is_supplemental,
        "supersedes_memo_id": str(memo.supersedes_memo_id) if memo.supersedes_memo_id else None,
        "created_by": str(memo.created_by) if memo.created_by else None,
        "created_at": memo.created_at.isoformat() if memo.created_at else None,
        "updated_at": memo.updated_at.isoformat() if memo.updated_at else None,
    }
    if client_name is not None:
        data["client_name"] = client_name
        data["legal_entity_name"] = legal_name
    return data


def serialize_verification(entry: MemoHashVerification) -> Dict[str, Any]:
    return {
        "id": str(entry.id),
        "memo_id": str(entry.memo_id),
        "verification_type": entry.verification_type,
        "verified_by": str(entry.verified_by) if entry.verified_by else None,
        "verification_result": entry.verification_result,
        "computed_hash": entry.computed_hash,
        "stored_hash": entry.stored_hash,
        "details": entry.details,
        "verified_at": entry.verified_at.isoformat() if entry.verified_at else None,
    }
