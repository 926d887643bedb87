"""
Nexus Compliance - Audit Trail Service

Tamper-evident audit logging. Every entry carries a SHA-256 hash of its
canonical payload, a per-entity sequence number and a link to the previous
entry for the same entity, so edited or removed entries break the chain.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog
from app.models.base import utcnow
from app.utils.document_hash import hash_payload, normalize_timestamp

logger = logging.getLogger(__name__)


AUDIT_ACTIONS: Dict[str, str] = {
    # Upload
    "UPLOAD_INITIATED": "User began file upload",
    "UPLOAD_COMPLETED": "File successfully uploaded",
    "UPLOAD_FAILED": "File upload failed",

    # Mapping
    "MAPPING_SUGGESTED": "System suggested column mapping",
    "MAPPING_CONFIRMED": "User confirmed column mapping",
    "MAPPING_OVERRIDDEN": "User changed suggested mapping",
    "MAPPING_IGNORED": "User excluded column from analysis",

    # Normalization
    "STATE_NORMALIZED": "State name auto-corrected",
    "NORMALIZATION_APPROVED": "User approved normalizations",

    # Judgment
    "JUDGMENT_REQUIRED": "System flagged ambiguous case",
    "JUDGMENT_RECORDED": "User recorded firm position",
    "JUDGMENT_CHANGED": "User modified previous judgment",

    # Memos
    "MEMO_GENERATED": "System generated memo draft",
    "MEMO_REVIEWED": "Partner reviewed memo",
    "MEMO_APPROVED": "Partner approved memo",
    "MEMO_SEALED": "Memo finalized with hash",
    "MEMO_ACCESSED": "User viewed memo",
    "MEMO_DOWNLOADED": "User downloaded PDF",

    # Analysis
    "ANALYSIS_RUN": "Nexus analysis executed",
    "ALERT_GENERATED": "System generated alert",
    "ALERT_DISMISSED": "User dismissed alert",

    # Statutes
    "STATUTE_OVERRIDE_CREATED": "Firm guidance override entered",
    "STATUTE_OVERRIDE_VALIDATED": "Override validated by partner",
    "STATUTE_OVERRIDE_REJECTED": "Firm guidance override rejected",
    "SUPPLEMENTAL_MEMO_TRIGGERED": "Statute change triggered supplemental",

    # Doctrine
    "DOCTRINE_RULE_CREATED": "Firm doctrine rule created",
    "DOCTRINE_RULE_APPROVED": "Partner approved doctrine rule",
    "DOCTRINE_RULE_REJECTED": "Partner rejected doctrine rule",
    "DOCTRINE_RULE_ROLLED_BACK": "Doctrine rule restored to earlier version",
    "DOCTRINE_RULE_DISABLED": "Doctrine rule disabled",

    # Approvals
    "APPROVAL_CREATED": "Approval requirement created",
    "APPROVAL_SUBMITTED": "Approval recorded",

    # Security
    "LOGIN": "User logged in",
    "LOGOUT": "User logged out",
    "PERMISSION_DENIED": "User attempted unauthorized action",
    "TAMPER_DETECTED": "Document hash verification failed",
    "HASH_VERIFIED": "Document hash verification passed",

    # PII
    "PII_DETECTED": "PII detected in upload",
    "PII_WARNING_SHOWN": "PII warning displayed to user",
    "PII_OVERRIDE": "User proceeded despite PII warning",
}


def generate_action_hash(
    user_id: Optional[Any],
    action: str,
    entity_id: Optional[str],
    timestamp: Any,
    details: Optional[Dict[str, Any]],
    previous_action_id: Optional[Any],
) -> str:
    """SHA-256 over the canonical JSON of an entry's hashed fields."""
    return hash_payload({
        "user_id": str(user_id) if user_id else None,
        "action": action,
        "entity_id": entity_id,
        "timestamp": normalize_timestamp(timestamp),
        "details": details or {},
        "previous_action_id": str(previous_action_id) if previous_action_id else None,
    })


class AuditService:
    """Service for the hash-chained audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _last_entry(self, entity_type: str, entity_id: str) -> Optional[AuditLog]:
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(desc(AuditLog.sequence_number))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        user_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Append an entry to the entity's chain.

        The entry takes the next sequence number after the entity's last
        entry. A concurrent append that claimed the same number fails on
        flush with IntegrityError instead of forking the chain.

        Raises:
            ValueError: If the action is not in AUDIT_ACTIONS
        """
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")

        entity_id = str(entity_id)
        previous = await self._last_entry(entity_type, entity_id)
        logged_at = utcnow()

        entry = AuditLog(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            sequence_number=previous.sequence_number + 1 if previous else 1,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            logged_at=logged_at,
            previous_action_id=previous.id if previous else None,
        )
        entry.action_hash = generate_action_hash(
            user_id, action, entity_id, logged_at, entry.details, entry.previous_action_id,
        )

        self.db.add(entry)
        await self.db.flush()

        logger.debug(f"Audit {action} #{entry.sequence_number} on {entity_type}/{entity_id}")
        return entry

    async def get_audit_trail(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 100,
        offset: int = 0,
        order: str = "desc",
    ) -> List[AuditLog]:
        column = AuditLog.sequence_number
        ordering = asc(column) if order.lower() == "asc" else desc(column)
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(ordering)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_entries(self, organization_id: Optional[uuid.UUID] = None) -> int:
        query = select(func.count(AuditLog.id))
        if organization_id:
            query = query.where(AuditLog.organization_id == organization_id)
        return (await self.db.execute(query)).scalar() or 0

    async def recent_activity(
        self,
        organization_id: Optional[uuid.UUID] = None,
        limit: int = 10,
    ) -> List[AuditLog]:
        query = select(AuditLog).order_by(desc(AuditLog.logged_at)).limit(limit)
        if organization_id:
            query = query.where(AuditLog.organization_id == organization_id)
        return list((await self.db.execute(query)).scalars().all())

    async def verify_audit_chain(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        """
        Walk the chain oldest-first, re-hashing each entry and checking that
        it links to the entry before it.
        """
        trail = await self.get_audit_trail(entity_type, entity_id, limit=10000, order="asc")

        for position, entry in enumerate(trail):
            if entry.sequence_number != position + 1:
                logger.warning(f"Audit sequence gap for {entity_type}/{entity_id} at {position}")
                return {
                    "verified": False,
                    "tampered_entry": str(entry.id),
                    "position": position,
                    "message": "Sequence gap detected",
                }

            computed = generate_action_hash(
                entry.user_id,
                entry.action,
                entry.entity_id,
                entry.logged_at,
                entry.details,
                entry.previous_action_id,
            )
            if computed != entry.action_hash:
                logger.warning(f"Audit hash mismatch for {entity_type}/{entity_id} at {position}")
                return {
                    "verified": False,
                    "tampered_entry": str(entry.id),
                    "position": position,
                    "message": "Hash mismatch detected",
                }

            if position > 0 and entry.previous_action_id != trail[position - 1].id:
                logger.warning(f"Audit chain break for {entity_type}/{entity_id} at {position}")
                return {
                    "verified": False,
                    "tampered_entry": str(entry.id),
                    "position": position,
                    "message": "Chain break detected",
                }

        return {
            "verified": True,
            "entries_verified": len(trail),
            "tampered_entry": None,
            "position": None,
            "message": "Audit chain integrity verified",
        }


def serialize_audit_entry(entry: AuditLog) -> Dict[str, Any]:
    return {
        "id": str(entry.id),
        "organization_id": str(entry.organization_id) if entry.organization_id else None,
        "user_id": str(entry.user_id) if entry.user_id else None,
        "action": entry.action,
        "description": AUDIT_ACTIONS.get(entry.action),
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "sequence_number": entry.sequence_number,
        "details": entry.details,
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "action_hash": entry.action_hash,
        "previous_action_id": str(entry.previous_action_id) if entry.previous_action_id else None,
        "logged_at": entry.logged_at.isoformat() if entry.logged_at else None,
    }
