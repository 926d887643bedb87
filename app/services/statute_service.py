"""
Nexus Compliance - Statute Override Service

Entry, partner validation and soft rejection of firm statute overrides,
plus the clients whose memos an override touches.
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.client import Client
from app.models.memo import NexusMemo
from app.models.statute import StatuteOverride, ValidationStatus
from app.services.audit_service import AuditService
from app.services.nexus_service import normalize_state_code
from app.utils.document_hash import canonical_json
from app.utils.error_handling import NotFoundException

logger = logging.getLogger(__name__)


OVERRIDE_ENTITY = "STATUTE_OVERRIDE"


def serialize_override(override: StatuteOverride) -> Dict[str, Any]:
    return {
        "id": str(override.id),
        "organization_id": str(override.organization_id),
        "state_code": override.state_code,
        "tax_type": override.tax_type,
        "change_type": override.change_type,
        "previous_value": override.previous_value,
        "new_value": override.new_value,
        "effective_date": override.effective_date.isoformat() if override.effective_date else None,
        "source": override.source,
        "citation": override.citation,
        "notes": override.notes,
        "entered_by": str(override.entered_by),
        "validation_status": override.validation_status,
        "validated_by": str(override.validated_by) if override.validated_by else None,
        "validated_at": override.validated_at.isoformat() if override.validated_at else None,
        "created_at": override.created_at.isoformat() if override.created_at else None,
    }


class StatuteService:
    """Service for firm statute overrides."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_override(self, override_id: uuid.UUID) -> StatuteOverride:
        override = await self.db.get(StatuteOverride, override_id)
        if override is None:
            raise NotFoundException("Statute override", override_id, message="Statute override not found")
        return override

    async def create_override(
        self,
        organization_id: uuid.UUID,
        state_code: str,
        tax_type: str,
        change_type: str,
        effective_date: date,
        entered_by: uuid.UUID,
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
        source: Optional[str] = None,
        citation: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatuteOverride:
        """
        Record an override as PENDING.

        Raises:
            InvalidStateCodeException: If the state code is unknown
        """
        override = StatuteOverride(
            organization_id=organization_id,
            state_code=normalize_state_code(state_code),
            tax_type=tax_type,
            change_type=change_type,
            previous_value=previous_value,
            new_value=new_value,
            effective_date=effective_date,
            source=source,
            citation=citation,
            notes=notes,
            entered_by=entered_by,
            validation_status=ValidationStatus.PENDING.value,
        )
        self.db.add(override)
        await self.db.flush()

        await AuditService(self.db).log_action(
            "STATUTE_OVERRIDE_CREATED",
            OVERRIDE_ENTITY,
            override.id,
            user_id=entered_by,
            organization_id=organization_id,
            details={
                "stateCode": override.state_code,
                "taxType": tax_type,
                "changeType": change_type,
                "effectiveDate": effective_date.isoformat(),
            },
        )
        await self.db.commit()
        await self.db.refresh(override)

        logger.info(f"Statute override {override.id} entered for {override.state_code} {tax_type}")
        return override

    async def list_overrides(
        self,
        organization_id: uuid.UUID,
        state_code: Optional[str] = None,
        tax_type: Optional[str] = None,
        validation_status: Optional[str] = None,
    ) -> List[StatuteOverride]:
        query = select(StatuteOverride).where(StatuteOverride.organization_id == organization_id)
        if state_code:
            query = query.where(StatuteOverride.state_code == state_code.upper())
        if tax_type:
            query = query.where(StatuteOverride.tax_type == tax_type)
        if validation_status:
            query = query.where(StatuteOverride.validation_status == validation_status.upper())
        result = await self.db.execute(query.order_by(desc(StatuteOverride.created_at)))
        return list(result.scalars().all())

    async def validate_override(self, override_id: uuid.UUID, user_id: uuid.UUID) -> StatuteOverride:
        override = await self.get_override(override_id)
        override.validation_status = ValidationStatus.VALIDATED.value
        override.validated_by = user_id
        override.validated_at = utcnow()

        await AuditService(self.db).log_action(
            "STATUTE_OVERRIDE_VALIDATED",
            OVERRIDE_ENTITY,
            override.id,
            user_id=user_id,
            organization_id=override.organization_id,
            details={"stateCode": override.state_code, "taxType": override.tax_type},
        )
        await self.db.commit()
        await self.db.refresh(override)
        return override

    async def reject_override(
        self,
        override_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> StatuteOverride:
        """Soft delete: the override stays on record as REJECTED."""
        override = await self.get_override(override_id)
        note = f"REJECTED: {reason or 'No reason provided'}"
        override.validation_status = ValidationStatus.REJECTED.value
        override.validated_by = user_id
        override.validated_at = utcnow()
        override.notes = f"{override.notes}\n\n{note}" if override.notes else note

        await AuditService(self.db).log_action(
            "STATUTE_OVERRIDE_REJECTED",
            OVERRIDE_ENTITY,
            override.id,
            user_id=user_id,
            organization_id=override.organization_id,
            details={"stateCode": override.state_code, "reason": reason},
        )
        await self.db.commit()
        await self.db.refresh(override)
        return override

    async def get_affected_clients(self, override_id: uuid.UUID) -> Dict[str, Any]:
        """Clients of the firm with a memo whose sections mention the override's state."""
        override = await self.get_override(override_id)
        result = await self.db.execute(
            select(Client, NexusMemo.sections)
            .join(NexusMemo, NexusMemo.client_id == Client.id)
            .where(Client.organization_id == override.organization_id)
            .order_by(Client.name)
        )

        affected: Dict[uuid.UUID, Dict[str, Any]] = {}
        for client, sections in result.all():
            if client.id in affected or override.state_code not in canonical_json(sections):
                continue
            affected[client.id] = {
                "id": str(client.id),
                "name": client.name,
                "legal_entity_name": client.legal_name,
            }

        clients = list(affected.values())
        return {"override": serialize_override(override), "affectedClients": clients, "count": len(clients)}
