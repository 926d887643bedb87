"""
Nexus Compliance - Approval Service

Approval requirements and the sign-offs recorded against them.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.approval import Approval, ApprovalRequirement, ApprovalStatus
from app.services.audit_service import AuditService
from app.utils.error_handling import NotFoundException

logger = logging.getLogger(__name__)


def serialize_requirement(requirement: ApprovalRequirement) -> Dict[str, Any]:
    return {
        "id": str(requirement.id),
        "organization_id": str(requirement.organization_id),
        "action_type": requirement.action_type,
        "required_role": requirement.required_role,
        "entity_type": requirement.entity_type,
        "entity_id": requirement.entity_id,
        "client_id": str(requirement.client_id) if requirement.client_id else None,
        "created_at": requirement.created_at.isoformat() if requirement.created_at else None,
    }


def serialize_approval(approval: Approval) -> Dict[str, Any]:
    return {
        "id": str(approval.id),
        "organization_id": str(approval.organization_id),
        "requirement_id": str(approval.requirement_id) if approval.requirement_id else None,
        "entity_type": approval.entity_type,
        "entity_id": approval.entity_id,
        "approval_type": approval.approval_type,
        "required_role": approval.required_role,
        "approved_by": str(approval.approved_by),
        "approved_at": approval.approved_at.isoformat() if approval.approved_at else None,
        "approval_notes": approval.approval_notes,
        "status": approval.status,
    }


class ApprovalService:
    """Service for approval requirements and sign-offs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_requirement(
        self,
        organization_id: uuid.UUID,
        approval_type: str,
        required_role: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        client_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> ApprovalRequirement:
        requirement = ApprovalRequirement(
            organization_id=organization_id,
            action_type=approval_type,
            required_role=required_role,
            entity_type=entity_type,
            entity_id=entity_id,
            client_id=client_id,
        )
        self.db.add(requirement)
        await self.db.flush()

        await AuditService(self.db).log_action(
            "APPROVAL_CREATED",
            entity_type or "GENERAL",
            entity_id or requirement.id,
            user_id=user_id,
            organization_id=organization_id,
            details={"approval_type": approval_type, "required_role": required_role},
        )
        await self.db.commit()
        await self.db.refresh(requirement)
        return requirement

    async def submit_approval(
        self,
        requirement_id: uuid.UUID,
        user_id: uuid.UUID,
        notes: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Approval:
        """
        Record an APPROVED sign-off against a requirement.

        The sign-off inherits the requirement's entity unless the caller names
        one; failing both it points at the requirement itself.

        Raises:
            NotFoundException: If the requirement does not exist
        """
        requirement = await self.db.get(ApprovalRequirement, requirement_id)
        if requirement is None:
            raise NotFoundException(
                "Approval requirement", requirement_id, message="Approval requirement not found"
            )

        entity_type = entity_type or requirement.entity_type or "APPROVAL_REQUIREMENT"
        entity_id = entity_id or requirement.entity_id or str(requirement_id)

        approval = Approval(
            organization_id=requirement.organization_id,
            requirement_id=requirement.id,
            entity_type=entity_type,
            entity_id=entity_id,
            approval_type=requirement.action_type,
            required_role=requirement.required_role,
            approved_by=user_id,
            approval_notes=notes,
            status=ApprovalStatus.APPROVED.value,
        )
        self.db.add(approval)
        await self.db.flush()

        await AuditService(self.db).log_action(
            "APPROVAL_SUBMITTED",
            entity_type,
            entity_id,
            user_id=user_id,
            organization_id=requirement.organization_id,
            details={"approval_type": requirement.action_type, "notes": notes},
        )
        await self.db.commit()
        await self.db.refresh(approval)

        logger.info(f"Approval {approval.id} recorded for {entity_type} {entity_id}")
        return approval

    async def approval_status(
        self,
        entity_type: str,
        entity_id: str,
        organization_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        filters = [ApprovalRequirement.entity_type == entity_type, ApprovalRequirement.entity_id == entity_id]
        if organization_id:
            filters.append(ApprovalRequirement.organization_id == organization_id)
        requirements = (await self.db.execute(
            select(ApprovalRequirement)
            .where(*filters)
            .order_by(desc(ApprovalRequirement.created_at))
        )).scalars().all()
        if not requirements:
            return {"required": False, "approved": False, "approvals": []}

        approvals = (await self.db.execute(
            select(Approval)
            .where(
                Approval.entity_type == entity_type,
                Approval.entity_id == entity_id,
                Approval.organization_id == requirements[0].organization_id,
            )
            .order_by(desc(Approval.approved_at))
        )).scalars().all()

        return {
            "required": True,
            "approved": any(a.status == ApprovalStatus.APPROVED.value for a in approvals),
            "requirements": [serialize_requirement(r) for r in requirements],
            "approvals": [serialize_approval(a) for a in approvals],
        }

    async def list_pending(self, organization_id: uuid.UUID) -> List[ApprovalRequirement]:
        """Requirements of the firm with no APPROVED sign-off yet, newest first."""
        signed_off = select(Approval.requirement_id).where(
            Approval.requirement_id.is_not(None),
            Approval.status == ApprovalStatus.APPROVED.value,
        )
        result = await self.db.execute(
            select(ApprovalRequirement)
            .where(
                ApprovalRequirement.organization_id == organization_id,
                ApprovalRequirement.id.not_in(signed_off),
            )
            .order_by(desc(ApprovalRequirement.created_at))
        )
        return list(result.scalars().all())
