"""
Nexus Compliance - Doctrine Rule Service

Rule lifecycle, versioning and partner approval for doctrine rules.

Every change writes a DoctrineVersionEvent holding the serialized rule
before and after. A rule's version only moves on create, update and
rollback; approval decisions and disabling are recorded as events against
the current version. Rollback copies the decision fields of an earlier
version onto a new version instead of rewinding the counter, so history
is never lost.

Office rules activate after one partner approval, firm rules after two
distinct partners. Client rules skip approval.
"""

import logging
import math
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.doctrine import (
    DoctrineApproval,
    DoctrineImpactMetrics,
    DoctrineRule,
    DoctrineScope,
    DoctrineStatus,
    DoctrineVersionEvent,
)
from app.services.audit_service import AuditService
from app.utils.error_handling import BusinessRuleException, ConflictException, NotFoundException

logger = logging.getLogger(__name__)


RULE_ENTITY = "doctrine_rule"
SCOPES = [scope.value for scope in DoctrineScope]
DEFAULT_PAGE_SIZE = 20

# Fields restored by rollback, keyed by their snapshot name
RESTORABLE_FIELDS = {
    "name": "name",
    "state": "state",
    "tax_type": "taxType",
    "activity_pattern": "activityPattern",
    "posture": "posture",
    "decision": "decision",
}
UPDATABLE_FIELDS = (
    "name",
    "state",
    "tax_type",
    "activity_pattern",
    "posture",
    "decision",
    "rationale_internal",
    "review_due_at",
)

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"


def required_approvals(scope: str) -> int:
    return 2 if scope == DoctrineScope.FIRM.value else 1


def matches_activity_pattern(rule_pattern: Optional[Dict[str, Any]], activity: Dict[str, Any]) -> bool:
    """Every key the rule names must carry the same value in the activity."""
    return all(activity.get(key) == value for key, value in (rule_pattern or {}).items())


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_rule(rule: DoctrineRule) -> Dict[str, Any]:
    return {
        "id": str(rule.id),
        "organizationId": str(rule.organization_id),
        "name": rule.name,
        "state": rule.state,
        "taxType": rule.tax_type,
        "activityPattern": rule.activity_pattern or {},
        "posture": rule.posture,
        "decision": rule.decision,
        "scope": rule.scope,
        "clientId": str(rule.client_id) if rule.client_id else None,
        "officeId": rule.office_id,
        "status": rule.status,
        "version": rule.version,
        "rationaleInternal": rule.rationale_internal,
        "reviewDueAt": _iso(rule.review_due_at),
        "createdBy": str(rule.created_by) if rule.created_by else None,
        "createdAt": _iso(rule.created_at),
        "updatedAt": _iso(rule.updated_at),
    }


def serialize_version_event(event: DoctrineVersionEvent) -> Dict[str, Any]:
    return {
        "id": str(event.id),
        "ruleId": str(event.rule_id),
        "sequenceNumber": event.sequence_number,
        "fromVersion": event.from_version,
        "toVersion": event.to_version,
        "actionType": event.action_type,
        "actorId": str(event.actor_id) if event.actor_id else None,
        "reason": event.reason,
        "previousSnapshot": event.previous_snapshot,
        "newSnapshot": event.new_snapshot,
        "timestamp": _iso(event.created_at),
    }


def serialize_approval(approval: DoctrineApproval) -> Dict[str, Any]:
    return {
        "id": str(approval.id),
        "ruleId": str(approval.rule_id),
        "approverId": str(approval.approver_id),
        "approverRole": approval.approver_role,
        "action": approval.action,
        "comment": approval.comment,
        "approvedAt": _iso(approval.approved_at),
    }


def serialize_metrics(metrics: Optional[DoctrineImpactMetrics]) -> Optional[Dict[str, Any]]:
    if metrics is None:
        return None
    return {
        "totalClientsAffected": metrics.total_clients_affected,
        "totalMemosGenerated": metrics.total_memos_generated,
        "totalRevenueCovered": float(metrics.total_revenue_covered or 0),
        "lastAppliedAt": _iso(metrics.last_applied_at),
    }


def _pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


class DoctrineService:
    """Service for doctrine rules and their approval workflow."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # HELPERS
    # ===========================================

    async def get_rule_model(self, rule_id: uuid.UUID) -> DoctrineRule:
        rule = await self.db.get(DoctrineRule, rule_id)
        if rule is None:
            raise NotFoundException("Doctrine rule", rule_id, message="Rule not found")
        return rule

    async def _record_event(
        self,
        rule: DoctrineRule,
        action_type: str,
        from_version: Optional[int],
        actor_id: Optional[uuid.UUID],
        reason: str,
        previous: Optional[Dict[str, Any]],
    ) -> DoctrineVersionEvent:
        last = (await self.db.execute(
            select(func.max(DoctrineVersionEvent.sequence_number))
            .where(DoctrineVersionEvent.rule_id == rule.id)
        )).scalar()
        event = DoctrineVersionEvent(
            rule_id=rule.id,
            sequence_number=(last or 0) + 1,
            from_version=from_version,
            to_version=rule.version,
            action_type=action_type,
            actor_id=actor_id,
            reason=reason,
            previous_snapshot=previous,
            new_snapshot=serialize_rule(rule),
        )
        self.db.add(event)
        return event

    async def _audit(self, action: str, rule: DoctrineRule, actor_id: Optional[uuid.UUID], **details) -> None:
        await AuditService(self.db).log_action(
            action,
            RULE_ENTITY,
            rule.id,
            user_id=actor_id,
            organization_id=rule.organization_id,
            details={"name": rule.name, "version": rule.version, "status": rule.status, **details},
        )

    async def metrics_for(self, rule_ids: List[uuid.UUID]) -> Dict[uuid.UUID, DoctrineImpactMetrics]:
        if not rule_ids:
            return {}
        result = await self.db.execute(
            select(DoctrineImpactMetrics).where(DoctrineImpactMetrics.rule_id.in_(rule_ids))
        )
        return {m.rule_id: m for m in result.scalars().all()}

    async def _approvals_for(self, rule_id: uuid.UUID, action: Optional[str] = None) -> List[DoctrineApproval]:
        query = select(DoctrineApproval).where(DoctrineApproval.rule_id == rule_id)
        if action:
            query = query.where(DoctrineApproval.action == action)
        result = await self.db.execute(query.order_by(desc(DoctrineApproval.approved_at)))
        return list(result.scalars().all())

    async def _distinct_approvers(self, rule_id: uuid.UUID) -> List[uuid.UUID]:
        approvals = await self._approvals_for(rule_id, ACTION_APPROVE)
        approvers: List[uuid.UUID] = []
        for approval in approvals:
            if approval.approver_id not in approvers:
                approvers.append(approval.approver_id)
        return approvers

    # ===========================================
    # RULES
    # ===========================================

    async def create_rule(
        self,
        organization_id: uuid.UUID,
        name: str,
        scope: str,
        state: Optional[str] = None,
        tax_type: Optional[str] = None,
        activity_pattern: Optional[Dict[str, Any]] = None,
        posture: Optional[str] = None,
        decision: Optional[str] = None,
        client_id: Optional[uuid.UUID] = None,
        office_id: Optional[str] = None,
        rationale_internal: Optional[str] = None,
        review_due_at: Any = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> DoctrineRule:
        """
        Create a rule at version 1.

        Client rules are active at once; office and firm rules start
        pending approval.

        Raises:
            ValueError: If the scope is unknown or a client rule has no client
        """
        if scope not in SCOPES:
            raise ValueError('Invalid scope. Must be "client", "office", or "firm"')
        if scope == DoctrineScope.CLIENT.value and not client_id:
            raise ValueError("clientId required for client-scoped rules")

        status = (
            DoctrineStatus.ACTIVE.value
            if scope == DoctrineScope.CLIENT.value
            else DoctrineStatus.PENDING_APPROVAL.value
        )
        rule = DoctrineRule(
            organization_id=organization_id,
            name=name,
            state=state.upper() if state else None,
            tax_type=tax_type,
            activity_pattern=activity_pattern or {},
            posture=posture,
            decision=decision,
            scope=scope,
            client_id=client_id if scope == DoctrineScope.CLIENT.value else None,
            office_id=office_id if scope == DoctrineScope.OFFICE.value else None,
            status=status,
            version=1,
            rationale_internal=rationale_internal,
            review_due_at=review_due_at,
            created_by=created_by,
        )
        self.db.add(rule)
        await self.db.flush()

        await self._record_event(rule, "create", None, created_by, "Initial rule creation", None)
        self.db.add(DoctrineImpactMetrics(
            rule_id=rule.id,
            total_clients_affected=0,
            total_memos_generated=0,
            total_revenue_covered=Decimal("0"),
        ))
        await self._audit("DOCTRINE_RULE_CREATED", rule, created_by, scope=scope)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Created {scope} doctrine rule {rule.id} ({status})")
        return rule

    async def update_rule(
        self,
        rule_id: uuid.UUID,
        changes: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> DoctrineRule:
        rule = await self.get_rule_model(rule_id)
        previous = serialize_rule(rule)

        for field in UPDATABLE_FIELDS:
            if field in changes:
                value = changes[field]
                if field == "state" and value:
                    value = value.upper()
                setattr(rule, field, value)
        from_version = rule.version
        rule.version = from_version + 1
        await self.db.flush()

        await self._record_event(rule, "update", from_version, actor_id, reason or "Rule updated", previous)
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def get_rule(self, rule_id: uuid.UUID, version: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """
        A rule with its approvals, metrics and last ten events.

        When an earlier version is asked for, the snapshot written when that
        version was created is returned with isHistorical set.
        """
        rule = await self.db.get(DoctrineRule, rule_id)
        if rule is None:
            return None

        if version and version != rule.version:
            event = (await self.db.execute(
                select(DoctrineVersionEvent)
                .where(
                    DoctrineVersionEvent.rule_id == rule_id,
                    DoctrineVersionEvent.to_version == version,
                )
                .order_by(desc(DoctrineVersionEvent.sequence_number))
                .limit(1)
            )).scalar_one_or_none()
            if event is not None:
                return {**event.new_snapshot, "version": version, "isHistorical": True}

        metrics = await self.metrics_for([rule.id])
        history = await self.get_version_history(rule.id)
        return {
            **serialize_rule(rule),
            "approvals": [serialize_approval(a) for a in await self._approvals_for(rule.id)],
            "impactMetrics": serialize_metrics(metrics.get(rule.id)),
            "versionEvents": [serialize_version_event(e) for e in history[:10]],
        }

    async def list_rules(
        self,
        organization_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        scope: Optional[str] = None,
        status: Optional[str] = None,
        state: Optional[str] = None,
        tax_type: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        filters = []
        if organization_id:
            filters.append(DoctrineRule.organization_id == organization_id)
        if client_id:
            filters.append(DoctrineRule.client_id == client_id)
        if scope:
            filters.append(DoctrineRule.scope == scope)
        if status:
            filters.append(DoctrineRule.status == status)
        if state:
            filters.append(DoctrineRule.state == state.upper())
        if tax_type:
            filters.append(DoctrineRule.tax_type == tax_type)

        page = max(page, 1)
        result = await self.db.execute(
            select(DoctrineRule)
            .where(*filters)
            .order_by(desc(DoctrineRule.created_at))
            .limit(limit)
            .offset((page - 1) * limit)
        )
        rules = list(result.scalars().all())
        total = (await self.db.execute(select(func.count(DoctrineRule.id)).where(*filters))).scalar() or 0

        metrics = await self.metrics_for([r.id for r in rules])
        return {
            "rules": [
                {**serialize_rule(r), "impactMetrics": serialize_metrics(metrics.get(r.id))}
                for r in rules
            ],
            "pagination": _pagination(total, page, limit),
        }

    async def disable_rule(
        self,
        rule_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> DoctrineRule:
        rule = await self.get_rule_model(rule_id)
        previous = serialize_rule(rule)
        rule.status = DoctrineStatus.DISABLED.value
        await self.db.flush()

        await self._record_event(rule, "disable", rule.version, actor_id, reason or "Rule disabled", previous)
        await self._audit("DOCTRINE_RULE_DISABLED", rule, actor_id, reason=reason)
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def rollback_rule(
        self,
        rule_id: uuid.UUID,
        target_version: int,
        actor_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> DoctrineRule:
        """
        Restore the decision fields of an earlier version as a new version.

        Raises:
            ValueError: If the target is the current or a later version
            NotFoundException: If the rule or the target version is missing
        """
        rule = await self.get_rule_model(rule_id)
        if target_version >= rule.version:
            raise ValueError("Cannot rollback to current or future version")

        event = (await self.db.execute(
            select(DoctrineVersionEvent)
            .where(
                DoctrineVersionEvent.rule_id == rule_id,
                DoctrineVersionEvent.to_version == target_version,
            )
            .order_by(desc(DoctrineVersionEvent.sequence_number))
            .limit(1)
        )).scalar_one_or_none()
        if event is None:
            raise NotFoundException("Doctrine rule version", message="Target version not found")

        previous = serialize_rule(rule)
        snapshot = event.new_snapshot
        for field, key in RESTORABLE_FIELDS.items():
            setattr(rule, field, snapshot.get(key))
        from_version = rule.version
        rule.version = from_version + 1
        await self.db.flush()

        await self._record_event(
            rule,
            "rollback",
            from_version,
            actor_id,
            reason or f"Rolled back to version {target_version}",
            previous,
        )
        await self._audit("DOCTRINE_RULE_ROLLED_BACK", rule, actor_id, target_version=target_version)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Rolled back doctrine rule {rule.id} to version {target_version} as v{rule.version}")
        return rule

    async def get_version_history(self, rule_id: uuid.UUID) -> List[DoctrineVersionEvent]:
        """Newest first."""
        result = await self.db.execute(
            select(DoctrineVersionEvent)
            .where(DoctrineVersionEvent.rule_id == rule_id)
            .order_by(desc(DoctrineVersionEvent.sequence_number))
        )
        return list(result.scalars().all())

    async def match_rules(
        self,
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
        state: Optional[str] = None,
        tax_type: Optional[str] = None,
        activity_pattern: Optional[Dict[str, Any]] = None,
    ) -> List[DoctrineRule]:
        """
        Active rules that apply to an alert.

        Without a client only firm rules apply. With one, office rules and
        that client's own rules apply as well.
        """
        query = select(DoctrineRule).where(
            DoctrineRule.organization_id == organization_id,
            DoctrineRule.status == DoctrineStatus.ACTIVE.value,
        )
        if client_id:
            query = query.where(or_(
                DoctrineRule.scope == DoctrineScope.FIRM.value,
                DoctrineRule.scope == DoctrineScope.OFFICE.value,
                (DoctrineRule.scope == DoctrineScope.CLIENT.value) & (DoctrineRule.client_id == client_id),
            ))
        else:
            query = query.where(DoctrineRule.scope == DoctrineScope.FIRM.value)
        if state:
            query = query.where(DoctrineRule.state == state.upper())
        if tax_type:
            query = query.where(DoctrineRule.tax_type == tax_type)

        result = await self.db.execute(query.order_by(desc(DoctrineRule.version)))
        rules = list(result.scalars().all())
        if activity_pattern is not None:
            rules = [r for r in rules if matches_activity_pattern(r.activity_pattern, activity_pattern)]
        return rules

    async def update_impact_metrics(
        self,
        rule_id: uuid.UUID,
        clients_affected: int = 0,
        memos_generated: int = 0,
        revenue_covered: Any = 0,
        applied_at: Any = None,
    ) -> DoctrineImpactMetrics:
        """Add to a rule's running totals. Flushes without committing."""
        metrics = (await self.metrics_for([rule_id])).get(rule_id)
        if metrics is None:
            metrics = DoctrineImpactMetrics(
                rule_id=rule_id,
                total_clients_affected=0,
                total_memos_generated=0,
                total_revenue_covered=Decimal("0"),
            )
            self.db.add(metrics)
        metrics.total_clients_affected += clients_affected
        metrics.total_memos_generated += memos_generated
        metrics.total_revenue_covered = Decimal(str(metrics.total_revenue_covered or 0)) + Decimal(str(revenue_covered))
        if applied_at is not None:
            metrics.last_applied_at = applied_at
        await self.db.flush()
        return metrics

    # ===========================================
    # APPROVALS
    # ===========================================

    async def submit_for_approval(self, rule_id: uuid.UUID) -> DoctrineRule:
        """
        Move a draft office or firm rule into the approval queue.

        Raises:
            BusinessRuleException: For client rules and rules not in draft
        """
        rule = await self.get_rule_model(rule_id)
        if rule.scope == DoctrineScope.CLIENT.value:
            raise BusinessRuleException("Client rules do not require approval", rule="doctrine_client_scope")
        if rule.status != DoctrineStatus.DRAFT.value:
            raise BusinessRuleException(
                "Only draft rules can be submitted for approval",
                rule="doctrine_status",
            )
        rule.status = DoctrineStatus.PENDING_APPROVAL.value
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def approve_rule(
        self,
        rule_id: uuid.UUID,
        approver_id: uuid.UUID,
        approver_role: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record an approval and activate the rule once enough distinct
        partners have approved.

        Raises:
            BusinessRuleException: If the rule is not pending approval
            ConflictException: If this approver already approved the rule
        """
        rule = await self.get_rule_model(rule_id)
        if rule.status != DoctrineStatus.PENDING_APPROVAL.value:
            raise BusinessRuleException("Rule is not pending approval", rule="doctrine_status")
        if approver_id in await self._distinct_approvers(rule_id):
            raise ConflictException("You have already approved this rule", resource_type="doctrine_rule")

        self.db.add(DoctrineApproval(
            rule_id=rule_id,
            approver_id=approver_id,
            approver_role=approver_role or "partner",
            action=ACTION_APPROVE,
            comment=comment,
            approved_at=utcnow(),
        ))
        await self.db.flush()

        approvers = await self._distinct_approvers(rule_id)
        required = required_approvals(rule.scope)
        activated = len(approvers) >= required
        if activated:
            previous = serialize_rule(rule)
            rule.status = DoctrineStatus.ACTIVE.value
            await self.db.flush()
            await self._record_event(
                rule,
                "update",
                rule.version,
                approver_id,
                f"Rule activated after {required} approval(s)",
                previous,
            )
        await self._audit(
            "DOCTRINE_RULE_APPROVED",
            rule,
            approver_id,
            approvals_received=len(approvers),
            activated=activated,
        )
        await self.db.commit()

        logger.info(f"Doctrine rule {rule_id} approved by {approver_id} ({len(approvers)}/{required})")
        return {
            "approved": True,
            "approvalsReceived": len(approvers),
            "approvalsRequired": required,
            "activated": activated,
        }

    async def reject_rule(
        self,
        rule_id: uuid.UUID,
        approver_id: uuid.UUID,
        approver_role: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> DoctrineRule:
        """
        Reject a pending rule. One rejection is final.

        Raises:
            BusinessRuleException: If the rule is not pending approval
        """
        rule = await self.get_rule_model(rule_id)
        if rule.status != DoctrineStatus.PENDING_APPROVAL.value:
            raise BusinessRuleException("Rule is not pending approval", rule="doctrine_status")

        self.db.add(DoctrineApproval(
            rule_id=rule_id,
            approver_id=approver_id,
            approver_role=approver_role or "partner",
            action=ACTION_REJECT,
            comment=comment,
            approved_at=utcnow(),
        ))
        previous = serialize_rule(rule)
        rule.status = DoctrineStatus.REJECTED.value
        await self.db.flush()

        await self._record_event(
            rule,
            "update",
            rule.version,
            approver_id,
            f"Rule rejected: {comment or 'No comment provided'}",
            previous,
        )
        await self._audit("DOCTRINE_RULE_REJECTED", rule, approver_id, comment=comment)
        await self.db.commit()
        await self.db.refresh(rule)
        return rule

    async def get_pending_approvals(
        self,
        organization_id: Optional[uuid.UUID] = None,
        scope: Optional[str] = None,
        tax_type: Optional[str] = None,
        state: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        listed = await self.list_rules(
            organization_id=organization_id,
            scope=scope,
            status=DoctrineStatus.PENDING_APPROVAL.value,
            state=state,
            tax_type=tax_type,
            page=page,
            limit=limit,
        )
        for rule in listed["rules"]:
            received = len(await self._distinct_approvers(uuid.UUID(rule["id"])))
            required = required_approvals(rule["scope"])
            rule["approvalsReceived"] = received
            rule["approvalsRequired"] = required
            rule["needsMoreApprovals"] = received < required
        return listed

    async def check_approval_status(self, rule_id: uuid.UUID) -> Dict[str, Any]:
        rule = await self.get_rule_model(rule_id)
        approvers = await self._distinct_approvers(rule_id)
        required = required_approvals(rule.scope)
        return {
            "ruleId": str(rule.id),
            "status": rule.status,
            "approvalsReceived": len(approvers),
            "approvalsRequired": required,
            "needsMoreApprovals": len(approvers) < required,
            "approvers": [str(a) for a in approvers],
        }
