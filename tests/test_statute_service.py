"""
Nexus Compliance - Statute Override and Approval Tests
"""

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from app.models.audit import AuditLog
from app.services.approval_service import ApprovalService
from app.services.memo_service import MemoService
from app.services.statute_service import StatuteService, serialize_override
from app.utils.error_handling import InvalidStateCodeException, NotFoundException


async def _override(service, organization, user, **overrides):
    kwargs = dict(
        organization_id=organization.id,
        state_code="ca",
        tax_type="sales",
        change_type="THRESHOLD_CHANGE",
        effective_date=date(2026, 1, 1),
        entered_by=user.id,
        previous_value="500000",
        new_value="600000",
        notes="Per bulletin 26-04",
    )
    kwargs.update(overrides)
    return await service.create_override(**kwargs)


async def _actions(db, entity_id):
    result = await db.execute(
        select(AuditLog.action)
        .where(AuditLog.entity_id == str(entity_id))
        .order_by(AuditLog.sequence_number)
    )
    return list(result.scalars().all())


class TestStatuteOverrides:

    @pytest.mark.asyncio
    async def test_entered_as_pending(self, db_session, test_organization, staff_user):
        override = await _override(StatuteService(db_session), test_organization, staff_user)

        assert override.state_code == "CA"
        assert override.validation_status == "PENDING"
        assert serialize_override(override)["effective_date"] == "2026-01-01"
        assert await _actions(db_session, override.id) == ["STATUTE_OVERRIDE_CREATED"]

    @pytest.mark.asyncio
    async def test_unknown_state_rejected(self, db_session, test_organization, staff_user):
        with pytest.raises(InvalidStateCodeException):
            await _override(StatuteService(db_session), test_organization, staff_user, state_code="ZZ")

    @pytest.mark.asyncio
    async def test_validate_then_filter(self, db_session, test_organization, staff_user, test_user):
        service = StatuteService(db_session)
        first = await _override(service, test_organization, staff_user)
        await _override(service, test_organization, staff_user, state_code="TX")

        validated = await service.validate_override(first.id, test_user.id)

        assert validated.validation_status == "VALIDATED"
        assert validated.validated_by == test_user.id
        assert validated.validated_at is not None
        listed = await service.list_overrides(test_organization.id, validation_status="validated")
        assert [o.id for o in listed] == [first.id]
        assert len(await service.list_overrides(test_organization.id, state_code="tx")) == 1

    @pytest.mark.asyncio
    async def test_reject_keeps_record(self, db_session, test_organization, staff_user, test_user):
        service = StatuteService(db_session)
        override = await _override(service, test_organization, staff_user)

        rejected = await service.reject_override(override.id, test_user.id)

        assert rejected.validation_status == "REJECTED"
        assert rejected.notes == "Per bulletin 26-04\n\nREJECTED: No reason provided"
        assert await _actions(db_session, override.id) == [
            "STATUTE_OVERRIDE_CREATED",
            "STATUTE_OVERRIDE_REJECTED",
        ]

    @pytest.mark.asyncio
    async def test_missing_override(self, db_session, test_user):
        with pytest.raises(NotFoundException):
            await StatuteService(db_session).validate_override(uuid.uuid4(), test_user.id)

    @pytest.mark.asyncio
    async def test_affected_clients_from_memo_sections(
        self, db_session, test_organization, staff_user, test_client
    ):
        memos = MemoService(db_session)
        for _ in range(2):
            await memos.create_memo(
                organization_id=test_organization.id,
                client_id=test_client.id,
                title="CA review",
                sections=[{"id": "summary", "title": "Summary", "content": "CA threshold exceeded."}],
            )
        service = StatuteService(db_session)
        ca = await _override(service, test_organization, staff_user)
        ny = await _override(service, test_organization, staff_user, state_code="NY")

        result = await service.get_affected_clients(ca.id)
        assert result["count"] == 1
        assert result["affectedClients"][0]["name"] == "Acme Retail"
        assert result["override"]["id"] == str(ca.id)
        assert (await service.get_affected_clients(ny.id))["count"] == 0


class TestApprovals:

    @pytest.mark.asyncio
    async def test_status_without_requirement(self, db_session):
        status = await ApprovalService(db_session).approval_status("memo", "m-1")
        assert status == {"required": False, "approved": False, "approvals": []}

    @pytest.mark.asyncio
    async def test_sign_off_clears_pending(self, db_session, test_organization, test_user, staff_user):
        service = ApprovalService(db_session)
        requirement = await service.create_requirement(
            test_organization.id, "SEAL_MEMO", "managing_partner",
            entity_type="memo", entity_id="m-1", user_id=staff_user.id,
        )
        other = await service.create_requirement(test_organization.id, "FILE_RETURN", "tax_manager")

        before = await service.approval_status("memo", "m-1")
        assert before["required"] is True
        assert before["approved"] is False

        approval = await service.submit_approval(requirement.id, test_user.id, notes="Reviewed")
        assert approval.status == "APPROVED"
        assert approval.entity_type == "memo"
        assert approval.approval_type == "SEAL_MEMO"

        after = await service.approval_status("memo", "m-1", organization_id=test_organization.id)
        assert after["approved"] is True
        assert after["approvals"][0]["approval_notes"] == "Reviewed"
        assert [r.id for r in await service.list_pending(test_organization.id)] == [other.id]
        assert await _actions(db_session, "m-1") == ["APPROVAL_CREATED", "APPROVAL_SUBMITTED"]

    @pytest.mark.asyncio
    async def test_general_requirement_defaults(self, db_session, test_organization, test_user):
        service = ApprovalService(db_session)
        requirement = await service.create_requirement(test_organization.id, "OVERRIDE", "managing_partner")

        approval = await service.submit_approval(requirement.id, test_user.id)

        assert approval.entity_type == "APPROVAL_REQUIREMENT"
        assert approval.entity_id == str(requirement.id)

    @pytest.mark.asyncio
    async def test_unknown_requirement(self, db_session, test_user):
        with pytest.raises(NotFoundException):
            await ApprovalService(db_session).submit_approval(uuid.uuid4(), test_user.id)
