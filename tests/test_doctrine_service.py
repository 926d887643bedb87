"""
Nexus Compliance - Doctrine Rule Tests

Tests for rule lifecycle, partner approval, versioning, matching and impact.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.models.audit import AuditLog
from app.models.doctrine import DoctrineImpactMetrics, DoctrineRule
from app.services.doctrine_impact_service import (
    DoctrineAlertMatcher,
    DoctrineImpactService,
    alert_activity,
    apply_rule_to_alert,
    matches_client_pattern,
)
from app.services.doctrine_service import DoctrineService
from app.utils.error_handling import BusinessRuleException, ConflictException, NotFoundException


async def _rule(service, organization, user, **overrides):
    kwargs = dict(
        organization_id=organization.id,
        name="CA marketplace sellers",
        scope="firm",
        state="ca",
        tax_type="SALES_NEXUS",
        decision="NO_REGISTRATION",
        created_by=user.id,
    )
    kwargs.update(overrides)
    return await service.create_rule(**kwargs)


async def _activate(db, rule):
    rule.status = "active"
    await db.commit()
    return rule


def _ca_alert(**overrides):
    alert = {
        "id": "alert-ca",
        "type": "SALES_NEXUS",
        "subtype": "ECONOMIC_NEXUS",
        "state": "CA",
        "severity": "CRITICAL",
        "description": "Revenue of $620,000 exceeds CA's threshold",
        "facts": {"threshold": 500000, "actualRevenue": 620000},
        "judgmentRequired": True,
    }
    alert.update(overrides)
    return alert


class TestRuleLifecycle:

    @pytest.mark.asyncio
    async def test_client_rule_is_active_at_once(self, db_session, test_organization, test_user, test_client):
        rule = await _rule(
            DoctrineService(db_session), test_organization, test_user,
            scope="client", client_id=test_client.id,
        )

        assert rule.status == "active"
        assert rule.version == 1
        assert rule.state == "CA"
        assert rule.client_id == test_client.id

        metrics = (await db_session.execute(
            select(DoctrineImpactMetrics).where(DoctrineImpactMetrics.rule_id == rule.id)
        )).scalar_one()
        assert metrics.total_clients_affected == 0

        logged = (await db_session.execute(
            select(AuditLog).where(AuditLog.entity_id == str(rule.id))
        )).scalars().all()
        assert [entry.action for entry in logged] == ["DOCTRINE_RULE_CREATED"]

    @pytest.mark.asyncio
    async def test_firm_rule_waits_for_approval(self, db_session, test_organization, test_user):
        rule = await _rule(DoctrineService(db_session), test_organization, test_user)
        assert rule.status == "pending_approval"

    @pytest.mark.asyncio
    async def test_rejects_unknown_scope(self, db_session, test_organization, test_user):
        with pytest.raises(ValueError, match="Invalid scope"):
            await _rule(DoctrineService(db_session), test_organization, test_user, scope="region")

    @pytest.mark.asyncio
    async def test_client_rule_requires_client(self, db_session, test_organization, test_user):
        with pytest.raises(ValueError, match="clientId required"):
            await _rule(DoctrineService(db_session), test_organization, test_user, scope="client")

    @pytest.mark.asyncio
    async def test_missing_rule(self, db_session):
        service = DoctrineService(db_session)
        assert await service.get_rule(uuid.uuid4()) is None
        with pytest.raises(NotFoundException):
            await service.disable_rule(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_disable_keeps_version(self, db_session, test_organization, test_user, test_client):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="client", client_id=test_client.id)

        disabled = await service.disable_rule(rule.id, actor_id=test_user.id, reason="Statute changed")

        assert disabled.status == "disabled"
        assert disabled.version == 1
        history = await service.get_version_history(rule.id)
        assert history[0].action_type == "disable"
        assert history[0].reason == "Statute changed"


class TestApprovals:

    @pytest.mark.asyncio
    async def test_firm_rule_needs_two_distinct_partners(
        self, db_session, test_organization, test_user, tax_manager
    ):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user)

        first = await service.approve_rule(rule.id, test_user.id, "managing_partner")
        assert first == {"approved": True, "approvalsReceived": 1, "approvalsRequired": 2, "activated": False}

        with pytest.raises(ConflictException):
            await service.approve_rule(rule.id, test_user.id, "managing_partner")

        second = await service.approve_rule(rule.id, tax_manager.id, "tax_manager", comment="Agreed")
        assert second["activated"] is True
        assert (await service.get_rule_model(rule.id)).status == "active"

        history = await service.get_version_history(rule.id)
        assert history[0].reason == "Rule activated after 2 approval(s)"

    @pytest.mark.asyncio
    async def test_office_rule_needs_one_approval(self, db_session, test_organization, test_user):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="office", office_id="west")

        result = await service.approve_rule(rule.id, test_user.id)

        assert result["activated"] is True
        assert result["approvalsRequired"] == 1

    @pytest.mark.asyncio
    async def test_single_rejection_is_final(self, db_session, test_organization, test_user, tax_manager):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user)

        rejected = await service.reject_rule(rule.id, tax_manager.id, "tax_manager")

        assert rejected.status == "rejected"
        history = await service.get_version_history(rule.id)
        assert history[0].reason == "Rule rejected: No comment provided"
        with pytest.raises(BusinessRuleException):
            await service.approve_rule(rule.id, test_user.id)

    @pytest.mark.asyncio
    async def test_client_rules_skip_approval(self, db_session, test_organization, test_user, test_client):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="client", client_id=test_client.id)

        with pytest.raises(BusinessRuleException):
            await service.submit_for_approval(rule.id)
        with pytest.raises(BusinessRuleException, match="not pending approval"):
            await service.approve_rule(rule.id, test_user.id)

    @pytest.mark.asyncio
    async def test_pending_queue_counts_approvals(self, db_session, test_organization, test_user):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user)
        await service.approve_rule(rule.id, test_user.id)

        pending = await service.get_pending_approvals(organization_id=test_organization.id)

        assert pending["pagination"]["total"] == 1
        entry = pending["rules"][0]
        assert entry["id"] == str(rule.id)
        assert entry["approvalsReceived"] == 1
        assert entry["needsMoreApprovals"] is True


class TestVersioning:

    @pytest.mark.asyncio
    async def test_rollback_restores_fields_as_new_version(
        self, db_session, test_organization, test_user, test_client
    ):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="client", client_id=test_client.id)
        await service.update_rule(rule.id, {"decision": "REGISTER", "state": "tx"}, test_user.id)

        restored = await service.rollback_rule(rule.id, 1, actor_id=test_user.id)

        assert restored.version == 3
        assert restored.decision == "NO_REGISTRATION"
        assert restored.state == "CA"
        history = await service.get_version_history(rule.id)
        assert [e.sequence_number for e in history] == [3, 2, 1]
        assert [e.action_type for e in history] == ["rollback", "update", "create"]
        assert history[0].reason == "Rolled back to version 1"
        assert history[0].from_version == 2

    @pytest.mark.asyncio
    async def test_rollback_to_current_version_is_refused(
        self, db_session, test_organization, test_user, test_client
    ):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="client", client_id=test_client.id)

        with pytest.raises(ValueError, match="current or future"):
            await service.rollback_rule(rule.id, 1)

    @pytest.mark.asyncio
    async def test_earlier_version_comes_from_snapshot(
        self, db_session, test_organization, test_user, test_client
    ):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, scope="client", client_id=test_client.id)
        await service.update_rule(rule.id, {"decision": "MONITOR"}, test_user.id, reason="Softened")

        historical = await service.get_rule(rule.id, version=1)
        current = await service.get_rule(rule.id)

        assert historical["isHistorical"] is True
        assert historical["decision"] == "NO_REGISTRATION"
        assert current["decision"] == "MONITOR"
        assert current["version"] == 2
        assert [e["actionType"] for e in current["versionEvents"]] == ["update", "create"]
        assert current["impactMetrics"]["totalClientsAffected"] == 0


class TestMatching:

    @pytest.mark.asyncio
    async def test_client_rule_beats_firm_rule(self, db_session, test_organization, test_user, test_client):
        service = DoctrineService(db_session)
        firm_rule = await _activate(db_session, await _rule(service, test_organization, test_user))
        client_rule = await _rule(
            service, test_organization, test_user,
            name="Acme only", scope="client", client_id=test_client.id, decision="REGISTER",
        )

        without_client = await service.match_rules(test_organization.id, state="CA", tax_type="SALES_NEXUS")
        assert [r.id for r in without_client] == [firm_rule.id]

        matcher = DoctrineAlertMatcher(db_session)
        chosen = await matcher.find_matching_rule(_ca_alert(), test_organization.id, test_client.id)
        assert chosen.id == client_rule.id
        assert await matcher.should_suppress(_ca_alert(), test_organization.id) is True

    @pytest.mark.asyncio
    async def test_activity_pattern_must_match(self, db_session, test_organization, test_user):
        service = DoctrineService(db_session)
        await _activate(db_session, await _rule(
            service, test_organization, test_user, activity_pattern={"subtype": "MARKETPLACE_NEXUS"},
        ))

        assert await service.match_rules(
            test_organization.id, state="CA", activity_pattern=alert_activity(_ca_alert())
        ) == []

    def test_alert_activity_brackets_revenue(self):
        activity = alert_activity(_ca_alert())
        assert activity == {
            "subtype": "ECONOMIC_NEXUS",
            "revenue_threshold": 500000,
            "revenue_range": "558000-682000",
        }
        assert alert_activity(_ca_alert(facts={}))["revenue_range"] is None


class TestApplyingRules:

    def _rule(self, decision, status="active"):
        return DoctrineRule(id=uuid.uuid4(), name="Firm view", decision=decision, status=status, version=2)

    def test_monitor_steps_severity_down(self):
        applied = apply_rule_to_alert(_ca_alert(), self._rule("MONITOR"))

        assert applied["severity"] == "HIGH"
        assert applied["judgmentRequired"] is False
        assert applied["doctrineRuleVersion"] == 2
        assert applied["description"].endswith("(Doctrine Rule Applied: Firm view - Monitor)")

    def test_no_registration_suppresses(self):
        applied = apply_rule_to_alert(_ca_alert(), self._rule("NO_REGISTRATION"))

        assert applied["suppressedByDoctrine"] is True
        assert applied["severity"] == "CRITICAL"

    def test_inactive_rule_leaves_alert_alone(self):
        alert = _ca_alert()
        assert apply_rule_to_alert(alert, self._rule("NO_ACTION", status="disabled")) is alert

    @pytest.mark.asyncio
    async def test_process_alerts_counts_applications(self, db_session, test_organization, test_user):
        service = DoctrineService(db_session)
        rule = await _activate(db_session, await _rule(service, test_organization, test_user))
        tx_alert = _ca_alert(id="alert-tx", state="TX")

        processed = await DoctrineAlertMatcher(db_session).process_alerts(
            [_ca_alert(), tx_alert], test_organization.id
        )
        await db_session.commit()

        assert processed[0]["appliedDoctrineRuleId"] == str(rule.id)
        assert processed[0]["suppressedByDoctrine"] is True
        assert processed[1] is tx_alert

        metrics = (await service.metrics_for([rule.id]))[rule.id]
        assert metrics.total_clients_affected == 1
        assert metrics.total_revenue_covered == Decimal("620000")
        assert metrics.last_applied_at is not None


class TestImpact:

    @pytest.mark.asyncio
    async def test_dry_run_previews_clients(self, db_session, test_organization, test_client):
        impact = await DoctrineImpactService(db_session).calculate_impact(
            test_organization.id, "firm", state="ca", decision="NO_REGISTRATION",
        )

        assert impact["clientsAffected"] == 1
        assert impact["totalRevenue"] == 620000.0
        assert impact["riskLevel"] == "LOW"
        preview = impact["preview"][0]
        assert preview["clientName"] == "Acme Retail"
        assert preview["currentStatus"] == "THRESHOLD_EXCEEDED"
        assert preview["wouldBecome"] == "NO_ACTION_NEEDED"

    @pytest.mark.asyncio
    async def test_revenue_floor_excludes_client(self, db_session, test_organization, test_client):
        impact = await DoctrineImpactService(db_session).calculate_impact(
            test_organization.id, "firm", state="CA", activity_pattern={"revenue_threshold": 700000},
        )
        assert impact["clientsAffected"] == 0

    def test_bad_revenue_range(self):
        with pytest.raises(ValueError, match="Invalid revenue_range"):
            matches_client_pattern([], {"revenue_range": "lots"})

    @pytest.mark.asyncio
    async def test_blast_radius_and_dashboard(self, db_session, test_organization, test_user, test_client):
        service = DoctrineService(db_session)
        rule = await _rule(service, test_organization, test_user, state="TX", decision="MONITOR")

        radius = await DoctrineImpactService(db_session).get_blast_radius(rule.id)
        assert radius["affectedClients"] == 1
        assert radius["clients"][0]["currentStatus"] == "THRESHOLD_APPROACHING"
        assert radius["clients"][0]["wouldBecome"] == "MONITOR"

        await _activate(db_session, rule)
        await service.update_impact_metrics(rule.id, clients_affected=2, revenue_covered=Decimal("1000.50"))
        await db_session.commit()

        dashboard = await DoctrineImpactService(db_session).get_impact_dashboard(test_organization.id)
        assert dashboard["metrics"]["totalActiveRules"] == 1
        assert dashboard["metrics"]["totalClientsAffected"] == 2
        assert dashboard["rules"][0]["revenueCovered"] == 1000.5
