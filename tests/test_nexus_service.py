"""
Nexus Compliance - Nexus Service Tests

Tests for nexus alerts, activities, client states and the state map.
"""

import uuid

import pytest

from app.services.nexus_service import NexusService, normalize_state_code, state_tax_info
from app.utils.error_handling import ConflictException, InvalidStateCodeException


def _alert(client, **overrides):
    data = {
        "client_id": client.id,
        "organization_id": client.organization_id,
        "state_code": "ca",
        "alert_type": "threshold_exceeded",
        "priority": "high",
        "title": "California threshold exceeded",
        "threshold_amount": "500000",
        "current_amount": "620000",
    }
    data.update(overrides)
    return data


class TestStateReference:

    def test_normalize_state_code(self):
        assert normalize_state_code(" tx ") == "TX"
        with pytest.raises(InvalidStateCodeException):
            normalize_state_code("ZZ")

    def test_state_tax_info(self):
        info = state_tax_info()
        assert len(info) >= 50
        assert info[0]["stateName"] <= info[1]["stateName"]

        california = state_tax_info("ca")
        assert len(california) == 1
        assert california[0]["stateCode"] == "CA"


class TestNexusAlerts:

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session, test_client):
        service = NexusService(db_session)
        alert = await service.create_alert(_alert(test_client))

        assert alert.state_code == "CA"
        assert alert.status == "open"

        page = await service.list_alerts(test_client.organization_id, priority="high")
        assert page["total"] == 1
        item = page["items"][0]
        assert item["clientName"] == "Acme Retail"
        assert item["clientIndustry"] == "Retail"
        assert item["currentAmount"] == 620000.0

    @pytest.mark.asyncio
    async def test_create_requires_title(self, db_session, test_client):
        with pytest.raises(ValueError, match="title is required"):
            await NexusService(db_session).create_alert(_alert(test_client, title=""))

    @pytest.mark.asyncio
    async def test_resolving_stamps_resolved_at(self, db_session, test_client):
        service = NexusService(db_session)
        alert = await service.create_alert(_alert(test_client))

        updated = await service.update_alert(alert.id, {"status": "resolved"})
        assert updated.status == "resolved"
        assert updated.resolved_at is not None

        with pytest.raises(ValueError):
            await service.update_alert(alert.id, {"status": "snoozed"})

    @pytest.mark.asyncio
    async def test_update_and_delete_missing(self, db_session):
        service = NexusService(db_session)
        assert await service.update_alert(uuid.uuid4(), {"status": "resolved"}) is None
        assert await service.delete_alert(uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db_session, test_client):
        service = NexusService(db_session)
        for code in ("CA", "TX", "NY"):
            await service.create_alert(_alert(test_client, state_code=code, priority="medium"))

        assert (await service.list_alerts(test_client.organization_id, state_code="tx"))["total"] == 1
        page = await service.list_alerts(test_client.organization_id, limit=2, offset=0)
        assert page["total"] == 3
        assert len(page["items"]) == 2


class TestActivitiesAndStates:

    @pytest.mark.asyncio
    async def test_create_activity(self, db_session, test_client):
        service = NexusService(db_session)
        await service.create_activity({
            "client_id": test_client.id,
            "organization_id": test_client.organization_id,
            "state_code": "TX",
            "activity_type": "threshold_approaching",
            "title": "Texas at 86%",
            "amount": 430000,
        })

        page = await service.list_activities(test_client.organization_id, state_code="TX")
        assert page["items"][0]["amount"] == 430000.0
        assert page["items"][0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_client_state_lifecycle(self, db_session, test_client):
        service = NexusService(db_session)
        created = await service.create_client_state({
            "client_id": test_client.id,
            "organization_id": test_client.organization_id,
            "state_code": "ny",
        })
        assert created.state_name == "New York"
        assert created.status == "monitoring"
        assert created.notes == "Nexus monitoring setup for New York"

        with pytest.raises(ConflictException):
            await service.create_client_state({
                "client_id": test_client.id,
                "organization_id": test_client.organization_id,
                "state_code": "NY",
            })

        updated = await service.update_client_state(created.id, {"status": "warning", "current_amount": 400000})
        assert updated.status == "warning"
        with pytest.raises(ValueError):
            await service.update_client_state(created.id, {"status": "unknown"})

        assert await service.delete_client_state(created.id) is True
        assert await service.get_client_state(created.id) is None

    @pytest.mark.asyncio
    async def test_list_client_states(self, db_session, test_client):
        page = await NexusService(db_session).list_client_states(
            test_client.organization_id, status="critical",
        )
        assert page["total"] == 1
        assert page["items"][0]["stateCode"] == "CA"


class TestSummaries:

    @pytest.mark.asyncio
    async def test_dashboard_summary(self, db_session, test_client):
        service = NexusService(db_session)
        await service.create_alert(_alert(test_client))
        await service.create_alert(_alert(test_client, alert_type="registration_required", priority="low"))

        summary = await service.dashboard_summary(test_client.organization_id)
        assert summary["alertCounts"] == {"open": 2}
        assert summary["priorityCounts"] == {"high": 1, "low": 1}
        assert len(summary["thresholdAlerts"]) == 1
        assert summary["thresholdAlerts"][0]["clientName"] == "Acme Retail"

    @pytest.mark.asyncio
    async def test_state_map(self, db_session, test_client):
        result = await NexusService(db_session).state_map(test_client.organization_id)

        states = result["states"]
        assert states["CA"]["status"] == "critical"
        assert states["TX"]["status"] == "warning"
        assert states["TX"]["thresholdProgress"] == 86
        assert result["summary"]["critical"] == 1
        assert result["summary"]["warning"] == 1

    @pytest.mark.asyncio
    async def test_resolved_alerts_do_not_escalate_map(self, db_session, test_client):
        service = NexusService(db_session)
        alert = await service.create_alert(_alert(test_client, state_code="TX"))
        assert (await service.state_map(test_client.organization_id))["states"]["TX"]["status"] == "critical"

        await service.update_alert(alert.id, {"status": "resolved"})
        assert (await service.state_map(test_client.organization_id))["states"]["TX"]["status"] == "warning"
