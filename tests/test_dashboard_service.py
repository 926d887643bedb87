"""
Nexus Compliance - Dashboard Tests

Tests for LLM section generation, dashboard persistence and cleanup.
"""

import random
import uuid
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from app.models.client import Client
from app.services.dashboard_generation_service import (
    DashboardGenerationService,
    GENERATORS,
    normalize_form_data,
    parse_llm_json,
)
from app.services.dashboard_service import (
    DashboardService,
    calculate_risk_distribution,
    calculate_risk_score,
    clean_penalty_exposure,
    clean_revenue_value,
    generate_unique_url,
    slugify,
)
from app.utils.error_handling import OpenAIAPIException
from app.utils.number_format import format_array, format_client_state, format_decimal, format_int


FORM = {
    "clientName": "Summit Advisory",
    "industry": "Professional Services",
    "priorityStates": ["CA", "NY", "TX"],
    "annualRevenue": "$2M",
}


async def offline_llm(prompt):
    raise OpenAIAPIException("offline")


class TestHelpers:

    def test_parse_llm_json(self):
        assert parse_llm_json('{"a": 1}') == {"a": 1}
        assert parse_llm_json('Sure! {"a": 2} done') == {"a": 2}
        with pytest.raises(OpenAIAPIException):
            parse_llm_json("no json here")
        with pytest.raises(OpenAIAPIException):
            parse_llm_json("")

    def test_normalize_form_data(self):
        form = normalize_form_data({"priorityStates": "CA, NY ,", "clientName": ""})
        assert form["priorityStates"] == ["CA", "NY"]
        assert form["clientName"] == "Client"
        assert form["painPoints"] == []

    def test_clean_values(self):
        # only the leading digit group counts
        assert clean_revenue_value("$450,000") == 50_000
        assert clean_revenue_value("450000 USD") == 450_000
        assert clean_revenue_value(9_000_000) == 600_000
        assert clean_revenue_value("n/a") == 50_000
        assert clean_penalty_exposure(-10) == 0
        assert clean_penalty_exposure("75000") == 75_000

    def test_risk_score(self):
        distribution = calculate_risk_distribution(
            [{"riskLevel": "critical"}, {"riskLevel": "high"}, {"riskLevel": "medium"}, {"riskLevel": "bogus"}]
        )
        assert distribution == {"low": 0, "medium": 1, "high": 1, "critical": 1}
        assert calculate_risk_score(distribution) == 45

    def test_unique_url(self):
        assert slugify("Summit Advisory, LLC") == "summit-advisory--llc"
        url = generate_unique_url("Summit Advisory")
        assert url.startswith("summit-advisory-")
        assert len(url.split("-")[-1]) == 6

    def test_number_format(self):
        assert format_decimal("12.50") == 12.5
        assert format_decimal(True) is None
        assert format_int("7") == 7
        assert format_int("x") is None

    def test_client_state_amounts_are_numbers(self):
        row = SimpleNamespace(
            id=1, client_id=2, organization_id=None, state_code="CA", state_name="California",
            status="critical", threshold_amount=Decimal("500000.00"), current_amount=Decimal("612345.67"),
            registration_required=True, penalty_risk=None, notes=None,
            last_updated=datetime(2026, 1, 2, 3, 4, 5),
        )
        formatted = format_array([row, None], format_client_state)

        assert len(formatted) == 1
        assert formatted[0]["currentAmount"] == 612345.67
        assert formatted[0]["thresholdAmount"] == 500000.0
        assert formatted[0]["penaltyRisk"] is None
        assert formatted[0]["organizationId"] is None
        assert formatted[0]["lastUpdated"] == "2026-01-02T03:04:05"
        assert format_array(None, format_client_state) == []


class TestDashboardGeneration:

    @pytest.mark.asyncio
    async def test_all_sections_fall_back_offline(self):
        data = await DashboardGenerationService(llm=offline_llm).generate_dashboard_data(FORM)

        assert data["clientInfo"]["name"] == "Summit Advisory"
        assert [s["stateCode"] for s in data["clientStates"]] == ["CA", "NY", "TX"]
        assert data["nexusAlerts"][0]["stateCode"] == "CA"
        assert "generatedAt" in data

    @pytest.mark.asyncio
    async def test_one_failing_section_keeps_the_rest(self):
        form = normalize_form_data(FORM)
        sections_by_prompt = {builder(form): name for name, (builder, _, _) in GENERATORS.items()}

        async def llm(prompt):
            name = sections_by_prompt[prompt]
            if name == "tasks":
                raise OpenAIAPIException("rate limited")
            return {"section": name}

        data = await DashboardGenerationService(llm=llm).generate_dashboard_data(FORM)

        assert [t["title"] for t in data["tasks"]] == ["Review State Compliance"]
        for name in GENERATORS:
            if name != "tasks":
                assert data[name] == {"section": name}

    @pytest.mark.asyncio
    async def test_wrapped_arrays_are_unwrapped(self):
        async def llm(prompt):
            return {"tasks": [{"title": "From model"}]}

        section = await DashboardGenerationService(llm=llm).generate_section("tasks", normalize_form_data(FORM))
        assert section == [{"title": "From model"}]

    @pytest.mark.asyncio
    async def test_connection_check(self):
        async def llm(prompt):
            return {"status": "ok"}

        assert (await DashboardGenerationService(llm=llm).test_connection())["success"] is True
        assert (await DashboardGenerationService(llm=offline_llm).test_connection())["success"] is False


class TestDashboardService:

    def _service(self, db):
        return DashboardService(
            db,
            generator=DashboardGenerationService(llm=offline_llm),
            rng=random.Random(3),
        )

    @pytest.mark.asyncio
    async def test_generate_persists_dashboard(self, db_session, test_organization):
        result = await self._service(db_session).generate(FORM, test_organization.id)

        assert result["clientName"] == "Summit Advisory"
        assert result["uniqueUrl"].startswith("summit-advisory-")
        assert result["dashboardUrl"].endswith(f"/dashboard/view/{result['uniqueUrl']}")
        assert result["organizationId"] != str(test_organization.id)
        assert result["statesMonitored"] == ["CA", "NY", "TX"]
        assert result["clientInfo"]["totalClients"] == 10
        assert result["personalizedData"]["requestedByOrganizationId"] == str(test_organization.id)

        clients = (await db_session.execute(select(func.count(Client.id)))).scalar()
        assert clients == 10

    @pytest.mark.asyncio
    async def test_generate_requires_client_name(self, db_session, test_organization):
        with pytest.raises(ValueError):
            await self._service(db_session).generate({"industry": "x"}, test_organization.id)
        with pytest.raises(ValueError):
            await self._service(db_session).generate(FORM, None)

    @pytest.mark.asyncio
    async def test_personalized_sections(self, db_session, test_organization):
        service = self._service(db_session)
        result = await service.generate(FORM, test_organization.id)

        clients = await service.get_personalized_section(result["uniqueUrl"], "clients")
        assert len(clients) == 10
        health = await service.get_personalized_section(result["uniqueUrl"], "system-health")
        assert health["dataCompleteness"] == "100%"
        assert await service.get_personalized_section("missing-url", "clients") is None
        with pytest.raises(ValueError):
            await service.get_personalized_section(result["uniqueUrl"], "billing")

    @pytest.mark.asyncio
    async def test_delete_removes_seeded_clients(self, db_session, test_organization):
        service = self._service(db_session)
        result = await service.generate(FORM, test_organization.id)
        dashboard = await service.get_by_url(result["uniqueUrl"])

        counts = await service.delete_dashboard(dashboard)

        assert counts["generatedDashboard"] == 1
        assert counts["clients"] == 10
        assert counts["clientStates"] > 0
        remaining = (await db_session.execute(select(func.count(Client.id)))).scalar()
        assert remaining == 0
        assert await service.list_all() == []

    @pytest.mark.asyncio
    async def test_requesting_organization_lists_dashboard(self, db_session, test_organization, other_organization):
        service = self._service(db_session)
        result = await service.generate(FORM, test_organization.id)

        assert result["requestedByOrganizationId"] == str(test_organization.id)
        for org_id in (test_organization.id, uuid.UUID(result["organizationId"])):
            listed = await service.list_for_organization(org_id)
            assert [d.unique_url for d in listed] == [result["uniqueUrl"]]
        assert await service.list_for_organization(other_organization.id) == []

    @pytest.mark.asyncio
    async def test_generate_rejects_unknown_requester(self, db_session):
        with pytest.raises(ValueError, match="Organization not found"):
            await self._service(db_session).generate(FORM, uuid.uuid4())
        with pytest.raises(ValueError, match="valid UUID"):
            await self._service(db_session).generate(FORM, "not-a-uuid")
