"""
Nexus Compliance - API Integration Tests

Integration tests for auth, nexus, portfolio and dashboard endpoints.
"""

import uuid

import pytest
from httpx import AsyncClient


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "openaiConfigured" in data

    @pytest.mark.asyncio
    async def test_api_info(self, client: AsyncClient):
        response = await client.get("/api")
        assert response.json()["endpoints"]["nexusMemos"] == "/api/nexus-memos"


class TestAuthAPI:
    """Test authentication API endpoints."""

    @pytest.mark.asyncio
    async def test_register_user(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "newuser@example.com",
                "password": "SecurePassword123!",
                "first_name": "New",
                "last_name": "User",
                "organization_name": "New User CPA",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["role"] == "managing_partner"
        assert data["organization"]["name"] == "New User CPA"
        assert data["tokens"]["token_type"] == "bearer"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient, test_user):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "testuser@example.com",
                "password": "Password123!",
                "first_name": "Test",
                "last_name": "User",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Email already registered"

    @pytest.mark.asyncio
    async def test_register_weak_password(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "weak@example.com", "password": "weakpassword", "first_name": "W", "last_name": "P"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_login_and_me(self, client: AsyncClient, test_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "TestPassword123!"},
        )
        assert response.status_code == 200
        token = response.json()["tokens"]["access_token"]
        assert response.cookies.get("access_token") == token

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "testuser@example.com"
        assert me.json()["organization"]["slug"] == "test-cpa-firm"

    @pytest.mark.asyncio
    async def test_login_records_audit_entry(self, client: AsyncClient, test_user, auth_headers):
        await client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "TestPassword123!"},
        )
        trail = await client.get(f"/api/audit/trail/user/{test_user.id}", headers=auth_headers)
        assert [e["action"] for e in trail.json()["entries"]] == ["LOGIN"]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, test_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "WrongPassword1"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_cookie_token(self, client: AsyncClient, auth_headers):
        token = auth_headers["Authorization"].split(" ", 1)[1]
        response = await client.get("/api/auth/me", cookies={"access_token": token})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh(self, client: AsyncClient, test_user):
        login = await client.post(
            "/api/auth/login",
            json={"email": "testuser@example.com", "password": "TestPassword123!"},
        )
        refresh = login.json()["tokens"]["refresh_token"]

        response = await client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert response.status_code == 200
        assert response.json()["access_token"]

        bad = await client.post("/api/auth/refresh", json={"refresh_token": "nope"})
        assert bad.status_code == 401

    @pytest.mark.asyncio
    async def test_change_password(self, client: AsyncClient, auth_headers):
        wrong = await client.post(
            "/api/auth/change-password",
            json={"current_password": "nope", "new_password": "NewPassword123!"},
            headers=auth_headers,
        )
        assert wrong.status_code == 400
        assert wrong.json()["error"]["message"] == "Current password is incorrect"

        ok = await client.post(
            "/api/auth/change-password",
            json={"current_password": "TestPassword123!", "new_password": "NewPassword123!"},
            headers=auth_headers,
        )
        assert ok.status_code == 200

    @pytest.mark.asyncio
    async def test_update_profile_and_logout(self, client: AsyncClient, auth_headers):
        response = await client.put("/api/auth/me", json={"first_name": "Renamed"}, headers=auth_headers)
        assert response.json()["user"]["first_name"] == "Renamed"

        logout = await client.post("/api/auth/logout", headers=auth_headers)
        assert logout.json()["message"] == "Logged out successfully"


class TestNexusAPI:

    @pytest.mark.asyncio
    async def test_alert_crud(self, client: AsyncClient, test_client):
        org_id = str(test_client.organization_id)
        created = await client.post(
            "/api/nexus/alerts",
            json={
                "clientId": str(test_client.id),
                "organizationId": org_id,
                "stateCode": "CA",
                "alertType": "threshold_exceeded",
                "priority": "high",
                "title": "CA over threshold",
                "currentAmount": 620000,
                "thresholdAmount": 500000,
            },
        )
        assert created.status_code == 201
        alert_id = created.json()["id"]
        assert created.json()["currentAmount"] == 620000.0

        listed = await client.get("/api/nexus/alerts", params={"organizationId": org_id})
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["clientName"] == "Acme Retail"

        patched = await client.patch(f"/api/nexus/alerts/{alert_id}", json={"status": "resolved"})
        assert patched.json()["status"] == "resolved"
        assert patched.json()["resolvedAt"] is not None

        deleted = await client.delete(f"/api/nexus/alerts/{alert_id}")
        assert deleted.json()["success"] is True
        missing = await client.delete(f"/api/nexus/alerts/{alert_id}")
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_state_code(self, client: AsyncClient, test_client):
        response = await client.post(
            "/api/nexus/client-states",
            json={
                "clientId": str(test_client.id),
                "organizationId": str(test_client.organization_id),
                "stateCode": "ZZ",
            },
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_client_state(self, client: AsyncClient, test_client):
        response = await client.post(
            "/api/nexus/client-states",
            json={
                "clientId": str(test_client.id),
                "organizationId": str(test_client.organization_id),
                "stateCode": "CA",
            },
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_activities(self, client: AsyncClient, test_client):
        created = await client.post(
            "/api/nexus/activities",
            json={
                "clientId": str(test_client.id),
                "organizationId": str(test_client.organization_id),
                "stateCode": "TX",
                "activityType": "monitoring",
                "title": "Quarterly review",
            },
        )
        assert created.status_code == 201

        listed = await client.get("/api/nexus/activities", params={"clientId": str(test_client.id)})
        assert listed.json()["items"][0]["title"] == "Quarterly review"

    @pytest.mark.asyncio
    async def test_state_map_and_summary(self, client: AsyncClient, test_client):
        org_id = str(test_client.organization_id)

        state_map = await client.get("/api/nexus/state-map", params={"organizationId": org_id})
        assert state_map.json()["states"]["CA"]["status"] == "critical"

        summary = await client.get("/api/nexus/dashboard-summary", params={"organizationId": org_id})
        assert summary.status_code == 200
        assert summary.json()["alertCounts"] == {}

        missing = await client.get("/api/nexus/state-map")
        assert missing.status_code == 400

    @pytest.mark.asyncio
    async def test_state_tax_info(self, client: AsyncClient):
        response = await client.get("/api/nexus/state-tax-info", params={"stateCode": "tx"})
        data = response.json()
        assert data["total"] == 1
        assert data["states"][0]["stateName"] == "Texas"


class TestPortfolioAPI:

    @pytest.mark.asyncio
    async def test_risk_portfolio(self, client: AsyncClient, test_client):
        response = await client.get(
            "/api/risk-portfolio", params={"organizationId": str(test_client.organization_id)},
        )
        assert response.status_code == 200
        assert response.json()["portfolio"]["totalClients"] == 1

    @pytest.mark.asyncio
    async def test_client_profile(self, client: AsyncClient, test_client):
        org_id = str(test_client.organization_id)
        found = await client.get(f"/api/risk-portfolio/{test_client.id}", params={"organizationId": org_id})
        assert found.json()["riskProfile"]["criticalStates"] == 1

        missing = await client.get(f"/api/risk-portfolio/{uuid.uuid4()}", params={"organizationId": org_id})
        assert missing.status_code == 404


class TestRoleDashboardsAPI:

    @pytest.mark.asyncio
    async def test_partner_dashboard(self, client: AsyncClient, test_client, auth_headers):
        response = await client.get("/api/role-dashboards/managing-partner", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["portfolio"]["totalClients"] == 1

    @pytest.mark.asyncio
    async def test_partner_can_open_tax_manager_view(self, client: AsyncClient, test_client, auth_headers):
        response = await client.get("/api/role-dashboards/tax-manager", headers=auth_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_tax_manager_cannot_open_partner_view(self, client: AsyncClient, manager_headers):
        response = await client.get("/api/role-dashboards/managing-partner", headers=manager_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_staff_denied(self, client: AsyncClient, staff_headers):
        response = await client.get("/api/role-dashboards/tax-manager", headers=staff_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_other_organization_denied(self, client: AsyncClient, other_organization, auth_headers):
        response = await client.get(
            "/api/role-dashboards/managing-partner",
            params={"organizationId": str(other_organization.id)},
            headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied to this organization"

    @pytest.mark.asyncio
    async def test_system_admin_sees_everything(
        self, client: AsyncClient, test_client, test_organization, admin_headers,
    ):
        partner = await client.get(
            "/api/role-dashboards/managing-partner",
            params={"organizationId": str(test_organization.id)},
            headers=admin_headers,
        )
        assert partner.status_code == 200

        admin = await client.get("/api/role-dashboards/system-admin", headers=admin_headers)
        assert admin.json()["counts"]["clients"] == 1

    @pytest.mark.asyncio
    async def test_system_admin_view_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/role-dashboards/system-admin", headers=auth_headers)
        assert response.status_code == 403


class TestDashboardsAPI:

    FORM = {"clientName": "Harbor Tax Group", "priorityStates": ["CA", "WA"]}

    @pytest.mark.asyncio
    async def test_generate_and_view(self, client: AsyncClient, test_organization):
        response = await client.post(
            "/api/dashboards/generate",
            json={"formData": self.FORM, "organizationId": str(test_organization.id)},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        unique_url = data["uniqueUrl"]

        fetched = await client.get(f"/api/dashboards/{unique_url}")
        assert fetched.json()["dashboard"]["clientName"] == "Harbor Tax Group"
        assert len(fetched.json()["dashboard"]["generated_clients"]) == 10

        section = await client.get(f"/api/personalized-dashboard/{unique_url}/client-states")
        assert section.status_code == 200
        assert isinstance(section.json(), list)

        listed = await client.get("/api/dashboards/", params={"organizationId": data["organizationId"]})
        assert listed.json()["total"] == 1
        assert (await client.get("/api/dashboards/all")).json()["total"] == 1

        requester = await client.get("/api/dashboards/", params={"organizationId": str(test_organization.id)})
        assert [d["uniqueUrl"] for d in requester.json()["dashboards"]] == [unique_url]

    @pytest.mark.asyncio
    async def test_generate_missing_fields(self, client: AsyncClient):
        response = await client.post("/api/dashboards/generate", json={"formData": self.FORM})
        assert response.status_code == 400
        assert "organizationId" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_unknown_personalized_view(self, client: AsyncClient):
        response = await client.get("/api/personalized-dashboard/some-url/billing")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_by_url(self, client: AsyncClient, test_organization):
        created = await client.post(
            "/api/dashboards/generate",
            json={"formData": self.FORM, "organizationId": str(test_organization.id)},
        )
        unique_url = created.json()["uniqueUrl"]

        deleted = await client.delete(f"/api/dashboards/url/{unique_url}")
        assert deleted.json()["deleted"]["clients"] == 10
        assert (await client.get(f"/api/dashboards/{unique_url}")).status_code == 404

    @pytest.mark.asyncio
    async def test_openai_check_offline(self, client: AsyncClient):
        response = await client.get("/api/dashboards/test-openai")
        assert response.json()["success"] is False
