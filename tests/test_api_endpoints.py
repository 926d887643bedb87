"""
Nexus Compliance - Workflow API Tests

Integration tests for the upload workflow, PII, audit and memo endpoints.
"""

import io
import uuid

import pytest
from httpx import AsyncClient
from openpyxl import Workbook


SALES_CSV = (
    "State,Revenue,Customer Name\n"
    "CA,600000,Jane Smith\n"
    "TX,450000,John Doe\n"
).encode("utf-8")

SECTIONS = [{"id": "summary", "title": "Summary", "content": "CA exposure."}]


def _workbook() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sales"
    sheet.append(["State", "Revenue"])
    sheet.append(["NY", 510000])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


async def _create_memo(client, test_client, headers):
    response = await client.post(
        "/api/memos",
        json={
            "organizationId": str(test_client.organization_id),
            "clientId": str(test_client.id),
            "title": "CA Nexus Review",
            "sections": SECTIONS,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["memo"]


class TestUploadWorkflowAPI:

    @pytest.mark.asyncio
    async def test_upload_csv(self, client: AsyncClient, auth_headers, test_user):
        response = await client.post(
            "/api/nexus-memos/upload",
            files={"file": ("sales.csv", SALES_CSV, "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["fileType"] == "csv"
        assert data["headerDetection"]["headers"] == ["State", "Revenue", "Customer Name"]
        assert data["piiDetection"]["hasPII"] is True
        assert data["piiWarning"].startswith("Potential PII Detected")

        trail = await client.get(f"/api/audit/trail/upload/{data['uploadId']}", headers=auth_headers)
        actions = [e["action"] for e in trail.json()["entries"]]
        assert actions == ["PII_DETECTED", "UPLOAD_COMPLETED"]
        assert trail.json()["entries"][0]["user_id"] == str(test_user.id)

    @pytest.mark.asyncio
    async def test_upload_without_login(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/upload",
            files={"file": ("sales.xlsx", _workbook(), "application/octet-stream")},
        )
        assert response.status_code == 200
        assert response.json()["fileType"] == "excel"
        assert response.json()["piiDetection"]["hasPII"] is False

    @pytest.mark.asyncio
    async def test_unsupported_file(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/upload",
            files={"file": ("broken.xlsx", b"not a workbook", "application/octet-stream")},
        )
        assert response.status_code == 400
        assert "Could not read Excel workbook" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_detect_header(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/detect-header",
            files={"file": ("sales.xlsx", _workbook(), "application/octet-stream")},
            data={"sheetName": "Sales"},
        )
        assert response.json()["headers"] == ["State", "Revenue"]

    @pytest.mark.asyncio
    async def test_detect_sheets(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/detect-sheets",
            files={"file": ("sales.xlsx", _workbook(), "application/octet-stream")},
            data={"fileType": "excel"},
        )
        assert response.status_code == 200
        assert response.json()["sheets"] == [
            {"name": "Sales", "rowCount": 2, "columnCount": 2, "richnessScore": 0},
        ]

        missing = await client.post("/api/nexus-memos/detect-sheets", data={"fileType": "excel"})
        assert missing.status_code == 400

    @pytest.mark.asyncio
    async def test_suggest_mappings(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/suggest-mappings",
            json={"uploadId": "upload-1", "headers": ["State", "Total Sales"]},
        )
        data = response.json()
        assert data["mappings"][0]["suggestedField"] == "state"
        assert data["mappings"][1]["suggestedField"] == "revenue"

        missing = await client.post("/api/nexus-memos/suggest-mappings", json={"headers": []})
        assert missing.status_code == 400

    @pytest.mark.asyncio
    async def test_generate_alerts_from_raw_rows(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/generate-alerts",
            json={
                "uploadId": "upload-2",
                "rows": [["State", "Revenue"], ["CA", "600000"]],
                "headerRowIndex": 0,
            },
        )
        data = response.json()
        assert data["success"] is True
        assert any(a["state"] == "CA" and a["subtype"] == "ECONOMIC_NEXUS" for a in data["alerts"])

    @pytest.mark.asyncio
    async def test_generate_alerts_rejects_unknown_posture(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/generate-alerts",
            json={"rows": [{"state": "CA", "revenue": 750000}], "riskPosture": "Aggressive"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_validate(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/validate",
            json={"files": [{"allData": [["State", "Revenue"], ["Calif", "100"]]}]},
        )
        assert response.json()["statesFound"] == ["CA"]

        empty = await client.post("/api/nexus-memos/validate", json={"files": []})
        assert empty.status_code == 400


class TestPIIAPI:

    DATA = [["State", "Customer Name"], ["CA", "Jane Smith"]]

    @pytest.mark.asyncio
    async def test_detect(self, client: AsyncClient):
        response = await client.post(
            "/api/pii/detect",
            json={"fileData": self.DATA, "headers": self.DATA[0]},
        )
        data = response.json()
        assert data["detection"]["severity"] == "HIGH"
        assert data["safeHeaders"] == ["State"]

        missing = await client.post("/api/pii/detect", json={"headers": ["State"]})
        assert missing.status_code == 400

    @pytest.mark.asyncio
    async def test_log_warning_and_history(self, client: AsyncClient, auth_headers, test_organization):
        detection = (await client.post(
            "/api/pii/detect", json={"fileData": self.DATA, "headers": self.DATA[0]},
        )).json()["detection"]

        logged = await client.post(
            "/api/pii/log-warning",
            json={"uploadId": "upload-9", "piiDetection": detection, "action": "OVERRIDE"},
            headers=auth_headers,
        )
        assert logged.status_code == 201
        assert logged.json()["record"]["organization_id"] == str(test_organization.id)

        history = await client.get("/api/pii/history/upload-9")
        assert len(history.json()["history"]) == 1

        trail = await client.get("/api/audit/trail/upload/upload-9", headers=auth_headers)
        assert trail.json()["entries"][0]["action"] == "PII_OVERRIDE"

    @pytest.mark.asyncio
    async def test_log_warning_invalid_action(self, client: AsyncClient):
        response = await client.post(
            "/api/pii/log-warning",
            json={"uploadId": "u", "piiDetection": {"severity": "LOW"}, "action": "IGNORED"},
        )
        assert response.status_code == 400


class TestAuditAPI:

    @pytest.mark.asyncio
    async def test_log_and_verify(self, client: AsyncClient, auth_headers):
        for action in ("MAPPING_CONFIRMED", "ANALYSIS_RUN"):
            response = await client.post(
                "/api/audit/log",
                json={"action": action, "uploadId": "upload-7", "details": {"rows": 3}},
                headers=auth_headers,
            )
            assert response.status_code == 201
            entry = response.json()["entry"]
            assert entry["entity_type"] == "upload"
            assert entry["details"]["upload_id"] == "upload-7"
            assert entry["details"]["severity"] == "INFO"

        verified = await client.post(
            "/api/audit/verify-chain",
            json={"entityType": "upload", "entityId": "upload-7"},
            headers=auth_headers,
        )
        assert verified.json()["verified"] is True
        assert verified.json()["entries_verified"] == 2

    @pytest.mark.asyncio
    async def test_log_requires_entity(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/audit/log", json={"action": "LOGIN"}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/audit/log",
            json={"action": "SHRUG", "entityType": "upload", "entityId": "x"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "Unknown audit action" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_log_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/audit/log", json={"action": "LOGIN", "entityId": "x"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_actions_catalogue(self, client: AsyncClient):
        response = await client.get("/api/audit/actions", params={"category": "memo"})
        actions = response.json()["actions"]
        assert "MEMO_SEALED" in actions
        assert all(a.startswith("MEMO") for a in actions)


class TestMemosAPI:

    @pytest.mark.asyncio
    async def test_memo_lifecycle(self, client: AsyncClient, test_client, auth_headers):
        memo = await _create_memo(client, test_client, auth_headers)
        memo_id = memo["id"]
        assert memo["status"] == "DRAFT"

        updated = await client.put(f"/api/memos/{memo_id}", json={"title": "Revised"}, headers=auth_headers)
        assert updated.json()["memo"]["title"] == "Revised"

        sealed = await client.post(f"/api/memos/{memo_id}/seal", headers=auth_headers)
        assert sealed.status_code == 200
        assert sealed.json()["sealed"] is True
        assert len(sealed.json()["hash"]) == 64

        blocked = await client.put(f"/api/memos/{memo_id}", json={"title": "Again"}, headers=auth_headers)
        assert blocked.status_code == 403
        assert blocked.json()["error"]["code"] == "MEMO_SEALED"

        verified = await client.post(f"/api/memos/{memo_id}/verify", headers=auth_headers)
        assert verified.json()["verification"]["status"] == "VERIFIED"
        assert verified.json()["certificate"]["verificationResult"] == "PASSED"

        history = await client.get(f"/api/memos/{memo_id}/verification-history", headers=auth_headers)
        assert len(history.json()["history"]) == 2

        pdf = await client.get(f"/api/memos/{memo_id}/pdf", headers=auth_headers)
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_tampered_upload_fails_verification(self, client: AsyncClient, test_client, auth_headers):
        memo = await _create_memo(client, test_client, auth_headers)
        memo_id = memo["id"]
        await client.post(
            f"/api/memos/{memo_id}/seal",
            files={"pdf": ("memo.pdf", b"%PDF-1.4 final", "application/pdf")},
            headers=auth_headers,
        )

        tampered = await client.post(
            f"/api/memos/{memo_id}/verify",
            files={"pdf": ("memo.pdf", b"%PDF-1.4 edited", "application/pdf")},
            headers=auth_headers,
        )
        assert tampered.json()["verification"]["verified"] is False
        assert tampered.json()["certificate"]["verificationResult"] == "FAILED"

    @pytest.mark.asyncio
    async def test_supplemental_and_versions(self, client: AsyncClient, test_client, auth_headers):
        memo = await _create_memo(client, test_client, auth_headers)
        await client.post(f"/api/memos/{memo['id']}/seal", headers=auth_headers)

        supplemental = await client.post(
            f"/api/memos/{memo['id']}/create-supplemental",
            json={"title": "CA Nexus Review - Supplement", "sections": SECTIONS},
            headers=auth_headers,
        )
        assert supplemental.status_code == 201
        new_id = supplemental.json()["memo"]["id"]
        assert supplemental.json()["memo"]["supersedes_memo_id"] == memo["id"]

        versions = await client.get(f"/api/memos/{new_id}/versions", headers=auth_headers)
        assert [v["id"] for v in versions.json()["versions"]] == [new_id, memo["id"]]

    @pytest.mark.asyncio
    async def test_list_memos(self, client: AsyncClient, test_client, auth_headers):
        await _create_memo(client, test_client, auth_headers)

        response = await client.get(
            "/api/memos", params={"organizationId": str(test_client.organization_id)}, headers=auth_headers,
        )
        assert response.json()["total"] == 1
        assert response.json()["memos"][0]["client_name"] == "Acme Retail"

        drafts = await client.get(
            "/api/memos",
            params={"organizationId": str(test_client.organization_id), "status": "draft"},
            headers=auth_headers,
        )
        assert drafts.json()["total"] == 1

        sealed = await client.get(
            "/api/memos",
            params={"organizationId": str(test_client.organization_id), "status": "sealed"},
            headers=auth_headers,
        )
        assert sealed.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_create_requires_fields(self, client: AsyncClient, test_client, auth_headers):
        response = await client.post(
            "/api/memos",
            json={"organizationId": str(test_client.organization_id), "title": "No sections"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_from_alerts(self, client: AsyncClient, test_client, auth_headers):
        analysis = await client.post(
            "/api/nexus-memos/generate-alerts",
            json={"rows": [{"state": "CA", "revenue": 600000}]},
        )
        response = await client.post(
            "/api/memos/from-alerts",
            json={
                "organizationId": str(test_client.organization_id),
                "clientId": str(test_client.id),
                "alerts": analysis.json()["alerts"],
                "summary": analysis.json()["summary"],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["memo"]["title"] == "Economic Nexus Memorandum - Acme Retail"

    @pytest.mark.asyncio
    async def test_other_firm_cannot_read_memo(
        self, client: AsyncClient, test_client, auth_headers, outsider_headers,
    ):
        memo = await _create_memo(client, test_client, auth_headers)

        response = await client.get(f"/api/memos/{memo['id']}", headers=outsider_headers)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied to this organization"

    @pytest.mark.asyncio
    async def test_missing_memo(self, client: AsyncClient, auth_headers):
        response = await client.get(f"/api/memos/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_memos_require_auth(self, client: AsyncClient):
        response = await client.get("/api/memos", params={"organizationId": str(uuid.uuid4())})
        assert response.status_code == 401


async def _create_rule(client, headers, **fields):
    body = {"name": "CA sellers", "scope": "firm", "state": "CA", "taxType": "SALES_NEXUS",
            "decision": "NO_REGISTRATION"}
    body.update(fields)
    response = await client.post("/api/doctrine-rules", json=body, headers=headers)
    assert response.status_code == 200
    return response.json()["rule"]


class TestDoctrineRulesAPI:

    @pytest.mark.asyncio
    async def test_approval_flow(self, client: AsyncClient, auth_headers, manager_headers):
        rule = await _create_rule(client, auth_headers)
        assert rule["status"] == "pending_approval"

        pending = await client.get("/api/doctrine-rules/pending", headers=auth_headers)
        assert pending.json()["rules"][0]["approvalsRequired"] == 2

        first = await client.post(f"/api/doctrine-rules/{rule['id']}/approve", json={}, headers=auth_headers)
        assert first.json()["activated"] is False

        again = await client.post(f"/api/doctrine-rules/{rule['id']}/approve", json={}, headers=auth_headers)
        assert again.status_code == 409

        second = await client.post(
            f"/api/doctrine-rules/{rule['id']}/approve", json={"comment": "OK"}, headers=manager_headers
        )
        assert second.json()["activated"] is True

        detail = await client.get(f"/api/doctrine-rules/{rule['id']}", headers=auth_headers)
        assert detail.json()["rule"]["status"] == "active"
        assert len(detail.json()["rule"]["approvals"]) == 2

        late = await client.post(f"/api/doctrine-rules/{rule['id']}/reject", json={}, headers=manager_headers)
        assert late.status_code == 422

    @pytest.mark.asyncio
    async def test_staff_cannot_approve(self, client: AsyncClient, auth_headers, staff_headers):
        rule = await _create_rule(client, auth_headers)
        response = await client.post(f"/api/doctrine-rules/{rule['id']}/approve", json={}, headers=staff_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_required_fields(self, client: AsyncClient, auth_headers):
        missing = await client.post("/api/doctrine-rules", json={"scope": "firm"}, headers=auth_headers)
        assert missing.status_code == 400

        bad_scope = await client.post(
            "/api/doctrine-rules", json={"name": "x", "scope": "region"}, headers=auth_headers
        )
        assert bad_scope.status_code == 400

        no_client = await client.post(
            "/api/doctrine-rules", json={"name": "x", "scope": "client"}, headers=auth_headers
        )
        assert no_client.json()["error"]["message"] == "clientId required for client-scoped rules"

    @pytest.mark.asyncio
    async def test_versions_and_rollback(self, client: AsyncClient, test_client, auth_headers):
        rule = await _create_rule(client, auth_headers, scope="client", clientId=str(test_client.id))
        rule_id = rule["id"]

        edited = await client.put(
            f"/api/doctrine-rules/{rule_id}", json={"decision": "REGISTER"}, headers=auth_headers
        )
        assert edited.json()["rule"]["version"] == 2

        missing_target = await client.post(f"/api/doctrine-rules/{rule_id}/rollback", json={}, headers=auth_headers)
        assert missing_target.status_code == 400

        future = await client.post(
            f"/api/doctrine-rules/{rule_id}/rollback", json={"targetVersion": 5}, headers=auth_headers
        )
        assert future.status_code == 400

        rolled = await client.post(
            f"/api/doctrine-rules/{rule_id}/rollback", json={"targetVersion": 1}, headers=auth_headers
        )
        assert rolled.json()["rule"]["version"] == 3
        assert rolled.json()["rule"]["decision"] == "NO_REGISTRATION"

        historical = await client.get(f"/api/doctrine-rules/{rule_id}", params={"version": 2}, headers=auth_headers)
        assert historical.json()["rule"]["isHistorical"] is True
        assert historical.json()["rule"]["decision"] == "REGISTER"

        versions = await client.get(f"/api/doctrine-rules/{rule_id}/versions", headers=auth_headers)
        assert [v["sequenceNumber"] for v in versions.json()["versions"]] == [3, 2, 1]

        disabled = await client.post(
            f"/api/doctrine-rules/{rule_id}/disable", json={"reason": "Superseded"}, headers=auth_headers
        )
        assert disabled.json()["rule"]["status"] == "disabled"

    @pytest.mark.asyncio
    async def test_dry_run_and_blast_radius(self, client: AsyncClient, test_client, auth_headers):
        dry_run = await client.post(
            "/api/doctrine-rules/dry-run",
            json={"scope": "firm", "state": "CA", "decision": "REGISTER"},
            headers=auth_headers,
        )
        impact = dry_run.json()["impact"]
        assert impact["clientsAffected"] == 1
        assert impact["preview"][0]["wouldBecome"] == "ACTION_REQUIRED"

        missing_scope = await client.post("/api/doctrine-rules/dry-run", json={}, headers=auth_headers)
        assert missing_scope.status_code == 400

        rule = await _create_rule(client, auth_headers)
        radius = await client.get(f"/api/doctrine-rules/{rule['id']}/blast-radius", headers=auth_headers)
        assert radius.json()["blastRadius"]["affectedClients"] == 1

        dashboard = await client.get("/api/doctrine-rules/impact", headers=auth_headers)
        assert dashboard.json()["metrics"]["totalActiveRules"] == 0

    @pytest.mark.asyncio
    async def test_other_firm_is_denied(self, client: AsyncClient, auth_headers, outsider_headers):
        rule = await _create_rule(client, auth_headers)

        response = await client.get(f"/api/doctrine-rules/{rule['id']}", headers=outsider_headers)
        assert response.status_code == 403

        missing = await client.get(f"/api/doctrine-rules/{uuid.uuid4()}", headers=auth_headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_active_rule_applies_to_generated_alerts(
        self, client: AsyncClient, auth_headers, manager_headers
    ):
        rule = await _create_rule(client, auth_headers)
        await client.post(f"/api/doctrine-rules/{rule['id']}/approve", json={}, headers=auth_headers)
        await client.post(f"/api/doctrine-rules/{rule['id']}/approve", json={}, headers=manager_headers)

        response = await client.post(
            "/api/nexus-memos/generate-alerts",
            json={"rows": [{"state": "CA", "revenue": 750000}]},
            headers=auth_headers,
        )
        alerts = response.json()["alerts"]
        economic = next(a for a in alerts if a["state"] == "CA" and a["subtype"] == "ECONOMIC_NEXUS")
        assert economic["appliedDoctrineRuleId"] == rule["id"]
        assert economic["suppressedByDoctrine"] is True

        dashboard = await client.get("/api/doctrine-rules/impact", headers=auth_headers)
        assert dashboard.json()["metrics"]["totalClientsAffected"] >= 1

    @pytest.mark.asyncio
    async def test_anonymous_alerts_skip_doctrine(self, client: AsyncClient):
        response = await client.post(
            "/api/nexus-memos/generate-alerts",
            json={"rows": [{"state": "CA", "revenue": 750000}]},
        )
        assert all("appliedDoctrineRuleId" not in a for a in response.json()["alerts"])


class TestStatutesAPI:

    @pytest.mark.asyncio
    async def test_enter_validate_and_reject(self, client: AsyncClient, auth_headers, staff_headers):
        created = await client.post(
            "/api/statutes/overrides",
            json={
                "stateCode": "CA",
                "taxType": "sales",
                "changeType": "THRESHOLD_CHANGE",
                "newValue": "600000",
                "effectiveDate": "2026-01-01",
            },
            headers=staff_headers,
        )
        assert created.status_code == 201
        override_id = created.json()["override"]["id"]
        assert created.json()["override"]["validation_status"] == "PENDING"

        staff_validate = await client.post(f"/api/statutes/overrides/{override_id}/validate", headers=staff_headers)
        assert staff_validate.status_code == 403

        validated = await client.post(f"/api/statutes/overrides/{override_id}/validate", headers=auth_headers)
        assert validated.json()["override"]["validation_status"] == "VALIDATED"

        listed = await client.get(
            "/api/statutes/overrides", params={"validationStatus": "VALIDATED"}, headers=staff_headers
        )
        assert [o["id"] for o in listed.json()["overrides"]] == [override_id]

        affected = await client.get(f"/api/statutes/overrides/{override_id}/affected-clients", headers=auth_headers)
        assert affected.json()["count"] == 0

        rejected = await client.request(
            "DELETE",
            f"/api/statutes/overrides/{override_id}",
            json={"reason": "Bulletin withdrawn"},
            headers=auth_headers,
        )
        assert rejected.json()["override"]["validation_status"] == "REJECTED"
        assert rejected.json()["override"]["notes"] == "REJECTED: Bulletin withdrawn"

    @pytest.mark.asyncio
    async def test_required_fields(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/statutes/overrides", json={"stateCode": "CA"}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_firm_is_denied(
        self, client: AsyncClient, auth_headers, outsider_headers, test_organization,
    ):
        listed = await client.get(
            "/api/statutes/overrides",
            params={"organizationId": str(test_organization.id)},
            headers=outsider_headers,
        )
        assert listed.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_override(self, client: AsyncClient, auth_headers):
        response = await client.post(f"/api/statutes/overrides/{uuid.uuid4()}/validate", headers=auth_headers)
        assert response.status_code == 404


class TestApprovalsAPI:

    @pytest.mark.asyncio
    async def test_requirement_and_sign_off(self, client: AsyncClient, auth_headers, staff_headers):
        created = await client.post(
            "/api/approvals/requirements",
            json={"entity_type": "memo", "entity_id": "m-9", "approval_type": "SEAL_MEMO",
                  "required_role": "managing_partner"},
            headers=staff_headers,
        )
        assert created.status_code == 201
        requirement_id = created.json()["requirement"]["id"]

        pending = await client.get("/api/approvals/pending", headers=auth_headers)
        assert [r["id"] for r in pending.json()["requirements"]] == [requirement_id]

        staff_sign = await client.post("/api/approvals", json={"approvalId": requirement_id}, headers=staff_headers)
        assert staff_sign.status_code == 403

        signed = await client.post(
            "/api/approvals", json={"approvalId": requirement_id, "notes": "Looks right"}, headers=auth_headers
        )
        assert signed.status_code == 201
        assert signed.json()["approval"]["status"] == "APPROVED"

        status = await client.get("/api/approvals/status/memo/m-9", headers=auth_headers)
        assert status.json()["required"] is True
        assert status.json()["approved"] is True

        pending = await client.get("/api/approvals/pending", headers=auth_headers)
        assert pending.json()["requirements"] == []

    @pytest.mark.asyncio
    async def test_validation(self, client: AsyncClient, auth_headers):
        missing = await client.post("/api/approvals/requirements", json={"approval_type": "X"}, headers=auth_headers)
        assert missing.status_code == 400

        no_id = await client.post("/api/approvals", json={}, headers=auth_headers)
        assert no_id.status_code == 400

        unknown = await client.post("/api/approvals", json={"approvalId": str(uuid.uuid4())}, headers=auth_headers)
        assert unknown.status_code == 404

    @pytest.mark.asyncio
    async def test_other_firm_cannot_sign(self, client: AsyncClient, auth_headers, outsider_headers):
        created = await client.post(
            "/api/approvals/requirements",
            json={"approval_type": "SEAL_MEMO", "required_role": "managing_partner"},
            headers=auth_headers,
        )
        response = await client.post(
            "/api/approvals", json={"approvalId": created.json()["requirement"]["id"]}, headers=outsider_headers
        )
        assert response.status_code == 403
