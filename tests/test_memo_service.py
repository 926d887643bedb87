"""
Nexus Compliance - Memo Service Tests

Tests for memo drafting, sealing, tamper detection and supplemental memos.
"""

import uuid

import pytest

from app.services.memo_pdf_service import MemoPDFService
from app.services.memo_service import (
    MemoService,
    build_memo_from_alerts,
    generate_memo_hash,
    generate_verification_certificate,
    serialize_memo,
)
from app.services.nexus_engine import NexusEngine
from app.utils.error_handling import MemoSealedException, NotFoundException


SECTIONS = [
    {"id": "summary", "title": "Summary", "content": "California exposure exceeds the threshold."},
]


async def _draft(service, organization, client, **overrides):
    kwargs = dict(
        organization_id=organization.id,
        client_id=client.id,
        title="CA Nexus Review",
        sections=SECTIONS,
        conclusion="Register in California.",
        recommendations=["File CA registration"],
    )
    kwargs.update(overrides)
    return await service.create_memo(**kwargs)


class TestMemoDrafting:

    def test_build_memo_from_engine_alerts(self):
        result = NexusEngine().process_document(
            [{"state": "CA", "revenue": 600_000}, {"state": "TX", "revenue": 450_000}]
        )
        draft = build_memo_from_alerts("Acme Retail", result["alerts"], result["summary"])

        assert draft["title"] == "Economic Nexus Memorandum - Acme Retail"
        section_ids = [s["id"] for s in draft["sections"]]
        assert section_ids[0] == "executive_summary"
        assert "state_analysis" in section_ids
        assert section_ids[-1] == "recommendations"
        analysis = next(s for s in draft["sections"] if s["id"] == "state_analysis")
        assert any("$600,000" in item for item in analysis["items"])
        assert "Acme Retail" in draft["conclusion"]

    def test_build_memo_without_findings(self):
        draft = build_memo_from_alerts("Quiet Co", [])
        assert draft["conclusion"] == "No economic nexus exposure was identified for Quiet Co."

    def test_certificate(self):
        passed = generate_verification_certificate({"verified": True, "storedHash": "a", "currentHash": "a"})
        failed = generate_verification_certificate({"verified": False, "storedHash": "a", "currentHash": "b"})

        assert passed["verificationResult"] == "PASSED"
        assert passed["algorithm"] == "SHA-256"
        assert failed["verificationResult"] == "FAILED"
        assert failed["message"].startswith("TAMPER DETECTED")

    def test_pdf_rendering(self):
        class Memo:
            id = uuid.uuid4()
            client_id = uuid.uuid4()
            supersedes_memo_id = None
            title = "Rendering check"
            memo_type = "INITIAL"
            status = "DRAFT"
            sections = SECTIONS
            conclusion = "Done."
            recommendations = ["One"]
            created_at = None
            sealed_at = None
            is_sealed = False
            content_hash = None

        pdf = MemoPDFService(firm_name="Test CPA Firm").render_memo_pdf(Memo(), "Acme Retail")
        assert pdf.startswith(b"%PDF")


class TestMemoService:

    @pytest.mark.asyncio
    async def test_create_memo_is_draft(self, db_session, test_organization, test_client):
        memo = await _draft(MemoService(db_session), test_organization, test_client)

        assert memo.status == "DRAFT"
        assert memo.is_editable is True
        assert memo.is_sealed is False
        data = serialize_memo(memo, "Acme Retail", "Acme Retail LLC")
        assert data["client_name"] == "Acme Retail"
        assert data["legal_entity_name"] == "Acme Retail LLC"

    @pytest.mark.asyncio
    async def test_create_requires_title_and_sections(self, db_session, test_organization, test_client):
        with pytest.raises(ValueError):
            await _draft(MemoService(db_session), test_organization, test_client, sections=[])

    @pytest.mark.asyncio
    async def test_update_ignores_empty_values(self, db_session, test_organization, test_client):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)

        updated = await service.update_memo(memo.id, {"title": "Revised", "conclusion": ""})
        assert updated.title == "Revised"
        assert updated.conclusion == "Register in California."

    @pytest.mark.asyncio
    async def test_list_memos_includes_client_names(self, db_session, test_organization, test_client):
        service = MemoService(db_session)
        await _draft(service, test_organization, test_client)

        rows = await service.list_memos(test_organization.id, status="draft")
        assert len(rows) == 1
        assert rows[0][1] == "Acme Retail"

    @pytest.mark.asyncio
    async def test_seal_stores_pdf_and_hashes(
        self, db_session, test_organization, test_client, test_user, memo_storage,
    ):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)

        result = await service.seal_memo(memo.id, test_user.id)
        sealed = result["memo"]

        assert result["sealed"] is True
        assert sealed.status == "SEALED"
        assert sealed.is_editable is False
        assert result["hash"] == sealed.document_hash
        assert (memo_storage / f"{memo.id}.pdf").exists()
        assert service.load_pdf(memo.id).startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_sealed_memo_is_immutable(self, db_session, test_organization, test_client, test_user):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)
        await service.seal_memo(memo.id, test_user.id)

        with pytest.raises(MemoSealedException):
            await service.update_memo(memo.id, {"title": "Changed"})
        with pytest.raises(MemoSealedException):
            await service.seal_memo(memo.id, test_user.id)

    @pytest.mark.asyncio
    async def test_verify_intact_memo(self, db_session, test_organization, test_client, test_user):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)
        await service.seal_memo(memo.id, test_user.id)

        result = await service.verify_memo_integrity(memo.id, user_id=test_user.id)
        assert result["verified"] is True
        assert result["status"] == "VERIFIED"
        assert result["storedHash"] == result["currentHash"]

        history = await service.get_verification_history(memo.id)
        assert [h.verification_type for h in history] == ["VERIFICATION", "SEALED"]

    @pytest.mark.asyncio
    async def test_verify_uploaded_pdf(self, db_session, test_organization, test_client, test_user):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)
        pdf = b"%PDF-1.4 sealed copy"
        await service.seal_memo(memo.id, test_user.id, pdf_bytes=pdf)

        assert (await service.verify_memo_integrity(memo.id, pdf_bytes=pdf))["verified"] is True
        tampered = await service.verify_memo_integrity(memo.id, pdf_bytes=pdf + b" edited")
        assert tampered["verified"] is False
        assert tampered["status"] == "TAMPERED"

    @pytest.mark.asyncio
    async def test_content_edit_detected(self, db_session, test_organization, test_client, test_user):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)
        await service.seal_memo(memo.id, test_user.id)

        memo.conclusion = "No registration needed."
        await db_session.commit()

        result = await service.verify_memo_integrity(memo.id)
        assert result["verified"] is False
        history = await service.get_verification_history(memo.id)
        assert history[0].details["contentMatches"] is False

    @pytest.mark.asyncio
    async def test_verify_falls_back_to_stored_hash(
        self, db_session, test_organization, test_client, test_user, memo_storage,
    ):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)
        await service.seal_memo(memo.id, test_user.id)
        (memo_storage / f"{memo.id}.pdf").unlink()

        result = await service.verify_memo_integrity(memo.id)
        assert result["verified"] is True
        history = await service.get_verification_history(memo.id)
        assert history[0].details["pdfSource"] == "stored_hash"

    @pytest.mark.asyncio
    async def test_verify_unsealed(self, db_session, test_organization, test_client):
        service = MemoService(db_session)
        memo = await _draft(service, test_organization, test_client)

        result = await service.verify_memo_integrity(memo.id)
        assert result == {"verified": False, "reason": "Memo has not been sealed", "status": "NOT_SEALED"}

    @pytest.mark.asyncio
    async def test_missing_memo(self, db_session):
        with pytest.raises(NotFoundException):
            await MemoService(db_session).verify_memo_integrity(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_supplemental_versions(self, db_session, test_organization, test_client, test_user):
        service = MemoService(db_session)
        original = await _draft(service, test_organization, test_client, statute_versions={"CA": "2026"})
        await service.seal_memo(original.id, test_user.id)

        supplemental = await service.create_supplemental(
            original.id,
            test_organization.id,
            title="CA Nexus Review - Supplement",
            sections=SECTIONS,
            created_by=test_user.id,
        )
        assert supplemental.memo_type == "SUPPLEMENTAL"
        assert supplemental.is_supplemental is True
        assert supplemental.supersedes_memo_id == original.id
        assert supplemental.statute_versions == {"CA": "2026"}

        versions = await service.get_versions(supplemental.id)
        assert [v.id for v in versions] == [supplemental.id, original.id]

    @pytest.mark.asyncio
    async def test_supplemental_of_missing_memo(self, db_session, test_organization):
        with pytest.raises(NotFoundException):
            await MemoService(db_session).create_supplemental(
                uuid.uuid4(), test_organization.id, title="x", sections=SECTIONS,
            )

    @pytest.mark.asyncio
    async def test_create_from_alerts(self, db_session, test_organization, test_client):
        result = NexusEngine().process_document([{"state": "CA", "revenue": 600_000}])
        memo = await MemoService(db_session).create_from_alerts(
            test_organization.id, test_client.id, result["alerts"], result["summary"],
        )
        assert memo.title == "Economic Nexus Memorandum - Acme Retail"

    def test_hash_changes_with_pdf(self):
        class Memo:
            client_id = None
            title = "t"
            sections = SECTIONS
            conclusion = None
            recommendations = None
            attestation = None
            statute_versions = None
            created_at = None

        bare = generate_memo_hash(Memo())
        with_pdf = generate_memo_hash(Memo(), b"%PDF")
        assert bare["pdfHash"] is None
        assert bare["contentHash"] == with_pdf["contentHash"]
        assert bare["documentHash"] != with_pdf["documentHash"]
