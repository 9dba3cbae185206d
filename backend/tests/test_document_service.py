"""
HealthFlux Backend — Document Service Tests
============================================

What we test:
    ✅ Search never returns ids the model invented
    ✅ Search with no documents makes no model call
    ✅ Upload creates one record per file; any failure leaves no records or files behind
    ✅ Summaries are stored on the document
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from healthflux.exceptions import DatabaseError, NotFoundError, ValidationError
from healthflux.schemas.entities import MedicalDocument
from healthflux.services.document_service import (
    DocumentMetadata,
    DocumentService,
    UploadedFile,
    build_search_prompt,
    select_matches,
)
from healthflux.services.file_service import FileService

MAGIC = "healthflux.services.file_service.magic.from_buffer"


def _docs(*ids):
    return [MedicalDocument(id=doc_id, profile_id="p1", title=f"Doc {doc_id}") for doc_id in ids]


class TestSelectMatches:
    def test_keeps_only_fetched_ids(self):
        docs = _docs("a", "b", "c")
        matches = select_matches(docs, ["c", "ghost", "a"])
        assert [d.id for d in matches] == ["a", "c"]

    def test_non_list_reply_matches_nothing(self):
        assert select_matches(_docs("a"), {"ids": ["a"]}) == []
        assert select_matches(_docs("a"), "a") == []

    def test_non_string_items_are_ignored(self):
        assert [d.id for d in select_matches(_docs("a"), [None, {"id": "a"}, "a"])] == ["a"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_no_documents_means_no_model_call(self, store, fake_llm):
        results = await DocumentService(store, fake_llm).search("p1", "blood test")

        assert results == []
        assert fake_llm.call_count == 0

    @pytest.mark.asyncio
    async def test_hallucinated_ids_are_dropped(self, store, fake_llm):
        first = await store.create("MedicalDocument", {"profile_id": "p1", "title": "CBC"})
        await store.create("MedicalDocument", {"profile_id": "p1", "title": "X-ray"})
        other = await store.create("MedicalDocument", {"profile_id": "p2", "title": "Other patient"})
        fake_llm.reply = [first["id"], "made-up-id", other["id"]]

        results = await DocumentService(store, fake_llm).search("p1", "blood test")

        assert [r["id"] for r in results] == [first["id"]]
        assert fake_llm.json_flags == [True]

    @pytest.mark.asyncio
    async def test_prompt_contains_profile_documents_and_query(self, store, fake_llm):
        await store.create(
            "MedicalDocument",
            {"profile_id": "p1", "title": "CBC", "facility_name": "City Lab", "document_type": "lab_report"},
        )
        fake_llm.reply = []

        await DocumentService(store, fake_llm).search("p1", "blood test")

        prompt = fake_llm.prompts[0]
        assert "City Lab" in prompt
        assert 'User query: "blood test"' in prompt

    def test_summary_falls_back_to_type_and_facility(self):
        prompt = build_search_prompt(
            [MedicalDocument(id="a", profile_id="p1", document_type="prescription")], "q"
        )
        assert "prescription from unknown facility dated unknown date" in prompt


class TestUpload:
    @pytest.mark.asyncio
    async def test_creates_one_record_per_file(self, store, fake_llm, temp_storage, sample_pdf_bytes):
        service = DocumentService(store, fake_llm, FileService(temp_storage))
        metadata = DocumentMetadata(profile_id="p1", document_type="lab_report", facility_name="City Lab")
        uploads = [
            UploadedFile("cbc.pdf", sample_pdf_bytes),
            UploadedFile("lipid.pdf", sample_pdf_bytes),
        ]

        with patch(MAGIC, return_value="application/pdf"):
            created = await service.upload(metadata, uploads)

        assert [doc["title"] for doc in created] == ["cbc", "lipid"]
        assert all(doc["status"] == "uploaded" for doc in created)
        assert all(doc["file_url"].startswith("/api/files/") for doc in created)
        assert all(doc["file_type"] == "application/pdf" for doc in created)
        assert len(await store.filter("MedicalDocument", {"profile_id": "p1"})) == 2

    @pytest.mark.asyncio
    async def test_one_bad_file_rejects_the_batch(self, store, fake_llm, temp_storage, sample_pdf_bytes):
        service = DocumentService(store, fake_llm, FileService(temp_storage))
        uploads = [UploadedFile("ok.pdf", sample_pdf_bytes), UploadedFile("virus.exe", b"MZ")]

        with pytest.raises(ValidationError):
            await service.upload(DocumentMetadata(profile_id="p1"), uploads)

        assert await store.filter("MedicalDocument") == []
        assert list(Path(temp_storage).rglob("*.pdf")) == []

    @pytest.mark.asyncio
    async def test_wrong_content_in_a_later_file_rejects_the_batch(
        self, store, fake_llm, temp_storage, sample_pdf_bytes
    ):
        service = DocumentService(store, fake_llm, FileService(temp_storage))
        uploads = [
            UploadedFile("a.pdf", sample_pdf_bytes),
            UploadedFile("b.pdf", b"plain text, not a pdf at all"),
        ]

        with patch(MAGIC, side_effect=["application/pdf", "text/plain"]):
            with pytest.raises(ValidationError) as exc_info:
                await service.upload(DocumentMetadata(profile_id="p1"), uploads)

        assert exc_info.value.context["detected_mime"] == "text/plain"
        assert await store.filter("MedicalDocument", {"profile_id": "p1"}) == []
        assert [p for p in Path(temp_storage).rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_failed_record_for_a_later_file_rolls_back_the_batch(
        self, store, fake_llm, temp_storage, sample_pdf_bytes
    ):
        service = DocumentService(store, fake_llm, FileService(temp_storage))
        real_create = store.create
        attempts = []

        async def create_then_fail(entity, data):
            attempts.append(data["file_name"])
            if len(attempts) > 1:
                raise DatabaseError()
            return await real_create(entity, data)

        uploads = [UploadedFile("a.pdf", sample_pdf_bytes), UploadedFile("b.pdf", sample_pdf_bytes)]
        with patch(MAGIC, return_value="application/pdf"), patch.object(store, "create", new=create_then_fail):
            with pytest.raises(DatabaseError):
                await service.upload(DocumentMetadata(profile_id="p1"), uploads)

        assert attempts == ["a.pdf", "b.pdf"]
        assert await store.filter("MedicalDocument", {"profile_id": "p1"}) == []
        assert [p for p in Path(temp_storage).rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_unknown_document_type(self, store, fake_llm, temp_storage, sample_pdf_bytes):
        service = DocumentService(store, fake_llm, FileService(temp_storage))

        with pytest.raises(ValidationError) as exc_info:
            await service.upload(
                DocumentMetadata(profile_id="p1", document_type="horoscope"),
                [UploadedFile("a.pdf", sample_pdf_bytes)],
            )
        assert exc_info.value.field == "document_type"

    @pytest.mark.asyncio
    async def test_no_files(self, store, fake_llm, temp_storage):
        service = DocumentService(store, fake_llm, FileService(temp_storage))
        with pytest.raises(ValidationError):
            await service.upload(DocumentMetadata(profile_id="p1"), [])

    @pytest.mark.asyncio
    async def test_stored_file_is_removed_when_record_fails(self, store, fake_llm, temp_storage, sample_pdf_bytes):
        service = DocumentService(store, fake_llm, FileService(temp_storage))

        with patch(MAGIC, return_value="application/pdf"), patch.object(
            store, "create", new=AsyncMock(side_effect=DatabaseError())
        ):
            with pytest.raises(DatabaseError):
                await service.upload(DocumentMetadata(profile_id="p1"), [UploadedFile("a.pdf", sample_pdf_bytes)])

        assert list(Path(temp_storage).rglob("*.pdf")) == []


class TestSummarize:
    @pytest.mark.asyncio
    async def test_summary_is_stored(self, store, fake_llm):
        doc = await store.create("MedicalDocument", {"profile_id": "p1", "title": "CBC", "status": "uploaded"})
        fake_llm.reply = "  Routine blood count, all values normal.  "

        result = await DocumentService(store, fake_llm).summarize(doc["id"])

        assert result["ai_summary"] == "Routine blood count, all values normal."
        assert result["status"] == "processed"
        assert (await store.get("MedicalDocument", doc["id"]))["ai_summary"] == result["ai_summary"]
        assert fake_llm.json_flags == [False]

    @pytest.mark.asyncio
    async def test_missing_document(self, store, fake_llm):
        with pytest.raises(NotFoundError):
            await DocumentService(store, fake_llm).summarize("missing")
        assert fake_llm.call_count == 0
