"""
HealthFlux Backend — Document Service
======================================

What:  Medical document workflows: LLM-assisted search, upload of new
       documents, and AI summaries of stored documents.
How:   Reads and writes MedicalDocument records through the EntityStore,
       stores files through FileService, and asks the injected LLMService
       for relevance ranking and summaries.
Who:   POST /api/documents/search, POST /api/documents,
       POST /api/documents/{id}/summary

Search guarantees:
    Only records that were fetched for the profile can be returned. The
    model's answer is used as a set of ids to keep; ids it invents are
    dropped and the store order is preserved.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from healthflux.exceptions import DatabaseError, NotFoundError, ValidationError
from healthflux.schemas.documents import DOCUMENT_TYPES
from healthflux.schemas.entities import MedicalDocument, to_payload
from healthflux.services.entity_store import EntityStore
from healthflux.services.file_service import FileService
from healthflux.services.llm_base import LLMService

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 5


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    size: Optional[int] = None


@dataclass
class DocumentMetadata:
    """Form fields shared by every file in one upload."""

    profile_id: str
    title: Optional[str] = None
    document_type: str = "other"
    document_date: Optional[str] = None
    facility_name: Optional[str] = None
    doctor_name: Optional[str] = None
    notes: Optional[str] = None


def search_context(document: MedicalDocument) -> Dict[str, Any]:
    """The fields the model sees for one document."""
    summary = document.ai_summary or (
        f"{document.document_type} from {document.facility_name or 'unknown facility'} "
        f"dated {document.document_date or 'unknown date'}"
    )
    return {
        "id": document.id,
        "title": document.title,
        "document_type": document.document_type,
        "facility_name": document.facility_name,
        "doctor_name": document.doctor_name,
        "document_date": document.document_date,
        "summary": summary,
    }


def build_search_prompt(documents: List[MedicalDocument], query: str) -> str:
    context = json.dumps([search_context(doc) for doc in documents], indent=2)
    return (
        "You are helping a user search their medical documents. Here are their documents:\n\n"
        f"{context}\n\n"
        f'User query: "{query}"\n\n'
        f"Identify up to {MAX_SEARCH_RESULTS} most relevant document IDs that match this query. "
        "Consider document type, facility, doctor, date, and content summary. "
        "Return ONLY a JSON array of document IDs as strings.\n\n"
        'Example output: ["doc_id_1", "doc_id_3"]'
    )


def build_summary_prompt(document: MedicalDocument) -> str:
    return (
        "Summarize this medical document for the patient in 2-3 plain-language sentences. "
        "Mention what kind of document it is, who issued it and anything the patient should follow up on.\n\n"
        f"Title: {document.title or 'Untitled'}\n"
        f"Type: {document.document_type or 'other'}\n"
        f"Date: {document.document_date or 'Unknown'}\n"
        f"Facility: {document.facility_name or 'Unknown'}\n"
        f"Doctor: {document.doctor_name or 'Unknown'}\n"
        f"Notes: {document.notes or 'None'}\n\n"
        "Return only the summary text."
    )


def select_matches(documents: List[MedicalDocument], reply: Any) -> List[MedicalDocument]:
    """Fetched documents whose id the model returned, in store order."""
    if not isinstance(reply, list):
        logger.warning("Document search reply was not a list: %s", type(reply).__name__)
        return []
    wanted = {str(item) for item in reply if isinstance(item, (str, int))}
    return [doc for doc in documents if doc.id in wanted]


class DocumentService:
    """
    Args:
        store: Entity store holding MedicalDocument records.
        llm: Completion service used for search and summaries.
        files: File storage for uploads. Only upload() needs it.
        file_url_prefix: Route prefix under which stored files are served.
    """

    def __init__(
        self,
        store: EntityStore,
        llm: LLMService,
        files: Optional[FileService] = None,
        file_url_prefix: str = "/api/files",
    ):
        self.store = store
        self.llm = llm
        self.files = files
        self.file_url_prefix = file_url_prefix.rstrip("/")

    async def search(self, profile_id: str, query: str) -> List[Dict[str, Any]]:
        """
        LLM-assisted search over a profile's documents.

        No documents means no model call and an empty result.
        """
        rows = await self.store.filter("MedicalDocument", {"profile_id": profile_id})
        if not rows:
            logger.info("Document search: profile %s has no documents", profile_id)
            return []

        documents = [MedicalDocument.model_validate(row) for row in rows]
        reply = await self.llm.complete(build_search_prompt(documents, query), json_response=True)
        matches = select_matches(documents, reply)

        logger.info(
            "Document search: profile=%s candidates=%d matches=%d",
            profile_id,
            len(documents),
            len(matches),
        )
        return [to_payload(doc) for doc in matches]

    async def upload(self, metadata: DocumentMetadata, uploads: List[UploadedFile]) -> List[Dict[str, Any]]:
        """
        Store each file and create one MedicalDocument per file.

        Every file passes every check (extension, size, content type) before
        anything is written, so a bad file in the batch rejects the whole
        upload. If storing a file or creating a record fails part way, the
        files and records already written for this batch are removed again.
        """
        if self.files is None:
            raise RuntimeError("DocumentService.upload requires a FileService")
        if not uploads:
            raise ValidationError(message="At least one file is required", field="files")
        if metadata.document_type not in DOCUMENT_TYPES:
            raise ValidationError(
                message=f"Invalid document_type '{metadata.document_type}'",
                field="document_type",
                context={"allowed": list(DOCUMENT_TYPES)},
            )

        checked = [
            (upload, *self.files.validate(upload.filename, upload.content, upload.size))
            for upload in uploads
        ]

        stored_paths: List[str] = []
        created: List[Dict[str, Any]] = []
        try:
            for upload, extension, mime_type in checked:
                absolute_path, relative_path = await self.files.store_file(upload.content, extension)
                stored_paths.append(absolute_path)
                row = await self.store.create(
                    "MedicalDocument",
                    {
                        "profile_id": metadata.profile_id,
                        "title": metadata.title or Path(upload.filename).stem,
                        "document_type": metadata.document_type,
                        "document_date": metadata.document_date,
                        "facility_name": metadata.facility_name,
                        "doctor_name": metadata.doctor_name,
                        "notes": metadata.notes,
                        "file_url": f"{self.file_url_prefix}/{relative_path}",
                        "file_name": upload.filename,
                        "file_type": mime_type,
                        "status": "uploaded",
                    },
                )
                created.append(to_payload(MedicalDocument.model_validate(row)))
        except Exception:
            logger.warning(
                "Upload for profile %s failed after %d of %d file(s); rolling back",
                metadata.profile_id,
                len(created),
                len(checked),
            )
            await self._rollback(stored_paths, [doc["id"] for doc in created])
            raise

        logger.info(
            "Uploaded %d document(s) for profile %s",
            len(created),
            metadata.profile_id,
        )
        return created

    async def _rollback(self, stored_paths: List[str], record_ids: List[str]) -> None:
        for record_id in record_ids:
            try:
                await self.store.delete("MedicalDocument", record_id)
            except DatabaseError:
                logger.error("Could not remove MedicalDocument %s after a failed upload", record_id)
        for path in stored_paths:
            await self.files.cleanup_file(path)

    async def summarize(self, document_id: str) -> Dict[str, Any]:
        """Ask the model for a short summary and store it on the document."""
        row = await self.store.get("MedicalDocument", document_id)
        if row is None:
            raise NotFoundError(resource="MedicalDocument", resource_id=document_id)
        document = MedicalDocument.model_validate(row)

        summary = await self.llm.complete(build_summary_prompt(document))
        updated = await self.store.update(
            "MedicalDocument",
            document_id,
            {"ai_summary": str(summary).strip(), "status": "processed"},
        )
        logger.info("Summary stored for document %s (%d chars)", document_id, len(str(summary)))
        return to_payload(MedicalDocument.model_validate(updated))
