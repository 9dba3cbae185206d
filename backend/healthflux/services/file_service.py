"""
HealthFlux Backend — File Storage Service
==========================================

What:  Validation, storage, lookup and cleanup of uploaded medical documents.
How:   Validates extension, size and magic-byte MIME type, stores in
       date-organized directories under UUID filenames, and resolves stored
       relative paths back to files for the authenticated file route.
Who:   DocumentService (upload) and the /api/files route (download).

Security Model:
    1. Extension check:  rejects obviously wrong files before reading content
    2. MIME type check:  python-magic inspects the header bytes
    3. Size check:       bounded by MAX_FILE_SIZE
    4. UUID filename:    no user input ever reaches the file system path
    5. resolve():        served paths must stay inside the storage root
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import magic

from healthflux.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# MIME type detected from content → canonical extension on disk
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "application/pdf": ".pdf",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".pdf"}


class FileService:
    """
    Manages the lifecycle of uploaded document files.

    Directory Structure:
        storage/
        └── 2024/
            └── 01/
                └── 15/
                    ├── a1b2c3d4-5678.pdf
                    └── e5f6g7h8-9012.png

    Args:
        storage_root: Base directory for uploads (created if missing).
        max_file_size: Upper bound in bytes for a single file.
    """

    def __init__(self, storage_root: str, max_file_size: int = 10_485_760):
        self.storage_root = Path(storage_root).resolve()
        self.max_file_size = max_file_size
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """Returns the lowercase extension, or raises ValidationError."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="files",
                context={"extension": ext, "filename": filename},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the declared size first (when the client sent one), then the
        actual byte count.
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller file.",
                field="files",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="files",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty.", field="files")

    def validate_mime_type(self, file_content: bytes, filename: str) -> str:
        """
        Detects the real content type from magic bytes.

        Returns:
            The detected MIME type (e.g. "application/pdf").

        Raises:
            ValidationError: content is not PNG, JPEG or PDF.
            FileStorageError: libmagic failed.
        """
        try:
            mime_type = magic.from_buffer(file_content, mime=True)
        except Exception as e:
            logger.error("MIME type detection failed for %s: %s", filename, str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a PNG, JPEG or PDF document."
                ),
                field="files",
                context={"detected_mime": mime_type, "filename": filename},
            )

        return mime_type

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """YYYY/MM/DD/<uuid><ext> under the storage root."""
        now = datetime.now(timezone.utc)
        date_dir = now.strftime("%Y/%m/%d")
        unique_name = f"{uuid.uuid4()}{extension}"

        relative_path = f"{date_dir}/{unique_name}"
        absolute_path = self.storage_root / relative_path

        return absolute_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Writes content to a fresh path.

        Returns:
            (absolute_path, relative_path)

        Raises:
            FileStorageError on any OS error.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)

            logger.info("File stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path

        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded document. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort removal of a stored file after a failed upload.

        Never raises: a leftover file is logged, not reported to the client.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    def validate(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Every upload check, in order: extension → size → MIME. Writes nothing.

        Returns:
            (extension, mime_type)
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        mime_type = self.validate_mime_type(content, filename)
        return ext, mime_type

    def resolve(self, relative_path: str) -> Path:
        """
        Maps a stored relative path back to a file inside the storage root.

        Raises:
            ValidationError: the path escapes the storage root.
            NotFoundError: no such file.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if candidate != self.storage_root and self.storage_root not in candidate.parents:
            logger.warning("Rejected file path outside storage root: %s", relative_path)
            raise ValidationError(message="Invalid file path", field="path")
        if not candidate.is_file():
            raise NotFoundError(resource="File", resource_id=relative_path)
        return candidate
