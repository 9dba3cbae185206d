"""
HealthFlux Backend — File Service Unit Tests
=============================================

What:  Tests for FileService validation, storage, lookup and cleanup.
How:   Real temporary directories; libmagic is patched where a test needs a
       specific detected type.

Test Strategy:
    ✅ Allowed extensions (.jpg, .jpeg, .png, .pdf)
    ✅ Rejected extensions (.gif, .exe, none)
    ✅ Size limits (declared and actual, empty file)
    ✅ UUID file names in date directories
    ✅ resolve() stays inside the storage root
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from healthflux.exceptions import FileStorageError, NotFoundError, ValidationError
from healthflux.services.file_service import FileService


class TestFileValidation:
    @pytest.fixture(autouse=True)
    def _service(self, temp_storage):
        self.service = FileService(temp_storage, max_file_size=1024)

    # ── Extension Validation ──────────────────────────────────────────────

    @pytest.mark.parametrize("name", ["scan.jpg", "scan.jpeg", "scan.png", "report.pdf", "REPORT.PDF"])
    def test_allowed_extensions(self, name):
        assert self.service.validate_extension(name) == Path(name).suffix.lower()

    @pytest.mark.parametrize("name", ["animation.gif", "malware.exe", "noextension"])
    def test_rejected_extensions(self, name):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.validate_extension(name)
        assert exc_info.value.field == "files"

    # ── Size Validation ───────────────────────────────────────────────────

    def test_size_within_limit(self):
        self.service.validate_size(None, 1024)

    def test_declared_size_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds"):
            self.service.validate_size(4096, 10)

    def test_actual_size_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds"):
            self.service.validate_size(None, 1025)

    def test_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(0, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_mime_type_accepted(self):
        with patch("healthflux.services.file_service.magic.from_buffer", return_value="application/pdf"):
            assert self.service.validate_mime_type(b"%PDF-1.4", "a.pdf") == "application/pdf"

    def test_mime_type_rejected(self):
        with patch("healthflux.services.file_service.magic.from_buffer", return_value="text/plain"):
            with pytest.raises(ValidationError, match="text/plain"):
                self.service.validate_mime_type(b"hello", "a.pdf")

    def test_libmagic_failure_is_a_storage_error(self):
        with patch(
            "healthflux.services.file_service.magic.from_buffer",
            side_effect=RuntimeError("no magic database"),
        ):
            with pytest.raises(FileStorageError):
                self.service.validate_mime_type(b"x", "a.png")


class TestStorage:
    @pytest.mark.asyncio
    async def test_validated_file_is_stored_in_a_date_directory(self, temp_storage, sample_pdf_bytes):
        service = FileService(temp_storage)

        with patch("healthflux.services.file_service.magic.from_buffer", return_value="application/pdf"):
            ext, mime = service.validate("lab.pdf", sample_pdf_bytes)
        assert list(Path(temp_storage).rglob("*.pdf")) == []

        abs_path, rel_path = await service.store_file(sample_pdf_bytes, ext)

        assert mime == "application/pdf"
        assert rel_path.count("/") == 3
        assert rel_path.endswith(".pdf")
        assert "lab" not in rel_path
        assert Path(abs_path).read_bytes() == sample_pdf_bytes

    @pytest.mark.asyncio
    async def test_cleanup_file_removes_file(self, tmp_path, temp_storage):
        test_file = tmp_path / "test.jpg"
        test_file.write_bytes(b"test content")

        await FileService(temp_storage).cleanup_file(str(test_file))
        assert not test_file.exists()

    @pytest.mark.asyncio
    async def test_cleanup_file_nonexistent(self, tmp_path, temp_storage):
        await FileService(temp_storage).cleanup_file(str(tmp_path / "nonexistent.jpg"))


class TestResolve:
    def test_resolves_stored_file(self, temp_storage):
        service = FileService(temp_storage)
        target = Path(temp_storage) / "2024" / "03" / "01" / "abc.pdf"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"%PDF")

        assert service.resolve("2024/03/01/abc.pdf") == target.resolve()

    def test_traversal_is_rejected(self, temp_storage):
        with pytest.raises(ValidationError):
            FileService(temp_storage).resolve("../../etc/passwd")

    def test_missing_file_is_not_found(self, temp_storage):
        with pytest.raises(NotFoundError):
            FileService(temp_storage).resolve("2024/01/01/missing.png")
