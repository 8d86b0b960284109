import pytest

from conftest import MINIMAL_PDF, write_upload
from resume_pipeline.helpers.validation import (
    CORRUPTION_ERROR,
    PASSWORD_ERROR,
    should_proceed,
    validate_file,
    validate_files,
)
from resume_pipeline.models.schemas import Confidence
from resume_pipeline.models.settings import ValidationSettings

ZIP_BODY = b"PK\x03\x04" + b"\x00" * 40 + b"PK\x05\x06" + b"\x00" * 18


def write(tmp_path, name, content):
    p = tmp_path / name
    p.write_bytes(content)
    return str(p)


class TestFileValidator:
    """Test cases for single-file validation"""

    def test_accepts_plain_text(self, tmp_path):
        outcome = validate_file(write(tmp_path, "cv.txt", b"Jane Doe, Python developer"))

        assert outcome.is_valid
        assert outcome.metadata["extension"] == "txt"
        assert outcome.error is None

    def test_accepts_minimal_pdf(self, tmp_path):
        outcome = validate_file(write(tmp_path, "cv.pdf", MINIMAL_PDF))
        assert outcome.is_valid

    def test_pdf_with_wrong_signature_is_corrupted(self, tmp_path):
        path = write(tmp_path, "resume.pdf", b"This is not really a PDF document")

        outcome = validate_file(path)

        assert not outcome.is_valid
        assert outcome.confidence == Confidence.MEDIUM
        assert "corrupted" in outcome.error

    def test_pdf_without_version_header_is_corrupted(self, tmp_path):
        outcome = validate_file(write(tmp_path, "resume.pdf", b"%PDF without the dash header"))
        assert outcome.error == CORRUPTION_ERROR

    def test_encrypted_pdf_is_password_protected(self, tmp_path):
        content = b"%PDF-1.7\n<< /Encrypt 5 0 R >>\n%%EOF"

        outcome = validate_file(write(tmp_path, "locked.pdf", content))

        assert not outcome.is_valid
        assert outcome.error == PASSWORD_ERROR
        assert outcome.confidence == Confidence.MEDIUM

    def test_docx_with_end_of_central_directory_is_valid(self, tmp_path):
        assert validate_file(write(tmp_path, "cv.docx", ZIP_BODY)).is_valid

    def test_docx_missing_end_of_central_directory_is_corrupted(self, tmp_path):
        truncated = b"PK\x03\x04" + b"\x00" * 60

        outcome = validate_file(write(tmp_path, "cv.docx", truncated))

        assert outcome.error == CORRUPTION_ERROR

    def test_docx_with_data_descriptor_marker_is_password_protected(self, tmp_path):
        content = b"PK\x03\x04" + b"\x00" * 10 + b"PK\x07\x08" + b"\x00" * 10 + b"PK\x05\x06" + b"\x00" * 18
        assert validate_file(write(tmp_path, "cv.docx", content)).error == PASSWORD_ERROR

    def test_legacy_doc_needs_ole_signature(self, tmp_path):
        good = write(tmp_path, "cv.doc", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)
        bad = write(tmp_path, "bad.doc", b"plain words pretending to be a doc")

        assert validate_file(good).is_valid
        assert validate_file(bad).error == CORRUPTION_ERROR

    def test_too_small_file_rejected_with_high_confidence(self, tmp_path):
        outcome = validate_file(write(tmp_path, "cv.txt", b"tiny"))

        assert not outcome.is_valid
        assert outcome.confidence == Confidence.HIGH
        assert "exceeds limits" in outcome.error

    def test_declared_size_over_maximum_rejected(self, tmp_path):
        path = write(tmp_path, "cv.txt", b"small but declared huge")
        outcome = validate_file(path, declared_size=51 * 1024 * 1024)
        assert "exceeds limits" in outcome.error

    def test_unsupported_extension(self, tmp_path):
        outcome = validate_file(write(tmp_path, "cv.exe", b"MZ executable payload"))

        assert not outcome.is_valid
        assert outcome.error == "Unsupported file extension: exe"
        assert outcome.confidence == Confidence.HIGH

    def test_extension_taken_from_original_name(self, tmp_path):
        path = write(tmp_path, "3f2a", b"Some resume text here")
        assert validate_file(path, file_name="Resume.TXT").is_valid

    def test_missing_file_reported_not_raised(self, tmp_path):
        outcome = validate_file(str(tmp_path / "gone.pdf"))

        assert not outcome.is_valid
        assert outcome.error.startswith("Validation failed:")

    def test_custom_extension_list(self, tmp_path):
        settings = ValidationSettings(supported_extensions=[".PDF"])
        outcome = validate_file(write(tmp_path, "cv.txt", b"Plain resume text"), settings=settings)
        assert outcome.error == "Unsupported file extension: txt"


class TestBatchValidation:
    """Test cases for the batch proceed threshold"""

    @pytest.mark.parametrize("total,invalid,expected", [
        (10, 3, True),
        (10, 4, False),
        (1, 0, True),
        (1, 1, False),
        (3, 0, True),
        (4, 1, True),
    ])
    def test_should_proceed(self, total, invalid, expected):
        assert should_proceed(total, invalid) is expected

    @pytest.mark.asyncio
    async def test_validate_files_counts(self, tmp_path):
        files = [write_upload(tmp_path, f"cv{i}.txt", b"Resume content number %d" % i) for i in range(4)]
        files.append(write_upload(tmp_path, "broken.pdf", b"definitely not a pdf", "application/pdf"))

        report = await validate_files(files)

        assert report.total == 5
        assert report.valid_count == 4
        assert report.invalid_count == 1
        assert report.should_proceed is True
        assert [r.file_name for r in report.invalid] == ["broken.pdf"]
