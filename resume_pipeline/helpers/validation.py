"""
Upload validation: size, extension, password and signature checks.

Every check reads the file directly and never trusts the declared content
type. ``validate_file`` is pure apart from the read and never raises.
"""
import asyncio
import math
import os
from pathlib import Path
from typing import List, Optional

from resume_pipeline.models.schemas import (
    Confidence,
    FileValidation,
    FileValidationReport,
    UploadedFile,
    ValidationOutcome,
)
from resume_pipeline.models.settings import ValidationSettings
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

HEAD_BYTES = 1024
EOCD_WINDOW = 22

PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0"

SIGNATURES = {
    "pdf": PDF_SIGNATURE,
    "docx": ZIP_SIGNATURE,
    "xlsx": ZIP_SIGNATURE,
    "doc": OLE2_SIGNATURE,
    "xls": OLE2_SIGNATURE,
}

ZIP_FORMATS = {"docx", "xlsx"}
PLAIN_TEXT_FORMATS = {"txt", "csv"}

PASSWORD_ERROR = "File is password protected"
CORRUPTION_ERROR = "File appears corrupted or has invalid format"


def file_extension(name: str) -> str:
    return Path(name).suffix.lower().lstrip(".")


def _read_head_and_tail(path: str, size: int):
    with open(path, "rb") as fh:
        head = fh.read(HEAD_BYTES)
        if size > EOCD_WINDOW:
            fh.seek(-EOCD_WINDOW, os.SEEK_END)
        else:
            fh.seek(0)
        tail = fh.read(EOCD_WINDOW)
    return head, tail


def looks_password_protected(extension: str, head: bytes) -> bool:
    """Heuristic check on the first KiB of the file."""
    if extension == "pdf":
        sample = head.decode("latin-1")
        return "/Encrypt" in sample or "/Security" in sample
    if extension in ZIP_FORMATS:
        return b"encrypted" in head or b"PK\x07\x08" in head
    return False


def looks_corrupted(extension: str, head: bytes, tail: bytes) -> bool:
    signature = SIGNATURES.get(extension)
    if signature is None:
        return False
    if not head[:8].startswith(signature):
        return True
    if extension == "pdf" and b"%PDF-" not in head:
        return True
    if extension in ZIP_FORMATS and b"PK\x05\x06" not in tail:
        return True
    return False


def validate_file(
    path: str,
    declared_size: Optional[int] = None,
    file_name: Optional[str] = None,
    settings: ValidationSettings = None,
) -> ValidationOutcome:
    """Classify a file on disk as accepted or rejected."""
    settings = settings or ValidationSettings()
    try:
        size = declared_size if declared_size is not None else os.path.getsize(path)
        if size < settings.min_file_size or size > settings.max_file_size:
            return ValidationOutcome(
                is_valid=False,
                error=(
                    f"File size {size} bytes exceeds limits "
                    f"(min: {settings.min_file_size}, max: {settings.max_file_size})"
                ),
                confidence=Confidence.HIGH,
            )

        extension = file_extension(file_name or path)
        if extension not in settings.supported_extensions:
            return ValidationOutcome(
                is_valid=False,
                error=f"Unsupported file extension: {extension or '(none)'}",
                confidence=Confidence.HIGH,
            )

        if extension not in PLAIN_TEXT_FORMATS:
            head, tail = _read_head_and_tail(path, os.path.getsize(path))
            if looks_password_protected(extension, head):
                return ValidationOutcome(is_valid=False, error=PASSWORD_ERROR, confidence=Confidence.MEDIUM)
            if looks_corrupted(extension, head, tail):
                return ValidationOutcome(is_valid=False, error=CORRUPTION_ERROR, confidence=Confidence.MEDIUM)

        return ValidationOutcome(
            is_valid=True,
            confidence=Confidence.HIGH,
            metadata={"extension": extension, "size_kb": round(size / 1024, 2)},
        )
    except OSError as e:
        logger.warning(f"Validation could not read {path}: {e}")
        return ValidationOutcome(is_valid=False, error=f"Validation failed: {e}", confidence=Confidence.HIGH)


def should_proceed(total: int, invalid_count: int, max_invalid_ratio: float = 0.3) -> bool:
    return invalid_count <= math.floor(total * max_invalid_ratio)


async def validate_files(files: List[UploadedFile], settings: ValidationSettings = None) -> FileValidationReport:
    """Validate every file concurrently and decide whether the batch may continue."""
    settings = settings or ValidationSettings()
    loop = asyncio.get_running_loop()
    outcomes = await asyncio.gather(*[
        loop.run_in_executor(None, validate_file, f.path, f.size, f.original_name, settings)
        for f in files
    ])

    results = [FileValidation(file_name=f.original_name, outcome=o) for f, o in zip(files, outcomes)]
    invalid_count = sum(1 for o in outcomes if not o.is_valid)
    total = len(files)
    report = FileValidationReport(
        total=total,
        valid_count=total - invalid_count,
        invalid_count=invalid_count,
        should_proceed=should_proceed(total, invalid_count, settings.max_invalid_ratio),
        results=results,
    )

    for r in report.invalid:
        logger.info(
            f"Rejected {r.file_name}: {r.outcome.error}",
            extra={"confidence": r.outcome.confidence.value},
        )
    logger.info(
        f"Validated {total} files: {report.valid_count} valid, {invalid_count} invalid, "
        f"proceed={report.should_proceed}"
    )
    return report
