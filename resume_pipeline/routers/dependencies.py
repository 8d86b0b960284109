import mimetypes
import os
import shutil
import tempfile
import uuid
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import Depends, Header, UploadFile
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from resume_pipeline.models.schemas import JobTarget, UploadedFile
from resume_pipeline.models.settings import PipelineSettings, get_settings
from resume_pipeline.services.db import MongoStore, create_database
from resume_pipeline.services.ollama import OllamaClient
from resume_pipeline.services.orchestrator import BatchOrchestrator
from resume_pipeline.utils.exceptions import ValidationError
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

job_target_adapter = TypeAdapter(JobTarget)


@lru_cache(maxsize=1)
def get_store() -> MongoStore:
    return MongoStore(create_database(get_settings().database))


@lru_cache(maxsize=1)
def get_ai_client() -> OllamaClient:
    return OllamaClient.from_settings(get_settings())


def get_orchestrator(
    store=Depends(get_store),
    ai=Depends(get_ai_client),
    settings: PipelineSettings = Depends(get_settings),
) -> BatchOrchestrator:
    return BatchOrchestrator(store, ai, settings)


def get_owner_id(x_recruiter_id: str = Header(...)) -> str:
    owner = x_recruiter_id.strip()
    if not owner:
        raise ValidationError("X-Recruiter-Id header cannot be empty", field="X-Recruiter-Id")
    return owner


def parse_job_target(job_mode: str, title: str = "", description: str = "", job_id: Optional[str] = None):
    payload = {
        "job_mode": (job_mode or "").strip().lower(),
        "title": title or "",
        "description": description or "",
    }
    if job_id and job_id.strip():
        payload["job_id"] = job_id.strip()
    try:
        return job_target_adapter.validate_python(payload)
    except PydanticValidationError as e:
        if e.errors()[0]["type"].startswith("union_tag"):
            raise ValidationError(
                "job_mode must be 'new' or 'existing'", field="job_mode", value=job_mode
            ) from e
        raise ValidationError("job_id is required when job_mode is 'existing'", field="job_id") from e


def guess_content_type(upload: UploadFile) -> str:
    declared = upload.content_type
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or "application/octet-stream"


async def spool_uploads(uploads: List[UploadFile], upload_dir: str) -> Tuple[str, List[UploadedFile]]:
    """Write uploads to a run-unique directory under random names."""
    Path(upload_dir).mkdir(parents=True, exist_ok=True)
    run_dir = tempfile.mkdtemp(prefix="batch-", dir=upload_dir)
    spooled: List[UploadedFile] = []
    try:
        for upload in uploads:
            original = os.path.basename(upload.filename or "upload")
            stored = f"{uuid.uuid4()}{Path(original).suffix.lower()}"
            path = os.path.join(run_dir, stored)
            size = 0
            with open(path, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    out.write(chunk)
            spooled.append(UploadedFile(
                path=path,
                original_name=original,
                stored_name=stored,
                size=size,
                content_type=guess_content_type(upload),
            ))
    except Exception:
        shutil.rmtree(run_dir, ignore_errors=True)
        raise
    logger.debug(f"Spooled {len(spooled)} uploads to {run_dir}")
    return run_dir, spooled
