from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from resume_pipeline.models.response import BatchUploadResponse
from resume_pipeline.models.settings import PipelineSettings, get_settings
from resume_pipeline.routers.dependencies import (
    get_orchestrator,
    get_owner_id,
    parse_job_target,
    spool_uploads,
)
from resume_pipeline.services.orchestrator import BatchOrchestrator
from resume_pipeline.utils.logging_config import PerformanceMonitor, get_logger

router = APIRouter()
logger = get_logger(__name__)


def batch_response(result: BatchUploadResponse) -> JSONResponse:
    status_code = 201 if result.any_succeeded else 400
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/bulk-upload", response_model=BatchUploadResponse, status_code=201)
async def bulk_upload(
    request: Request,
    files: List[UploadFile] = File(...),
    job_mode: str = Form("new"),
    title: str = Form(""),
    description: str = Form(""),
    job_id: Optional[str] = Form(None),
    owner_id: str = Depends(get_owner_id),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    settings: PipelineSettings = Depends(get_settings),
):
    """Validate, parse, profile and match up to ten resumes against one job"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    target = parse_job_target(job_mode, title, description, job_id)
    logger.info(
        f"Bulk upload of {len(files)} files ({target.job_mode} job)",
        extra={"request_id": request_id, "owner_id": owner_id},
    )

    run_dir, spooled = await spool_uploads(files, settings.processing.upload_dir)
    with PerformanceMonitor("bulk_upload", logger, threshold_ms=60000):
        result = await orchestrator.run(spooled, target, owner_id, run_dir=run_dir)

    logger.info(result.message, extra={"request_id": request_id, **result.summary.model_dump()})
    return batch_response(result)


@router.post("/upload", response_model=BatchUploadResponse, status_code=201)
async def upload_resume(
    request: Request,
    file: UploadFile = File(...),
    job_mode: str = Form("new"),
    title: str = Form(""),
    description: str = Form(""),
    job_id: Optional[str] = Form(None),
    owner_id: str = Depends(get_owner_id),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    settings: PipelineSettings = Depends(get_settings),
):
    """Single-resume variant of the bulk upload"""
    target = parse_job_target(job_mode, title, description, job_id)
    run_dir, spooled = await spool_uploads([file], settings.processing.upload_dir)
    result = await orchestrator.process_single(spooled[0], target, owner_id, run_dir=run_dir)
    return batch_response(result)
