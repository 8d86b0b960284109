from fastapi import APIRouter, Depends, Request

from resume_pipeline.models.response import MatchListResponse, StoredMatch
from resume_pipeline.routers.dependencies import get_owner_id, get_store
from resume_pipeline.utils.exceptions import JobNotFoundError
from resume_pipeline.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/{job_id}/matches", response_model=MatchListResponse)
async def list_job_matches(
    job_id: str,
    request: Request,
    owner_id: str = Depends(get_owner_id),
    store=Depends(get_store),
):
    """Stored match results for a job, best score first"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    job = await store.find_job(job_id, owner_id)
    if job is None:
        logger.warning(f"Job not found: {job_id}", extra={"request_id": request_id, "owner_id": owner_id})
        raise JobNotFoundError(job_id=job_id)

    results = await store.list_match_results(job_id, owner_id)
    matches = [StoredMatch(**r.model_dump()) for r in results]
    matches.sort(key=lambda m: m.overall_score, reverse=True)
    logger.info(f"Fetched {len(matches)} matches for job {job_id}", extra={"request_id": request_id})
    return MatchListResponse(job_id=job_id, total=len(matches), matches=matches)
