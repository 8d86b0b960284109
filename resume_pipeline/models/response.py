from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from resume_pipeline.models.schemas import CandidateProfile

FailureStage = Literal["validation", "parsing", "extraction", "database"]

RunState = Literal["completed", "aborted_too_invalid", "aborted_job_error"]


class BatchSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    validation_failed: int = 0


class SuccessfulUpload(BaseModel):
    id: str
    file_name: str
    original_file_name: str
    upload_date: datetime
    candidate_profile: CandidateProfile


class FailedUpload(BaseModel):
    file_name: str
    error: str
    stage: FailureStage
    confidence: Optional[str] = None


class RankedCandidate(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    score: int
    skills_match_score: int = 0
    skills: List[str] = Field(default_factory=list)
    experience: str
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    summary: str


class MatchFailure(BaseModel):
    resume_id: str
    file_name: str
    error: str


class BatchUploadResponse(BaseModel):
    message: str
    job_id: Optional[str] = None
    state: RunState = "completed"
    summary: BatchSummary = Field(default_factory=BatchSummary)
    successful: List[SuccessfulUpload] = Field(default_factory=list)
    failed: List[FailedUpload] = Field(default_factory=list)
    match_results: List[RankedCandidate] = Field(default_factory=list)
    match_failures: List[MatchFailure] = Field(default_factory=list)

    @property
    def any_succeeded(self) -> bool:
        return self.summary.successful > 0


class StoredMatch(BaseModel):
    resume_id: str
    overall_score: int
    skills_match_score: int
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    candidate: CandidateProfile = Field(default_factory=CandidateProfile)
    match_method: str = "vector"
    match_date: Optional[datetime] = None


class MatchListResponse(BaseModel):
    job_id: str
    total: int
    matches: List[StoredMatch] = Field(default_factory=list)
