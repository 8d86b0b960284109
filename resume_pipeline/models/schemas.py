from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
import uuid

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class UploadedFile:
    """A file received from the transport layer and spooled to disk."""
    path: str
    original_name: str
    stored_name: str
    size: int
    content_type: str


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ValidationOutcome(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    confidence: Confidence = Confidence.HIGH
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FileValidation(BaseModel):
    file_name: str
    outcome: ValidationOutcome


class FileValidationReport(BaseModel):
    total: int
    valid_count: int
    invalid_count: int
    should_proceed: bool
    results: List[FileValidation] = Field(default_factory=list)

    @property
    def invalid(self) -> List[FileValidation]:
        return [r for r in self.results if not r.outcome.is_valid]


class NewJob(BaseModel):
    job_mode: Literal["new"] = "new"
    title: str = ""
    description: str = ""


class ExistingJob(BaseModel):
    job_mode: Literal["existing"] = "existing"
    job_id: str


JobTarget = Annotated[Union[NewJob, ExistingJob], Field(discriminator="job_mode")]


class CandidateProfile(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    experience: str = ""
    skills: List[str] = Field(default_factory=list)
    summary: str = ""

    def is_empty(self) -> bool:
        return not any([self.name, self.email, self.phone, self.experience, self.skills, self.summary])


class JobPosting(BaseModel):
    job_id: str = Field(default_factory=new_id)
    owner_id: str
    title: str
    description: str
    skills: List[str] = Field(default_factory=list)
    company: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("skills")
    @classmethod
    def lowercase_skills(cls, v):
        return [s.strip().lower() for s in v if s and s.strip()]


class ResumeRecord(BaseModel):
    resume_id: str = Field(default_factory=new_id)
    owner_id: str
    file_name: str
    original_file_name: str
    file_size: int
    content_type: str
    text: str
    profile: CandidateProfile = Field(default_factory=CandidateProfile)
    upload_date: datetime = Field(default_factory=utcnow)
    embedding: Optional[List[float]] = None
    embedding_model: Optional[str] = None
    embedding_date: Optional[datetime] = None

    @model_validator(mode="after")
    def embedding_fields_together(self):
        present = [self.embedding is not None, self.embedding_model is not None, self.embedding_date is not None]
        if any(present) and not all(present):
            raise ValueError("embedding, embedding_model and embedding_date must be set together")
        return self

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def set_embedding(self, vector: List[float], model: str, when: datetime = None) -> None:
        self.embedding = [float(x) for x in vector]
        self.embedding_model = model
        self.embedding_date = when or utcnow()

    def clear_embedding(self) -> None:
        self.embedding = None
        self.embedding_model = None
        self.embedding_date = None


class MatchResult(BaseModel):
    job_id: str
    resume_id: str
    owner_id: str
    overall_score: int = Field(ge=0, le=100)
    skills_match_score: int = Field(ge=0, le=100)
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    candidate: CandidateProfile = Field(default_factory=CandidateProfile)
    match_method: Literal["vector", "keyword", "hybrid"] = "vector"
    model_version: str = ""
    match_date: datetime = Field(default_factory=utcnow)
