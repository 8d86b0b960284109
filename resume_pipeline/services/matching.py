from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from resume_pipeline.models.schemas import JobPosting, ResumeRecord
from resume_pipeline.utils.exceptions import MatchingError
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

EMBED_TEXT_LIMIT = 8000


class Embedder(Protocol):
    @property
    def embedding_model(self) -> str: ...

    async def embed(self, text: str) -> List[float]: ...


EmbeddingWriter = Callable[[ResumeRecord], Awaitable[None]]


@dataclass
class EmbeddingScore:
    overall_score: int
    similarity: float
    embedding_used: str
    embedding_cached: bool


@dataclass
class SkillOverlap:
    matched: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    skills_match_score: int = 0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise MatchingError(f"Embedding length mismatch: {va.size} vs {vb.size}")
    den = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if den == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / den


def similarity_to_score(similarity: float) -> int:
    return int(round(max(0.0, min(1.0, similarity)) * 100))


def build_job_text(job: JobPosting) -> str:
    parts = [f"Job Title: {job.title}", f"Description: {job.description}"]
    if job.company:
        parts.append(f"Company: {job.company}")
    if job.requirements:
        parts.append(f"Requirements: {job.requirements}")
    if job.responsibilities:
        parts.append(f"Responsibilities: {job.responsibilities}")
    if job.skills:
        parts.append(f"Skills: {', '.join(job.skills)}")
    return "\n".join(parts)


async def embed_job(job_text: str, embedder: Embedder, text_limit: int = EMBED_TEXT_LIMIT) -> List[float]:
    try:
        return await embedder.embed(job_text[:text_limit])
    except Exception as e:
        raise MatchingError(f"Could not embed job text: {e}", cause=e) from e


async def score_match(
    job_text: str,
    resume: ResumeRecord,
    embedder: Embedder,
    job_embedding: Optional[List[float]] = None,
    on_embedding_computed: Optional[EmbeddingWriter] = None,
    text_limit: int = EMBED_TEXT_LIMIT,
) -> EmbeddingScore:
    """Cosine fit score between a job and a resume.

    The resume embedding is computed once, stored on the record and handed
    to ``on_embedding_computed`` so the caller can persist it. A failed
    write is logged and the record is left without an embedding, so the next
    match computes and writes it again.
    """
    cached = resume.has_embedding
    vector, model = resume.embedding, resume.embedding_model
    if not cached:
        try:
            vector = await embedder.embed(resume.text[:text_limit])
        except Exception as e:
            raise MatchingError(
                f"Could not embed resume text: {e}", resume_id=resume.resume_id, cause=e
            ) from e
        model = embedder.embedding_model
        resume.set_embedding(vector, model)
        if on_embedding_computed is not None:
            try:
                await on_embedding_computed(resume)
            except Exception as e:
                logger.warning(f"Could not cache embedding for resume {resume.resume_id}: {e}")
                resume.clear_embedding()

    if job_embedding is None:
        job_embedding = await embed_job(job_text, embedder, text_limit)

    similarity = cosine_similarity(job_embedding, vector)
    return EmbeddingScore(
        overall_score=similarity_to_score(similarity),
        similarity=similarity,
        embedding_used=model,
        embedding_cached=cached,
    )


def _skills_match(a: str, b: str) -> bool:
    return a in b or b in a


def skill_overlap(resume_skills: Sequence[str], job_skills: Sequence[str]) -> SkillOverlap:
    """Case-insensitive, bidirectional substring overlap."""
    job = [s.strip().lower() for s in job_skills if s and s.strip()]
    resume = [(s.strip(), s.strip().lower()) for s in resume_skills if s and s.strip()]

    matched = [orig for orig, low in resume if any(_skills_match(low, j) for j in job)]
    missing = [j for j in job if not any(_skills_match(low, j) for _, low in resume)]

    score = 0
    if job:
        score = int(round(min(100.0, len(matched) / len(job) * 100)))
    return SkillOverlap(matched=matched, missing=missing, skills_match_score=score)


def candidate_highlights(overlap: SkillOverlap, overall_score: int) -> Tuple[List[str], List[str]]:
    strengths, concerns = [], []

    if overlap.matched:
        strengths.append(f"Strong skills in {', '.join(overlap.matched[:3])}")
    if overlap.skills_match_score > 70:
        strengths.append("Good skill match for the role")
    if overall_score > 80:
        strengths.append("Overall strong candidate profile")

    if overlap.missing:
        concerns.append(f"Limited experience in {', '.join(overlap.missing[:2])}")
    if overlap.skills_match_score < 50:
        concerns.append("Skill gap for required technologies")
    if overall_score < 70:
        concerns.append("May need additional evaluation")

    return strengths or ["Candidate profile available"], concerns or ["No major concerns identified"]
