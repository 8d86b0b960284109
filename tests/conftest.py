import asyncio
import json
import os

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from resume_pipeline.models.schemas import JobPosting, UploadedFile
from resume_pipeline.models.settings import PipelineSettings, ProcessingSettings
from resume_pipeline.utils.exceptions import DatabaseError, ExternalServiceError

PROFILE_REPLY = json.dumps({
    "name": "Jane Doe",
    "email": "jane@example.com",
    "phone": "+1 555 0100",
    "experience": "6 years",
    "skills": ["Python", "React", "Docker"],
    "summary": "Backend engineer.",
})

MINIMAL_PDF = (
    b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\n"
    b"trailer << /Root 1 0 R >>\n%%EOF\n"
)


class FakeAI:
    """Completion and embedding stand-in that records calls and concurrency."""

    embedding_model = "fake-embed"

    def __init__(self, profile_reply=PROFILE_REPLY, fail_embed_marker=None, delay=0.01):
        self.profile_reply = profile_reply
        self.fail_embed_marker = fail_embed_marker
        self.delay = delay
        self.prompts = []
        self.embed_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, prompt, temperature=None):
        self.prompts.append((prompt, temperature))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return self.profile_reply

    async def embed(self, text):
        self.embed_calls.append(text)
        if self.fail_embed_marker and self.fail_embed_marker in text:
            raise ExternalServiceError("embedding service unavailable", service_name="ollama")
        if text.startswith("Job Title"):
            return [1.0, 0.0, 0.0]
        return [0.8, 0.6, 0.0]


class FakeStore:
    """In-memory persistence with the same coroutine surface as MongoStore."""

    def __init__(self, jobs=(), fail_resume_for=()):
        self.jobs = {j.job_id: j for j in jobs}
        self.resumes = {}
        self.matches = {}
        self.embedding_writes = []
        self.fail_resume_for = set(fail_resume_for)

    async def create_job(self, job):
        self.jobs[job.job_id] = job
        return job

    async def find_job(self, job_id, owner_id):
        job = self.jobs.get(job_id)
        if job is None or job.owner_id != owner_id:
            return None
        return job

    async def create_resume(self, resume):
        if resume.original_file_name in self.fail_resume_for:
            raise DatabaseError("insert failed", operation="create_resume", collection="resumes")
        self.resumes[resume.resume_id] = resume
        return resume

    async def save_resume_embedding(self, resume):
        self.embedding_writes.append(resume.resume_id)

    async def upsert_match_result(self, result):
        self.matches[(result.job_id, result.resume_id)] = result

    async def list_match_results(self, job_id, owner_id):
        found = [m for (j, _), m in self.matches.items() if j == job_id and m.owner_id == owner_id]
        return sorted(found, key=lambda m: m.overall_score, reverse=True)


def write_upload(directory, name, content, content_type="text/plain"):
    path = os.path.join(str(directory), f"stored-{name}")
    with open(path, "wb") as fh:
        fh.write(content)
    return UploadedFile(
        path=path,
        original_name=name,
        stored_name=os.path.basename(path),
        size=len(content),
        content_type=content_type,
    )


def resume_text(i):
    return f"Candidate {i}\nPython developer with React and Docker experience.".encode()


@pytest.fixture
def settings():
    return PipelineSettings(processing=ProcessingSettings(group_delay=0))


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def owner_job():
    return JobPosting(
        job_id="job-1",
        owner_id="recruiter-1",
        title="Backend Engineer",
        description="Build APIs",
        skills=["Python", "Kubernetes"],
    )


@pytest.fixture
def fake_store(owner_job):
    return FakeStore(jobs=[owner_job])
