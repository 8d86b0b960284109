import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeAI, resume_text
from resume_pipeline.middleware.error_handlers import register_exception_handlers
from resume_pipeline.models.schemas import ExistingJob, MatchResult, NewJob
from resume_pipeline.models.settings import PipelineSettings, ProcessingSettings, get_settings
from resume_pipeline.routers import jobs, resumes
from resume_pipeline.routers.dependencies import get_orchestrator, get_store, parse_job_target
from resume_pipeline.services.orchestrator import BatchOrchestrator
from resume_pipeline.utils.exceptions import ValidationError

HEADERS = {"X-Recruiter-Id": "recruiter-1"}
NEW_JOB = {"job_mode": "new", "title": "Backend Engineer", "description": "Build APIs"}


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def test_app(upload_dir, fake_store):
    app = FastAPI()
    app.include_router(resumes.router, prefix="/resumes")
    app.include_router(jobs.router, prefix="/jobs")
    register_exception_handlers(app)

    settings = PipelineSettings(processing=ProcessingSettings(group_delay=0, upload_dir=str(upload_dir)))
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: fake_store
    app.dependency_overrides[get_orchestrator] = lambda: BatchOrchestrator(fake_store, FakeAI(), settings)
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


def spooled_files(upload_dir):
    if not upload_dir.exists():
        return []
    return [os.path.join(root, f) for root, _, files in os.walk(upload_dir) for f in files]


class TestResumesRouter:
    """Test cases for the resume upload endpoints"""

    def test_bulk_upload_success(self, client, upload_dir):
        files = [("files", (f"cv{i}.txt", resume_text(i), "text/plain")) for i in range(3)]

        response = client.post("/resumes/bulk-upload", files=files, data=NEW_JOB, headers=HEADERS)

        assert response.status_code == 201
        data = response.json()
        assert data["summary"] == {"total": 3, "successful": 3, "failed": 0, "validation_failed": 0}
        assert data["message"] == "Batch upload completed: 3 successful, 0 failed"
        assert {s["original_file_name"] for s in data["successful"]} == {"cv0.txt", "cv1.txt", "cv2.txt"}
        assert all(s["file_name"].endswith(".txt") and s["file_name"] != s["original_file_name"]
                   for s in data["successful"])
        assert len(data["match_results"]) == 3
        assert spooled_files(upload_dir) == []

    def test_partial_failure_still_created(self, client):
        files = [
            ("files", ("cv0.txt", resume_text(0), "text/plain")),
            ("files", ("cv1.txt", resume_text(1), "text/plain")),
            ("files", ("cv2.txt", resume_text(2), "text/plain")),
            ("files", ("scan.pdf", b"not actually a pdf", "application/pdf")),
        ]

        response = client.post("/resumes/bulk-upload", files=files, data=NEW_JOB, headers=HEADERS)

        assert response.status_code == 201
        failed = response.json()["failed"]
        assert failed == [{
            "file_name": "scan.pdf",
            "error": "File appears corrupted or has invalid format",
            "stage": "validation",
            "confidence": "medium",
        }]

    def test_too_many_invalid_returns_400(self, client, upload_dir):
        files = [("files", (f"bad{i}.pdf", b"not actually a pdf", "application/pdf")) for i in range(2)]

        response = client.post("/resumes/bulk-upload", files=files, data=NEW_JOB, headers=HEADERS)

        assert response.status_code == 400
        data = response.json()
        assert data["state"] == "aborted_too_invalid"
        assert data["message"] == "Too many files failed validation. Please fix issues and retry."
        assert spooled_files(upload_dir) == []

    def test_existing_job_not_found(self, client, upload_dir):
        files = [("files", ("cv0.txt", resume_text(0), "text/plain"))]

        response = client.post(
            "/resumes/bulk-upload", files=files, data={"job_mode": "existing", "job_id": "missing"}, headers=HEADERS
        )

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "JOB_NOT_FOUND"
        assert spooled_files(upload_dir) == []

    def test_new_job_missing_description(self, client):
        files = [("files", ("cv0.txt", resume_text(0), "text/plain"))]

        response = client.post(
            "/resumes/bulk-upload", files=files, data={"job_mode": "new", "title": "Dev"}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Job title and description are required for new job"

    def test_invalid_job_mode(self, client):
        files = [("files", ("cv0.txt", resume_text(0), "text/plain"))]

        response = client.post("/resumes/bulk-upload", files=files, data={"job_mode": "sideways"}, headers=HEADERS)

        assert response.status_code == 400

    def test_existing_job_requires_job_id(self, client):
        files = [("files", ("cv0.txt", resume_text(0), "text/plain"))]

        response = client.post("/resumes/bulk-upload", files=files, data={"job_mode": "existing"}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["message"] == "job_id is required when job_mode is 'existing'"

    def test_missing_recruiter_header(self, client):
        files = [("files", ("cv0.txt", resume_text(0), "text/plain"))]
        response = client.post("/resumes/bulk-upload", files=files, data=NEW_JOB)
        assert response.status_code == 422

    def test_single_upload_into_existing_job(self, client, owner_job):
        response = client.post(
            "/resumes/upload",
            files={"file": ("cv.txt", resume_text(0), "text/plain")},
            data={"job_mode": "existing", "job_id": owner_job.job_id},
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["job_id"] == owner_job.job_id
        assert data["match_results"][0]["skills_match_score"] == 50

    def test_single_upload_failure_returns_400(self, client):
        response = client.post(
            "/resumes/upload",
            files={"file": ("cv.exe", b"MZ binary payload here", "application/octet-stream")},
            data=NEW_JOB,
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["summary"]["successful"] == 0


class TestParseJobTarget:

    def test_new_job(self):
        target = parse_job_target(" NEW ", title="Dev", description="Build", job_id="ignored")
        assert isinstance(target, NewJob)
        assert (target.title, target.description) == ("Dev", "Build")

    def test_existing_job(self):
        target = parse_job_target("existing", job_id=" job-7 ")
        assert isinstance(target, ExistingJob)
        assert target.job_id == "job-7"

    @pytest.mark.parametrize("mode", ["sideways", "", None])
    def test_unknown_mode(self, mode):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_target(mode)
        assert exc_info.value.details["field"] == "job_mode"

    def test_blank_job_id(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_target("existing", job_id="   ")
        assert exc_info.value.details["field"] == "job_id"


class TestJobsRouter:

    def test_list_matches_sorted(self, client, fake_store, owner_job):
        for resume_id, score in [("a", 40), ("b", 95), ("c", 70)]:
            fake_store.matches[(owner_job.job_id, resume_id)] = MatchResult(
                job_id=owner_job.job_id, resume_id=resume_id, owner_id=owner_job.owner_id,
                overall_score=score, skills_match_score=0,
            )

        response = client.get(f"/jobs/{owner_job.job_id}/matches", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [m["overall_score"] for m in data["matches"]] == [95, 70, 40]

    def test_list_matches_unknown_job(self, client):
        response = client.get("/jobs/unknown/matches", headers=HEADERS)
        assert response.status_code == 404


def test_application_health_endpoint():
    from resume_pipeline.main import app

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers
