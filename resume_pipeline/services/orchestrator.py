"""
Batch resume ingestion as a LangGraph state machine.

    pre_validate -> (abort_invalid | resolve_job) -> (abort_job | process) -> match -> END

Every spooled upload is owned by a ``TempFileJanitor``. Files are released
as soon as their outcome is known and ``run`` releases whatever is left in a
``finally`` block, so aborts and unexpected errors never leak temp files.
"""
from dataclasses import dataclass
from typing import Any, List, Optional, TypedDict, Union

from langgraph.graph import END, StateGraph

from resume_pipeline.helpers.parsing import extract_text_async
from resume_pipeline.helpers.validation import validate_files
from resume_pipeline.models.response import (
    BatchSummary,
    BatchUploadResponse,
    FailedUpload,
    MatchFailure,
    RankedCandidate,
    SuccessfulUpload,
)
from resume_pipeline.models.schemas import (
    ExistingJob,
    FileValidationReport,
    JobPosting,
    MatchResult,
    NewJob,
    ResumeRecord,
    UploadedFile,
)
from resume_pipeline.models.settings import PipelineSettings, get_settings
from resume_pipeline.services.cleanup import TempFileJanitor
from resume_pipeline.services.concurrency import GroupedTaskRunner
from resume_pipeline.services.matching import (
    build_job_text,
    candidate_highlights,
    embed_job,
    score_match,
    skill_overlap,
)
from resume_pipeline.services.profile import extract_profile, extract_skills
from resume_pipeline.utils.exceptions import (
    JobNotFoundError,
    JobResolutionError,
    MatchingError,
    ValidationError,
)
from resume_pipeline.utils.logging_config import PerformanceMonitor, get_logger, log_function_call

logger = get_logger(__name__)

TOO_MANY_INVALID = "Too many files failed validation. Please fix issues and retry."
ALL_FAILED = "All files failed processing"


class BatchState(TypedDict, total=False):
    files: List[UploadedFile]
    target: Union[NewJob, ExistingJob]
    owner_id: str
    janitor: TempFileJanitor
    validation: FileValidationReport
    job: JobPosting
    job_error: JobResolutionError
    resumes: List[ResumeRecord]
    successful: List[SuccessfulUpload]
    failed: List[FailedUpload]
    match_results: List[RankedCandidate]
    match_failures: List[MatchFailure]
    run_state: str


@dataclass
class FileOutcome:
    resume: Optional[ResumeRecord] = None
    failure: Optional[FailedUpload] = None


def ranked_candidate(resume: ResumeRecord, result: MatchResult) -> RankedCandidate:
    profile = result.candidate
    return RankedCandidate(
        id=resume.resume_id,
        name=profile.name or "Name not extracted",
        email=profile.email or "Email not found",
        phone=profile.phone or "Phone not found",
        score=result.overall_score,
        skills_match_score=result.skills_match_score,
        skills=profile.skills,
        experience=profile.experience or "Experience not specified",
        strengths=result.strengths,
        concerns=result.concerns,
        summary=profile.summary or "Professional summary not available",
    )


class BatchOrchestrator:
    def __init__(self, store: Any, ai: Any, settings: PipelineSettings = None):
        self.store = store
        self.ai = ai
        self.settings = settings or get_settings()
        processing = self.settings.processing
        self.runner = GroupedTaskRunner(processing.group_size, processing.group_delay)
        self.graph = self.build_graph()

    def build_graph(self):
        g = StateGraph(BatchState)
        g.add_node("pre_validate", self.node_pre_validate)
        g.add_node("abort_invalid", self.node_abort_invalid)
        g.add_node("resolve_job", self.node_resolve_job)
        g.add_node("abort_job", self.node_abort_job)
        g.add_node("process", self.node_process)
        g.add_node("match", self.node_match)
        g.set_entry_point("pre_validate")
        g.add_conditional_edges(
            "pre_validate", self.route_after_validation,
            {"proceed": "resolve_job", "abort": "abort_invalid"},
        )
        g.add_conditional_edges(
            "resolve_job", self.route_after_job,
            {"proceed": "process", "abort": "abort_job"},
        )
        g.add_edge("process", "match")
        g.add_edge("match", END)
        g.add_edge("abort_invalid", END)
        g.add_edge("abort_job", END)
        return g.compile()

    @log_function_call
    async def run(
        self,
        files: List[UploadedFile],
        target: Union[NewJob, ExistingJob],
        owner_id: str,
        run_dir: Optional[str] = None,
    ) -> BatchUploadResponse:
        janitor = TempFileJanitor(files, run_dir=run_dir)
        try:
            limit = self.settings.processing.max_files_per_batch
            if not files:
                raise ValidationError("No files uploaded", field="files")
            if len(files) > limit:
                raise ValidationError(
                    f"Too many files: {len(files)} uploaded, at most {limit} allowed",
                    field="files", value=len(files),
                )

            with PerformanceMonitor(f"batch run ({len(files)} files)", logger, threshold_ms=30000):
                state = await self.graph.ainvoke({
                    "files": files,
                    "target": target,
                    "owner_id": owner_id,
                    "janitor": janitor,
                })

            if state.get("job_error") is not None:
                raise state["job_error"]
            return self.build_response(state)
        finally:
            janitor.release_all()

    async def process_single(
        self, file: UploadedFile, target: Union[NewJob, ExistingJob], owner_id: str, run_dir: Optional[str] = None
    ) -> BatchUploadResponse:
        return await self.run([file], target, owner_id, run_dir=run_dir)

    # Nodes

    async def node_pre_validate(self, state: BatchState):
        report = await validate_files(state["files"], self.settings.validation)
        return {"validation": report}

    def route_after_validation(self, state: BatchState) -> str:
        return "proceed" if state["validation"].should_proceed else "abort"

    async def node_abort_invalid(self, state: BatchState):
        report = state["validation"]
        logger.warning(
            f"Aborting batch: {report.invalid_count}/{report.total} files failed validation"
        )
        state["janitor"].release_all()
        failed = [
            FailedUpload(
                file_name=r.file_name, error=r.outcome.error or "Invalid file",
                stage="validation", confidence=r.outcome.confidence.value,
            )
            for r in report.invalid
        ]
        return {"failed": failed, "run_state": "aborted_too_invalid"}

    async def node_resolve_job(self, state: BatchState):
        try:
            job = await self.resolve_job(state["target"], state["owner_id"])
        except JobResolutionError as e:
            return {"job_error": e}
        return {"job": job}

    def route_after_job(self, state: BatchState) -> str:
        return "abort" if state.get("job_error") is not None else "proceed"

    async def node_abort_job(self, state: BatchState):
        logger.warning(f"Aborting batch: {state['job_error'].message}")
        state["janitor"].release_all()
        return {"run_state": "aborted_job_error"}

    async def node_process(self, state: BatchState):
        janitor = state["janitor"]
        failed: List[FailedUpload] = []
        valid: List[UploadedFile] = []

        for f, check in zip(state["files"], state["validation"].results):
            if check.outcome.is_valid:
                valid.append(f)
                continue
            failed.append(FailedUpload(
                file_name=f.original_name, error=check.outcome.error or "Invalid file",
                stage="validation", confidence=check.outcome.confidence.value,
            ))
            janitor.release(f)

        job = state["job"]
        outcomes = await self.runner.run(
            valid, lambda f: self.process_file(f, job, state["owner_id"], janitor)
        )

        resumes, successful = [], []
        for f, outcome in zip(valid, outcomes):
            if outcome.failure is not None:
                failed.append(outcome.failure)
                continue
            resume = outcome.resume
            resumes.append(resume)
            successful.append(SuccessfulUpload(
                id=resume.resume_id,
                file_name=resume.file_name,
                original_file_name=resume.original_file_name,
                upload_date=resume.upload_date,
                candidate_profile=resume.profile,
            ))

        logger.info(f"Processed {len(valid)} valid files: {len(resumes)} stored, {len(failed)} failed in total")
        return {"resumes": resumes, "successful": successful, "failed": failed}

    async def node_match(self, state: BatchState):
        job = state["job"]
        resumes = state.get("resumes") or []
        if not resumes:
            return {"match_results": [], "match_failures": [], "run_state": "completed"}

        job_text = build_job_text(job)
        try:
            job_embedding = await embed_job(job_text, self.ai, self.settings.embedding.max_input_chars)
        except MatchingError as e:
            logger.error(f"Job {job.job_id} could not be embedded, no matches computed: {e.message}")
            failures = [
                MatchFailure(resume_id=r.resume_id, file_name=r.original_file_name, error=e.message)
                for r in resumes
            ]
            return {"match_results": [], "match_failures": failures, "run_state": "completed"}

        outcomes = await self.runner.run(
            resumes, lambda r: self.match_resume(r, job, job_text, job_embedding, state["owner_id"])
        )
        ranked = [o for o in outcomes if isinstance(o, RankedCandidate)]
        failures = [o for o in outcomes if isinstance(o, MatchFailure)]
        ranked.sort(key=lambda c: c.score, reverse=True)
        return {"match_results": ranked, "match_failures": failures, "run_state": "completed"}

    # Steps

    async def resolve_job(self, target: Union[NewJob, ExistingJob], owner_id: str) -> JobPosting:
        if isinstance(target, NewJob):
            title, description = target.title.strip(), target.description.strip()
            if not title or not description:
                raise JobResolutionError("Job title and description are required for new job")
            return await self.store.create_job(
                JobPosting(owner_id=owner_id, title=title, description=description)
            )

        job = await self.store.find_job(target.job_id, owner_id)
        if job is None:
            raise JobNotFoundError(job_id=target.job_id)
        return job

    async def process_file(
        self, f: UploadedFile, job: JobPosting, owner_id: str, janitor: TempFileJanitor
    ) -> FileOutcome:
        processing = self.settings.processing
        stage = "parsing"
        try:
            text = await extract_text_async(f.path, f.content_type)
            if not text:
                logger.warning(f"No text extracted from {f.original_name}")

            stage = "extraction"
            profile = await extract_profile(
                text, self.ai,
                text_limit=processing.profile_text_limit,
                temperature=self.settings.llm.temperature,
            )

            stage = "database"
            resume = ResumeRecord(
                owner_id=owner_id,
                file_name=f.stored_name,
                original_file_name=f.original_name,
                file_size=f.size,
                content_type=f.content_type,
                text=text,
                profile=profile,
            )
            await self.store.create_resume(resume)
            logger.info(f"Stored resume {resume.resume_id} from {f.original_name} for job {job.job_id}")
            return FileOutcome(resume=resume)
        except Exception as e:
            logger.warning(
                f"File {f.original_name} failed during {stage}: {e}",
                extra={"file_name": f.original_name, "stage": stage},
            )
            return FileOutcome(failure=FailedUpload(file_name=f.original_name, error=str(e), stage=stage))
        finally:
            janitor.release(f)

    async def match_resume(
        self,
        resume: ResumeRecord,
        job: JobPosting,
        job_text: str,
        job_embedding: List[float],
        owner_id: str,
    ) -> Union[RankedCandidate, MatchFailure]:
        try:
            score = await score_match(
                job_text, resume, self.ai,
                job_embedding=job_embedding,
                on_embedding_computed=self.store.save_resume_embedding,
                text_limit=self.settings.embedding.max_input_chars,
            )

            profile = resume.profile
            if not profile.skills:
                skills = await extract_skills(
                    resume.text, self.ai,
                    text_limit=self.settings.processing.profile_text_limit,
                    temperature=self.settings.llm.skills_temperature,
                )
                profile = profile.model_copy(update={"skills": skills})

            overlap = skill_overlap(profile.skills, job.skills)
            strengths, concerns = candidate_highlights(overlap, score.overall_score)
            result = MatchResult(
                job_id=job.job_id,
                resume_id=resume.resume_id,
                owner_id=owner_id,
                overall_score=score.overall_score,
                skills_match_score=overlap.skills_match_score,
                matched_skills=overlap.matched,
                missing_skills=overlap.missing,
                strengths=strengths,
                concerns=concerns,
                candidate=profile,
                match_method="vector",
                model_version=score.embedding_used,
            )
            await self.store.upsert_match_result(result)
            return ranked_candidate(resume, result)
        except Exception as e:
            logger.warning(f"Matching failed for resume {resume.resume_id}: {e}")
            return MatchFailure(resume_id=resume.resume_id, file_name=resume.original_file_name, error=str(e))

    def build_response(self, state: BatchState) -> BatchUploadResponse:
        report = state["validation"]
        successful = state.get("successful") or []
        failed = state.get("failed") or []
        run_state = state.get("run_state", "completed")

        if run_state == "aborted_too_invalid":
            message = TOO_MANY_INVALID
        elif successful:
            message = f"Batch upload completed: {len(successful)} successful, {len(failed)} failed"
        else:
            message = ALL_FAILED

        job = state.get("job")
        return BatchUploadResponse(
            message=message,
            job_id=job.job_id if job else None,
            state=run_state,
            summary=BatchSummary(
                total=report.total,
                successful=len(successful),
                failed=len(failed),
                validation_failed=report.invalid_count,
            ),
            successful=successful,
            failed=failed,
            match_results=state.get("match_results") or [],
            match_failures=state.get("match_failures") or [],
        )
