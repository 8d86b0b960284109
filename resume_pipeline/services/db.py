from typing import List, Optional

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from resume_pipeline.models.schemas import JobPosting, MatchResult, ResumeRecord, utcnow
from resume_pipeline.models.settings import DatabaseSettings, get_settings
from resume_pipeline.utils.exceptions import DatabaseError, ExceptionContext
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

NO_ID = {"_id": 0}


def create_database(settings: DatabaseSettings = None):
    settings = settings or get_settings().database
    logger.info(f"Initializing MongoDB connection to database: {settings.db_name}")
    client = motor.motor_asyncio.AsyncIOMotorClient(settings.mongo_details)
    return client[settings.db_name]


class MongoStore:
    """Persistence for jobs, resumes and match results."""

    def __init__(self, db):
        self.db = db
        self.jobs = db["jobs"]
        self.resumes = db["resumes"]
        self.match_results = db["match_results"]

    async def init_indexes(self):
        logger.info("Starting database index initialization")
        indexes = [
            (self.jobs, [("job_id", ASCENDING)], True),
            (self.jobs, [("owner_id", ASCENDING)], False),
            (self.resumes, [("resume_id", ASCENDING)], True),
            (self.resumes, [("owner_id", ASCENDING)], False),
            (self.match_results, [("job_id", ASCENDING), ("resume_id", ASCENDING)], True),
            (self.match_results, [("job_id", ASCENDING), ("overall_score", DESCENDING)], False),
        ]
        for coll, keys, unique in indexes:
            try:
                await coll.create_index(keys, unique=unique)
                logger.debug(f"Created index on {coll.name}.{[k for k, _ in keys]}")
            except PyMongoError as e:
                if "already exists" in str(e).lower():
                    logger.debug(f"Index on {coll.name}.{[k for k, _ in keys]} already exists")
                else:
                    logger.warning(f"Could not create index on {coll.name}.{[k for k, _ in keys]}: {e}")
        logger.info("Database index initialization completed")

    async def create_job(self, job: JobPosting) -> JobPosting:
        with ExceptionContext("create_job", logger, wrap_as=DatabaseError, job_id=job.job_id):
            await self.jobs.insert_one(job.model_dump())
        logger.info(f"Created job {job.job_id} for owner {job.owner_id}")
        return job

    async def find_job(self, job_id: str, owner_id: str) -> Optional[JobPosting]:
        with ExceptionContext("find_job", logger, wrap_as=DatabaseError, job_id=job_id):
            doc = await self.jobs.find_one({"job_id": job_id, "owner_id": owner_id}, NO_ID)
        return JobPosting(**doc) if doc else None

    async def create_resume(self, resume: ResumeRecord) -> ResumeRecord:
        with ExceptionContext("create_resume", logger, wrap_as=DatabaseError, resume_id=resume.resume_id):
            await self.resumes.insert_one(resume.model_dump())
        return resume

    async def save_resume_embedding(self, resume: ResumeRecord) -> None:
        with ExceptionContext("save_resume_embedding", logger, wrap_as=DatabaseError, resume_id=resume.resume_id):
            await self.resumes.update_one(
                {"resume_id": resume.resume_id},
                {"$set": {
                    "embedding": resume.embedding,
                    "embedding_model": resume.embedding_model,
                    "embedding_date": resume.embedding_date,
                }},
            )

    async def upsert_match_result(self, result: MatchResult) -> None:
        """One document per (job, resume); re-running a match overwrites it."""
        doc = result.model_dump()
        key = {"job_id": doc.pop("job_id"), "resume_id": doc.pop("resume_id")}
        with ExceptionContext("upsert_match_result", logger, wrap_as=DatabaseError, **key):
            await self.match_results.update_one(
                key,
                {"$set": doc, "$setOnInsert": {"created_at": utcnow()}},
                upsert=True,
            )

    async def list_match_results(self, job_id: str, owner_id: str) -> List[MatchResult]:
        with ExceptionContext("list_match_results", logger, wrap_as=DatabaseError, job_id=job_id):
            cursor = self.match_results.find({"job_id": job_id, "owner_id": owner_id}, NO_ID)
            docs = await cursor.sort("overall_score", DESCENDING).to_list(length=None)
        return [MatchResult(**d) for d in docs]
