from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from resume_pipeline.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    PerformanceMiddleware,
    register_exception_handlers,
)
from resume_pipeline.routers import jobs, resumes
from resume_pipeline.routers.dependencies import get_store
from resume_pipeline.utils.logging_config import configure_for_environment, get_logger

configure_for_environment()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Resume pipeline API starting up...")
    try:
        await get_store().init_indexes()
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - some operations may be slower without indexes")
    logger.info("Resume pipeline API startup completed")

    yield

    logger.info("Resume pipeline API shutting down...")


app = FastAPI(title="Resume Pipeline API", version="1.0.0", lifespan=lifespan)

# Last added runs first: CORS, then request ids and error handling, then timing
app.add_middleware(PerformanceMiddleware, slow_request_threshold=30.0)
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


@app.get("/health")
@app.head("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(resumes.router, prefix="/api/resumes", tags=["resumes"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])

logger.info("Resume pipeline API initialized successfully")
