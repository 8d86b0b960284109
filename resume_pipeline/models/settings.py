"""
Pipeline Settings loaded from the environment
"""
import os
import tempfile
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from resume_pipeline.utils.exceptions import ConfigurationError

load_dotenv()

MiB = 1024 * 1024


class LLMSettings(BaseModel):
    """Completion model configuration"""
    model_name: str = Field(default="llama3.1", description="Ollama completion model")
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Profile extraction temperature")
    skills_temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Skills fallback temperature")
    timeout: int = Field(default=120, ge=1, le=600, description="Request timeout in seconds")


class EmbeddingSettings(BaseModel):
    """Embedding model configuration"""
    model_name: str = Field(default="nomic-embed-text", description="Ollama embedding model")
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    timeout: int = Field(default=60, ge=1, le=600, description="Request timeout in seconds")
    max_input_chars: int = Field(default=8000, ge=1, description="Resume text truncation before embedding")


class ValidationSettings(BaseModel):
    """Upload validation limits"""
    min_file_size: int = Field(default=10, ge=0)
    max_file_size: int = Field(default=50 * MiB, ge=1)
    supported_extensions: List[str] = Field(
        default_factory=lambda: ["pdf", "docx", "xlsx", "doc", "xls", "txt", "csv"]
    )
    max_invalid_ratio: float = Field(default=0.3, ge=0.0, le=1.0)

    @field_validator('supported_extensions')
    @classmethod
    def normalize_extensions(cls, v):
        return [ext.lower().lstrip(".") for ext in v if ext.strip()]

    @field_validator('max_file_size')
    @classmethod
    def validate_size_bounds(cls, v, info):
        minimum = info.data.get('min_file_size', 0)
        if v <= minimum:
            raise ValueError('max_file_size must be greater than min_file_size')
        return v


class ProcessingSettings(BaseModel):
    """Batch processing behaviour"""
    max_files_per_batch: int = Field(default=10, ge=1)
    group_size: int = Field(default=3, ge=1, description="Files processed concurrently per group")
    group_delay: float = Field(default=0.1, ge=0.0, description="Pause between groups in seconds")
    profile_text_limit: int = Field(default=4000, ge=1, description="Characters sent for profile extraction")
    retry_attempts: int = Field(default=2, ge=1, description="Attempts per model call")
    retry_backoff: float = Field(default=0.5, ge=0.0)
    upload_dir: str = Field(default_factory=lambda: os.path.join(tempfile.gettempdir(), "resume_uploads"))


class DatabaseSettings(BaseModel):
    mongo_details: str = "mongodb://localhost:27017"
    db_name: str = "resume_pipeline"


class PipelineSettings(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


def _env(key: str, default=None):
    value = os.getenv(key)
    return default if value in (None, "") else value


def load_settings() -> PipelineSettings:
    """Build settings from environment variables, falling back to defaults."""
    ollama = _env("OLLAMA_BASE_URL", "http://localhost:11434")
    raw = {
        "llm": {
            "model_name": _env("LLM_MODEL", "llama3.1"),
            "base_url": ollama,
            "temperature": _env("LLM_TEMPERATURE", 0.1),
            "timeout": _env("LLM_TIMEOUT", 120),
        },
        "embedding": {
            "model_name": _env("EMBED_MODEL", "nomic-embed-text"),
            "base_url": ollama,
            "timeout": _env("EMBED_TIMEOUT", 60),
            "max_input_chars": _env("EMBED_MAX_CHARS", 8000),
        },
        "validation": {
            "min_file_size": _env("MIN_FILE_SIZE", 10),
            "max_file_size": _env("MAX_FILE_SIZE", 50 * MiB),
            "max_invalid_ratio": _env("MAX_INVALID_RATIO", 0.3),
        },
        "processing": {
            "max_files_per_batch": _env("MAX_FILES_PER_BATCH", 10),
            "group_size": _env("GROUP_SIZE", 3),
            "group_delay": _env("GROUP_DELAY", 0.1),
            "profile_text_limit": _env("PROFILE_TEXT_LIMIT", 4000),
            "retry_attempts": _env("RETRY_ATTEMPTS", 2),
            "retry_backoff": _env("RETRY_BACKOFF", 0.5),
        },
        "database": {
            "mongo_details": _env("MONGO_DETAILS", "mongodb://localhost:27017"),
            "db_name": _env("DB_NAME", "resume_pipeline"),
        },
    }
    upload_dir = _env("UPLOAD_DIR")
    if upload_dir:
        raw["processing"]["upload_dir"] = upload_dir

    try:
        return PipelineSettings(**raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}", cause=e) from e


@lru_cache(maxsize=1)
def get_settings() -> PipelineSettings:
    return load_settings()
