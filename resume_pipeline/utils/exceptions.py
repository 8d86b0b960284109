"""
Custom Exception Classes for the Resume Pipeline
"""
import functools
import time
from random import uniform
from typing import Dict, Any

from fastapi import HTTPException


class PipelineBaseException(Exception):
    """Base exception for the resume pipeline"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(PipelineBaseException):
    """Raised when request or file input is rejected"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class ExtractionError(PipelineBaseException):
    """Raised when a document cannot be turned into text"""

    def __init__(self, message: str, content_type: str = None, file_name: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if content_type:
            details['content_type'] = content_type
        if file_name:
            details['file_name'] = file_name
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)


class MatchingError(PipelineBaseException):
    """Raised when a resume cannot be scored against a job"""

    def __init__(self, message: str, resume_id: str = None, job_id: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if resume_id:
            details['resume_id'] = resume_id
        if job_id:
            details['job_id'] = job_id
        super().__init__(message, error_code="MATCHING_ERROR", details=details, **kwargs)


class JobResolutionError(PipelineBaseException):
    """Raised when the target job cannot be created or resolved"""

    def __init__(self, message: str, job_id: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if job_id:
            details['job_id'] = job_id
        kwargs.setdefault('error_code', "JOB_RESOLUTION_ERROR")
        super().__init__(message, details=details, **kwargs)


class JobNotFoundError(JobResolutionError):
    """Raised when an existing job is missing or owned by someone else"""

    def __init__(self, message: str = "Job not found", job_id: str = None, **kwargs):
        super().__init__(message, job_id=job_id, error_code="JOB_NOT_FOUND", **kwargs)


class DatabaseError(PipelineBaseException):
    """Raised when database operations fail"""

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if operation:
            details['operation'] = operation
        if collection:
            details['collection'] = collection
        super().__init__(message, error_code="DATABASE_ERROR", details=details, **kwargs)


class ConfigurationError(PipelineBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class ExternalServiceError(PipelineBaseException):
    """Raised when model or embedding service calls fail"""

    def __init__(self, message: str, service_name: str = None, status_code: int = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if service_name:
            details['service_name'] = service_name
        if status_code:
            details['status_code'] = status_code
        super().__init__(message, error_code="EXTERNAL_SERVICE_ERROR", details=details, **kwargs)


# HTTP Exception Mapping
STATUS_CODE_MAPPING = {
    ValidationError: 400,
    ConfigurationError: 500,
    JobResolutionError: 400,
    JobNotFoundError: 404,
    ExtractionError: 422,
    MatchingError: 500,
    DatabaseError: 500,
    ExternalServiceError: 502,
}


def map_to_http_exception(exc: PipelineBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""
    status_code = STATUS_CODE_MAPPING.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


class ExceptionContext:
    """Context manager that logs an operation and wraps foreign errors"""

    def __init__(self, operation: str, logger=None, wrap_as=DatabaseError, **context):
        self.operation = operation
        self.logger = logger
        self.wrap_as = wrap_as
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)
            return False

        if self.logger:
            self.logger.error(
                f"Operation failed: {self.operation} - {exc_val}",
                extra={**self.context, "exception_type": exc_type.__name__}
            )

        # Custom exceptions and cancellation pass through untouched
        if isinstance(exc_val, PipelineBaseException) or not isinstance(exc_val, Exception):
            return False

        raise self.wrap_as(
            f"{self.operation} failed: {exc_val}",
            details=dict(self.context),
            cause=exc_val
        ) from exc_val


def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Decorator to retry operations with exponential backoff and logging"""

    def _delay(attempt: int) -> float:
        return backoff_factor * (2 ** attempt) + uniform(0, backoff_factor)

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if logger:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}"
                        )
                    if attempt == max_attempts - 1:
                        if logger:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise
                    time.sleep(_delay(attempt))

        return wrapper

    return decorator
