"""
Logging Configuration with Correlation ID and Pipeline Job Support

This module provides:
1. Context variables for the current request's correlation ID and the
   pipeline job being advanced
2. A logging filter that stamps both onto every record
3. setup_logging() to install the formatter on the root and uvicorn loggers
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Optional, Union

# Works with async code: each task sees its own values
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
pipeline_job_id_var: ContextVar[Optional[int]] = ContextVar("pipeline_job_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Get the current request's correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None, prefix: str = "req") -> str:
    """
    Set the correlation ID for the current request or continuation step.
    If not provided, generates a new one ("req-1a2b3c4d", "chain-...").

    Returns the correlation ID that was set.
    """
    if correlation_id is None:
        correlation_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
    correlation_id_var.set(correlation_id)
    return correlation_id


def bind_pipeline_job(job_id: Optional[Union[int, str]]) -> None:
    """Attach a pipeline job id to every log line emitted from this context."""
    pipeline_job_id_var.set(int(job_id) if job_id is not None else None)


def get_pipeline_job_id() -> Optional[int]:
    return pipeline_job_id_var.get()


class CorrelationIdFilter(logging.Filter):
    """
    Adds correlation_id and pipeline_job to log records so the formatter
    can print them.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-request"
        job_id = get_pipeline_job_id()
        record.pipeline_job = f"job={job_id}" if job_id is not None else "job=-"
        return True


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure the logging system.

    Format:
        timestamp | [correlation id] | [job=<id>] | logger | level | message
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_format = "%(asctime)s | [%(correlation_id)s] | [%(pipeline_job)s] | %(name)s | %(levelname)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    formatter = logging.Formatter(log_format, datefmt=date_format)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False

    # httpx logs every request URL at INFO, which leaks bot tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)
