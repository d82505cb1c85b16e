"""
Shared Utility Functions
"""
from app.shared.utils.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    ActiveJobExistsError,
    StagePreconditionError,
    ExternalServiceError,
)
from app.shared.utils.text_utils import clean_text, has_letters, normalize_linkedin_url
from app.shared.utils.time_utils import utcnow, start_of_utc_day, parse_flexible_timestamp

__all__ = [
    "ConcurrentModificationError",
    "EntityNotFoundError",
    "ActiveJobExistsError",
    "StagePreconditionError",
    "ExternalServiceError",
    # Text utilities
    "clean_text",
    "has_letters",
    "normalize_linkedin_url",
    # Time utilities
    "utcnow",
    "start_of_utc_day",
    "parse_flexible_timestamp",
]
