from .pipeline_schemas import (
    StageRequest,
    StageResponse,
    AdvanceResponse,
    JobResponse,
    JobListResponse,
)
from .scraped_item import ScrapedItem, ScrapedPerson

__all__ = [
    "StageRequest",
    "StageResponse",
    "AdvanceResponse",
    "JobResponse",
    "JobListResponse",
    "ScrapedItem",
    "ScrapedPerson",
]
