"""
Pipeline - Pydantic Schemas
Request and response models for the cron trigger, stage and job endpoints.
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# REQUEST MODELS
# ============================================

class StageRequest(BaseModel):
    """Body the advance controller posts to every stage endpoint"""
    batch_offset: int = Field(default=0, ge=0)
    batch_size: int = Field(default=10, ge=1, le=500)

    model_config = ConfigDict(
        json_schema_extra={"example": {"batch_offset": 0, "batch_size": 10}}
    )


# ============================================
# RESPONSE MODELS
# ============================================

class StageResponse(BaseModel):
    """
    Stage result. Stage-specific counters (inserted, skipped, generated,
    sent...) ride along as extra fields.
    """
    model_config = ConfigDict(extra="allow")

    ok: bool
    stage: Optional[str] = None
    job_id: Optional[int] = None
    status: Optional[str] = None
    skipped: Optional[str] = None


class AdvanceResponse(BaseModel):
    ok: bool
    current_status: Optional[str] = None
    progress: str = "0/0"
    continuing: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    retry_count: Optional[int] = None


class JobResponse(BaseModel):
    id: int
    status: str
    current_batch_offset: int
    total_items: int
    progress: str
    version: int
    apify_run_id: Optional[str] = None
    retry_count: int
    max_retries: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: dict) -> "JobResponse":
        return cls(
            progress=f"{job['current_batch_offset']}/{job['total_items']}",
            **{k: job.get(k) for k in cls.model_fields if k != "progress"}
        )


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int
