"""
Pipeline Job Endpoints
Read-only job status for operators.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.repositories.pipeline_job_repository import PipelineJobRepository
from app.modules.pipeline.schemas.pipeline_schemas import JobListResponse, JobResponse
from app.shared.core.security import verify_cron_secret
from app.shared.db.session import get_db

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.get("/current", response_model=JobResponse)
async def get_current_job(db: AsyncSession = Depends(get_db)):
    """The active (non-terminal) job."""
    job = await PipelineJobRepository(db).get_active_job()
    if not job:
        raise HTTPException(status_code=404, detail="No active pipeline job")
    return JobResponse.from_job(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Most recent jobs first."""
    jobs = await PipelineJobRepository(db).list_jobs(limit=limit)
    return JobListResponse(jobs=[JobResponse.from_job(j) for j in jobs], total=len(jobs))
