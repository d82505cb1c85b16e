"""
Pipeline Job Repository
Database operations for the pipeline_jobs table.

OPTIMISTIC LOCKING: every state write is conditioned on the version the caller
read. A write that matches zero rows raises ConcurrentModificationError.

NOTE: This repository does NOT commit. Stages and the controller own the
transaction boundary.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.pipeline_job import PipelineJob
from app.modules.pipeline.constants import JobStatus
from app.shared.utils.exceptions import ConcurrentModificationError, ActiveJobExistsError


class PipelineJobRepository:
    """Repository for pipeline job state."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_active_job(self) -> Optional[Dict[str, Any]]:
        """The single non-terminal job, if any (newest first as a tiebreak)."""
        query = (
            select(PipelineJob)
            .where(PipelineJob.status.notin_(JobStatus.terminal()))
            .order_by(PipelineJob.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        job = result.scalar_one_or_none()
        return self._to_dict(job) if job else None

    async def get_job_in_status(self, status: str) -> Optional[Dict[str, Any]]:
        """Oldest job in the given status. Stages use this to find their work."""
        query = (
            select(PipelineJob)
            .where(PipelineJob.status == status)
            .order_by(PipelineJob.id.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        job = result.scalar_one_or_none()
        return self._to_dict(job) if job else None

    async def get_job_by_id(self, job_id: int) -> Optional[Dict[str, Any]]:
        query = (
            select(PipelineJob)
            .where(PipelineJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        job = result.scalar_one_or_none()
        return self._to_dict(job) if job else None

    async def list_jobs(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent jobs first."""
        query = select(PipelineJob).order_by(PipelineJob.id.desc()).limit(limit)
        result = await self.db.execute(query)
        return [self._to_dict(job) for job in result.scalars().all()]

    async def has_job_started_since(self, moment: datetime) -> bool:
        """True if any job (terminal or not) was started at or after moment."""
        query = (
            select(func.count())
            .select_from(PipelineJob)
            .where(PipelineJob.started_at >= moment)
        )
        result = await self.db.execute(query)
        return (result.scalar() or 0) > 0

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def create_job(self, max_retries: int, started_at: datetime) -> Dict[str, Any]:
        """
        Create a new idle job.

        Raises:
            ActiveJobExistsError: a non-terminal job already exists. The partial
            unique index backs this check against concurrent creators.
        """
        active = await self.get_active_job()
        if active:
            raise ActiveJobExistsError(active["id"])

        job = PipelineJob(
            status=JobStatus.IDLE.value,
            current_batch_offset=0,
            total_items=0,
            version=1,
            retry_count=0,
            max_retries=max_retries,
            admin_chat_ids=[],
            started_at=started_at,
        )
        self.db.add(job)
        await self.db.flush()
        await self.db.refresh(job)
        return self._to_dict(job)

    async def update_job(self, job_id: int, expected_version: int, **values: Any) -> Dict[str, Any]:
        """
        Compare-and-set update of a job row.

        Bumps version, touches updated_at and stamps completed_at when the
        new status is terminal.

        Raises:
            ConcurrentModificationError: the row's version no longer matches.
        """
        status = values.get("status")
        if isinstance(status, JobStatus):
            values["status"] = status.value
        if status is not None and JobStatus.is_terminal(values["status"]):
            values.setdefault("completed_at", func.now())

        stmt = (
            update(PipelineJob)
            .where(
                PipelineJob.id == job_id,
                PipelineJob.version == expected_version
            )
            .values(
                **values,
                version=PipelineJob.version + 1,
                updated_at=func.now()
            )
            .returning(PipelineJob)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        job = result.scalar_one_or_none()

        if job is None:
            raise ConcurrentModificationError(entity_type="PipelineJob", entity_id=job_id)

        return self._to_dict(job)

    # ============================================
    # HELPERS
    # ============================================

    def _to_dict(self, job: PipelineJob) -> Dict[str, Any]:
        return {
            "id": job.id,
            "status": job.status,
            "current_batch_offset": job.current_batch_offset or 0,
            "total_items": job.total_items or 0,
            "version": job.version,
            "apify_run_id": job.apify_run_id,
            "apify_dataset_id": job.apify_dataset_id,
            "admin_chat_ids": list(job.admin_chat_ids or []),
            "retry_count": job.retry_count or 0,
            "max_retries": job.max_retries,
            "error_message": job.error_message,
            "created_at": job.created_at,
            "started_at": job.started_at,
            "updated_at": job.updated_at,
            "completed_at": job.completed_at,
        }
