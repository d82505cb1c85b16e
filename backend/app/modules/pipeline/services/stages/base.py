"""
Pipeline Stage Base
Shared plumbing for the six stage handlers.

Every stage:
1. Finds the job in its expected status (none -> steady-state no-op)
2. Checks the requested offset against the job row (the row is authoritative)
3. Does one bounded batch of work
4. Writes the next (status, offset, total) with a version-checked update

TRANSACTION MANAGEMENT:
Stages own the transaction boundary. Repositories only execute SQL.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.constants import JobStatus, StageName
from app.modules.pipeline.repositories.pipeline_job_repository import PipelineJobRepository
from app.shared.core.logging import bind_pipeline_job
from app.shared.utils.time_utils import utcnow


class PipelineStage:
    """
    Base class for stage handlers.

    Subclasses set `name` and `expected_status` and implement execute().
    """
    name: StageName
    expected_status: JobStatus

    def __init__(self, db: AsyncSession):
        self.db = db
        self.jobs = PipelineJobRepository(db)
        self.logger = logging.getLogger(f"pipeline.stage.{self.name.value}")

    def now(self):
        return utcnow()

    @asynccontextmanager
    async def transaction(self):
        """
        Commit on success, roll back and re-raise on any error.

        Usage:
            async with self.transaction():
                await self.posts.insert_post(...)
                await self.advance(job, current_batch_offset=10)
        """
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            self.logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def run(self, batch_offset: int, batch_size: int) -> Dict[str, Any]:
        job = await self.jobs.get_job_in_status(self.expected_status.value)
        if not job:
            self.logger.info(f"No job in status '{self.expected_status.value}', nothing to do")
            return {"ok": True, "stage": self.name.value, "skipped": "no_job"}

        bind_pipeline_job(job["id"])

        if batch_offset != job["current_batch_offset"]:
            # Another invocation already moved this job on
            self.logger.warning(
                f"Stale offset {batch_offset}, job is at {job['current_batch_offset']}; skipping"
            )
            return {
                "ok": True,
                "stage": self.name.value,
                "job_id": job["id"],
                "skipped": "stale_offset",
                "offset": job["current_batch_offset"],
            }

        result = await self.execute(job, batch_size)
        return {"ok": True, "stage": self.name.value, "job_id": job["id"], **result}

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        raise NotImplementedError

    async def advance(self, job: Dict[str, Any], **values: Any) -> Dict[str, Any]:
        """
        Version-checked job update. Must run inside transaction().
        Raises ConcurrentModificationError if the job changed since it was read.
        """
        updated = await self.jobs.update_job(job["id"], job["version"], **values)
        new_status: Optional[str] = updated["status"]
        if new_status != job["status"]:
            self.logger.info(f"Job {job['id']}: {job['status']} -> {new_status}")
        return updated
