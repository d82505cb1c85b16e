"""
Failure Policy
Shared retry counting and terminal-failure handling for pipeline jobs.

retry_count+1 on every failed stage attempt. Reaching max_retries marks the
job failed and alerts admins; otherwise the job keeps its status (or is reset
to an earlier one) so the next trigger retries the stage.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.constants import JobStatus
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.pipeline_job_repository import PipelineJobRepository
from app.modules.pipeline.services.admin_notifier import AdminNotifier, admin_notifier, format_failure_alert

logger = logging.getLogger("pipeline.failure")

# Stored error text is capped so a huge upstream body cannot bloat the row
MAX_ERROR_MESSAGE_LENGTH = 2000


def stage_error(stage, detail: str) -> str:
    """Error text recorded on the job for a stage attempt."""
    return f"{stage.value}: {detail}"


class FailurePolicy:
    def __init__(self, db: AsyncSession, notifier: Optional[AdminNotifier] = None):
        self.db = db
        self.jobs = PipelineJobRepository(db)
        self.catalog = CatalogRepository(db)
        self.notifier = notifier or admin_notifier

    async def apply(
        self,
        job: Dict[str, Any],
        error: str,
        reset_to: Optional[JobStatus] = None
    ) -> Dict[str, Any]:
        """
        Record a failed attempt on job and commit.

        Args:
            job: the job as read before the attempt (its version is the CAS token)
            error: human-readable failure reason
            reset_to: status to fall back to when retries remain
                      (scrape-poll resets to idle so the scrape is relaunched)

        Returns:
            The updated job dict.

        Raises:
            ConcurrentModificationError: another invocation changed the job first.
        """
        retry_count = (job.get("retry_count") or 0) + 1
        max_retries = job.get("max_retries") or 0
        error = (error or "unknown error")[:MAX_ERROR_MESSAGE_LENGTH]

        values: Dict[str, Any] = {"retry_count": retry_count, "error_message": error}
        exhausted = retry_count >= max_retries

        if exhausted:
            values["status"] = JobStatus.FAILED
        elif reset_to is not None:
            values.update(
                status=reset_to,
                current_batch_offset=0,
                total_items=0,
                apify_run_id=None,
                apify_dataset_id=None,
            )

        try:
            updated = await self.jobs.update_job(job["id"], job["version"], **values)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if exhausted:
            logger.error(f"Job {job['id']} failed after {retry_count}/{max_retries} retries: {error}")
            await self._alert(updated, job["status"], error)
        else:
            logger.warning(f"Job {job['id']} attempt failed ({retry_count}/{max_retries}): {error}")

        return updated

    async def _alert(self, job: Dict[str, Any], failed_status: str, error: str) -> None:
        chat_ids = job.get("admin_chat_ids") or []
        if not chat_ids:
            # Job failed before scrape-launch snapshotted the admin list
            try:
                chat_ids = await self.catalog.get_admin_chat_ids()
            except Exception as e:
                logger.error(f"Could not load admin chat ids for failure alert: {e}")
                return

        text = format_failure_alert(failed_status, error, job["retry_count"], job["max_retries"])
        await self.notifier.notify(chat_ids, text)
