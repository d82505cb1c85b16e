"""
Scrape Poll Stage (scraping -> processing)

Maps the Apify run status onto the job:
- SUCCEEDED: store dataset size as total_items, move to processing
- still running: no-op
- failed/aborted/timed-out: retry policy, resetting to idle so the next
  trigger launches a fresh run
"""
from typing import Any, Dict

from app.modules.pipeline.constants import ApifyRunStatus, JobStatus, StageName
from app.modules.pipeline.services.apify_scraper_service import apify_scraper_service
from app.modules.pipeline.services.failure_policy import FailurePolicy
from app.modules.pipeline.services.stages.base import PipelineStage


class ScrapePollStage(PipelineStage):
    name = StageName.SCRAPE_POLL
    expected_status = JobStatus.SCRAPING

    def __init__(self, db, apify=None, failure_policy=None):
        super().__init__(db)
        self.apify = apify or apify_scraper_service
        self.failure_policy = failure_policy or FailurePolicy(db)

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        run_id = job.get("apify_run_id")
        if not run_id:
            return await self._run_failed(job, "Job in scraping has no Apify run id")

        run = await self.apify.get_run(run_id)
        run_status = run.get("status") or ""

        if ApifyRunStatus.is_in_progress(run_status):
            self.logger.info(f"Run {run_id} still {run_status}")
            return {"run_status": run_status, "status": job["status"]}

        if run_status != ApifyRunStatus.SUCCEEDED.value:
            # Terminal failure statuses and anything unrecognised
            return await self._run_failed(job, f"Apify run {run_id} ended with status {run_status or 'UNKNOWN'}")

        dataset_id = run.get("dataset_id") or job.get("apify_dataset_id")
        if not dataset_id:
            return await self._run_failed(job, f"Apify run {run_id} has no dataset")

        total = await self.apify.get_dataset_size(dataset_id)

        async with self.transaction():
            updated = await self.advance(
                job,
                status=JobStatus.PROCESSING,
                apify_dataset_id=dataset_id,
                current_batch_offset=0,
                total_items=total,
            )

        self.logger.info(f"Run {run_id} succeeded with {total} dataset items")
        return {"run_status": run_status, "status": updated["status"], "total_items": total}

    async def _run_failed(self, job: Dict[str, Any], error: str) -> Dict[str, Any]:
        self.logger.error(error)
        updated = await self.failure_policy.apply(job, error, reset_to=JobStatus.IDLE)
        return {
            "run_status": "failed",
            "status": updated["status"],
            "retry_count": updated["retry_count"],
            "error": error,
        }
