"""
Scrape Launch Stage (idle -> scraping)

Starts the Apify scraper for every eligible profile and snapshots the admin
recipients into the job. Missing configuration is a precondition failure:
admins are alerted once and no retry is consumed.
"""
from typing import Any, Dict

from app.modules.pipeline.constants import JobStatus, StageName
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.linkedin_profile_repository import LinkedInProfileRepository
from app.modules.pipeline.services.admin_notifier import admin_notifier, format_precondition_alert
from app.modules.pipeline.services.apify_scraper_service import apify_scraper_service
from app.modules.pipeline.services.failure_policy import stage_error
from app.modules.pipeline.services.stages.base import PipelineStage
from app.shared.utils.exceptions import StagePreconditionError


class ScrapeLaunchStage(PipelineStage):
    name = StageName.SCRAPE_LAUNCH
    expected_status = JobStatus.IDLE

    def __init__(self, db, apify=None, notifier=None):
        super().__init__(db)
        self.catalog = CatalogRepository(db)
        self.profiles = LinkedInProfileRepository(db)
        self.apify = apify or apify_scraper_service
        self.notifier = notifier or admin_notifier

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        config = await self.catalog.get_config()
        if not config:
            await self._blocked(job, "No config row found")

        visible_ids = await self.catalog.get_visible_industry_ids()
        if not visible_ids:
            await self._blocked(job, "No visible industries")

        urls = await self.profiles.get_eligible_urls(visible_ids)
        if not urls:
            await self._blocked(job, "No allowed profiles tagged with a visible industry")

        admin_chat_ids = await self.catalog.get_admin_chat_ids()

        run = await self.apify.start_run(urls, config)

        async with self.transaction():
            updated = await self.advance(
                job,
                status=JobStatus.SCRAPING,
                apify_run_id=run["run_id"],
                apify_dataset_id=run.get("dataset_id"),
                admin_chat_ids=admin_chat_ids,
                current_batch_offset=0,
                total_items=0,
                error_message=None,
            )

        self.logger.info(f"Launched scrape run {run['run_id']} for {len(urls)} profiles")
        return {"status": updated["status"], "run_id": run["run_id"], "profiles": len(urls)}

    async def _blocked(self, job: Dict[str, Any], reason: str) -> None:
        """
        Alert admins and raise StagePreconditionError.
        Repeated triggers hitting the same blocker do not re-alert.
        """
        self.logger.error(f"Scrape launch blocked: {reason}")
        # The controller records the blocker as "<stage>: <reason>"
        if job.get("error_message") != stage_error(self.name, reason):
            chat_ids = await self.catalog.get_admin_chat_ids()
            await self.notifier.notify(chat_ids, format_precondition_alert(self.name.value, reason))
        raise StagePreconditionError(reason)
