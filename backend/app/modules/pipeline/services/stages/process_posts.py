"""
Process Posts Stage (processing -> vectorizing | completed)

Ingests one window of the scraped dataset into posts. Per item, in order:
profile lookup, identity-drift check, urn presence and dedup, timestamp
parse, freshness, non-empty cleaned text. Anything failing a check is
counted as skipped; nothing here is an error.

Re-running a window is safe: urns already stored are skipped, never
overwritten.
"""
from collections import Counter
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app.modules.pipeline.constants import FRESHNESS_WINDOW, JobStatus, SkipReason, StageName
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.linkedin_profile_repository import LinkedInProfileRepository
from app.modules.pipeline.repositories.post_repository import PostRepository
from app.modules.pipeline.schemas.scraped_item import ScrapedItem
from app.modules.pipeline.services.apify_scraper_service import apify_scraper_service
from app.modules.pipeline.services.stages.base import PipelineStage
from app.shared.utils.exceptions import ExternalServiceError
from app.shared.utils.text_utils import clean_text, has_letters


class ProcessPostsStage(PipelineStage):
    name = StageName.PROCESS_POSTS
    expected_status = JobStatus.PROCESSING

    def __init__(self, db, apify=None):
        super().__init__(db)
        self.catalog = CatalogRepository(db)
        self.profiles = LinkedInProfileRepository(db)
        self.posts = PostRepository(db)
        self.apify = apify or apify_scraper_service

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        offset = job["current_batch_offset"]
        dataset_id = job.get("apify_dataset_id")
        if not dataset_id:
            if not job.get("apify_run_id"):
                raise ExternalServiceError("apify", "processing job has no run or dataset id")
            dataset_id = (await self.apify.get_run(job["apify_run_id"])).get("dataset_id")
            if not dataset_id:
                raise ExternalServiceError("apify", f"run {job['apify_run_id']} has no dataset")

        raw_items = await self.apify.list_items(dataset_id, offset, batch_size)
        now = self.now()
        cutoff = now - FRESHNESS_WINDOW

        reasons: Counter = Counter()
        inserted = 0

        async with self.transaction():
            parsed = self._parse_items(raw_items, reasons)
            profiles = await self.profiles.get_by_urls(
                list({item.profile_url() for _, item in parsed if item.profile_url()})
            )
            existing_urns = await self.posts.get_existing_urns(item.urn for _, item in parsed)

            for index, item in parsed:
                reason = await self._ingest(
                    item=item,
                    dataset_index=offset + index,
                    job=job,
                    dataset_id=dataset_id,
                    profiles=profiles,
                    existing_urns=existing_urns,
                    cutoff=cutoff,
                    now=now,
                )
                if reason is None:
                    inserted += 1
                else:
                    reasons[reason.value] += 1

            new_offset = offset + batch_size
            if new_offset >= job["total_items"]:
                visible_ids = await self.catalog.get_visible_industry_ids()
                remaining = await self.posts.count_fresh_posts(cutoff, visible_ids)
                if remaining == 0:
                    updated = await self.advance(
                        job, status=JobStatus.COMPLETED, current_batch_offset=0, total_items=0
                    )
                else:
                    updated = await self.advance(
                        job, status=JobStatus.VECTORIZING, current_batch_offset=0, total_items=remaining
                    )
            else:
                updated = await self.advance(job, current_batch_offset=new_offset)

        skipped = sum(reasons.values())
        self.logger.info(
            f"Batch at {offset}: fetched {len(raw_items)}, inserted {inserted}, skipped {skipped} {dict(reasons)}"
        )
        return {
            "status": updated["status"],
            "fetched": len(raw_items),
            "inserted": inserted,
            "skipped": skipped,
            "skip_reasons": dict(reasons),
            "offset": new_offset,
            "total_items": updated["total_items"],
        }

    def _parse_items(self, raw_items: List[Any], reasons: Counter) -> List[tuple]:
        parsed = []
        for index, raw in enumerate(raw_items):
            try:
                parsed.append((index, ScrapedItem.model_validate(raw)))
            except ValidationError as e:
                self.logger.warning(f"Invalid dataset item at {index}: {e.error_count()} errors")
                reasons[SkipReason.INVALID_ITEM.value] += 1
        return parsed

    async def _ingest(
        self,
        item: ScrapedItem,
        dataset_index: int,
        job: Dict[str, Any],
        dataset_id: str,
        profiles: Dict[str, Dict[str, Any]],
        existing_urns: set,
        cutoff,
        now,
    ) -> Optional[SkipReason]:
        """Insert one item. Returns the skip reason, or None when inserted."""
        profile_url = item.profile_url()
        if not profile_url:
            return SkipReason.NO_PROFILE_URL

        profile = profiles.get(profile_url)
        if not profile:
            self.logger.debug(f"Profile not found for {profile_url}")
            return SkipReason.PROFILE_NOT_FOUND

        occupation = item.occupation()
        valid_occupation = has_letters(occupation)
        stored_occupation = clean_text(profile.get("occupation"))
        if stored_occupation and valid_occupation and stored_occupation != occupation:
            self.logger.warning(
                f"Occupation mismatch for {profile_url}: '{stored_occupation}' != '{occupation}', revoking approval"
            )
            await self.profiles.flag_unverified(
                profile["id"],
                {
                    "stored_value": profile.get("occupation"),
                    "stored_value_normalized": stored_occupation,
                    "scraped_value": occupation,
                    "pipeline_job_id": job["id"],
                    "apify_run_id": job.get("apify_run_id"),
                    "dataset_id": dataset_id,
                    "dataset_index": dataset_index,
                    "urn": item.urn,
                },
                now,
            )
            profile["allowed"] = False
            return SkipReason.OCCUPATION_MISMATCH

        if not item.urn:
            return SkipReason.MISSING_URN
        if item.urn in existing_urns:
            return SkipReason.DUPLICATE_URN

        posted_at = item.posted_at()
        if posted_at is None:
            return SkipReason.UNPARSEABLE_TIMESTAMP
        if posted_at < cutoff:
            return SkipReason.STALE

        text = clean_text(item.text)
        if not text:
            return SkipReason.EMPTY_TEXT

        was_inserted = await self.posts.insert_post(
            urn=item.urn,
            text=text,
            posted_at=posted_at,
            industry_ids=list(profile.get("industry_ids") or []),
            name=item.display_name() or None,
            occupation=occupation if valid_occupation else None,
            source_url=item.url or None,
            author_url=item.input_url or profile_url,
        )
        existing_urns.add(item.urn)
        if not was_inserted:
            return SkipReason.DUPLICATE_URN
        return None
