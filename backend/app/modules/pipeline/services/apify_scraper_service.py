"""
Apify Scraper Service
Launches the LinkedIn post scraper actor and reads its run status and dataset.

The scrape is started, never awaited: the run can take far longer than a
single request, so scrape-poll checks back on later triggers.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from apify_client import ApifyClientAsync

from app.shared.core.config import settings
from app.shared.core.constants import TIMEOUT_APIFY_API
from app.shared.utils.exceptions import ExternalServiceError
from app.modules.pipeline.constants import DEFAULT_LIMIT_PER_SOURCE, DEFAULT_MEMORY_MBYTES

logger = logging.getLogger("apify_scraper")


def build_run_input(urls: List[str], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map the operator config row onto the actor's input schema.
    Optional values the operator left empty are omitted.
    """
    run_input: Dict[str, Any] = {
        "urls": list(urls),
        "limitPerSource": config.get("limit_per_source") or DEFAULT_LIMIT_PER_SOURCE,
        "deepScrape": bool(config.get("deep_scrape")),
        "rawData": bool(config.get("raw_data")),
    }

    optional = {
        "cookie": config.get("cookie_default"),
        "userAgent": config.get("user_agent"),
        "minDelay": config.get("min_delay"),
        "maxDelay": config.get("max_delay"),
        "proxy": config.get("proxy"),
    }
    run_input.update({k: v for k, v in optional.items() if v is not None})
    return run_input


class ApifyScraperService:
    """
    Thin async wrapper over ApifyClientAsync for the scraper actor.
    """

    def __init__(self):
        self.api_token = settings.APIFY_TOKEN
        self.actor_id = settings.APIFY_SCRAPER_ACTOR
        if not self.api_token:
            logger.warning("APIFY_TOKEN is missing in environment variables.")
        self.client = ApifyClientAsync(token=self.api_token)

    def _require_token(self):
        if not self.api_token:
            raise ExternalServiceError("apify", "APIFY_TOKEN not configured")

    async def start_run(self, urls: List[str], config: Dict[str, Any]) -> Dict[str, Optional[str]]:
        """
        Start the actor without waiting for it to finish.

        Returns:
            {"run_id": ..., "dataset_id": ...}
        """
        self._require_token()
        run_input = build_run_input(urls, config)
        memory = config.get("memory_mbytes") or DEFAULT_MEMORY_MBYTES

        logger.info(f"Starting Apify actor {self.actor_id} for {len(urls)} profiles (memory={memory}MB)")
        run = await asyncio.wait_for(
            self.client.actor(self.actor_id).start(run_input=run_input, memory_mbytes=memory),
            timeout=TIMEOUT_APIFY_API
        )
        if not run or not run.get("id"):
            raise ExternalServiceError("apify", "actor start returned no run id")

        logger.info(f"Apify run started: {run['id']}")
        return {"run_id": run["id"], "dataset_id": run.get("defaultDatasetId")}

    async def get_run(self, run_id: str) -> Dict[str, Optional[str]]:
        """
        Returns:
            {"status": "RUNNING" | "SUCCEEDED" | ..., "dataset_id": ...}
        """
        self._require_token()
        run = await asyncio.wait_for(self.client.run(run_id).get(), timeout=TIMEOUT_APIFY_API)
        if not run:
            raise ExternalServiceError("apify", f"run {run_id} not found")
        return {"status": run.get("status"), "dataset_id": run.get("defaultDatasetId")}

    async def get_dataset_size(self, dataset_id: str) -> int:
        """Total number of items in a dataset."""
        self._require_token()
        page = await asyncio.wait_for(
            self.client.dataset(dataset_id).list_items(limit=1),
            timeout=TIMEOUT_APIFY_API
        )
        return int(page.total or 0)

    async def list_items(self, dataset_id: str, offset: int, limit: int) -> List[Dict[str, Any]]:
        """One window of raw dataset items, in dataset order."""
        self._require_token()
        page = await asyncio.wait_for(
            self.client.dataset(dataset_id).list_items(offset=offset, limit=limit),
            timeout=TIMEOUT_APIFY_API
        )
        return list(page.items or [])


# Singleton instance
apify_scraper_service = ApifyScraperService()
