"""
Profile Service
Business rules for managing scrape targets.

TRANSACTION MANAGEMENT:
Every public method is one transaction; repositories never commit.
"""
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.linkedin_profile_repository import LinkedInProfileRepository
from app.shared.utils.exceptions import EntityNotFoundError
from app.shared.utils.text_utils import normalize_linkedin_url

logger = logging.getLogger("profile_service")

_LINE_SPLIT = re.compile(r"\r?\n")


def parse_industry_ids(raw: str) -> List[int]:
    """'1, 2,x,3' -> [1, 2, 3]. Non-integers are ignored."""
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))
    return ids


def parse_url_lines(text: str) -> List[str]:
    """One URL per line; blanks dropped, duplicates collapsed, order kept."""
    seen = {}
    for line in _LINE_SPLIT.split(text or ""):
        url = normalize_linkedin_url(line.strip())
        if url:
            seen.setdefault(url, None)
    return list(seen)


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.profiles = LinkedInProfileRepository(db)
        self.catalog = CatalogRepository(db)

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def _valid_industry_ids(self, industry_ids: List[int]) -> List[int]:
        """Drop unknown ids. Raises ValueError if none remain."""
        valid = await self.catalog.get_existing_industry_ids(sorted(set(industry_ids)))
        if not valid:
            raise ValueError("industry_invalid")
        return valid

    async def _require_profile(self, profile_id: int) -> Dict[str, Any]:
        profile = await self.profiles.get_by_id(profile_id)
        if not profile:
            raise EntityNotFoundError("LinkedInProfile", profile_id)
        return profile

    # ============================================
    # OPERATIONS
    # ============================================

    async def add_profile(self, url: str, industry_ids: List[int]) -> Dict[str, Any]:
        """
        Add a profile awaiting approval. An existing URL keeps its approval
        state and gets the given industry tags.
        """
        normalized = normalize_linkedin_url(url)
        if not normalized:
            raise ValueError("url_required")

        async with self.transaction():
            ids = await self._valid_industry_ids(industry_ids)
            profile = await self.profiles.create_profile(normalized, ids)
            if profile is None:
                existing = await self.profiles.get_by_url(normalized)
                profile = await self.profiles.set_industries(existing["id"], ids)

        logger.info(f"Profile added: {normalized} industries={ids}")
        return profile

    async def bulk_add(self, text: str, industry_ids: List[int]) -> Dict[str, Any]:
        """
        Add newline-separated URLs. Existing profiles get the industries merged
        in and keep their approval state.
        """
        urls = parse_url_lines(text)

        async with self.transaction():
            ids = await self._valid_industry_ids(industry_ids)
            existing = await self.profiles.get_by_urls(urls)
            inserted = 0
            updated = 0
            for url in urls:
                if url in existing:
                    await self.profiles.merge_industries(existing[url]["id"], ids)
                    updated += 1
                elif await self.profiles.create_profile(url, ids):
                    inserted += 1

        logger.info(f"Bulk add: {inserted} inserted, {updated} updated")
        return {"ok": True, "inserted": inserted, "updated": updated, "industry_ids": ids}

    async def set_allowed(self, profile_id: int, allowed: bool) -> Dict[str, Any]:
        async with self.transaction():
            profile = await self.profiles.set_allowed(profile_id, allowed)
            if not profile:
                raise EntityNotFoundError("LinkedInProfile", profile_id)
        return profile

    async def allow_all(self) -> int:
        async with self.transaction():
            count = await self.profiles.allow_all()
        logger.info(f"Approved {count} profiles")
        return count

    async def update_industries(self, profile_id: int, industry_ids: List[int]) -> Dict[str, Any]:
        async with self.transaction():
            await self._require_profile(profile_id)
            ids = await self._valid_industry_ids(industry_ids)
            profile = await self.profiles.set_industries(profile_id, ids)
        return profile

    async def delete_profile(self, profile_id: int) -> None:
        async with self.transaction():
            if not await self.profiles.delete_profile(profile_id):
                raise EntityNotFoundError("LinkedInProfile", profile_id)

    async def delete_industry(self, industry_id: int) -> int:
        """
        Remove an industry everywhere. Profiles whose last tag it was are
        deleted. Returns the number of deleted profiles.
        """
        async with self.transaction():
            deleted_profiles = await self.profiles.remove_industry(industry_id)
            if not await self.catalog.delete_industry(industry_id):
                raise EntityNotFoundError("Industry", industry_id)
        logger.info(f"Industry {industry_id} deleted, {deleted_profiles} orphaned profiles removed")
        return deleted_profiles
