"""
LinkedIn Profile Repository
All database operations for the linkedin_profiles table.

NOTE: No commits here - the calling stage or service owns the transaction.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.linkedin_profile import LinkedInProfile


class LinkedInProfileRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_by_id(self, profile_id: int) -> Optional[Dict[str, Any]]:
        query = select(LinkedInProfile).where(LinkedInProfile.id == profile_id)
        result = await self.db.execute(query)
        profile = result.scalar_one_or_none()
        return self._to_dict(profile) if profile else None

    async def get_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        """Lookup by normalized profile URL."""
        query = select(LinkedInProfile).where(LinkedInProfile.url == url)
        result = await self.db.execute(query)
        profile = result.scalar_one_or_none()
        return self._to_dict(profile) if profile else None

    async def get_by_urls(self, urls: List[str]) -> Dict[str, Dict[str, Any]]:
        """Batch lookup keyed by URL."""
        if not urls:
            return {}
        query = select(LinkedInProfile).where(LinkedInProfile.url.in_(urls))
        result = await self.db.execute(query)
        return {p.url: self._to_dict(p) for p in result.scalars().all()}

    async def get_eligible_urls(self, visible_industry_ids: List[int]) -> List[str]:
        """
        Scrape inputs: allowed profiles tagged with at least one visible industry.
        Ordered by id so the actor input is stable between launches.
        """
        if not visible_industry_ids:
            return []
        query = (
            select(LinkedInProfile.url)
            .where(
                LinkedInProfile.allowed.is_(True),
                LinkedInProfile.industry_ids.overlap(visible_industry_ids)
            )
            .order_by(LinkedInProfile.id.asc())
        )
        result = await self.db.execute(query)
        return [row[0] for row in result.all()]

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def create_profile(self, url: str, industry_ids: List[int]) -> Optional[Dict[str, Any]]:
        """
        Insert a new, not-yet-approved profile.
        Returns None if the URL already exists.
        """
        stmt = (
            insert(LinkedInProfile)
            .values(url=url, industry_ids=industry_ids, allowed=False)
            .on_conflict_do_nothing(index_elements=["url"])
            .returning(LinkedInProfile)
        )
        result = await self.db.execute(stmt)
        profile = result.scalar_one_or_none()
        return self._to_dict(profile) if profile else None

    async def merge_industries(self, profile_id: int, industry_ids: List[int]) -> None:
        """Union new industry tags into an existing profile. allowed is untouched."""
        profile = await self.get_by_id(profile_id)
        if not profile:
            return
        merged = sorted(set(profile["industry_ids"]) | set(industry_ids))
        await self.db.execute(
            update(LinkedInProfile)
            .where(LinkedInProfile.id == profile_id)
            .values(industry_ids=merged, updated_at=func.now())
        )

    async def flag_unverified(self, profile_id: int, details: Dict[str, Any], flagged_at: datetime) -> None:
        """
        Revoke approval after an identity-drift detection and keep the evidence.
        """
        await self.db.execute(
            update(LinkedInProfile)
            .where(LinkedInProfile.id == profile_id)
            .values(
                allowed=False,
                unverified_details=details,
                unverified_at=flagged_at,
                updated_at=func.now()
            )
        )

    async def set_allowed(self, profile_id: int, allowed: bool) -> Optional[Dict[str, Any]]:
        values: Dict[str, Any] = {"allowed": allowed, "updated_at": func.now()}
        if allowed:
            # Re-approval clears the drift audit trail
            values["unverified_details"] = None
            values["unverified_at"] = None
        stmt = (
            update(LinkedInProfile)
            .where(LinkedInProfile.id == profile_id)
            .values(**values)
            .returning(LinkedInProfile)
        )
        result = await self.db.execute(stmt)
        profile = result.scalar_one_or_none()
        return self._to_dict(profile) if profile else None

    async def allow_all(self) -> int:
        result = await self.db.execute(
            update(LinkedInProfile)
            .where(LinkedInProfile.allowed.is_(False))
            .values(
                allowed=True,
                unverified_details=None,
                unverified_at=None,
                updated_at=func.now()
            )
        )
        return result.rowcount or 0

    async def set_industries(self, profile_id: int, industry_ids: List[int]) -> Optional[Dict[str, Any]]:
        stmt = (
            update(LinkedInProfile)
            .where(LinkedInProfile.id == profile_id)
            .values(industry_ids=industry_ids, updated_at=func.now())
            .returning(LinkedInProfile)
        )
        result = await self.db.execute(stmt)
        profile = result.scalar_one_or_none()
        return self._to_dict(profile) if profile else None

    async def delete_profile(self, profile_id: int) -> bool:
        result = await self.db.execute(
            delete(LinkedInProfile).where(LinkedInProfile.id == profile_id)
        )
        return (result.rowcount or 0) > 0

    async def remove_industry(self, industry_id: int) -> int:
        """
        Strip an industry tag from every profile, then delete profiles left
        without any tag. Returns the number of deleted profiles.
        """
        stripped = await self.db.execute(
            update(LinkedInProfile)
            .where(LinkedInProfile.industry_ids.any(industry_id))
            .values(
                industry_ids=func.array_remove(LinkedInProfile.industry_ids, industry_id),
                updated_at=func.now()
            )
            .returning(LinkedInProfile.id)
        )
        touched_ids = [row[0] for row in stripped.all()]
        if not touched_ids:
            return 0

        result = await self.db.execute(
            delete(LinkedInProfile).where(
                LinkedInProfile.id.in_(touched_ids),
                func.cardinality(LinkedInProfile.industry_ids) == 0
            )
        )
        return result.rowcount or 0

    # ============================================
    # HELPERS
    # ============================================

    def _to_dict(self, profile: LinkedInProfile) -> Dict[str, Any]:
        return {
            "id": profile.id,
            "url": profile.url,
            "name": profile.name,
            "occupation": profile.occupation,
            "allowed": bool(profile.allowed),
            "industry_ids": list(profile.industry_ids or []),
            "unverified_details": profile.unverified_details,
            "unverified_at": profile.unverified_at,
            "created_at": profile.created_at,
            "updated_at": profile.updated_at,
        }
