"""
Catalog Repository
Reads the operator-managed reference data (config row, industries, signals,
subscribers) and handles industry removal.
"""
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.catalog import Industry, Signal, User, PipelineConfig
from app.modules.pipeline.constants import DEFAULT_LIMIT_PER_SOURCE, DEFAULT_MEMORY_MBYTES


class CatalogRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # CONFIG
    # ============================================

    async def get_config(self) -> Optional[Dict[str, Any]]:
        """The singleton config row, or None if the operator never created it."""
        query = select(PipelineConfig).where(PipelineConfig.singleton.is_(True)).limit(1)
        result = await self.db.execute(query)
        config = result.scalar_one_or_none()
        if not config:
            return None
        return {
            "cookie_default": config.cookie_default,
            "user_agent": config.user_agent,
            "min_delay": config.min_delay,
            "max_delay": config.max_delay,
            "deep_scrape": bool(config.deep_scrape),
            "raw_data": bool(config.raw_data),
            "proxy": config.proxy,
            "limit_per_source": config.limit_per_source or DEFAULT_LIMIT_PER_SOURCE,
            "memory_mbytes": config.memory_mbytes or DEFAULT_MEMORY_MBYTES,
            "debug": bool(config.debug),
        }

    # ============================================
    # INDUSTRIES & SIGNALS
    # ============================================

    async def get_visible_industry_ids(self) -> List[int]:
        query = select(Industry.id).where(Industry.visible.is_(True)).order_by(Industry.id.asc())
        result = await self.db.execute(query)
        return [row[0] for row in result.all()]

    async def get_visible_industries(self) -> List[Dict[str, Any]]:
        query = select(Industry).where(Industry.visible.is_(True)).order_by(Industry.id.asc())
        result = await self.db.execute(query)
        return [{"id": i.id, "name": i.name} for i in result.scalars().all()]

    async def get_existing_industry_ids(self, industry_ids: List[int]) -> List[int]:
        """Filter a list of ids down to industries that exist."""
        if not industry_ids:
            return []
        query = select(Industry.id).where(Industry.id.in_(industry_ids)).order_by(Industry.id.asc())
        result = await self.db.execute(query)
        return [row[0] for row in result.all()]

    async def get_generation_signals(self) -> List[Dict[str, Any]]:
        """Visible signals that carry a non-empty retrieval query, ordered by id."""
        query = (
            select(Signal)
            .where(
                Signal.visible.is_(True),
                Signal.embedding_query.isnot(None),
                func.length(func.trim(Signal.embedding_query)) > 0
            )
            .order_by(Signal.id.asc())
        )
        result = await self.db.execute(query)
        return [
            {
                "id": s.id,
                "name": s.name,
                "embedding_query": s.embedding_query,
                "prompt": s.prompt,
            }
            for s in result.scalars().all()
        ]

    async def delete_industry(self, industry_id: int) -> bool:
        """
        Delete an industry and strip it from subscriber preferences.
        Profile cleanup is done by LinkedInProfileRepository.remove_industry.
        """
        await self.db.execute(
            update(User)
            .where(User.industry_ids.any(industry_id))
            .values(industry_ids=func.array_remove(User.industry_ids, industry_id))
        )
        result = await self.db.execute(delete(Industry).where(Industry.id == industry_id))
        return (result.rowcount or 0) > 0

    # ============================================
    # SUBSCRIBERS
    # ============================================

    def _recipient_filter(self, admins_only: bool):
        conditions = [User.telegram_chat_id.isnot(None), User.telegram_chat_id != ""]
        if admins_only:
            conditions.append(User.is_admin.is_(True))
        return conditions

    async def get_admin_chat_ids(self) -> List[str]:
        query = (
            select(User.telegram_chat_id)
            .where(*self._recipient_filter(admins_only=True))
            .order_by(User.id.asc())
        )
        result = await self.db.execute(query)
        return [row[0] for row in result.all()]

    async def count_recipients(self, admins_only: bool) -> int:
        query = select(func.count()).select_from(User).where(*self._recipient_filter(admins_only))
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_recipients(self, admins_only: bool, offset: int, limit: int) -> List[Dict[str, Any]]:
        """Page of users who can receive messages, in stable id order."""
        query = (
            select(User)
            .where(*self._recipient_filter(admins_only))
            .order_by(User.id.asc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [
            {
                "id": u.id,
                "telegram_chat_id": u.telegram_chat_id,
                "is_admin": bool(u.is_admin),
                "industry_ids": list(u.industry_ids or []),
                "signal_ids": list(u.signal_ids or []),
            }
            for u in result.scalars().all()
        ]
