"""
Post Repository
Database operations for the posts table.

Posts are insert-only. Dedup is on urn: a second insert of the same urn is
a no-op, never an overwrite.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.post import Post


class PostRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_existing_urns(self, urns: Iterable[str]) -> set:
        """Return the subset of urns already stored."""
        urns = [u for u in urns if u]
        if not urns:
            return set()
        result = await self.db.execute(select(Post.urn).where(Post.urn.in_(urns)))
        return {row[0] for row in result.all()}

    def _eligible_filter(self, cutoff: datetime, visible_industry_ids: List[int]):
        return (
            Post.posted_at >= cutoff,
            Post.industry_ids.overlap(visible_industry_ids),
        )

    async def count_fresh_posts(self, cutoff: datetime, visible_industry_ids: List[int]) -> int:
        """Posts inside the freshness window tagged with a visible industry."""
        if not visible_industry_ids:
            return 0
        query = (
            select(func.count())
            .select_from(Post)
            .where(*self._eligible_filter(cutoff, visible_industry_ids))
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_fresh_posts(
        self,
        cutoff: datetime,
        visible_industry_ids: List[int],
        offset: int,
        limit: int
    ) -> List[Dict[str, Any]]:
        """Page of eligible posts, ordered by id so offsets are stable."""
        if not visible_industry_ids:
            return []
        query = (
            select(Post)
            .where(*self._eligible_filter(cutoff, visible_industry_ids))
            .order_by(Post.id.asc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [self._to_dict(p) for p in result.scalars().all()]

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def insert_post(
        self,
        urn: str,
        text: str,
        posted_at: datetime,
        industry_ids: List[int],
        name: Optional[str] = None,
        occupation: Optional[str] = None,
        source_url: Optional[str] = None,
        author_url: Optional[str] = None
    ) -> bool:
        """
        Insert one post. Returns False when the urn already existed.
        NOTE: Does NOT commit.
        """
        stmt = (
            insert(Post)
            .values(
                urn=urn,
                text=text,
                posted_at=posted_at,
                industry_ids=industry_ids,
                name=name,
                occupation=occupation,
                source_url=source_url,
                author_url=author_url,
            )
            .on_conflict_do_nothing(index_elements=["urn"])
            .returning(Post.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    # ============================================
    # HELPERS
    # ============================================

    def _to_dict(self, post: Post) -> Dict[str, Any]:
        return {
            "id": post.id,
            "urn": post.urn,
            "name": post.name,
            "occupation": post.occupation,
            "text": post.text,
            "posted_at": post.posted_at,
            "industry_ids": list(post.industry_ids or []),
            "source_url": post.source_url,
            "author_url": post.author_url,
        }
