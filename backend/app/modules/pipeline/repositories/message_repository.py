"""
Generated Message Repository
Database operations for the messages table.

AT-MOST-ONCE DELIVERY: mark_delivered appends a subscriber id with a guarded
UPDATE so a retried send batch can never record the same id twice.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, delete, func, not_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.generated_message import GeneratedMessage


class MessageRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_messages_since(self, moment: datetime) -> List[Dict[str, Any]]:
        """Messages created at or after moment, ordered by id."""
        query = (
            select(GeneratedMessage)
            .where(GeneratedMessage.created_at >= moment)
            .order_by(GeneratedMessage.id.asc())
        )
        result = await self.db.execute(query)
        return [self._to_dict(m) for m in result.scalars().all()]

    async def purge_since(self, moment: datetime) -> int:
        """Delete the day's messages before a generation run rebuilds them."""
        result = await self.db.execute(
            delete(GeneratedMessage).where(GeneratedMessage.created_at >= moment)
        )
        return result.rowcount or 0

    async def insert_message(
        self,
        pipeline_job_id: Optional[int],
        industry_id: int,
        signal_id: int,
        message_text: str
    ) -> bool:
        """
        Insert one message for a pair. Returns False if this job already
        produced a message for the pair.
        """
        stmt = (
            insert(GeneratedMessage)
            .values(
                pipeline_job_id=pipeline_job_id,
                industry_id=industry_id,
                signal_id=signal_id,
                message_text=message_text,
                delivered_user_ids=[],
            )
            .on_conflict_do_nothing(constraint="uq_messages_job_pair")
            .returning(GeneratedMessage.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def mark_delivered(self, message_id: int, user_id: int) -> bool:
        """
        Append user_id to delivered_user_ids unless it is already there.
        Returns True if the id was appended.
        """
        stmt = (
            update(GeneratedMessage)
            .where(
                GeneratedMessage.id == message_id,
                not_(GeneratedMessage.delivered_user_ids.any(user_id))
            )
            .values(
                delivered_user_ids=func.array_append(GeneratedMessage.delivered_user_ids, user_id)
            )
        )
        result = await self.db.execute(stmt)
        return (result.rowcount or 0) > 0

    def _to_dict(self, message: GeneratedMessage) -> Dict[str, Any]:
        return {
            "id": message.id,
            "pipeline_job_id": message.pipeline_job_id,
            "industry_id": message.industry_id,
            "signal_id": message.signal_id,
            "message_text": message.message_text,
            "delivered_user_ids": list(message.delivered_user_ids or []),
            "created_at": message.created_at,
        }
