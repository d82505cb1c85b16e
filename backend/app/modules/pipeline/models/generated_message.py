"""
Generated Message ORM Model
One insight per (industry, signal) pair per pipeline run.
"""
from sqlalchemy import Column, BigInteger, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.sql import func
from app.shared.db.base import Base


class GeneratedMessage(Base):
    """
    ORM Model for the messages table.

    delivered_user_ids only grows: the sender appends a subscriber id after
    Telegram confirms the send, and never sends a message to an id that is
    already present.
    """
    __tablename__ = "messages"

    id = Column(BigInteger, primary_key=True)

    pipeline_job_id = Column(
        BigInteger,
        ForeignKey("pipeline_jobs.id", ondelete="SET NULL"),
        nullable=True
    )
    industry_id = Column(
        BigInteger,
        ForeignKey("industries.id", ondelete="CASCADE"),
        nullable=False
    )
    signal_id = Column(
        BigInteger,
        ForeignKey("signals.id", ondelete="CASCADE"),
        nullable=False
    )

    message_text = Column(Text, nullable=False)         # Telegram HTML
    delivered_user_ids = Column(ARRAY(BigInteger), nullable=False, default=list, server_default="{}")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("pipeline_job_id", "industry_id", "signal_id", name="uq_messages_job_pair"),
        Index("idx_messages_created", "created_at"),
    )

    def __repr__(self):
        return (
            f"<GeneratedMessage(id={self.id}, industry={self.industry_id}, "
            f"signal={self.signal_id}, delivered={len(self.delivered_user_ids or [])})>"
        )
