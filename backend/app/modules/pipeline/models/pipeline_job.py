"""
Pipeline Job ORM Model
The single durable record coordinating every stage of the daily run.

(status, current_batch_offset, total_items) is the whole progress state:
any stage can crash between calls and resume by re-reading this row.
"""
from sqlalchemy import Column, BigInteger, Text, Integer, DateTime, Index, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.sql import func
from app.shared.db.base import Base


class PipelineJob(Base):
    """
    ORM Model for the pipeline_jobs table.

    At most one row is non-terminal at a time (enforced by the repository
    and by a partial unique index). Terminal rows are history and are never
    reused; the next day's trigger creates a new row.
    """
    __tablename__ = "pipeline_jobs"

    # Primary Key
    id = Column(BigInteger, primary_key=True)

    # ============================================
    # STATE MACHINE
    # ============================================
    # Status: idle, scraping, processing, vectorizing, generating, sending, completed, failed
    status = Column(Text, nullable=False, default="idle", server_default="idle")
    current_batch_offset = Column(Integer, nullable=False, default=0, server_default="0")
    total_items = Column(Integer, nullable=False, default=0, server_default="0")  # Stage-specific meaning

    # Optimistic lock: every write is conditioned on the version that was read
    version = Column(Integer, nullable=False, default=1, server_default="1")

    # ============================================
    # EXTERNAL RUN
    # ============================================
    apify_run_id = Column(Text, nullable=True)
    apify_dataset_id = Column(Text, nullable=True)

    # Admin Telegram chats snapshotted at scrape launch (failure alerts)
    admin_chat_ids = Column(ARRAY(Text), nullable=False, default=list, server_default="{}")

    # ============================================
    # RETRY / ERROR TRACKING
    # ============================================
    retry_count = Column(Integer, nullable=False, default=0, server_default="0")
    max_retries = Column(Integer, nullable=False, default=3, server_default="3")
    error_message = Column(Text, nullable=True)

    # ============================================
    # TIMESTAMPS
    # ============================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # ============================================
    # INDEXES
    # ============================================
    __table_args__ = (
        Index("idx_pipeline_jobs_status", "status"),
        Index("idx_pipeline_jobs_started", "started_at"),
        # One non-terminal job at a time
        Index(
            "uq_pipeline_jobs_single_active",
            text("(1)"),
            unique=True,
            postgresql_where=text("status NOT IN ('completed', 'failed')"),
        ),
    )

    def __repr__(self):
        return (
            f"<PipelineJob(id={self.id}, status='{self.status}', "
            f"progress={self.current_batch_offset}/{self.total_items}, v={self.version})>"
        )
