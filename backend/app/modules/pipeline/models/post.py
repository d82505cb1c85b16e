"""
Post ORM Model
Deduplicated scraped posts. Rows are never updated; they simply age out of
the 24h freshness window.
"""
from sqlalchemy import Column, BigInteger, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.sql import func
from app.shared.db.base import Base


class Post(Base):
    """ORM Model for the posts table."""
    __tablename__ = "posts"

    id = Column(BigInteger, primary_key=True)

    urn = Column(Text, unique=True, nullable=False)     # LinkedIn activity URN (dedup key)
    name = Column(Text, nullable=True)                  # Author name as scraped
    occupation = Column(Text, nullable=True)            # Author occupation (only when it has letters)
    text = Column(Text, nullable=False)                 # Cleaned post text
    posted_at = Column(DateTime(timezone=True), nullable=False)

    industry_ids = Column(ARRAY(BigInteger), nullable=False, default=list, server_default="{}")  # Inherited from profile

    source_url = Column(Text, nullable=True)            # Post URL
    author_url = Column(Text, nullable=True)            # Profile URL

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_posts_posted_at", "posted_at"),
        Index("idx_posts_industries", "industry_ids", postgresql_using="gin"),
    )

    def __repr__(self):
        return f"<Post(id={self.id}, urn='{self.urn}')>"
