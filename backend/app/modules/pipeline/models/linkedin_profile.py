"""
LinkedIn Profile ORM Model
Scrape targets and their approval state.
"""
from sqlalchemy import Column, BigInteger, Text, Boolean, DateTime, Index
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from app.shared.db.base import Base, TimestampMixin


class LinkedInProfile(Base, TimestampMixin):
    """
    ORM Model for the linkedin_profiles table.

    Only allowed profiles tagged with at least one visible industry are
    handed to the scraper. A re-scrape whose occupation contradicts the
    stored one flips allowed to False and records the evidence in
    unverified_details.
    """
    __tablename__ = "linkedin_profiles"

    # Primary Key
    id = Column(BigInteger, primary_key=True)

    # ============================================
    # IDENTITY
    # ============================================
    url = Column(Text, unique=True, nullable=False)     # Normalized profile URL (lookup key)
    name = Column(Text, nullable=True)                  # Verified display name
    occupation = Column(Text, nullable=True)            # Verified headline/occupation

    # ============================================
    # APPROVAL
    # ============================================
    allowed = Column(Boolean, nullable=False, default=False, server_default="false")
    industry_ids = Column(ARRAY(BigInteger), nullable=False, default=list, server_default="{}")

    # ============================================
    # IDENTITY DRIFT AUDIT
    # ============================================
    unverified_details = Column(JSONB, nullable=True)
    unverified_at = Column(DateTime(timezone=True), nullable=True)

    # ============================================
    # INDEXES
    # ============================================
    __table_args__ = (
        Index("idx_linkedin_profiles_allowed", "allowed"),
        Index("idx_linkedin_profiles_industries", "industry_ids", postgresql_using="gin"),
    )

    def __repr__(self):
        return f"<LinkedInProfile(id={self.id}, url='{self.url}', allowed={self.allowed})>"
