"""
Catalog ORM Models
Operator-managed reference data the pipeline reads: industries, signals,
bot subscribers and the singleton scrape config row.
"""
from sqlalchemy import Column, BigInteger, Text, Boolean, Integer, Index
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from app.shared.db.base import Base, TimestampMixin


class Industry(Base):
    """Industry tag. Only visible industries are scraped, generated and delivered."""
    __tablename__ = "industries"

    id = Column(BigInteger, primary_key=True)
    name = Column(Text, nullable=False)
    visible = Column(Boolean, nullable=False, default=True, server_default="true")

    def __repr__(self):
        return f"<Industry(id={self.id}, name='{self.name}', visible={self.visible})>"


class Signal(Base):
    """
    Signal type (e.g. funding, hiring, product launch).

    embedding_query drives retrieval; prompt tells the generation model
    what to extract and how to format it.
    """
    __tablename__ = "signals"

    id = Column(BigInteger, primary_key=True)
    name = Column(Text, nullable=False)
    visible = Column(Boolean, nullable=False, default=True, server_default="true")
    embedding_query = Column(Text, nullable=True)
    prompt = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Signal(id={self.id}, name='{self.name}')>"


class User(Base, TimestampMixin):
    """Telegram bot subscriber."""
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True)
    telegram_chat_id = Column(Text, nullable=True)      # NULL until the user starts the bot
    is_admin = Column(Boolean, nullable=False, default=False, server_default="false")
    industry_ids = Column(ARRAY(BigInteger), nullable=False, default=list, server_default="{}")
    signal_ids = Column(ARRAY(BigInteger), nullable=False, default=list, server_default="{}")

    __table_args__ = (
        Index("idx_users_admin", "is_admin"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, admin={self.is_admin})>"


class PipelineConfig(Base):
    """
    Singleton scrape configuration row (singleton = true).
    Values are passed straight into the Apify actor input.
    """
    __tablename__ = "config"

    id = Column(BigInteger, primary_key=True)
    singleton = Column(Boolean, nullable=False, default=True, server_default="true", unique=True)

    cookie_default = Column(JSONB, nullable=True)       # LinkedIn session cookies for the actor
    user_agent = Column(Text, nullable=True)
    min_delay = Column(Integer, nullable=True)
    max_delay = Column(Integer, nullable=True)
    deep_scrape = Column(Boolean, nullable=False, default=False, server_default="false")
    raw_data = Column(Boolean, nullable=False, default=False, server_default="false")
    proxy = Column(JSONB, nullable=True)
    limit_per_source = Column(Integer, nullable=True)
    memory_mbytes = Column(Integer, nullable=True)

    # Deliver to admins only
    debug = Column(Boolean, nullable=False, default=False, server_default="false")

    def __repr__(self):
        return f"<PipelineConfig(id={self.id}, debug={self.debug})>"
