"""
Post Vector ORM Model
pgvector-backed index of embedded posts, partitioned by namespace.
"""
from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, BigInteger, Text, DateTime, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.shared.core.constants import EMBEDDING_DIMENSIONS
from app.shared.db.base import Base


class PostVector(Base):
    """
    ORM Model for the post_vectors table.

    metadata holds only strings or lists of strings (industry ids are
    stored as strings) so filters compare like with like.
    """
    __tablename__ = "post_vectors"

    id = Column(BigInteger, primary_key=True)
    namespace = Column(Text, nullable=False)
    vector_id = Column(Text, nullable=False)            # "post-<posts.id>"
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    meta = Column("metadata", JSONB, nullable=False, server_default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("namespace", "vector_id", name="uq_post_vectors_namespace_vector"),
    )

    def __repr__(self):
        return f"<PostVector(namespace='{self.namespace}', vector_id='{self.vector_id}')>"
