"""
Post Vector Repository
Namespace-scoped vector index over the post_vectors table (pgvector).

Operations mirror a hosted vector index: delete a whole namespace, upsert
records by id, query the nearest neighbours with a metadata filter.
Metadata values must be strings or lists of strings.
"""
import logging
from typing import Optional, List, Dict, Any
from sqlalchemy import select, delete
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.models.post_vector import PostVector

logger = logging.getLogger("vector_index")


def validate_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    Raise ValueError unless every value is a string or a list of strings.
    """
    for key, value in metadata.items():
        if isinstance(value, str):
            continue
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            continue
        raise ValueError(f"Vector metadata '{key}' must be a string or list of strings, got {type(value).__name__}")
    return metadata


class PostVectorRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def delete_namespace(self, namespace: str) -> int:
        result = await self.db.execute(delete(PostVector).where(PostVector.namespace == namespace))
        deleted = result.rowcount or 0
        logger.info(f"Cleared vector namespace '{namespace}' ({deleted} records)")
        return deleted

    async def upsert(self, namespace: str, records: List[Dict[str, Any]]) -> int:
        """
        Upsert records shaped {"id": str, "values": List[float], "metadata": dict}.
        """
        if not records:
            return 0

        rows = [
            {
                "namespace": namespace,
                "vector_id": record["id"],
                "embedding": record["values"],
                "metadata": validate_metadata(record.get("metadata") or {}),
            }
            for record in records
        ]

        table = PostVector.__table__
        stmt = insert(table).values(rows)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_post_vectors_namespace_vector",
            set_={
                "embedding": stmt.excluded["embedding"],
                "metadata": stmt.excluded["metadata"],
            }
        )
        await self.db.execute(stmt)
        return len(rows)

    async def query(
        self,
        namespace: str,
        vector: List[float],
        top_k: int,
        industry_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Nearest neighbours by cosine distance.
        industry_id restricts results to records whose industry_ids contain it.
        """
        distance = PostVector.embedding.cosine_distance(vector).label("distance")
        query = select(PostVector.vector_id, PostVector.meta, distance).where(
            PostVector.namespace == namespace
        )
        if industry_id is not None:
            query = query.where(PostVector.meta.contains({"industry_ids": [str(industry_id)]}))

        query = query.order_by(distance).limit(top_k)
        result = await self.db.execute(query)
        return [
            {"id": row.vector_id, "score": 1.0 - float(row.distance), "metadata": row.meta or {}}
            for row in result.all()
        ]
