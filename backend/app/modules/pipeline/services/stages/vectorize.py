"""
Vectorize Stage (vectorizing -> generating)

Rebuilds the vector namespace from scratch each run: the first batch clears
it, every batch embeds one page of fresh posts and upserts them.
"""
from typing import Any, Dict, List

from app.modules.pipeline.constants import (
    FRESHNESS_WINDOW,
    JobStatus,
    StageName,
    VECTOR_ID_PREFIX,
    VECTOR_TEXT_MAX_CHARS,
)
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.post_repository import PostRepository
from app.modules.pipeline.repositories.post_vector_repository import PostVectorRepository
from app.modules.pipeline.services.gemini_service import gemini_service
from app.modules.pipeline.services.stages.base import PipelineStage
from app.shared.core.config import settings
from app.shared.utils.exceptions import ExternalServiceError


def build_vector_record(post: Dict[str, Any], values: List[float]) -> Dict[str, Any]:
    """Vector record for one post. Metadata values are strings only."""
    return {
        "id": f"{VECTOR_ID_PREFIX}{post['id']}",
        "values": values,
        "metadata": {
            "industry_ids": [str(i) for i in post.get("industry_ids") or []],
            "text": (post.get("text") or "")[:VECTOR_TEXT_MAX_CHARS],
            "name": post.get("name") or "",
            "title": post.get("occupation") or "",
            "author_url": post.get("author_url") or "",
            "source_url": post.get("source_url") or "",
        },
    }


class VectorizeStage(PipelineStage):
    name = StageName.VECTORIZE
    expected_status = JobStatus.VECTORIZING

    def __init__(self, db, embedder=None, namespace: str = None):
        super().__init__(db)
        self.catalog = CatalogRepository(db)
        self.posts = PostRepository(db)
        self.vectors = PostVectorRepository(db)
        self.embedder = embedder or gemini_service
        self.namespace = namespace or settings.VECTOR_NAMESPACE

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        offset = job["current_batch_offset"]
        cutoff = self.now() - FRESHNESS_WINDOW

        visible_ids = await self.catalog.get_visible_industry_ids()
        posts = await self.posts.get_fresh_posts(cutoff, visible_ids, offset, batch_size)

        embeddings = await self.embedder.embed_texts([p["text"] for p in posts]) if posts else []
        if len(embeddings) != len(posts):
            raise ExternalServiceError("gemini", f"expected {len(posts)} embeddings, got {len(embeddings)}")
        records = [build_vector_record(post, values) for post, values in zip(posts, embeddings)]

        new_offset = offset + batch_size
        done = new_offset >= job["total_items"] or len(posts) < batch_size

        async with self.transaction():
            if offset == 0:
                await self.vectors.delete_namespace(self.namespace)
            upserted = await self.vectors.upsert(self.namespace, records)

            if done:
                updated = await self.advance(
                    job, status=JobStatus.GENERATING, current_batch_offset=0, total_items=0
                )
            else:
                updated = await self.advance(job, current_batch_offset=new_offset)

        self.logger.info(f"Batch at {offset}: upserted {upserted} vectors")
        return {"status": updated["status"], "upserted": upserted, "offset": new_offset}
