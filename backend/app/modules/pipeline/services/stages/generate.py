"""
Generate Stage (generating -> sending)

One (industry, signal) pair per call; the job offset is the linear pair
index over visible industries x signals with a retrieval query, both in id
order. For the pair: embed the signal query, retrieve the industry's nearest
posts, ask the model for an insight. A NO_CONTENT reply creates no message.

The first call of a run purges the day's messages.
"""
from typing import Any, Dict

from app.modules.pipeline.constants import JobStatus, StageName
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.message_repository import MessageRepository
from app.modules.pipeline.repositories.post_vector_repository import PostVectorRepository
from app.modules.pipeline.services.gemini_service import gemini_service
from app.modules.pipeline.services.prompts import (
    INSIGHT_SYSTEM_PROMPT,
    build_context,
    build_user_message,
    is_no_content,
)
from app.modules.pipeline.services.stages.base import PipelineStage
from app.shared.core.config import settings
from app.shared.utils.time_utils import start_of_utc_day


class GenerateStage(PipelineStage):
    name = StageName.GENERATE
    expected_status = JobStatus.GENERATING

    def __init__(self, db, llm=None, namespace: str = None, top_k: int = None):
        super().__init__(db)
        self.catalog = CatalogRepository(db)
        self.messages = MessageRepository(db)
        self.vectors = PostVectorRepository(db)
        self.llm = llm or gemini_service
        self.namespace = namespace or settings.VECTOR_NAMESPACE
        self.top_k = top_k or settings.RETRIEVAL_TOP_K

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        offset = job["current_batch_offset"]
        config = await self.catalog.get_config() or {}
        debug = bool(config.get("debug"))

        industries = await self.catalog.get_visible_industries()
        signals = await self.catalog.get_generation_signals()
        pairs = [(industry, signal) for industry in industries for signal in signals]
        if not pairs:
            raise ValueError("No visible industries or signals with a retrieval query")

        total = len(pairs)
        if offset >= total:
            async with self.transaction():
                updated = await self._to_sending(job, debug)
            return {"status": updated["status"], "generated": 0, "total_items": updated["total_items"]}

        industry, signal = pairs[offset]
        self.logger.info(f"Pair {offset + 1}/{total}: industry '{industry['name']}', signal '{signal['name']}'")

        query_vector = await self.llm.embed_query(signal["embedding_query"])
        matches = await self.vectors.query(self.namespace, query_vector, self.top_k, industry_id=industry["id"])
        context = build_context(matches)

        if context:
            reply = await self.llm.generate(
                build_user_message(context, signal.get("prompt") or signal["name"]),
                system_instruction=INSIGHT_SYSTEM_PROMPT,
            )
        else:
            self.logger.info("No indexed posts for this industry, skipping model call")
            reply = ""

        generated = not is_no_content(reply)
        new_offset = offset + 1

        async with self.transaction():
            if offset == 0:
                purged = await self.messages.purge_since(self._run_day(job))
                self.logger.info(f"Purged {purged} messages from earlier runs today")

            if generated:
                generated = await self.messages.insert_message(
                    pipeline_job_id=job["id"],
                    industry_id=industry["id"],
                    signal_id=signal["id"],
                    message_text=reply.strip(),
                )

            if new_offset >= total:
                updated = await self._to_sending(job, debug)
            else:
                updated = await self.advance(job, current_batch_offset=new_offset, total_items=total)

        return {
            "status": updated["status"],
            "generated": 1 if generated else 0,
            "industry": industry["name"],
            "signal": signal["name"],
            "offset": new_offset,
            "total_items": total,
        }

    async def _to_sending(self, job: Dict[str, Any], debug: bool) -> Dict[str, Any]:
        recipients = await self.catalog.count_recipients(admins_only=debug)
        return await self.advance(
            job, status=JobStatus.SENDING, current_batch_offset=0, total_items=recipients
        )

    def _run_day(self, job: Dict[str, Any]):
        return start_of_utc_day(job.get("started_at") or self.now())
