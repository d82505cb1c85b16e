"""
Send Stage (sending -> completed)

Pages through subscribers in id order. Each subscriber gets every message of
the run whose industry AND signal they subscribe to, unless their id is
already recorded as delivered. The delivered id is committed right after
Telegram confirms, so a retried or repeated batch never sends twice.

Debug mode restricts the recipient universe to admins.
"""
from typing import Any, Dict

from app.modules.pipeline.constants import JobStatus, StageName
from app.modules.pipeline.repositories.catalog_repository import CatalogRepository
from app.modules.pipeline.repositories.message_repository import MessageRepository
from app.modules.pipeline.services.stages.base import PipelineStage
from app.modules.pipeline.services.telegram_client import telegram_client
from app.shared.utils.time_utils import start_of_utc_day


class SendStage(PipelineStage):
    name = StageName.SEND
    expected_status = JobStatus.SENDING

    def __init__(self, db, messenger=None):
        super().__init__(db)
        self.catalog = CatalogRepository(db)
        self.messages = MessageRepository(db)
        self.messenger = messenger or telegram_client

    async def execute(self, job: Dict[str, Any], batch_size: int) -> Dict[str, Any]:
        offset = job["current_batch_offset"]
        total = job["total_items"]
        config = await self.catalog.get_config() or {}
        debug = bool(config.get("debug"))

        messages = await self.messages.get_messages_since(
            start_of_utc_day(job.get("started_at") or self.now())
        )
        if not messages or total <= 0:
            self.logger.info(f"Nothing to send ({len(messages)} messages, {total} recipients)")
            async with self.transaction():
                updated = await self.advance(job, status=JobStatus.COMPLETED, current_batch_offset=0)
            return {"status": updated["status"], "sent": 0, "failed": 0}

        recipients = await self.catalog.get_recipients(admins_only=debug, offset=offset, limit=batch_size)

        sent = 0
        failed = 0
        for user in recipients:
            for message in messages:
                if not self._is_due(message, user):
                    continue

                result = await self.messenger.send_message(user["telegram_chat_id"], message["message_text"])
                if not result.get("success"):
                    failed += 1
                    self.logger.warning(
                        f"Send of message {message['id']} to user {user['id']} failed: {result.get('error')}"
                    )
                    continue

                async with self.transaction():
                    await self.messages.mark_delivered(message["id"], user["id"])
                message["delivered_user_ids"].append(user["id"])
                sent += 1

        new_offset = min(offset + batch_size, total)
        async with self.transaction():
            if new_offset >= total or not recipients:
                updated = await self.advance(job, status=JobStatus.COMPLETED, current_batch_offset=0)
            else:
                updated = await self.advance(job, current_batch_offset=new_offset)

        self.logger.info(f"Recipients {offset}..{new_offset} of {total}: sent {sent}, failed {failed}")
        return {
            "status": updated["status"],
            "recipients": len(recipients),
            "sent": sent,
            "failed": failed,
            "offset": new_offset,
        }

    @staticmethod
    def _is_due(message: Dict[str, Any], user: Dict[str, Any]) -> bool:
        return (
            message["industry_id"] in user["industry_ids"]
            and message["signal_id"] in user["signal_ids"]
            and user["id"] not in message["delivered_user_ids"]
        )
