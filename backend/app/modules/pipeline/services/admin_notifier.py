"""
Admin Notifier
Best-effort Telegram alerts to pipeline administrators.

A failed alert is logged and swallowed: notification must never block or
fail the pipeline.
"""
import html
import logging
from typing import Iterable, Optional

from app.modules.pipeline.services.telegram_client import telegram_client

logger = logging.getLogger("pipeline.notify")


def format_failure_alert(status: str, error: str, retry_count: int, max_retries: int) -> str:
    return (
        "⚠️ <b>Pipeline Failed</b>\n\n"
        f"Status: {html.escape(status)}\n"
        f"Error: {html.escape(error or 'unknown')}\n"
        f"Retries: {retry_count}/{max_retries}"
    )


def format_precondition_alert(stage: str, reason: str) -> str:
    return (
        "⚠️ <b>Pipeline Blocked</b>\n\n"
        f"Stage: {html.escape(stage)}\n"
        f"Reason: {html.escape(reason)}\n"
        "No retry consumed; fix the configuration and the next trigger will try again."
    )


class AdminNotifier:
    def __init__(self, client=None):
        self.client = client or telegram_client

    async def notify(self, chat_ids: Optional[Iterable[str]], text: str) -> int:
        """
        Send text to every chat id. Returns the number of successful sends.
        """
        sent = 0
        for chat_id in chat_ids or []:
            if not chat_id:
                continue
            try:
                result = await self.client.send_message(str(chat_id), text)
            except Exception as e:
                logger.error(f"Admin alert to {chat_id} raised: {e}")
                continue
            if result.get("success"):
                sent += 1
            else:
                logger.warning(f"Admin alert to {chat_id} failed: {result.get('error')}")
        return sent


# Singleton instance
admin_notifier = AdminNotifier()
