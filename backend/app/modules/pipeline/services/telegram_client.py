"""
Telegram Client
Low-level wrapper for the Telegram Bot API sendMessage call.

Retry Strategy:
- Max 3 attempts with exponential backoff
- Only retries on: timeouts, connection errors, 5xx and 429
- Does NOT retry on other 4xx (blocked bot, unknown chat, bad HTML)
"""
import logging
from typing import Any, Dict, List

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.shared.core.config import settings
from app.shared.core.constants import (
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
    TELEGRAM_MAX_MESSAGE_LENGTH,
    TIMEOUT_TELEGRAM_API,
)
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("telegram_client")


# ============================================
# CUSTOM EXCEPTIONS FOR RETRY LOGIC
# ============================================

class TelegramRetryableError(Exception):
    """Server-side or rate-limit failure; the request should be retried."""
    pass


class TelegramNonRetryableError(Exception):
    """Client error; retrying will not help."""
    pass


def telegram_retry():
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1,
            min=RETRY_MIN_WAIT_SECONDS,
            max=RETRY_MAX_WAIT_SECONDS
        ),
        retry=retry_if_exception_type((
            TelegramRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


def split_message(text: str, limit: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split text into chunks no longer than limit, preferring paragraph and
    line boundaries so HTML tags opened on a line are closed in the same chunk.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n\n", 0, limit)
        if cut <= 0:
            cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut].rstrip())
        remaining = remaining[cut:].lstrip("\n")
    if remaining.strip():
        chunks.append(remaining)
    return chunks


class TelegramClient:
    """Telegram Bot API client (HTML parse mode)."""

    def __init__(self):
        self.bot_token = settings.TELEGRAM_BOT_TOKEN
        self.api_base = settings.TELEGRAM_API_BASE.rstrip("/")
        if not self.bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN not configured in .env")

    def is_configured(self) -> bool:
        return bool(self.bot_token)

    async def send_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        """
        Send an HTML message, splitting it when it exceeds Telegram's limit.

        Returns:
            {"success": True, "chat_id": ..., "message_ids": [...]} or
            {"success": False, "chat_id": ..., "error": ..., "retryable": bool}

        Never raises for API failures; the caller decides what a failed send means.
        """
        if not self.is_configured():
            return {"success": False, "chat_id": chat_id, "error": "TELEGRAM_BOT_TOKEN not configured", "retryable": False}

        message_ids = []
        try:
            for chunk in split_message(text):
                data = await self._send_with_retry(chat_id, chunk)
                message_ids.append(data.get("result", {}).get("message_id"))
        except TelegramNonRetryableError as e:
            return {"success": False, "chat_id": chat_id, "error": str(e), "retryable": False}
        except (TelegramRetryableError, httpx.HTTPError) as e:
            logger.error(f"All retries exhausted sending to chat {chat_id}: {e}")
            return {"success": False, "chat_id": chat_id, "error": str(e), "retryable": True}

        return {"success": True, "chat_id": chat_id, "message_ids": message_ids}

    @telegram_retry()
    async def _send_with_retry(self, chat_id: str, text: str) -> Dict[str, Any]:
        client = http_client_manager.get_client()
        response = await client.post(
            f"{self.api_base}/bot{self.bot_token}/sendMessage",
            json={
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
            timeout=TIMEOUT_TELEGRAM_API
        )

        if response.status_code == 200:
            data = response.json()
            if data.get("ok"):
                return data
            raise TelegramNonRetryableError(data.get("description", "Unknown error"))

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"Telegram error {response.status_code}, will retry...")
            raise TelegramRetryableError(f"Server error: {response.status_code}")

        logger.error(f"Telegram client error {response.status_code}: {response.text}")
        raise TelegramNonRetryableError(f"Client error: {response.status_code}")


# Singleton instance
telegram_client = TelegramClient()
