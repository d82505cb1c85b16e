"""
Gemini Service
Embeddings and text generation through Google Gemini.

RATE LIMITING:
Rate-limit (429) and transient server errors are retried in-call with
exponential backoff. Anything still failing surfaces as ExternalServiceError
so the stage fails and the job's retry policy takes over.
"""
import asyncio
import logging
from typing import List, Optional

from google import genai
from google.genai import errors, types
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from app.shared.core.config import settings
from app.shared.core.constants import (
    EMBEDDING_DIMENSIONS,
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
    TIMEOUT_GEMINI_EMBEDDING,
    TIMEOUT_GEMINI_GENERATION,
)
from app.shared.utils.exceptions import ExternalServiceError

logger = logging.getLogger("gemini_service")

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, asyncio.TimeoutError):
        return True
    if isinstance(exc, errors.APIError):
        return exc.code in RETRYABLE_STATUS_CODES
    return False


def gemini_retry():
    """Retry decorator: rate limits, 5xx and timeouts only."""
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1,
            min=RETRY_MIN_WAIT_SECONDS,
            max=RETRY_MAX_WAIT_SECONDS
        ),
        retry=retry_if_exception(_is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


class GeminiService:
    """
    Wraps genai.Client for the two calls the pipeline makes:
    - embed_texts(): post text and signal queries -> fixed-size vectors
    - generate(): retrieval context + signal prompt -> insight text
    """

    def __init__(self):
        self.api_key = settings.GEMINI_API_KEY
        self.model_name = settings.GEMINI_MODEL_NAME
        self.embedding_model = settings.GEMINI_EMBEDDING_MODEL
        self.client = None

        if self.api_key:
            try:
                self.client = genai.Client(api_key=self.api_key)
            except Exception as e:
                logger.error(f"Failed to initialize Gemini client: {e}")
                self.client = None
        else:
            logger.warning("GEMINI_API_KEY is missing - embedding and generation stages will fail")

    def _require_client(self):
        if self.client is None:
            raise ExternalServiceError("gemini", "GEMINI_API_KEY not configured")

    # ============================================
    # EMBEDDINGS
    # ============================================

    async def embed_texts(self, texts: List[str], task_type: str = "RETRIEVAL_DOCUMENT") -> List[List[float]]:
        """Embed a batch of texts. Output order matches input order."""
        if not texts:
            return []
        self._require_client()

        try:
            response = await self._embed_with_retry(texts, task_type)
        except errors.APIError as e:
            raise ExternalServiceError("gemini", f"embedding failed ({e.code}): {e.message}") from e
        except asyncio.TimeoutError as e:
            raise ExternalServiceError("gemini", "embedding request timed out") from e

        vectors = [list(embedding.values) for embedding in (response.embeddings or [])]
        if len(vectors) != len(texts):
            raise ExternalServiceError(
                "gemini",
                f"expected {len(texts)} embeddings, got {len(vectors)}"
            )
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        vectors = await self.embed_texts([text], task_type="RETRIEVAL_QUERY")
        return vectors[0]

    @gemini_retry()
    async def _embed_with_retry(self, texts: List[str], task_type: str):
        return await asyncio.wait_for(
            self.client.aio.models.embed_content(
                model=self.embedding_model,
                contents=texts,
                config=types.EmbedContentConfig(
                    task_type=task_type,
                    output_dimensionality=EMBEDDING_DIMENSIONS
                )
            ),
            timeout=TIMEOUT_GEMINI_EMBEDDING
        )

    # ============================================
    # GENERATION
    # ============================================

    async def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """Single-shot generation. Returns the stripped response text."""
        self._require_client()

        try:
            response = await self._generate_with_retry(prompt, system_instruction)
        except errors.APIError as e:
            raise ExternalServiceError("gemini", f"generation failed ({e.code}): {e.message}") from e
        except asyncio.TimeoutError as e:
            raise ExternalServiceError("gemini", "generation request timed out") from e

        return (response.text or "").strip()

    @gemini_retry()
    async def _generate_with_retry(self, prompt: str, system_instruction: Optional[str]):
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0.2
        )
        return await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config
            ),
            timeout=TIMEOUT_GEMINI_GENERATION
        )


# Singleton instance
gemini_service = GeminiService()
