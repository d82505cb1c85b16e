"""
Stage Dispatcher
Calls a stage endpoint over HTTP on behalf of the advance controller.

Each stage runs as its own request so one batch maps to one bounded
request, exactly as when the stages are invoked separately.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.modules.pipeline.constants import StageName
from app.shared.core.config import settings
from app.shared.core.constants import TIMEOUT_STAGE_CALL
from app.shared.core.logging import get_correlation_id
from app.shared.middleware.correlation import CORRELATION_HEADER
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("pipeline.dispatch")


@dataclass
class StageCallResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> str:
        return str(self.body.get("error") or self.body.get("detail") or f"HTTP {self.status_code}")


class StageDispatcher:
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.PIPELINE_BASE_URL).rstrip("/")

    def stage_url(self, stage: StageName) -> str:
        return f"{self.base_url}{settings.API_V1_STR}/pipeline/stages/{stage.value}"

    async def dispatch(
        self,
        stage: StageName,
        batch_offset: int,
        batch_size: int,
        authorization: str
    ) -> StageCallResult:
        """
        POST {batch_offset, batch_size} to the stage.

        Raises:
            httpx.HTTPError: network failure or timeout
        """
        headers = {"Authorization": authorization}
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id

        client = http_client_manager.get_client()
        response = await client.post(
            self.stage_url(stage),
            json={"batch_offset": batch_offset, "batch_size": batch_size},
            headers=headers,
            timeout=TIMEOUT_STAGE_CALL
        )

        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text[:500]}
        if not isinstance(body, dict):
            body = {"detail": body}

        logger.info(f"{stage.value} -> HTTP {response.status_code}")
        return StageCallResult(status_code=response.status_code, body=body)
