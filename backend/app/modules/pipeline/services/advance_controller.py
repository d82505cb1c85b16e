"""
Advance Controller
Drives the pipeline job one stage call at a time.

Each step:
1. Load the active job (or create today's job at the trigger hour)
2. Dispatch to the stage matching its status with the job's offset
3. Failure -> FailurePolicy (retry count, terminal failure, admin alert)
   Precondition failure -> error recorded, no retry consumed
   Success -> re-read the job and decide whether to continue immediately

run_chain() is the supervising loop: it keeps stepping while a step says
continue, bounded by PIPELINE_MAX_CHAIN_STEPS.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.constants import JobStatus, STAGE_FOR_STATUS
from app.modules.pipeline.repositories.pipeline_job_repository import PipelineJobRepository
from app.modules.pipeline.services.admin_notifier import AdminNotifier
from app.modules.pipeline.services.failure_policy import FailurePolicy, stage_error
from app.modules.pipeline.services.stage_dispatcher import StageDispatcher
from app.shared.core.config import settings
from app.shared.core.logging import bind_pipeline_job, set_correlation_id
from app.shared.db.session import AsyncSessionLocal
from app.shared.utils.exceptions import ActiveJobExistsError, ConcurrentModificationError
from app.shared.utils.time_utils import start_of_utc_day, utcnow

logger = logging.getLogger("pipeline.advance")


@dataclass
class AdvanceOutcome:
    ok: bool
    current_status: Optional[str] = None
    progress: str = "0/0"
    should_continue: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    retry_count: Optional[int] = None
    http_status: int = 200

    def to_response(self) -> Dict[str, Any]:
        body = {
            "ok": self.ok,
            "current_status": self.current_status,
            "progress": self.progress,
            "continuing": self.should_continue,
        }
        if self.message:
            body["message"] = self.message
        if self.error:
            body["error"] = self.error
        if self.retry_count is not None:
            body["retry_count"] = self.retry_count
        return body


def progress_of(job: Optional[Dict[str, Any]]) -> str:
    if not job:
        return "0/0"
    return f"{job['current_batch_offset']}/{job['total_items']}"


class AdvanceController:
    def __init__(
        self,
        db: AsyncSession,
        authorization: str,
        dispatcher: Optional[StageDispatcher] = None,
        notifier: Optional[AdminNotifier] = None,
    ):
        self.db = db
        self.authorization = authorization
        self.jobs = PipelineJobRepository(db)
        self.dispatcher = dispatcher or StageDispatcher()
        self.failure_policy = FailurePolicy(db, notifier)
        self.batch_size = settings.PIPELINE_BATCH_SIZE

    def now(self):
        return utcnow()

    # ============================================
    # CONTINUATION DECISION
    # ============================================

    @staticmethod
    def should_continue(previous: Dict[str, Any], current: Optional[Dict[str, Any]]) -> bool:
        """
        Continue when the status moved to another non-terminal status, or
        when a batch-draining stage still has work left.
        """
        if not current or JobStatus.is_terminal(current["status"]):
            return False
        if current["status"] != previous["status"]:
            return True
        return (
            JobStatus.is_batch_draining(current["status"])
            and current["current_batch_offset"] < current["total_items"]
        )

    # ============================================
    # ONE STEP
    # ============================================

    async def advance_once(self) -> AdvanceOutcome:
        job = await self.jobs.get_active_job()
        if not job:
            return await self._maybe_create_job()

        bind_pipeline_job(job["id"])
        stage = STAGE_FOR_STATUS.get(job["status"])
        if stage is None:
            logger.error(f"Job {job['id']} has unknown status '{job['status']}'")
            return AdvanceOutcome(ok=True, current_status=job["status"], progress=progress_of(job), message="Unknown status")

        logger.info(f"Job {job['id']} in {job['status']} ({progress_of(job)}) -> {stage.value}")

        try:
            result = await self.dispatcher.dispatch(
                stage, job["current_batch_offset"], self.batch_size, self.authorization
            )
        except httpx.HTTPError as e:
            return await self._fail(job, stage_error(stage, f"{type(e).__name__}: {e}"))

        if result.status_code == 409:
            if result.body.get("conflict"):
                logger.info(f"{stage.value} lost a concurrent update, another invocation owns the job")
                return AdvanceOutcome(ok=True, current_status=job["status"], progress=progress_of(job), message="Concurrent update")
            if result.body.get("retryable") is False:
                return await self._precondition_failed(job, stage_error(stage, result.error))

        if not result.is_success:
            return await self._fail(job, stage_error(stage, f"HTTP {result.status_code}: {result.error}"))

        # The stage ran in its own session; expire ours so the re-read is fresh
        await self.db.rollback()
        current = await self.jobs.get_job_by_id(job["id"])
        if current is None:
            return AdvanceOutcome(ok=True, progress="0/0", message="Job disappeared")

        return AdvanceOutcome(
            ok=True,
            current_status=current["status"],
            progress=progress_of(current),
            should_continue=self.should_continue(job, current),
            message=result.body.get("skipped"),
        )

    async def _maybe_create_job(self) -> AdvanceOutcome:
        now = self.now()
        if now.hour != settings.PIPELINE_TRIGGER_HOUR_UTC:
            return AdvanceOutcome(
                ok=True,
                message=f"No active job, waiting for {settings.PIPELINE_TRIGGER_HOUR_UTC:02d}:00 UTC"
            )

        if await self.jobs.has_job_started_since(start_of_utc_day(now)):
            return AdvanceOutcome(ok=True, message="Today's job already ran")

        try:
            job = await self.jobs.create_job(max_retries=settings.PIPELINE_MAX_RETRIES, started_at=now)
            await self.db.commit()
        except (ActiveJobExistsError, IntegrityError) as e:
            # Another trigger created the job first
            await self.db.rollback()
            logger.info(f"Job creation skipped: {e}")
            return AdvanceOutcome(ok=True, message="Job already being created")

        bind_pipeline_job(job["id"])
        logger.info(f"Created pipeline job {job['id']}")
        return AdvanceOutcome(
            ok=True,
            current_status=job["status"],
            progress=progress_of(job),
            should_continue=True,
            message="New job created and started",
        )

    async def _fail(self, job: Dict[str, Any], error: str) -> AdvanceOutcome:
        logger.error(f"Stage failed for job {job['id']}: {error}")
        try:
            updated = await self.failure_policy.apply(job, error)
        except ConcurrentModificationError:
            return AdvanceOutcome(ok=True, current_status=job["status"], progress=progress_of(job), message="Concurrent update")

        return AdvanceOutcome(
            ok=False,
            current_status=updated["status"],
            progress=progress_of(updated),
            error=error,
            retry_count=updated["retry_count"],
            http_status=500,
        )

    async def _precondition_failed(self, job: Dict[str, Any], error: str) -> AdvanceOutcome:
        """Record the blocker on the job without consuming a retry."""
        logger.warning(f"Stage blocked for job {job['id']}: {error}")
        try:
            if job.get("error_message") != error:
                job = await self.jobs.update_job(job["id"], job["version"], error_message=error)
                await self.db.commit()
        except ConcurrentModificationError:
            await self.db.rollback()

        return AdvanceOutcome(
            ok=False,
            current_status=job["status"],
            progress=progress_of(job),
            error=error,
            retry_count=job.get("retry_count"),
        )

    # ============================================
    # SUPERVISING LOOP
    # ============================================

    async def run_chain(self, max_steps: Optional[int] = None) -> int:
        """
        Step until a step says stop or max_steps is reached.
        Returns the number of steps taken.
        """
        max_steps = max_steps or settings.PIPELINE_MAX_CHAIN_STEPS
        steps = 0
        while steps < max_steps:
            set_correlation_id(prefix="chain")
            steps += 1
            try:
                outcome = await self.advance_once()
            except Exception as e:
                logger.exception(f"Continuation step {steps} crashed: {e}")
                await self.db.rollback()
                break
            if not outcome.should_continue:
                break
        else:
            logger.warning(f"Continuation chain stopped after {max_steps} steps")

        logger.info(f"Continuation chain finished after {steps} steps")
        return steps


async def run_continuation_chain(authorization: str) -> None:
    """
    Background entry point scheduled by /cron/advance.
    Uses its own session: the request's session is closed by then.
    """
    async with AsyncSessionLocal() as db:
        controller = AdvanceController(db, authorization)
        await controller.run_chain()
