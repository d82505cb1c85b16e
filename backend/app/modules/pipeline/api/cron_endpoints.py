"""
Scheduler Trigger Endpoint
POST /cron/advance - one advance step, then an in-process continuation
chain while there is more to do.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.schemas.pipeline_schemas import AdvanceResponse
from app.modules.pipeline.services.advance_controller import AdvanceController, run_continuation_chain
from app.shared.core.security import verify_cron_secret
from app.shared.db.session import get_db

router = APIRouter()
logger = logging.getLogger("pipeline_api")


@router.post("/advance", response_model=AdvanceResponse)
async def advance_pipeline(
    background_tasks: BackgroundTasks,
    authorization: str = Depends(verify_cron_secret),
    db: AsyncSession = Depends(get_db)
):
    """
    Advance the active pipeline job by one stage call.

    Returns the job's current status and `offset/total` progress. A failed
    stage returns HTTP 500 with the updated retry count.
    """
    controller = AdvanceController(db, authorization)
    outcome = await controller.advance_once()

    if outcome.should_continue:
        background_tasks.add_task(run_continuation_chain, authorization)

    return JSONResponse(
        status_code=outcome.http_status,
        content=outcome.to_response(),
        background=background_tasks
    )
