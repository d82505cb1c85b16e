"""
Stage Endpoints
POST /pipeline/stages/{stage} - run one batch of a stage.

Called by the advance controller; also callable by hand for operations.

Error translation:
- StagePreconditionError      -> 409 {ok: false, retryable: false}
- ConcurrentModificationError -> 409 {ok: false, retryable: false, conflict: true}
- anything else               -> 500 {ok: false, retryable: true}
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.pipeline.constants import StageName
from app.modules.pipeline.schemas.pipeline_schemas import StageRequest, StageResponse
from app.modules.pipeline.services.stages import STAGE_HANDLERS
from app.shared.core.security import verify_cron_secret
from app.shared.db.session import get_db
from app.shared.utils.exceptions import ConcurrentModificationError, StagePreconditionError

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger("pipeline_api")


@router.post("/{stage}", response_model=StageResponse)
async def run_stage(
    stage: StageName,
    request: StageRequest,
    db: AsyncSession = Depends(get_db)
):
    handler = STAGE_HANDLERS[stage](db)

    try:
        return await handler.run(request.batch_offset, request.batch_size)

    except StagePreconditionError as e:
        await db.rollback()
        logger.warning(f"{stage.value} precondition failed: {e}")
        return JSONResponse(
            status_code=409,
            content={"ok": False, "stage": stage.value, "retryable": False, "error": str(e)}
        )

    except ConcurrentModificationError as e:
        await db.rollback()
        logger.info(f"{stage.value} lost a concurrent update: {e.message}")
        return JSONResponse(
            status_code=409,
            content={"ok": False, "stage": stage.value, "retryable": False, "conflict": True, "error": e.message}
        )

    except Exception as e:
        await db.rollback()
        logger.exception(f"{stage.value} failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "stage": stage.value, "retryable": True, "error": str(e)}
        )
