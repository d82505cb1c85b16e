# backend/tests/api/test_pipeline_endpoints.py
from unittest.mock import AsyncMock, MagicMock, patch

from app.modules.pipeline.constants import StageName
from app.modules.pipeline.services.advance_controller import AdvanceOutcome
from app.shared.core.config import settings
from app.shared.utils.exceptions import ConcurrentModificationError, StagePreconditionError

STAGES_URL = f"{settings.API_V1_STR}/pipeline/stages"
JOBS_URL = f"{settings.API_V1_STR}/pipeline/jobs"


def stage_handler(**run_kwargs):
    """Handler class mock whose instances' run() behaves as given."""
    handler = MagicMock()
    handler.run = AsyncMock(**run_kwargs)
    return MagicMock(return_value=handler), handler


# --- AUTH ---

def test_advance_requires_bearer_token(test_client, mock_db):
    assert test_client.post("/cron/advance").status_code == 401
    response = test_client.post("/cron/advance", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


def test_missing_secret_is_a_server_error(test_client, mock_db, auth_headers):
    with patch.object(settings, "CRON_SECRET", ""):
        response = test_client.post("/cron/advance", headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Server misconfigured"


def test_stage_endpoints_require_bearer_token(test_client, mock_db):
    response = test_client.post(f"{STAGES_URL}/send", json={"batch_offset": 0, "batch_size": 10})
    assert response.status_code == 401


# --- CRON TRIGGER ---

def test_advance_returns_progress_and_schedules_continuation(test_client, mock_db, auth_headers):
    controller = MagicMock()
    controller.advance_once = AsyncMock(return_value=AdvanceOutcome(
        ok=True, current_status="processing", progress="2/10", should_continue=True
    ))
    chain = AsyncMock()

    with patch("app.modules.pipeline.api.cron_endpoints.AdvanceController", return_value=controller), \
         patch("app.modules.pipeline.api.cron_endpoints.run_continuation_chain", chain):
        response = test_client.post("/cron/advance", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "current_status": "processing",
        "progress": "2/10",
        "continuing": True,
    }
    chain.assert_called_once_with(auth_headers["Authorization"])


def test_advance_failure_returns_500_with_retry_count(test_client, mock_db, auth_headers):
    controller = MagicMock()
    controller.advance_once = AsyncMock(return_value=AdvanceOutcome(
        ok=False, current_status="vectorizing", progress="0/40",
        error="vectorize: HTTP 500: gemini: quota", retry_count=2, http_status=500
    ))
    chain = AsyncMock()

    with patch("app.modules.pipeline.api.cron_endpoints.AdvanceController", return_value=controller), \
         patch("app.modules.pipeline.api.cron_endpoints.run_continuation_chain", chain):
        response = test_client.post("/cron/advance", headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["ok"] is False
    assert body["retry_count"] == 2
    assert body["continuing"] is False
    chain.assert_not_called()


# --- STAGES ---

def test_stage_success_passes_result_through(test_client, mock_db, auth_headers):
    handler_cls, handler = stage_handler(return_value={
        "ok": True, "stage": "send", "job_id": 3, "status": "sending", "sent": 4, "offset": 20
    })

    with patch.dict("app.modules.pipeline.api.stage_endpoints.STAGE_HANDLERS", {StageName.SEND: handler_cls}):
        response = test_client.post(
            f"{STAGES_URL}/send", json={"batch_offset": 10, "batch_size": 10}, headers=auth_headers
        )

    assert response.status_code == 200
    body = response.json()
    assert body["sent"] == 4
    assert body["status"] == "sending"
    handler_cls.assert_called_once_with(mock_db)
    handler.run.assert_called_once_with(10, 10)


def test_stage_precondition_failure_is_not_retryable(test_client, mock_db, auth_headers):
    handler_cls, _ = stage_handler(side_effect=StagePreconditionError("No visible industries"))

    with patch.dict("app.modules.pipeline.api.stage_endpoints.STAGE_HANDLERS", {StageName.SCRAPE_LAUNCH: handler_cls}):
        response = test_client.post(f"{STAGES_URL}/scrape-launch", json={}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json() == {
        "ok": False, "stage": "scrape-launch", "retryable": False, "error": "No visible industries"
    }
    mock_db.rollback.assert_called_once()


def test_stage_lost_race_is_reported_as_conflict(test_client, mock_db, auth_headers):
    handler_cls, _ = stage_handler(side_effect=ConcurrentModificationError("PipelineJob", 3))

    with patch.dict("app.modules.pipeline.api.stage_endpoints.STAGE_HANDLERS", {StageName.GENERATE: handler_cls}):
        response = test_client.post(f"{STAGES_URL}/generate", json={}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["conflict"] is True


def test_stage_unexpected_error_is_retryable(test_client, mock_db, auth_headers):
    handler_cls, _ = stage_handler(side_effect=RuntimeError("apify: timeout"))

    with patch.dict("app.modules.pipeline.api.stage_endpoints.STAGE_HANDLERS", {StageName.SCRAPE_POLL: handler_cls}):
        response = test_client.post(f"{STAGES_URL}/scrape-poll", json={}, headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["retryable"] is True
    assert body["error"] == "apify: timeout"
    mock_db.rollback.assert_called_once()


def test_stage_request_validation(test_client, mock_db, auth_headers):
    assert test_client.post(f"{STAGES_URL}/bogus", json={}, headers=auth_headers).status_code == 422
    response = test_client.post(f"{STAGES_URL}/send", json={"batch_offset": -1}, headers=auth_headers)
    assert response.status_code == 422
    response = test_client.post(f"{STAGES_URL}/send", json={"batch_size": 0}, headers=auth_headers)
    assert response.status_code == 422


# --- JOBS ---

def test_current_job(test_client, mock_db, auth_headers):
    job = {
        "id": 5, "status": "generating", "current_batch_offset": 3, "total_items": 12, "version": 9,
        "apify_run_id": "run-1", "retry_count": 1, "max_retries": 3, "error_message": None,
        "created_at": None, "started_at": None, "updated_at": None, "completed_at": None,
    }
    path = "app.modules.pipeline.api.job_endpoints.PipelineJobRepository.get_active_job"

    with patch(path, AsyncMock(return_value=job)):
        response = test_client.get(f"{JOBS_URL}/current", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["progress"] == "3/12"

    with patch(path, AsyncMock(return_value=None)):
        response = test_client.get(f"{JOBS_URL}/current", headers=auth_headers)
    assert response.status_code == 404


def test_health_reports_http_client(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "http_client" in response.json()
