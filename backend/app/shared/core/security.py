"""
Bearer-token authentication for the scheduler trigger and pipeline endpoints.
"""
import logging
import secrets

from fastapi import HTTPException, Request

from app.shared.core.config import settings

logger = logging.getLogger("security")


def _extract_bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip()
    return ""


def verify_cron_secret(request: Request) -> str:
    """
    FastAPI dependency: reject calls that do not carry
    `Authorization: Bearer <CRON_SECRET>`.

    Returns the full Authorization header so the controller can forward it
    to the stage endpoints.
    """
    expected = settings.CRON_SECRET
    if not expected:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="Server misconfigured")

    provided = _extract_bearer_token(request)

    # Constant-time comparison to prevent timing attacks
    if not provided or not secrets.compare_digest(provided, expected):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Unauthorized pipeline call from {client}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return f"Bearer {provided}"
