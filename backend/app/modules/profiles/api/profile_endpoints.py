"""
Profile Management API Endpoints
Scrape target list and industry removal. Bearer-authenticated.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.profiles.schemas.profile_schemas import (
    AddProfileRequest,
    SetAllowedRequest,
    UpdateIndustriesRequest,
    ProfileResponse,
    BulkAddResponse,
    CountResponse,
)
from app.modules.profiles.services.profile_service import ProfileService, parse_industry_ids
from app.shared.core.security import verify_cron_secret
from app.shared.db.session import get_db
from app.shared.utils.exceptions import EntityNotFoundError

router = APIRouter(dependencies=[Depends(verify_cron_secret)])
industry_router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger("profiles_api")


# ============================================
# PROFILES
# ============================================

@router.post("", response_model=ProfileResponse)
async def add_profile(request: AddProfileRequest, db: AsyncSession = Depends(get_db)):
    """Add one profile. New profiles start unapproved."""
    try:
        return await ProfileService(db).add_profile(request.url, request.industry_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/bulk", response_model=BulkAddResponse)
async def bulk_add_profiles(
    request: Request,
    industry_ids: str = Query(..., description="Comma-separated industry ids, e.g. 1,2"),
    db: AsyncSession = Depends(get_db)
):
    """Add newline-separated profile URLs, merging industries into existing rows."""
    urls = (await request.body()).decode("utf-8", errors="replace")
    ids = parse_industry_ids(industry_ids)
    if not ids:
        raise HTTPException(status_code=400, detail="industry_required")
    try:
        return await ProfileService(db).bulk_add(urls, ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/allow-all", response_model=CountResponse)
async def allow_all_profiles(db: AsyncSession = Depends(get_db)):
    updated = await ProfileService(db).allow_all()
    return CountResponse(updated=updated)


@router.post("/{profile_id}/allowed", response_model=ProfileResponse)
async def set_profile_allowed(
    profile_id: int,
    request: SetAllowedRequest,
    db: AsyncSession = Depends(get_db)
):
    """Approve or revoke a profile. Re-approval clears the identity-drift audit."""
    try:
        return await ProfileService(db).set_allowed(profile_id, request.allowed)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.put("/{profile_id}/industries", response_model=ProfileResponse)
async def update_profile_industries(
    profile_id: int,
    request: UpdateIndustriesRequest,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await ProfileService(db).update_industries(profile_id, request.industry_ids)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{profile_id}", response_model=CountResponse)
async def delete_profile(profile_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await ProfileService(db).delete_profile(profile_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return CountResponse(deleted=1)


# ============================================
# INDUSTRIES
# ============================================

@industry_router.delete("/{industry_id}", response_model=CountResponse)
async def delete_industry(industry_id: int, db: AsyncSession = Depends(get_db)):
    """Delete an industry, untag it everywhere and drop profiles left untagged."""
    try:
        deleted_profiles = await ProfileService(db).delete_industry(industry_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return CountResponse(deleted=deleted_profiles)
