"""
Profile Management - Pydantic Schemas
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# REQUEST MODELS
# ============================================

class AddProfileRequest(BaseModel):
    """Add one LinkedIn profile URL"""
    url: str = Field(..., min_length=1, description="LinkedIn profile URL (normalized before storing)")
    industry_ids: List[int] = Field(..., min_length=1, description="Industry tags; unknown ids are dropped")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://www.linkedin.com/in/jane-doe/",
                "industry_ids": [1, 3]
            }
        }
    )


class SetAllowedRequest(BaseModel):
    allowed: bool


class UpdateIndustriesRequest(BaseModel):
    industry_ids: List[int] = Field(..., min_length=1)


# ============================================
# RESPONSE MODELS
# ============================================

class ProfileResponse(BaseModel):
    id: int
    url: str
    name: Optional[str] = None
    occupation: Optional[str] = None
    allowed: bool
    industry_ids: List[int]
    unverified_details: Optional[Dict[str, Any]] = None
    unverified_at: Optional[datetime] = None


class BulkAddResponse(BaseModel):
    ok: bool = True
    inserted: int
    updated: int
    industry_ids: List[int]


class CountResponse(BaseModel):
    ok: bool = True
    updated: int = 0
    deleted: int = 0
