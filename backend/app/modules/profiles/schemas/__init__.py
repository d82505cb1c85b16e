from .profile_schemas import (
    AddProfileRequest,
    SetAllowedRequest,
    UpdateIndustriesRequest,
    ProfileResponse,
    BulkAddResponse,
    CountResponse,
)

__all__ = [
    "AddProfileRequest",
    "SetAllowedRequest",
    "UpdateIndustriesRequest",
    "ProfileResponse",
    "BulkAddResponse",
    "CountResponse",
]
