from .profile_endpoints import router as profile_router, industry_router

__all__ = ["profile_router", "industry_router"]
