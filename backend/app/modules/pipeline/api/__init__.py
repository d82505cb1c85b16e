"""
Pipeline API Routers
"""
from .cron_endpoints import router as cron_router
from .stage_endpoints import router as stage_router
from .job_endpoints import router as job_router

__all__ = ["cron_router", "stage_router", "job_router"]
