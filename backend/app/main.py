from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.shared.core.config import settings
from app.shared.core.logging import setup_logging
from app.shared.middleware.correlation import CorrelationIdMiddleware
from app.shared.utils.http_client import http_client_manager, startup_http_client, shutdown_http_client
from app.modules.pipeline.api import cron_router, stage_router, job_router
from app.modules.profiles.api import profile_router, industry_router

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_http_client()
    yield
    await shutdown_http_client()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID for request tracing (added last so it runs first)
app.add_middleware(CorrelationIdMiddleware)

# Scheduler trigger
app.include_router(cron_router, prefix="/cron", tags=["Scheduler"])

# Pipeline stages and job status
app.include_router(stage_router, prefix=f"{settings.API_V1_STR}/pipeline/stages", tags=["Pipeline Stages"])
app.include_router(job_router, prefix=f"{settings.API_V1_STR}/pipeline/jobs", tags=["Pipeline Jobs"])

# Scrape target management
app.include_router(profile_router, prefix=f"{settings.API_V1_STR}/profiles", tags=["Profiles"])
app.include_router(industry_router, prefix=f"{settings.API_V1_STR}/industries", tags=["Industries"])


@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}


@app.get("/health")
def health():
    return {"status": "ok", "http_client": http_client_manager.get_status()}
