"""
FastAPI main application for the virtual staging API
"""
import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

# Add api directory to path for imports
api_dir = os.path.dirname(os.path.abspath(__file__))
if api_dir not in sys.path:
    sys.path.insert(0, api_dir)

from core.config import settings  # noqa: E402
from core.logging import setup_logging  # noqa: E402
from middleware import RequestLoggingMiddleware  # noqa: E402
from routers import staging  # noqa: E402
from schemas.staging import HealthResponse  # noqa: E402
from services.design_generation_service import DesignGenerationService  # noqa: E402
from services.genai_client import GenAIClient  # noqa: E402
from services.image_edit_service import ImageEditService  # noqa: E402
from services.object_identification_service import ObjectIdentificationService  # noqa: E402
from services.staging_session import StagingSessionStore  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")

    app.state.settings = settings
    app.state.session_store = StagingSessionStore(max_sessions=settings.max_sessions)

    if settings.google_ai_api_key:
        key = settings.google_ai_api_key
        key_preview = f"{key[:7]}...{key[-4:]}" if len(key) > 11 else "***"
        logger.info(f"✅ GOOGLE_AI_API_KEY is set: {key_preview}")

        genai_client = GenAIClient(api_key=key)
        app.state.design_service = DesignGenerationService(genai_client, settings)
        app.state.edit_service = ImageEditService(genai_client, settings)
        app.state.identification_service = ObjectIdentificationService(genai_client, settings)
    else:
        logger.error("❌ GOOGLE_AI_API_KEY is NOT set - design generation will not work!")

    logger.info(
        f"Generation config: {settings.design_count} designs, plan format '{settings.plan_format}', "
        f"{settings.letterbox_size}px letterbox, planning model {settings.planning_model}, image model {settings.image_model}"
    )

    yield

    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="Virtual staging: redesign a room photo and find local stores",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint for load balancers"""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.version,
        api_key_configured=bool(settings.google_ai_api_key),
    )


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs" if settings.environment == "development" else None,
        "endpoints": {"staging": "/api/staging/sessions"},
    }


app.include_router(staging.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_config=None,  # Use our custom logging
        access_log=False,  # We handle this in middleware
    )
