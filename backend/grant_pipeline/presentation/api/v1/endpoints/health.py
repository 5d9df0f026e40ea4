"""Health check endpoint — no dependencies, always available."""

from fastapi import APIRouter

from grant_pipeline.config import WorkerConnection, get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the serving tier's health and whether a worker is configured."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "workerConfigured": WorkerConnection.from_settings(settings).is_configured,
    }
