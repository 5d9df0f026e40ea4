"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from grant_pipeline.presentation.api.v1.endpoints.health import router as health_router
from grant_pipeline.presentation.api.v1.admin_pipeline_controller import router as admin_pipeline_router
from grant_pipeline.presentation.api.v1.admin_crawler_controller import router as admin_crawler_router
from grant_pipeline.presentation.api.v1.cron_controller import router as cron_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(admin_pipeline_router)
router.include_router(admin_crawler_router)
router.include_router(cron_router)
