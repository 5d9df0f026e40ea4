"""FastAPI application factory for the long-running worker.

The worker accepts crawl jobs over HTTP, acknowledges them immediately and
runs them as background tasks; it also runs embedding batches to completion.
It has no request time limit, unlike the serving tier.
"""

import logging
import time
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request

from grant_pipeline.application.services import BackgroundTaskRunner, CrawlJobExecutor
from grant_pipeline.config import get_settings
from grant_pipeline.infrastructure.browser.playwright_fetcher import PlaywrightPageFetcher
from grant_pipeline.infrastructure.dependencies import make_crawl_runner_scope
from grant_pipeline.infrastructure.logging.log_config import setup_logging
from grant_pipeline.presentation.worker.routes import router as worker_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Worker lifespan — start the browser and the background task runner."""
    settings = get_settings()
    setup_logging()

    if not settings.worker_api_key.strip():
        logger.warning("WORKER_API_KEY is not set; every authenticated request will be rejected")

    browser = PlaywrightPageFetcher(timeout_ms=settings.crawler_browser_timeout * 1000)
    try:
        await browser.start()
    except Exception:
        logger.exception("Headless browser failed to start; SPA sources will be fetched over HTTP")

    runner = BackgroundTaskRunner()
    await runner.start()

    app.state.task_runner = runner
    app.state.crawl_executor = CrawlJobExecutor(
        make_crawl_runner_scope(browser if browser.is_started else None)
    )

    yield

    # Shutdown
    await runner.stop()
    await browser.stop()


def create_worker_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_title} Worker",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    app.include_router(worker_router)
    return app


app = create_worker_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "grant_pipeline.worker_main:app",
        host="0.0.0.0",
        port=8030,
    )
