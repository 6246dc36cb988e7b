from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from render_worker.config import Settings, get_settings
from render_worker.errors import RenderWorkerError
from render_worker.log import configure_logging
from render_worker.routers import health_api, render_api
from render_worker.services.auth import hash_api_key
from render_worker.services.media import MediaUtils
from render_worker.services.render_job import RenderOrchestrator


def create_app(settings: Optional[Settings] = None, media: Optional[MediaUtils] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        app.state.settings = settings
        app.state.api_key_hash = hash_api_key(settings.api_secret)
        # Logged on purpose so operators can copy the x-api-key value
        logger.bind(x_api_key=app.state.api_key_hash).info("expected x-api-key header value")

        app.state.media = media or MediaUtils(
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
            probe_timeout=settings.render_probe_timeout_s,
            encode_timeout=settings.render_ffmpeg_timeout_s,
        )
        app.state.orchestrator = RenderOrchestrator(settings, app.state.media)
        logger.bind(port=settings.port, tmp_dir=settings.render_tmp_dir).info("ffmpeg render worker ready")
        yield

    app = FastAPI(lifespan=lifespan, title=settings.app_name, version=settings.app_version)
    app.include_router(health_api.router)
    app.include_router(render_api.router)

    @app.exception_handler(RenderWorkerError)
    async def render_worker_error_handler(request: Request, exc: RenderWorkerError) -> JSONResponse:
        logger.bind(path=request.url.path, status_code=exc.status_code, details=exc.details).warning(exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.bind(path=request.url.path).exception("unhandled error")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app


app = create_app()

# Run with: uvicorn render_worker.main:app --port 3000
