from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .app.api import public
from .app.core.config import get_settings
from .app.core.dependencies import get_transform_orchestrator

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Image Transform Service...")

    log_file = Path(settings.absolute_log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(log_file, level=settings.LOG_LEVEL, rotation="10 MB")

    logger.info(
        f"Transform presets: {', '.join(settings.transform_types)}; "
        f"cache {'enabled' if settings.CACHE_ENABLED else 'disabled'}"
    )
    logger.info("Image Transform Service startup complete")

    yield

    logger.info("Shutting down Image Transform Service...")
    await get_transform_orchestrator().aclose()
    logger.remove(sink_id)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        debug=settings.DEBUG,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(public.router, prefix="/api", tags=["public"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "image_transform"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "transform_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )
