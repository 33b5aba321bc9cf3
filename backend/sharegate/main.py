import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from .api.error_handlers import register_error_handlers
from .api.router import router as api_router
from .config import settings
from .database import check_database, engine

logger = logging.getLogger("sharegate")


def configure_logging() -> None:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger.setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("startup app=%s", settings.app_name)
    if settings.debug:
        logger.warning("debug_enabled, do not use in production")
    yield
    await engine.dispose()
    logger.info("shutdown")


def create_app() -> FastAPI:
    configure_logging()
    application = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    register_error_handlers(application)
    application.include_router(api_router)

    @application.get("/health", tags=["health"])
    async def health() -> JSONResponse:
        if await check_database():
            return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ok"})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "error"}
        )

    return application


app = create_app()
