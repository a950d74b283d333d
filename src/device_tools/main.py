"""FastAPI application entry point for Device Tools."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from device_tools import __version__
from device_tools.api.routes import get_registry, router
from device_tools.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(level=get_settings().log_level.upper(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def _warn_unconfigured(settings: Settings) -> None:
    if not settings.exa_api_key:
        logger.warning("EXA_API_KEY is not set; searchWeb will report missingAPIKey")
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY is not set; getWebMetadata summaries will fail")
    if not settings.health_export_path:
        logger.info("HEALTH_EXPORT_PATH is not set; accessHealth will report it unavailable")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration gaps and the registered tools on startup."""
    logger.info(f"Device Tools v{__version__} starting")
    _warn_unconfigured(get_settings())
    tools = sorted(tool.name for tool in get_registry().get_all())
    logger.info(f"Serving {len(tools)} tools: {', '.join(tools)}")
    yield
    logger.info("Device Tools stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application around the tool registry."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Device Tools",
        description="Uniform call/response adapters over system and web services",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("device_tools.main:app", host=settings.host, port=settings.port, reload=settings.debug)
