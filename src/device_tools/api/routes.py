"""FastAPI routes for listing and invoking tools."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from device_tools import __version__
from device_tools.config import get_settings
from device_tools.tools.health import HealthTool
from device_tools.tools.health_export import HealthExportSource
from device_tools.tools.registry import ToolRegistry
from device_tools.tools.weather import WeatherTool
from device_tools.tools.web_metadata import WebMetadataTool
from device_tools.tools.web_search import WebSearchTool

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependency injection
_registry: ToolRegistry | None = None


class InvokeRequest(BaseModel):
    """Raw arguments for one tool invocation."""

    arguments: dict[str, Any] = Field(default_factory=dict)


def _build_registry() -> ToolRegistry:
    """Create and populate the tool registry."""
    settings = get_settings()
    registry = ToolRegistry()
    registry.register(WeatherTool(settings=settings))
    registry.register(HealthTool(source=HealthExportSource(settings.health_export_path)))
    registry.register(WebMetadataTool(settings=settings))
    registry.register(WebSearchTool(settings=settings))
    return registry


def get_registry() -> ToolRegistry:
    """Get or create the registry instance."""
    global _registry
    if _registry is None:
        _registry = _build_registry()
        logger.info(f"Registered {len(_registry)} tools")
    return _registry


@router.get("/health")
async def health(
    registry: Annotated[ToolRegistry, Depends(get_registry)],
) -> dict[str, Any]:
    """Liveness check."""
    return {
        "status": "healthy",
        "version": __version__,
        "tools": sorted(tool.name for tool in registry.get_all()),
    }


@router.get("/tools")
async def list_tools(
    registry: Annotated[ToolRegistry, Depends(get_registry)],
) -> list[dict[str, Any]]:
    """Descriptors of every registered tool, for a planner."""
    return [descriptor.to_dict() for descriptor in registry.descriptors()]


@router.post("/tools/{name}")
async def invoke_tool(
    name: str,
    request: InvokeRequest,
    registry: Annotated[ToolRegistry, Depends(get_registry)],
) -> dict[str, Any]:
    """Invoke a tool and return its flat output payload."""
    if name not in registry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool '{name}' not found",
        )
    output = await registry.invoke(name, request.arguments)
    logger.info(f"Invoked {name}: {output.status.value}")
    return output.to_payload()
