"""Adapter tools and the contract they share."""

from device_tools.tools.base import AdapterTool, Tool, ToolDescriptor
from device_tools.tools.health import HealthDataSource, HealthTool
from device_tools.tools.health_export import HealthExportSource
from device_tools.tools.output import DomainResult, ToolOutput, ToolStatus
from device_tools.tools.registry import CapabilityError, ToolRegistry
from device_tools.tools.schema import ArgumentSchema, FieldSpec, FieldType
from device_tools.tools.weather import Geocoder, OpenMeteoGeocoder, WeatherTool
from device_tools.tools.web_metadata import HtmlMetadataFetcher, MetadataFetcher, WebMetadataTool
from device_tools.tools.web_search import ExaClient, SearchProvider, WebSearchTool

__all__ = [
    "AdapterTool",
    "ArgumentSchema",
    "CapabilityError",
    "DomainResult",
    "ExaClient",
    "FieldSpec",
    "FieldType",
    "Geocoder",
    "HealthDataSource",
    "HealthExportSource",
    "HealthTool",
    "HtmlMetadataFetcher",
    "MetadataFetcher",
    "OpenMeteoGeocoder",
    "SearchProvider",
    "Tool",
    "ToolDescriptor",
    "ToolOutput",
    "ToolRegistry",
    "ToolStatus",
    "WeatherTool",
    "WebMetadataTool",
    "WebSearchTool",
]
