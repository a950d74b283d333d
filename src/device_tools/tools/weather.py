"""Current weather for a city via geocoding and the Open-Meteo API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from device_tools.config import Settings, get_settings
from device_tools.exceptions import ArgumentError, ErrorKind, ToolError
from device_tools.tools.base import AdapterTool, echo_text
from device_tools.tools.output import DomainResult, ToolOutput, encode_error
from device_tools.tools.schema import ArgumentSchema, FieldSpec, FieldType

logger = logging.getLogger(__name__)

CURRENT_FIELDS = (
    "temperature_2m,relative_humidity_2m,apparent_temperature,"
    "surface_pressure,precipitation,windspeed_10m,weathercode"
)


class WeatherErrorKind(ErrorKind):
    """Failures of the weather tool."""

    MISSING_REQUIRED_FIELD = ("missingRequiredField", "A city name is required")
    INVALID_FIELD_VALUE = ("invalidFieldValue", "Invalid argument value")
    LOCATION_NOT_FOUND = ("locationNotFound", "Could not find location for the specified city")
    INVALID_URL = ("invalidURL", "Invalid API URL")
    API_ERROR = ("apiError", "Weather API request failed")


_CONDITIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Partly cloudy",
    2: "Partly cloudy",
    3: "Partly cloudy",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    56: "Freezing drizzle",
    57: "Freezing drizzle",
    61: "Rain",
    63: "Rain",
    65: "Rain",
    66: "Freezing rain",
    67: "Freezing rain",
    71: "Snow",
    73: "Snow",
    75: "Snow",
    77: "Snow grains",
    80: "Rain showers",
    81: "Rain showers",
    82: "Rain showers",
    85: "Snow showers",
    86: "Snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}


def weather_condition(code: Any) -> str:
    """Map a WMO weather code to a label, "Unknown" for anything unmapped."""
    if isinstance(code, bool) or not isinstance(code, (int, float)):
        return "Unknown"
    if isinstance(code, float) and not code.is_integer():
        return "Unknown"
    return _CONDITIONS.get(int(code), "Unknown")


@dataclass(frozen=True)
class Coordinate:
    """A geographic coordinate in decimal degrees."""

    latitude: float
    longitude: float


@runtime_checkable
class Geocoder(Protocol):
    """Resolves a free-text place name to a coordinate."""

    async def locate(self, place: str) -> Coordinate | None: ...


class OpenMeteoGeocoder:
    """Geocoder backed by the Open-Meteo geocoding API."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.url = settings.open_meteo_geocoding_url
        self.timeout = settings.http_timeout

    async def locate(self, place: str) -> Coordinate | None:
        """Return the best match for a place name, or None if nothing matched.

        Raises:
            httpx.HTTPError: If the request fails
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                self.url,
                params={"name": place, "count": 1, "language": "en", "format": "json"},
            )
            response.raise_for_status()
            data = response.json()

        results = data.get("results") or []
        if not results:
            return None
        first = results[0]
        return Coordinate(latitude=first["latitude"], longitude=first["longitude"])


class WeatherReading(DomainResult):
    """Current conditions for a city."""

    city: str = ""
    temperature: float = 0.0
    condition: str = "Unknown"
    humidity: float = 0.0
    wind_speed: float = 0.0
    feels_like: float = 0.0
    pressure: float = 0.0
    precipitation: float = 0.0
    unit: str = "Celsius"


class WeatherTool(AdapterTool):
    """Retrieve the latest weather information for a city."""

    name = "getWeather"
    description = "Retrieve the latest weather information for a city using OpenMeteo API"
    capabilities = frozenset({"weather"})
    schema = ArgumentSchema(
        FieldSpec(
            "city",
            FieldType.STRING,
            "The city to get weather information for (e.g., 'New York', 'London', 'Tokyo')",
            required=True,
        ),
    )
    result_type = WeatherReading
    fallback_error = WeatherErrorKind.API_ERROR

    def __init__(
        self,
        geocoder: Geocoder | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.geocoder = geocoder or OpenMeteoGeocoder(settings)
        self.forecast_url = settings.open_meteo_url
        self.timeout = settings.http_timeout

    async def execute(self, args: dict[str, Any]) -> tuple[WeatherReading, str]:
        city = args["city"]
        coordinate = await self._locate(city)
        current = await self._fetch_current(coordinate)

        try:
            reading = WeatherReading(
                city=city,
                temperature=current["temperature_2m"],
                condition=weather_condition(current.get("weathercode")),
                humidity=current["relative_humidity_2m"],
                wind_speed=current["windspeed_10m"],
                feels_like=current["apparent_temperature"],
                pressure=current["surface_pressure"],
                precipitation=current["precipitation"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ToolError(WeatherErrorKind.API_ERROR, f"unexpected response: {e}") from e

        message = f"{reading.condition}, {reading.temperature}°C in {city}"
        return reading, message

    async def _locate(self, city: str) -> Coordinate:
        try:
            coordinate = await self.geocoder.locate(city)
        except Exception as e:
            logger.warning(f"Geocoding failed for '{city}': {e}")
            raise ToolError(WeatherErrorKind.LOCATION_NOT_FOUND) from e
        if coordinate is None:
            raise ToolError(WeatherErrorKind.LOCATION_NOT_FOUND)
        return coordinate

    async def _fetch_current(self, coordinate: Coordinate) -> dict[str, Any]:
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "current": CURRENT_FIELDS,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.forecast_url, params=params)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise ToolError(WeatherErrorKind.INVALID_URL, e) from e
        except httpx.HTTPError as e:
            raise ToolError(WeatherErrorKind.API_ERROR, e) from e

        if response.status_code != 200:
            raise ToolError(WeatherErrorKind.API_ERROR, f"HTTP {response.status_code}")

        try:
            current = response.json()["current"]
        except (ValueError, KeyError, TypeError) as e:
            raise ToolError(WeatherErrorKind.API_ERROR, "response could not be decoded") from e
        if not isinstance(current, dict):
            raise ToolError(WeatherErrorKind.API_ERROR, "response could not be decoded")
        return current

    def map_argument_error(self, error: ArgumentError) -> ToolError:
        return ToolError(WeatherErrorKind(error.kind.value), error.detail or None)

    def encode_error(self, error: ToolError, raw: Mapping[str, Any]) -> ToolOutput:
        return encode_error(
            error,
            WeatherReading,
            message=f"Unable to fetch weather data for '{echo_text(raw, 'city')}'",
            echo={"city": echo_text(raw, "city")},
            error_prefix="Unable to fetch weather data: ",
        )
