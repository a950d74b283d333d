"""Tests for the weather tool."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from device_tools.tools.output import ToolStatus
from device_tools.tools.weather import (
    Coordinate,
    OpenMeteoGeocoder,
    WeatherReading,
    WeatherTool,
    weather_condition,
)

CURRENT = {
    "temperature_2m": 18.5,
    "relative_humidity_2m": 72.0,
    "apparent_temperature": 17.9,
    "surface_pressure": 1012.3,
    "precipitation": 0.0,
    "windspeed_10m": 11.2,
    "weathercode": 0,
}


def _http_response(status_code=200, payload=None, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def _patch_client(response=None, side_effect=None):
    """Patch httpx.AsyncClient used by the weather module."""
    patcher = patch("device_tools.tools.weather.httpx.AsyncClient")
    mock_client_cls = patcher.start()
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.get.side_effect = side_effect
    else:
        mock_client.get.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return patcher, mock_client


@pytest.fixture
def geocoder():
    stub = MagicMock()
    stub.locate = AsyncMock(return_value=Coordinate(latitude=37.77, longitude=-122.41))
    return stub


@pytest.fixture
def tool(geocoder, settings):
    return WeatherTool(geocoder=geocoder, settings=settings)


# ---------------------------------------------------------------------------
# TestWeatherCodes
# ---------------------------------------------------------------------------

class TestWeatherCodes:

    @pytest.mark.parametrize("code,label", [
        (0, "Clear sky"),
        (2, "Partly cloudy"),
        (48, "Fog"),
        (55, "Drizzle"),
        (57, "Freezing drizzle"),
        (63, "Rain"),
        (66, "Freezing rain"),
        (75, "Snow"),
        (77, "Snow grains"),
        (81, "Rain showers"),
        (86, "Snow showers"),
        (95, "Thunderstorm"),
        (99, "Thunderstorm with hail"),
    ])
    def test_mapped_codes(self, code, label):
        assert weather_condition(code) == label

    @pytest.mark.parametrize("code", [-1, 4, 50, 100, 1000, None, "abc", 2.5, True])
    def test_unmapped_codes_are_unknown(self, code):
        assert weather_condition(code) == "Unknown"


# ---------------------------------------------------------------------------
# TestWeatherTool
# ---------------------------------------------------------------------------

class TestWeatherTool:

    @pytest.mark.asyncio
    async def test_success(self, tool, geocoder):
        patcher, client = _patch_client(_http_response(payload={"current": CURRENT}))
        try:
            output = await tool.call({"city": "  San Francisco "})
        finally:
            patcher.stop()

        assert output.status is ToolStatus.SUCCESS
        assert output["city"] == "San Francisco"
        assert output["condition"] == "Clear sky"
        assert output["temperature"] == 18.5
        assert output["humidity"] == 72.0
        assert output["windSpeed"] == 11.2
        assert output["feelsLike"] == 17.9
        assert output["pressure"] == 1012.3
        assert output["precipitation"] == 0.0
        assert output["unit"] == "Celsius"

        geocoder.locate.assert_awaited_once_with("San Francisco")
        params = client.get.call_args.kwargs["params"]
        assert params["latitude"] == 37.77
        assert params["longitude"] == -122.41
        assert "weathercode" in params["current"]

    @pytest.mark.asyncio
    async def test_missing_city_never_calls_out(self, tool, geocoder):
        patcher, client = _patch_client(_http_response(payload={"current": CURRENT}))
        try:
            output = await tool.call({"city": "   "})
        finally:
            patcher.stop()

        assert output["status"] == "error"
        assert output["errorKind"] == "missingRequiredField"
        geocoder.locate.assert_not_awaited()
        client.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_location_not_found_skips_forecast(self, tool, geocoder):
        geocoder.locate.return_value = None
        patcher, client = _patch_client(_http_response(payload={"current": CURRENT}))
        try:
            output = await tool.call({"city": "Atlantis"})
        finally:
            patcher.stop()

        assert output["status"] == "error"
        assert output["errorKind"] == "locationNotFound"
        assert output["city"] == "Atlantis"
        assert output["temperature"] == 0
        assert output["condition"] == "Unknown"
        assert output["unit"] == "Celsius"
        assert output["error"] == (
            "Unable to fetch weather data: Could not find location for the specified city"
        )
        client.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_geocoder_failure_is_location_not_found(self, tool, geocoder):
        geocoder.locate.side_effect = httpx.ConnectError("offline")
        output = await tool.call({"city": "Paris"})
        assert output["errorKind"] == "locationNotFound"

    @pytest.mark.asyncio
    async def test_non_200_is_api_error(self, tool):
        patcher, _ = _patch_client(_http_response(status_code=503))
        try:
            output = await tool.call({"city": "Paris"})
        finally:
            patcher.stop()

        assert output["errorKind"] == "apiError"
        assert "Weather API request failed" in output["error"]

    @pytest.mark.asyncio
    async def test_undecodable_body_is_api_error(self, tool):
        patcher, _ = _patch_client(_http_response(json_error=ValueError("not json")))
        try:
            output = await tool.call({"city": "Paris"})
        finally:
            patcher.stop()

        assert output["errorKind"] == "apiError"

    @pytest.mark.asyncio
    async def test_missing_current_fields_is_api_error(self, tool):
        patcher, _ = _patch_client(_http_response(payload={"current": {"weathercode": 1}}))
        try:
            output = await tool.call({"city": "Paris"})
        finally:
            patcher.stop()

        assert output["errorKind"] == "apiError"

    @pytest.mark.asyncio
    async def test_transport_error_is_api_error(self, tool):
        patcher, _ = _patch_client(side_effect=httpx.ReadTimeout("timed out"))
        try:
            output = await tool.call({"city": "Paris"})
        finally:
            patcher.stop()

        assert output["status"] == "error"
        assert output["errorKind"] == "apiError"
        assert "timed out" in output["error"]

    @pytest.mark.asyncio
    async def test_invalid_url(self, tool):
        patcher, _ = _patch_client(side_effect=httpx.UnsupportedProtocol("ftp"))
        try:
            output = await tool.call({"city": "Paris"})
        finally:
            patcher.stop()

        assert output["errorKind"] == "invalidURL"

    @pytest.mark.asyncio
    async def test_identical_calls_identical_payloads(self, tool):
        patcher, _ = _patch_client(_http_response(payload={"current": CURRENT}))
        try:
            first = await tool.call({"city": "Tokyo"})
            second = await tool.call({"city": "Tokyo"})
        finally:
            patcher.stop()

        assert first.to_payload() == second.to_payload()

    @pytest.mark.asyncio
    async def test_payload_decodes_to_reading(self, tool):
        patcher, _ = _patch_client(_http_response(payload={"current": CURRENT}))
        try:
            output = await tool.call({"city": "Tokyo"})
        finally:
            patcher.stop()

        reading = WeatherReading.from_payload(output.to_payload())
        assert reading.temperature == CURRENT["temperature_2m"]
        assert reading.wind_speed == CURRENT["windspeed_10m"]
        assert reading.pressure == CURRENT["surface_pressure"]


# ---------------------------------------------------------------------------
# TestOpenMeteoGeocoder
# ---------------------------------------------------------------------------

class TestOpenMeteoGeocoder:

    @pytest.mark.asyncio
    async def test_first_result(self, settings):
        response = _http_response(payload={
            "results": [
                {"name": "London", "latitude": 51.5085, "longitude": -0.1257},
                {"name": "London", "latitude": 42.98, "longitude": -81.23},
            ]
        })
        patcher, client = _patch_client(response)
        try:
            coordinate = await OpenMeteoGeocoder(settings).locate("London")
        finally:
            patcher.stop()

        assert coordinate == Coordinate(latitude=51.5085, longitude=-0.1257)
        assert client.get.call_args.kwargs["params"]["name"] == "London"
        assert client.get.call_args.kwargs["params"]["count"] == 1

    @pytest.mark.asyncio
    async def test_no_results(self, settings):
        patcher, _ = _patch_client(_http_response(payload={"generationtime_ms": 0.4}))
        try:
            coordinate = await OpenMeteoGeocoder(settings).locate("Nowhere")
        finally:
            patcher.stop()

        assert coordinate is None
