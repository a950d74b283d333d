"""Read-only queries over an on-device health datastore."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from pydantic import Field

from device_tools.exceptions import ArgumentError, ArgumentErrorKind, ErrorKind, ToolError
from device_tools.tools.base import AdapterTool, echo_text
from device_tools.tools.output import DomainResult, ToolOutput, encode_error
from device_tools.tools.schema import ArgumentSchema, FieldSpec, FieldType

logger = logging.getLogger(__name__)

HEART_RATE_SAMPLE_LIMIT = 100
WORKOUT_LIMIT = 20
SLEEP_DAYS_LISTED = 7
METERS_PER_MILE = 1609.344

# Default query window, in days, when no start date is given
PERIOD_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


class HealthErrorKind(ErrorKind):
    """Failures of the health tool."""

    MISSING_REQUIRED_FIELD = ("missingRequiredField", "A required argument is missing")
    INVALID_FIELD_VALUE = ("invalidFieldValue", "Invalid argument value")
    HEALTHKIT_NOT_AVAILABLE = ("healthKitNotAvailable", "HealthKit is not available on this device.")
    AUTHORIZATION_DENIED = (
        "authorizationDenied",
        "Access to health data denied. Please grant permission in Settings.",
    )
    INVALID_DATA_TYPE = (
        "invalidDataType",
        "Invalid data type. Use 'steps', 'heartRate', 'workouts', 'sleep', "
        "'activeEnergy', or 'distance'.",
    )
    MISSING_DATA_TYPE = ("missingDataType", "Data type is required for this action.")
    INVALID_ACTION = ("invalidAction", "Invalid action. Use 'read', 'write', 'summary', or 'trends'.")
    INVALID_DATE_RANGE = ("invalidDateRange", "The start date must not be after the end date.")
    DATA_TYPE_NOT_AVAILABLE = ("dataTypeNotAvailable", "This health data type is not available.")
    NO_DATA = ("noData", "No health data found for the specified period.")
    NOT_IMPLEMENTED = ("notImplemented", "Writing health data is not supported.")
    QUERY_FAILED = ("queryFailed", "Health data query failed")


class HealthDataKind(str, Enum):
    """Data types the tool can query."""

    STEPS = "steps"
    HEART_RATE = "heartRate"
    WORKOUTS = "workouts"
    SLEEP = "sleep"
    ACTIVE_ENERGY = "activeEnergy"
    DISTANCE = "distance"


@dataclass(frozen=True)
class QuantitySample:
    """A numeric sample. Heart rate is in count/min."""

    value: float
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CategorySample:
    """A category sample such as a sleep interval."""

    start: datetime
    end: datetime
    value: str = ""


@dataclass(frozen=True)
class WorkoutSample:
    """A recorded workout."""

    activity_type: str
    start: datetime
    end: datetime
    total_distance_meters: float | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class AuthorizationDeniedError(Exception):
    """Raised by a data source when read access is refused."""


@runtime_checkable
class HealthDataSource(Protocol):
    """Authorization-gated, date-ranged access to health samples.

    Cumulative sums are returned in count (steps), kcal (active energy)
    or meters (distance). Sample listings are sorted newest first.
    """

    def is_available(self) -> bool: ...

    def supports(self, kind: HealthDataKind) -> bool: ...

    async def request_authorization(self, read: frozenset[HealthDataKind]) -> None: ...

    async def cumulative_sum(
        self, kind: HealthDataKind, start: datetime, end: datetime
    ) -> float | None: ...

    async def quantity_samples(
        self, kind: HealthDataKind, start: datetime, end: datetime, limit: int | None = None
    ) -> list[QuantitySample]: ...

    async def workouts(
        self, start: datetime, end: datetime, limit: int | None = None
    ) -> list[WorkoutSample]: ...

    async def sleep_samples(self, start: datetime, end: datetime) -> list[CategorySample]: ...


_WORKOUT_NAMES: dict[str, str] = {
    "running": "Running",
    "walking": "Walking",
    "cycling": "Cycling",
    "swimming": "Swimming",
    "yoga": "Yoga",
    "functionalStrengthTraining": "Strength Training",
    "traditionalStrengthTraining": "Weight Training",
    "coreTraining": "Core Training",
    "elliptical": "Elliptical",
    "rowing": "Rowing",
    "stairClimbing": "Stair Climbing",
    "hiking": "Hiking",
    "dance": "Dance",
    "pilates": "Pilates",
}


def workout_activity_name(activity_type: str) -> str:
    """Display name for a workout activity code, "Other Workout" if unmapped."""
    return _WORKOUT_NAMES.get(activity_type, "Other Workout")


def days_between(start: datetime, end: datetime) -> int:
    """Whole days between two instants, never less than 1."""
    return max(1, (end - start).days)


def format_date(value: date) -> str:
    """Medium date style, e.g. "Oct 19, 2026"."""
    return f"{value:%b} {value.day}, {value.year}"


def format_date_time(value: datetime) -> str:
    """Medium date with short time, e.g. "Oct 19, 2026 at 9:41 AM"."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{format_date(value)} at {hour}:{value:%M} {meridiem}"


# ---------------------------------------------------------------------------
# Domain results
# ---------------------------------------------------------------------------

class StepsSummary(DomainResult):
    data_type: str = HealthDataKind.STEPS.value
    total_steps: int = 0
    start_date: str = ""
    end_date: str = ""
    daily_average: int = 0


class HeartRateSummary(DomainResult):
    data_type: str = HealthDataKind.HEART_RATE.value
    latest_reading: str = ""
    average_bpm: int = Field(0, alias="averageBPM")
    min_bpm: int = Field(0, alias="minBPM")
    max_bpm: int = Field(0, alias="maxBPM")
    sample_count: int = 0


class WorkoutsSummary(DomainResult):
    data_type: str = HealthDataKind.WORKOUTS.value
    workout_count: int = 0
    total_duration_minutes: int = 0
    total_calories: int = 0
    workouts: str = ""


class SleepSummary(DomainResult):
    data_type: str = HealthDataKind.SLEEP.value
    average_sleep_hours: str = "0.0"
    total_nights: int = 0
    sleep_data: str = ""


class ActiveEnergySummary(DomainResult):
    data_type: str = HealthDataKind.ACTIVE_ENERGY.value
    total_calories: int = 0
    daily_average: int = 0
    start_date: str = ""
    end_date: str = ""


class DistanceSummary(DomainResult):
    data_type: str = HealthDataKind.DISTANCE.value
    total_kilometers: str = "0.00"
    total_miles: str = "0.00"
    daily_average_km: str = "0.00"
    start_date: str = ""
    end_date: str = ""


class HealthFailure(DomainResult):
    """Key set of a health error payload."""

    action: str = ""
    data_type: str = ""


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------

class HealthTool(AdapterTool):
    """Access and analyze health data from the device's health store."""

    name = "accessHealth"
    description = "Access and analyze health data including steps, heart rate, workouts, and more"
    capabilities = frozenset({"health_data"})
    schema = ArgumentSchema(
        FieldSpec(
            "action",
            FieldType.STRING,
            "The action to perform: 'read', 'write', 'summary', 'trends'",
            required=True,
            choices=("read", "write", "summary", "trends"),
        ),
        FieldSpec(
            "dataType",
            FieldType.STRING,
            "Type of health data: 'steps', 'heartRate', 'workouts', 'sleep', "
            "'activeEnergy', 'distance'",
            choices=tuple(kind.value for kind in HealthDataKind),
        ),
        FieldSpec("startDate", FieldType.DATE, "Start date for data query (YYYY-MM-DD format)"),
        FieldSpec(
            "endDate",
            FieldType.DATE,
            "End date for data query, inclusive (YYYY-MM-DD format)",
        ),
        FieldSpec("value", FieldType.NUMBER, "Value to write (for write action)"),
        FieldSpec("unit", FieldType.STRING, "Unit for the health data (e.g., 'count', 'kg', 'bpm')"),
        FieldSpec(
            "period",
            FieldType.STRING,
            "Time period used when no start date is given: 'day', 'week', 'month', 'year'",
            default="week",
            choices=tuple(PERIOD_DAYS),
        ),
    )
    result_type = HealthFailure
    fallback_error = HealthErrorKind.QUERY_FAILED

    def __init__(
        self,
        source: HealthDataSource,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.source = source
        self.clock = clock

    async def execute(self, args: dict[str, Any]) -> tuple[DomainResult, str]:
        if args["action"] == "write":
            raise ToolError(HealthErrorKind.NOT_IMPLEMENTED)
        if args["dataType"] is None:
            raise ToolError(HealthErrorKind.MISSING_DATA_TYPE)

        kind = HealthDataKind(args["dataType"])
        start, end = self.date_range(args)

        if not self.source.is_available():
            raise ToolError(HealthErrorKind.HEALTHKIT_NOT_AVAILABLE)
        if not self.source.supports(kind):
            raise ToolError(HealthErrorKind.DATA_TYPE_NOT_AVAILABLE)
        await self._authorize(kind)

        handler = {
            HealthDataKind.STEPS: self._query_steps,
            HealthDataKind.HEART_RATE: self._query_heart_rate,
            HealthDataKind.WORKOUTS: self._query_workouts,
            HealthDataKind.SLEEP: self._query_sleep,
            HealthDataKind.ACTIVE_ENERGY: self._query_active_energy,
            HealthDataKind.DISTANCE: self._query_distance,
        }[kind]
        return await handler(start, end)

    def date_range(self, args: dict[str, Any]) -> tuple[datetime, datetime]:
        """Resolve the query window from explicit dates or the period default."""
        now = self.clock()
        start_day: date | None = args["startDate"]
        end_day: date | None = args["endDate"]

        if start_day is not None:
            start = datetime.combine(start_day, time.min)
            # endDate is inclusive: the window runs through the last instant of that day
            end = datetime.combine(end_day, time.max) if end_day is not None else now
        else:
            end = now
            start = now - timedelta(days=PERIOD_DAYS[args["period"]])

        if start > end:
            raise ToolError(HealthErrorKind.INVALID_DATE_RANGE)
        return start, end

    async def _authorize(self, kind: HealthDataKind) -> None:
        read = {kind}
        if kind is HealthDataKind.WORKOUTS:
            read.add(HealthDataKind.ACTIVE_ENERGY)
        try:
            await self.source.request_authorization(frozenset(read))
        except Exception as e:
            raise ToolError(HealthErrorKind.AUTHORIZATION_DENIED) from e

    async def _sum(self, kind: HealthDataKind, start: datetime, end: datetime) -> float:
        try:
            total = await self.source.cumulative_sum(kind, start, end)
        except Exception as e:
            raise ToolError(HealthErrorKind.QUERY_FAILED, e) from e
        if total is None:
            raise ToolError(HealthErrorKind.NO_DATA)
        return total

    async def _query_steps(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        steps = await self._sum(HealthDataKind.STEPS, start, end)
        total = int(steps)
        result = StepsSummary(
            total_steps=total,
            start_date=format_date(start),
            end_date=format_date(end),
            daily_average=int(steps // days_between(start, end)),
        )
        return result, f"Total steps: {total}"

    async def _query_heart_rate(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        try:
            samples = await self.source.quantity_samples(
                HealthDataKind.HEART_RATE, start, end, limit=HEART_RATE_SAMPLE_LIMIT
            )
        except Exception as e:
            raise ToolError(HealthErrorKind.QUERY_FAILED, e) from e
        if not samples:
            raise ToolError(HealthErrorKind.NO_DATA)

        rates = [sample.value for sample in samples]
        latest = samples[0]
        average = sum(rates) / len(rates)
        result = HeartRateSummary(
            latest_reading=f"{int(latest.value)} bpm at {format_date_time(latest.start)}",
            average_bpm=int(average),
            min_bpm=int(min(rates)),
            max_bpm=int(max(rates)),
            sample_count=len(rates),
        )
        return result, f"Average heart rate: {int(average)} bpm"

    async def _query_workouts(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        try:
            workouts = await self.source.workouts(start, end, limit=WORKOUT_LIMIT)
        except Exception as e:
            raise ToolError(HealthErrorKind.QUERY_FAILED, e) from e
        if not workouts:
            raise ToolError(HealthErrorKind.NO_DATA)

        # One energy lookup per workout; gather keeps source order
        calories = await asyncio.gather(*(self._workout_energy(w) for w in workouts))

        lines: list[str] = []
        for index, (workout, burned) in enumerate(zip(workouts, calories), start=1):
            distance = workout.total_distance_meters or 0
            lines.append(f"{index}. {workout_activity_name(workout.activity_type)}")
            lines.append(f"   Date: {format_date_time(workout.start)}")
            lines.append(f"   Duration: {int(workout.duration_seconds / 60)} minutes")
            if burned > 0:
                lines.append(f"   Calories: {int(burned)}")
            if distance > 0:
                lines.append(f"   Distance: {distance / 1000:.2f} km")
            lines.append("")

        total_seconds = sum(w.duration_seconds for w in workouts)
        result = WorkoutsSummary(
            workout_count=len(workouts),
            total_duration_minutes=int(total_seconds / 60),
            total_calories=int(sum(calories)),
            workouts="\n".join(lines).strip(),
        )
        return result, f"Found {len(workouts)} workout(s)"

    async def _workout_energy(self, workout: WorkoutSample) -> float:
        try:
            total = await self.source.cumulative_sum(
                HealthDataKind.ACTIVE_ENERGY, workout.start, workout.end
            )
        except Exception as e:
            logger.warning(f"Energy lookup failed for workout at {workout.start}: {e}")
            return 0.0
        return total or 0.0

    async def _query_sleep(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        try:
            samples = await self.source.sleep_samples(start, end)
        except Exception as e:
            raise ToolError(HealthErrorKind.QUERY_FAILED, e) from e
        if not samples:
            raise ToolError(HealthErrorKind.NO_DATA)

        by_day: dict[date, float] = {}
        for sample in samples:
            seconds = (sample.end - sample.start).total_seconds()
            day = sample.start.date()
            by_day[day] = by_day.get(day, 0.0) + seconds

        listed = sorted(by_day.items(), reverse=True)[:SLEEP_DAYS_LISTED]
        sleep_data = "\n".join(
            f"{format_date(day)}: {seconds / 3600:.1f} hours" for day, seconds in listed
        )
        average_hours = sum(by_day.values()) / len(by_day) / 3600

        result = SleepSummary(
            average_sleep_hours=f"{average_hours:.1f}",
            total_nights=len(by_day),
            sleep_data=sleep_data,
        )
        return result, f"Average sleep: {average_hours:.1f} hours per night"

    async def _query_active_energy(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        calories = await self._sum(HealthDataKind.ACTIVE_ENERGY, start, end)
        result = ActiveEnergySummary(
            total_calories=int(calories),
            daily_average=int(calories / days_between(start, end)),
            start_date=format_date(start),
            end_date=format_date(end),
        )
        return result, f"Total active energy: {int(calories)} calories"

    async def _query_distance(self, start: datetime, end: datetime) -> tuple[DomainResult, str]:
        meters = await self._sum(HealthDataKind.DISTANCE, start, end)
        kilometers = meters / 1000
        result = DistanceSummary(
            total_kilometers=f"{kilometers:.2f}",
            total_miles=f"{meters / METERS_PER_MILE:.2f}",
            daily_average_km=f"{kilometers / days_between(start, end):.2f}",
            start_date=format_date(start),
            end_date=format_date(end),
        )
        return result, f"Total distance: {kilometers:.2f} km"

    def map_argument_error(self, error: ArgumentError) -> ToolError:
        if error.field == "action":
            if error.kind is ArgumentErrorKind.MISSING_REQUIRED_FIELD:
                return ToolError(HealthErrorKind.MISSING_REQUIRED_FIELD, "action")
            return ToolError(HealthErrorKind.INVALID_ACTION)
        if error.field == "dataType":
            return ToolError(HealthErrorKind.INVALID_DATA_TYPE)
        return ToolError(HealthErrorKind.INVALID_FIELD_VALUE, f"{error.field}: {error.detail}")

    def encode_error(self, error: ToolError, raw: Mapping[str, Any]) -> ToolOutput:
        return encode_error(
            error,
            HealthFailure,
            message="Failed to access health data",
            echo={"action": echo_text(raw, "action"), "dataType": echo_text(raw, "dataType")},
        )
