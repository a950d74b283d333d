"""Health data source over an Apple Health ``export.xml`` file.

The export is owned and written by the operating system; this source only
reads it. Each query streams the file, keeping only the records that match
the requested type and window, so nothing is indexed or held between calls.
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from device_tools.tools.health import (
    CategorySample,
    HealthDataKind,
    QuantitySample,
    WorkoutSample,
)

logger = logging.getLogger(__name__)

_RECORD_TYPES = {
    HealthDataKind.STEPS: "HKQuantityTypeIdentifierStepCount",
    HealthDataKind.HEART_RATE: "HKQuantityTypeIdentifierHeartRate",
    HealthDataKind.ACTIVE_ENERGY: "HKQuantityTypeIdentifierActiveEnergyBurned",
    HealthDataKind.DISTANCE: "HKQuantityTypeIdentifierDistanceWalkingRunning",
    HealthDataKind.SLEEP: "HKCategoryTypeIdentifierSleepAnalysis",
}

# Conversion into the units HealthDataSource promises: count, count/min, kcal, meters
_UNIT_FACTORS = {
    "count": 1.0,
    "count/min": 1.0,
    "kcal": 1.0,
    "Cal": 1.0,
    "kJ": 1 / 4.184,
    "m": 1.0,
    "km": 1000.0,
    "mi": 1609.344,
    "ft": 0.3048,
}

_WORKOUT_PREFIX = "HKWorkoutActivityType"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def parse_export_date(value: str) -> datetime:
    """Parse an export timestamp into a naive local datetime."""
    return datetime.strptime(value, _DATE_FORMAT).astimezone().replace(tzinfo=None)


def activity_code(workout_activity_type: str) -> str:
    """"HKWorkoutActivityTypeStairClimbing" -> "stairClimbing"."""
    suffix = workout_activity_type.removeprefix(_WORKOUT_PREFIX)
    return suffix[:1].lower() + suffix[1:]


def _convert(value: str, unit: str | None) -> float:
    return float(value) * _UNIT_FACTORS.get(unit or "", 1.0)


_Match = tuple[dict[str, str], datetime, datetime]


@dataclass
class _ScanRequest:
    start: datetime
    end: datetime
    future: asyncio.Future


class HealthExportSource:
    """Read-only ``HealthDataSource`` backed by an exported health archive.

    Concurrent lookups of one record type are answered by a single pass over
    the file, so a workouts query with its per-workout energy sums parses
    the export twice rather than once per workout.
    """

    def __init__(self, path: str | Path | None) -> None:
        self.path = Path(path) if path else None
        self._pending: dict[str, list[_ScanRequest]] = {}
        self._scans: set[asyncio.Task] = set()

    def is_available(self) -> bool:
        return self.path is not None and self.path.is_file()

    def supports(self, kind: HealthDataKind) -> bool:
        return kind is HealthDataKind.WORKOUTS or kind in _RECORD_TYPES

    async def request_authorization(self, read: frozenset[HealthDataKind]) -> None:
        # The user granted access when they produced the export
        return None

    async def cumulative_sum(
        self, kind: HealthDataKind, start: datetime, end: datetime
    ) -> float | None:
        matches = merge_sources(await self._records(_RECORD_TYPES[kind], start, end))
        if not matches:
            return None
        return sum(_convert(attrs["value"], attrs.get("unit")) for attrs, _, _ in matches)

    async def quantity_samples(
        self, kind: HealthDataKind, start: datetime, end: datetime, limit: int | None = None
    ) -> list[QuantitySample]:
        matches = await self._records(_RECORD_TYPES[kind], start, end)
        quantities = [
            QuantitySample(
                value=_convert(attrs["value"], attrs.get("unit")),
                start=sample_start,
                end=sample_end,
            )
            for attrs, sample_start, sample_end in matches
        ]
        quantities.sort(key=lambda s: s.start, reverse=True)
        return quantities[:limit] if limit is not None else quantities

    async def sleep_samples(self, start: datetime, end: datetime) -> list[CategorySample]:
        matches = await self._records(_RECORD_TYPES[HealthDataKind.SLEEP], start, end)
        asleep = [
            CategorySample(start=sample_start, end=sample_end, value=attrs.get("value", ""))
            for attrs, sample_start, sample_end in matches
            if "Asleep" in attrs.get("value", "")
        ]
        asleep.sort(key=lambda s: s.start, reverse=True)
        return asleep

    async def workouts(
        self, start: datetime, end: datetime, limit: int | None = None
    ) -> list[WorkoutSample]:
        workouts = await asyncio.to_thread(self._scan_workouts, start, end)
        workouts.sort(key=lambda w: w.start, reverse=True)
        return workouts[:limit] if limit is not None else workouts

    async def _records(self, record_type: str, start: datetime, end: datetime) -> list[_Match]:
        """Records of one type starting inside [start, end)."""
        loop = asyncio.get_running_loop()
        request = _ScanRequest(start, end, loop.create_future())
        pending = self._pending.get(record_type)
        if pending is None:
            self._pending[record_type] = [request]
            task = loop.create_task(self._run_scan(record_type))
            self._scans.add(task)
            task.add_done_callback(self._scans.discard)
        else:
            pending.append(request)
        return await request.future

    async def _run_scan(self, record_type: str) -> None:
        # Let sibling lookups started in the same gather() join this pass
        await asyncio.sleep(0)
        requests = self._pending.pop(record_type)
        windows = [(r.start, r.end) for r in requests]
        try:
            results = await asyncio.to_thread(self._scan_records, record_type, windows)
            for request, matches in zip(requests, results):
                if not request.future.done():
                    request.future.set_result(matches)
        except Exception as e:
            for request in requests:
                if not request.future.done():
                    request.future.set_exception(e)
        finally:
            for request in requests:
                if not request.future.done():
                    request.future.cancel()

    def _iter_elements(self, tag: str):
        if self.path is None:
            raise FileNotFoundError("No health export configured")
        root = None
        depth = 0
        for event, elem in ET.iterparse(self.path, events=("start", "end")):
            if event == "start":
                if root is None:
                    root = elem
                depth += 1
                continue
            depth -= 1
            # Only direct children of <HealthData> are complete records
            if depth != 1:
                continue
            if elem.tag == tag:
                yield elem
            root.clear()

    def _scan_records(
        self, record_type: str, windows: list[tuple[datetime, datetime]]
    ) -> list[list[_Match]]:
        results: list[list[_Match]] = [[] for _ in windows]
        for elem in self._iter_elements("Record"):
            if elem.get("type") != record_type:
                continue
            sample_start = parse_export_date(elem.get("startDate", ""))
            hits = [i for i, (start, end) in enumerate(windows) if start <= sample_start < end]
            if not hits:
                continue
            match = (dict(elem.attrib), sample_start, parse_export_date(elem.get("endDate", "")))
            for i in hits:
                results[i].append(match)
        logger.debug(
            f"Export scan for {record_type}: {sum(map(len, results))} records "
            f"across {len(windows)} window(s)"
        )
        return results

    def _scan_workouts(self, start: datetime, end: datetime) -> list[WorkoutSample]:
        workouts = []
        for elem in self._iter_elements("Workout"):
            workout_start = parse_export_date(elem.get("startDate", ""))
            if not start <= workout_start < end:
                continue
            workouts.append(
                WorkoutSample(
                    activity_type=activity_code(elem.get("workoutActivityType", "")),
                    start=workout_start,
                    end=parse_export_date(elem.get("endDate", "")),
                    total_distance_meters=_workout_distance(elem),
                )
            )
        return workouts


def merge_sources(matches: list[_Match]) -> list[_Match]:
    """Drop records that repeat an interval another device already reported.

    Phone and watch both log steps, energy and distance for the same minutes.
    Sources are ranked by their total for the window; a lower-ranked record
    is kept only where no higher-ranked source covers its interval.
    """
    by_source: dict[str, list[_Match]] = defaultdict(list)
    for match in matches:
        by_source[match[0].get("sourceName", "")].append(match)
    if len(by_source) < 2:
        return matches

    def total(name: str) -> float:
        return sum(_convert(a["value"], a.get("unit")) for a, _, _ in by_source[name])

    ranked = sorted(by_source, key=lambda name: (-total(name), name))
    kept: list[_Match] = []
    covered: list[tuple[datetime, datetime]] = []
    for name in ranked:
        accepted = [m for m in by_source[name] if not _is_covered(covered, m[1], m[2])]
        kept.extend(accepted)
        covered = _union(covered + [(start, end) for _, start, end in accepted])
    return kept


def _union(intervals: list[tuple[datetime, datetime]]) -> list[tuple[datetime, datetime]]:
    merged: list[tuple[datetime, datetime]] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _is_covered(
    covered: list[tuple[datetime, datetime]], start: datetime, end: datetime
) -> bool:
    # covered is sorted and disjoint; index is the first interval starting at or after end
    index = bisect_left(covered, (end,))
    if index < len(covered) and covered[index][0] == start:
        return True
    if index == 0:
        return False
    prev_start, prev_end = covered[index - 1]
    return start < prev_end or start == prev_start


def _workout_distance(elem: ET.Element) -> float | None:
    if elem.get("totalDistance"):
        return _convert(elem.get("totalDistance", "0"), elem.get("totalDistanceUnit"))
    # Newer exports carry totals as WorkoutStatistics children
    for stats in elem.iter("WorkoutStatistics"):
        if "Distance" in stats.get("type", "") and stats.get("sum"):
            return _convert(stats.get("sum", "0"), stats.get("unit"))
    return None
