"""Filtering and ordering over a snapshot of registry collections."""

from __future__ import annotations

from operator import attrgetter
from typing import Iterable, List, Mapping, Optional, Sequence, TypeVar

from models.records import Sensor, SensorReading, SensorType
from models.requests import FindRequest, SensorReadingSearch, SensorSearch, SensorTypeSearch

E = TypeVar("E")

SENSOR_TYPE_FILTERS = ("manufacturer", "quantity", "model_number", "unit")
SENSOR_FILTERS = ("sensor_type_id",)


def _candidates(collection: Mapping[str, E], key: Optional[str]) -> List[E]:
    if key is None:
        return list(collection.values())
    entity = collection.get(key)
    return [] if entity is None else [entity]


def _matches(entity: object, search: FindRequest, fields: Iterable[str]) -> bool:
    for field in fields:
        wanted = getattr(search, field)
        if wanted is not None and getattr(entity, field) != wanted:
            return False
    return True


def _within(value: float, low: Optional[float], high: Optional[float]) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def find_sensor_types(
    sensor_types: Mapping[str, SensorType], search: SensorTypeSearch
) -> List[SensorType]:
    matches = [
        sensor_type
        for sensor_type in _candidates(sensor_types, search.id)
        if _matches(sensor_type, search, SENSOR_TYPE_FILTERS)
    ]
    return sorted(matches, key=attrgetter("id"))


def find_sensors(sensors: Mapping[str, Sensor], search: SensorSearch) -> List[Sensor]:
    matches = [
        sensor
        for sensor in _candidates(sensors, search.id)
        if _matches(sensor, search, SENSOR_FILTERS)
    ]
    return sorted(matches, key=attrgetter("id"))


def find_sensor_readings(
    readings: Mapping[str, Sequence[SensorReading]], search: SensorReadingSearch
) -> List[SensorReading]:
    """Readings of one sensor within the inclusive bounds, oldest first."""

    matches = [
        reading
        for reading in readings.get(search.sensor_id, ())
        if _within(reading.value, search.min_value, search.max_value)
        and _within(reading.timestamp, search.min_timestamp, search.max_timestamp)
    ]
    return sorted(matches, key=attrgetter("timestamp"))
