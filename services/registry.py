"""In-memory sensor registry enforcing uniqueness and referential rules."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.records import Sensor, SensorReading, SensorType, format_number
from models.requests import SensorReadingSearch, SensorSearch, SensorTypeSearch
from models.results import Err, ErrorKind, Result, err, ok
from services import query_engine
from services.validator import (
    make_sensor,
    make_sensor_reading,
    make_sensor_type,
    validate_request,
)

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]


def check_sensor_type_reference(
    sensor: Sensor, sensor_type: Optional[SensorType]
) -> Optional[Err]:
    """Return the failure for ``sensor`` given its looked-up type, if any."""

    if sensor_type is None:
        return err(
            ErrorKind.BAD_ID,
            f"unknown sensor type {sensor.sensor_type_id!r}",
            "sensorTypeId",
        )
    if not sensor_type.limits.contains(sensor.expected):
        expected, limits = sensor.expected, sensor_type.limits
        return err(
            ErrorKind.BAD_RANGE,
            (
                f"expected range [{format_number(expected.min)}, {format_number(expected.max)}] "
                f"of sensor {sensor.id!r} is outside limits "
                f"[{format_number(limits.min)}, {format_number(limits.max)}] "
                f"of sensor type {sensor_type.id!r}"
            ),
            "min",
        )
    return None


def check_sensor_reference(reading: SensorReading, sensor: Optional[Sensor]) -> Optional[Err]:
    if sensor is None:
        return err(ErrorKind.BAD_ID, f"unknown sensor {reading.sensor_id!r}", "sensorId")
    return None


def log_rejection(entity: str, key: Any, failure: Err) -> None:
    logger.warning(
        "Rejected %s: %s",
        entity,
        failure.message,
        extra={
            "entity": entity,
            "key": key,
            "error_kind": failure.kind.value,
            "error_count": len(failure.errors),
        },
    )


class SensorRegistry:
    """Owns sensor types, sensors and their readings.

    Finds return the full match as a list of typed entities.  The SQL
    ``SensorsStore`` instead returns one ``Page`` of flat ``to_record()``
    maps with ``prev``/``next`` links; ``to_record()`` bridges the two.

    The registry performs no locking; callers serialize access.
    """

    def __init__(self) -> None:
        self._sensor_types: Dict[str, SensorType] = {}
        self._sensors: Dict[str, Sensor] = {}
        self._readings: Dict[str, List[SensorReading]] = {}

    def clear(self) -> Result[List[str]]:
        """Drop every record held by this registry."""
        self._sensor_types = {}
        self._sensors = {}
        self._readings = {}
        logger.info("Cleared sensor registry")
        return ok([])

    def add_sensor_type(self, raw: RawRecord) -> Result[List[SensorType]]:
        """Add or replace the sensor type described by ``raw``.

        Error kinds: REQUIRED, BAD_VAL, BAD_RANGE.
        """
        checked = make_sensor_type(raw)
        if isinstance(checked, Err):
            log_rejection("sensor_type", raw.get("id"), checked)
            return checked
        sensor_type = checked.value
        self._sensor_types[sensor_type.id] = sensor_type
        logger.debug("Stored sensor type", extra={"entity": "sensor_type", "key": sensor_type.id})
        return ok([sensor_type])

    def add_sensor(self, raw: RawRecord) -> Result[List[Sensor]]:
        """Add or replace the sensor described by ``raw``.

        All checks run before the collection is touched.
        Error kinds: REQUIRED, BAD_VAL, BAD_RANGE, BAD_ID.
        """
        checked = make_sensor(raw)
        if isinstance(checked, Err):
            log_rejection("sensor", raw.get("id"), checked)
            return checked
        sensor = checked.value
        failure = check_sensor_type_reference(
            sensor, self._sensor_types.get(sensor.sensor_type_id)
        )
        if failure is not None:
            log_rejection("sensor", sensor.id, failure)
            return failure
        self._sensors[sensor.id] = sensor
        logger.debug("Stored sensor", extra={"entity": "sensor", "key": sensor.id})
        return ok([sensor])

    def add_sensor_reading(self, raw: RawRecord) -> Result[List[SensorReading]]:
        """Add or replace the reading keyed by its sensor and timestamp.

        Error kinds: REQUIRED, BAD_VAL, BAD_ID.
        """
        checked = make_sensor_reading(raw)
        if isinstance(checked, Err):
            log_rejection("sensor_reading", raw.get("sensorId"), checked)
            return checked
        reading = checked.value
        failure = check_sensor_reference(reading, self._sensors.get(reading.sensor_id))
        if failure is not None:
            log_rejection("sensor_reading", reading.key, failure)
            return failure

        readings = self._readings.setdefault(reading.sensor_id, [])
        for position, existing in enumerate(readings):
            if existing.timestamp == reading.timestamp:
                readings[position] = reading
                break
        else:
            readings.append(reading)
        logger.debug(
            "Stored sensor reading", extra={"entity": "sensor_reading", "key": reading.key}
        )
        return ok([reading])

    def find_sensor_types(self, req: RawRecord) -> Result[List[SensorType]]:
        """Sensor types matching ``req`` sorted by id; empty when none match."""
        checked = validate_request(SensorTypeSearch, req)
        if isinstance(checked, Err):
            return checked
        return ok(query_engine.find_sensor_types(self._sensor_types, checked.value))

    def find_sensors(self, req: RawRecord) -> Result[List[Sensor]]:
        checked = validate_request(SensorSearch, req)
        if isinstance(checked, Err):
            return checked
        return ok(query_engine.find_sensors(self._sensors, checked.value))

    def find_sensor_readings(self, req: RawRecord) -> Result[List[SensorReading]]:
        """Readings for ``req['sensorId']`` within optional inclusive bounds.

        Sorted by timestamp.  ``sensorId`` is required.
        """
        checked = validate_request(SensorReadingSearch, req)
        if isinstance(checked, Err):
            return checked
        return ok(query_engine.find_sensor_readings(self._readings, checked.value))


def add_sensors_info(
    registry: SensorRegistry,
    sensor_types: Iterable[RawRecord] = (),
    sensors: Iterable[RawRecord] = (),
    sensor_readings: Iterable[RawRecord] = (),
) -> Result[None]:
    """Load types, then sensors, then readings; stop at the first failure."""

    batches = (
        (registry.add_sensor_type, sensor_types),
        (registry.add_sensor, sensors),
        (registry.add_sensor_reading, sensor_readings),
    )
    loaded = 0
    for add, records in batches:
        for record in records:
            result = add(record)
            if isinstance(result, Err):
                return result
            loaded += 1
    logger.info("Loaded sensor records", extra={"record_count": loaded})
    return ok(None)


def make_registry(
    sensor_types: Iterable[RawRecord] = (),
    sensors: Iterable[RawRecord] = (),
    sensor_readings: Iterable[RawRecord] = (),
) -> Result[SensorRegistry]:
    registry = SensorRegistry()
    loaded = add_sensors_info(registry, sensor_types, sensors, sensor_readings)
    if isinstance(loaded, Err):
        return loaded
    return ok(registry)
