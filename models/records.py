"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class Quantity(str, Enum):
    """Physical quantity measured by a sensor type."""

    temperature = "temperature"
    humidity = "humidity"
    pressure = "pressure"
    flow = "flow"


def format_number(value: float) -> str:
    """Render a number the way it was most likely entered: ``10`` not ``10.0``."""

    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


@dataclass(frozen=True, slots=True)
class Range:
    """Inclusive numeric interval."""

    min: float
    max: float

    def contains(self, other: Range) -> bool:
        return self.min <= other.min and other.max <= self.max


@dataclass(frozen=True, slots=True)
class SensorType:
    """A class of sensor hardware with physical measurement limits."""

    id: str
    manufacturer: str
    model_number: str
    quantity: Quantity
    unit: str
    limits: Range

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "manufacturer": self.manufacturer,
            "modelNumber": self.model_number,
            "quantity": self.quantity.value,
            "unit": self.unit,
            "min": format_number(self.limits.min),
            "max": format_number(self.limits.max),
        }


@dataclass(frozen=True, slots=True)
class Sensor:
    """A deployed sensor with a narrower expected operating range."""

    id: str
    sensor_type_id: str
    expected: Range

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "sensorTypeId": self.sensor_type_id,
            "min": format_number(self.expected.min),
            "max": format_number(self.expected.max),
        }


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A timestamped numeric observation from a sensor."""

    sensor_id: str
    timestamp: int
    value: float

    @property
    def key(self) -> tuple[str, int]:
        return (self.sensor_id, self.timestamp)

    def to_record(self) -> Dict[str, str]:
        return {
            "sensorId": self.sensor_id,
            "timestamp": str(self.timestamp),
            "value": format_number(self.value),
        }
