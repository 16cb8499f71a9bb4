"""Declarative request types for every add and find operation.

Field declarations are the validation rule table: a field without a
default is required, its annotation is the coercion rule, and the
model-level validators carry the ``min < max`` range rules.  Boundary keys
are camelCase (``modelNumber``, ``sensorTypeId``, ``minValue``).
"""

from __future__ import annotations

from typing import Annotated, Dict, Optional

from pydantic import AllowInfNan, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from models.records import Quantity, Range, Sensor, SensorReading, SensorType, format_number

FiniteFloat = Annotated[float, AllowInfNan(False)]

# Integers are stored as signed 64-bit columns.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

Timestamp = Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]


def _check_range(
    low: Optional[float],
    high: Optional[float],
    low_field: str,
    high_field: str,
) -> None:
    if low is None or high is None:
        return
    if low >= high:
        raise PydanticCustomError(
            "bad_range",
            "{low_field} ({low}) must be less than {high_field} ({high})",
            {
                "field": low_field,
                "low_field": low_field,
                "high_field": high_field,
                "low": format_number(low),
                "high": format_number(high),
            },
        )


class AddRequest(BaseModel):
    """Base for add requests; unknown keys are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )


class FindRequest(BaseModel):
    """Base for find requests; unknown keys are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        frozen=True,
        protected_namespaces=(),
    )

    def to_params(self) -> Dict[str, str]:
        """Flatten the supplied filters back into boundary form."""

        params: Dict[str, str] = {}
        for key, value in self.model_dump(by_alias=True, exclude_none=True).items():
            if isinstance(value, Quantity):
                params[key] = value.value
            elif isinstance(value, (int, float)):
                params[key] = format_number(value)
            else:
                params[key] = str(value)
        return params


class SensorTypeRequest(AddRequest):
    id: str
    manufacturer: str
    model_number: str
    quantity: Quantity
    unit: str
    min: FiniteFloat
    max: FiniteFloat

    @model_validator(mode="after")
    def _check_limits(self) -> "SensorTypeRequest":
        _check_range(self.min, self.max, "min", "max")
        return self

    def to_entity(self) -> SensorType:
        return SensorType(
            id=self.id,
            manufacturer=self.manufacturer,
            model_number=self.model_number,
            quantity=self.quantity,
            unit=self.unit,
            limits=Range(min=self.min, max=self.max),
        )


class SensorRequest(AddRequest):
    id: str
    sensor_type_id: str
    min: FiniteFloat
    max: FiniteFloat

    @model_validator(mode="after")
    def _check_expected(self) -> "SensorRequest":
        _check_range(self.min, self.max, "min", "max")
        return self

    def to_entity(self) -> Sensor:
        return Sensor(
            id=self.id,
            sensor_type_id=self.sensor_type_id,
            expected=Range(min=self.min, max=self.max),
        )


class SensorReadingRequest(AddRequest):
    sensor_id: str
    timestamp: Timestamp
    value: FiniteFloat

    def to_entity(self) -> SensorReading:
        return SensorReading(
            sensor_id=self.sensor_id,
            timestamp=self.timestamp,
            value=self.value,
        )


class SensorTypeSearch(FindRequest):
    id: Optional[str] = None
    manufacturer: Optional[str] = None
    model_number: Optional[str] = None
    quantity: Optional[Quantity] = None
    unit: Optional[str] = None


class SensorSearch(FindRequest):
    id: Optional[str] = None
    sensor_type_id: Optional[str] = None


class SensorReadingSearch(FindRequest):
    sensor_id: str
    min_value: Optional[FiniteFloat] = None
    max_value: Optional[FiniteFloat] = None
    min_timestamp: Optional[Timestamp] = None
    max_timestamp: Optional[Timestamp] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "SensorReadingSearch":
        _check_range(self.min_value, self.max_value, "minValue", "maxValue")
        _check_range(self.min_timestamp, self.max_timestamp, "minTimestamp", "maxTimestamp")
        return self


class PageParams(BaseModel):
    """Offset paging state carried in link hrefs as ``_index``/``_count``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    index: int = Field(default=0, ge=0, le=INT64_MAX, alias="_index")
    count: int = Field(ge=1, le=INT64_MAX - 1, alias="_count")

    def to_params(self) -> Dict[str, str]:
        return {"_index": str(self.index), "_count": str(self.count)}
