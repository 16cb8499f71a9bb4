"""Persisted layout: one table per record kind.

Each row carries a storage-assigned ``_id`` that is unrelated to the domain
key.  Domain keys are guarded by unique indexes so that duplicate detection
happens inside the database.
"""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import BigInteger, Float, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from models.records import Quantity, Range, Sensor, SensorReading, SensorType


class Base(DeclarativeBase):
    """Base class for all sensor tables."""

    pass


class SensorTypeRow(Base):
    __tablename__ = "sensor_types"

    row_id: Mapped[int] = mapped_column("_id", primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(128), unique=True)
    manufacturer: Mapped[str] = mapped_column(String(255), index=True)
    model_number: Mapped[str] = mapped_column(String(255))
    quantity: Mapped[str] = mapped_column(String(32), index=True)
    unit: Mapped[str] = mapped_column(String(64))
    limit_min: Mapped[float] = mapped_column(Float)
    limit_max: Mapped[float] = mapped_column(Float)

    @staticmethod
    def values_of(sensor_type: SensorType) -> Dict[str, Any]:
        return {
            "id": sensor_type.id,
            "manufacturer": sensor_type.manufacturer,
            "model_number": sensor_type.model_number,
            "quantity": sensor_type.quantity.value,
            "unit": sensor_type.unit,
            "limit_min": sensor_type.limits.min,
            "limit_max": sensor_type.limits.max,
        }

    def to_entity(self) -> SensorType:
        return SensorType(
            id=self.id,
            manufacturer=self.manufacturer,
            model_number=self.model_number,
            quantity=Quantity(self.quantity),
            unit=self.unit,
            limits=Range(min=self.limit_min, max=self.limit_max),
        )

    def __repr__(self) -> str:
        return f"<SensorTypeRow {self.id}>"


class SensorRow(Base):
    __tablename__ = "sensors"

    row_id: Mapped[int] = mapped_column("_id", primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(128), unique=True)
    sensor_type_id: Mapped[str] = mapped_column(String(128), index=True)
    expected_min: Mapped[float] = mapped_column(Float)
    expected_max: Mapped[float] = mapped_column(Float)

    @staticmethod
    def values_of(sensor: Sensor) -> Dict[str, Any]:
        return {
            "id": sensor.id,
            "sensor_type_id": sensor.sensor_type_id,
            "expected_min": sensor.expected.min,
            "expected_max": sensor.expected.max,
        }

    def to_entity(self) -> Sensor:
        return Sensor(
            id=self.id,
            sensor_type_id=self.sensor_type_id,
            expected=Range(min=self.expected_min, max=self.expected_max),
        )

    def __repr__(self) -> str:
        return f"<SensorRow {self.id} type={self.sensor_type_id}>"


class SensorReadingRow(Base):
    __tablename__ = "sensor_readings"
    __table_args__ = (
        UniqueConstraint("sensor_id", "timestamp", name="uq_sensor_readings_sensor_timestamp"),
    )

    row_id: Mapped[int] = mapped_column("_id", primary_key=True, autoincrement=True)
    sensor_id: Mapped[str] = mapped_column(String(128), index=True)
    timestamp: Mapped[int] = mapped_column(BigInteger)
    value: Mapped[float] = mapped_column(Float)

    @staticmethod
    def values_of(reading: SensorReading) -> Dict[str, Any]:
        return {
            "sensor_id": reading.sensor_id,
            "timestamp": reading.timestamp,
            "value": reading.value,
        }

    def to_entity(self) -> SensorReading:
        return SensorReading(
            sensor_id=self.sensor_id,
            timestamp=self.timestamp,
            value=self.value,
        )

    def __repr__(self) -> str:
        return f"<SensorReadingRow {self.sensor_id}@{self.timestamp}={self.value}>"
