"""Field validation and coercion of flat string records into typed values."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models.records import Sensor, SensorReading, SensorType
from models.requests import SensorReadingRequest, SensorRequest, SensorTypeRequest
from models.results import AppError, Err, ErrorKind, Result, err_from, ok

M = TypeVar("M", bound=BaseModel)

# Phases are reported one at a time: missing fields, then bad values, then ranges.
_PHASES = (ErrorKind.REQUIRED, ErrorKind.BAD_VAL, ErrorKind.BAD_RANGE)


def clean_record(raw: Mapping[str, Any]) -> Dict[str, str]:
    """Strip values and drop blank ones so they count as absent."""

    cleaned: Dict[str, str] = {}
    for key, value in raw.items():
        if value is None:
            continue
        text = value.strip() if isinstance(value, str) else str(value)
        if text:
            cleaned[key] = text
    return cleaned


def _field_of(detail: Mapping[str, Any]) -> Optional[str]:
    loc = detail.get("loc") or ()
    if loc:
        return str(loc[0])
    ctx = detail.get("ctx") or {}
    field = ctx.get("field")
    return str(field) if field is not None else None


def _to_app_error(detail: Mapping[str, Any], raw: Mapping[str, str]) -> AppError:
    field = _field_of(detail)
    error_type = detail["type"]
    if error_type == "missing":
        return AppError(ErrorKind.REQUIRED, f"missing required field {field!r}", field)
    if error_type == "bad_range":
        return AppError(ErrorKind.BAD_RANGE, detail["msg"], field)
    if error_type == "extra_forbidden":
        return AppError(ErrorKind.BAD_VAL, f"unknown field {field!r}", field)
    shown = raw.get(field, "") if field is not None else ""
    return AppError(
        ErrorKind.BAD_VAL,
        f"bad value {shown!r} for field {field!r}: {detail['msg']}",
        field,
    )


def translate_errors(exc: ValidationError, raw: Mapping[str, str]) -> Err:
    """Map pydantic validation details onto the error taxonomy."""

    errors: List[AppError] = [
        _to_app_error(detail, raw) for detail in exc.errors(include_url=False)
    ]
    for kind in _PHASES:
        phase = [error for error in errors if error.kind is kind]
        if phase:
            return err_from(phase)
    return err_from(errors)


def validate_request(model: Type[M], raw: Mapping[str, Any]) -> Result[M]:
    """Validate ``raw`` against the rule table declared by ``model``."""

    cleaned = clean_record(raw)
    try:
        return ok(model.model_validate(cleaned))
    except ValidationError as exc:
        return translate_errors(exc, cleaned)


def make_sensor_type(raw: Mapping[str, Any]) -> Result[SensorType]:
    checked = validate_request(SensorTypeRequest, raw)
    if isinstance(checked, Err):
        return checked
    return ok(checked.value.to_entity())


def make_sensor(raw: Mapping[str, Any]) -> Result[Sensor]:
    checked = validate_request(SensorRequest, raw)
    if isinstance(checked, Err):
        return checked
    return ok(checked.value.to_entity())


def make_sensor_reading(raw: Mapping[str, Any]) -> Result[SensorReading]:
    checked = validate_request(SensorReadingRequest, raw)
    if isinstance(checked, Err):
        return checked
    return ok(checked.value.to_entity())
