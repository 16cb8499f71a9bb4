"""Unit tests for field validation and coercion."""

from __future__ import annotations

from models.records import Quantity, Range
from models.requests import SensorReadingSearch, SensorSearch, SensorTypeSearch
from models.results import Err, ErrorKind, Ok
from services.validator import (
    clean_record,
    make_sensor,
    make_sensor_reading,
    make_sensor_type,
    validate_request,
)


def _sensor_type_record(**overrides: str) -> dict[str, str]:
    record = {
        "id": "tmp-1",
        "manufacturer": "Acme",
        "modelNumber": "T100",
        "quantity": "temperature",
        "unit": "C",
        "min": "-40",
        "max": "125",
    }
    record.update(overrides)
    return record


def test_make_sensor_type_coerces_fields() -> None:
    result = make_sensor_type(_sensor_type_record())

    assert isinstance(result, Ok)
    sensor_type = result.value
    assert sensor_type.model_number == "T100"
    assert sensor_type.quantity is Quantity.temperature
    assert sensor_type.limits == Range(min=-40.0, max=125.0)


def test_make_sensor_type_ignores_unknown_keys() -> None:
    result = make_sensor_type(_sensor_type_record(color="blue"))

    assert result.is_ok


def test_missing_fields_are_all_reported_as_required() -> None:
    result = make_sensor_type({"id": "tmp-1", "unit": "  "})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.REQUIRED
    fields = sorted(error.field for error in result.errors)
    assert fields == ["manufacturer", "max", "min", "modelNumber", "quantity", "unit"]


def test_required_check_runs_before_value_checks() -> None:
    result = make_sensor({"id": "s1", "min": "abc", "max": "10"})

    assert isinstance(result, Err)
    assert {error.kind for error in result.errors} == {ErrorKind.REQUIRED}
    assert result.errors[0].field == "sensorTypeId"


def test_non_numeric_value_is_bad_val() -> None:
    result = make_sensor_type(_sensor_type_record(min="cold"))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "min"
    assert "cold" in result.errors[0].message


def test_non_finite_value_is_bad_val() -> None:
    result = make_sensor_reading({"sensorId": "s1", "timestamp": "10", "value": "nan"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL


def test_fractional_timestamp_is_bad_val() -> None:
    result = make_sensor_reading({"sensorId": "s1", "timestamp": "1.5", "value": "3"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "timestamp"


def test_unknown_quantity_is_bad_val() -> None:
    result = make_sensor_type(_sensor_type_record(quantity="loudness"))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "quantity"


def test_inverted_limits_are_bad_range() -> None:
    result = make_sensor_type(_sensor_type_record(min="50", max="50"))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_RANGE
    assert "min (50) must be less than max (50)" in result.message


def test_make_sensor_reading_parses_integer_timestamp() -> None:
    result = make_sensor_reading({"sensorId": "s1", "timestamp": " 42 ", "value": "2.5"})

    assert isinstance(result, Ok)
    assert result.value.timestamp == 42
    assert result.value.value == 2.5


def test_clean_record_drops_blank_values() -> None:
    cleaned = clean_record({"a": " x ", "b": "", "c": "   ", "d": None, "e": 3})

    assert cleaned == {"a": "x", "e": "3"}


def test_find_request_rejects_unknown_keys() -> None:
    result = validate_request(SensorTypeSearch, {"colour": "red"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "colour"


def test_find_request_accepts_empty_filters() -> None:
    result = validate_request(SensorSearch, {})

    assert isinstance(result, Ok)
    assert result.value.id is None
    assert result.value.sensor_type_id is None


def test_reading_search_requires_sensor_id() -> None:
    result = validate_request(SensorReadingSearch, {"minValue": "1"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.REQUIRED
    assert result.errors[0].field == "sensorId"


def test_reading_search_rejects_malformed_bound() -> None:
    result = validate_request(SensorReadingSearch, {"sensorId": "s1", "maxTimestamp": "later"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL


def test_reading_search_rejects_inverted_bounds() -> None:
    result = validate_request(
        SensorReadingSearch, {"sensorId": "s1", "minValue": "20", "maxValue": "10"}
    )

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_RANGE
    assert result.errors[0].field == "minValue"


def test_search_to_params_round_trips() -> None:
    raw = {"sensorId": "s1", "minValue": "10", "maxValue": "20.5", "minTimestamp": "3"}
    first = validate_request(SensorReadingSearch, raw)
    assert isinstance(first, Ok)

    params = first.value.to_params()
    second = validate_request(SensorReadingSearch, params)

    assert params == raw
    assert isinstance(second, Ok)
    assert second.value == first.value


def test_timestamp_beyond_64_bits_is_bad_val() -> None:
    result = make_sensor_reading({"sensorId": "s1", "timestamp": str(2**70), "value": "1"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "timestamp"


def test_timestamp_at_64_bit_limits_is_accepted() -> None:
    high = make_sensor_reading({"sensorId": "s1", "timestamp": str(2**63 - 1), "value": "1"})
    low = make_sensor_reading({"sensorId": "s1", "timestamp": str(-(2**63)), "value": "1"})

    assert isinstance(high, Ok)
    assert isinstance(low, Ok)


def test_reading_search_rejects_oversized_timestamp_bound() -> None:
    result = validate_request(SensorReadingSearch, {"sensorId": "s1", "minTimestamp": str(2**70)})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "minTimestamp"


def test_find_request_rejects_snake_case_keys() -> None:
    result = validate_request(SensorTypeSearch, {"model_number": "m"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.BAD_VAL
    assert result.errors[0].field == "model_number"


def test_add_request_ignores_snake_case_keys() -> None:
    result = make_sensor({"id": "s1", "sensor_type_id": "t1", "min": "0", "max": "1"})

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.REQUIRED
    assert result.errors[0].field == "sensorTypeId"
