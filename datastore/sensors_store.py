"""Durable, asynchronous sensor store with the same contract as the registry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from datastore.paging import (
    SENSOR_READINGS,
    SENSOR_TYPES,
    SENSORS,
    page_links,
    parse_href,
    split_page_params,
)
from datastore.tables import Base, SensorReadingRow, SensorRow, SensorTypeRow
from models.records import Sensor, SensorReading, SensorType
from models.requests import FindRequest, PageParams, SensorReadingSearch, SensorSearch, SensorTypeSearch
from models.results import Err, ErrorKind, Result, err, ok
from models.schemas import Page
from services.registry import check_sensor_reference, check_sensor_type_reference, log_rejection
from services.validator import make_sensor, make_sensor_reading, make_sensor_type, validate_request
from settings import get_settings

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=FindRequest)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _db_error(operation: str, exc: Exception) -> Err:
    logger.error("Storage failure during %s: %s", operation, exc, extra={"error_kind": "DB"})
    return err(ErrorKind.DB, f"{operation} failed: {exc}")


class SensorsStore:
    """Persists sensor types, sensors and readings in an SQL database.

    Every public method is a coroutine returning a ``Result``; storage
    exceptions never escape.  Duplicate keys are resolved by unique
    indexes: ``replace=True`` issues an atomic upsert, ``replace=False`` a
    plain insert whose conflict is reported as ``EXISTS``.  Finds return a
    ``Page`` of flat ``to_record()`` maps rather than the typed entity lists
    of ``SensorRegistry``.
    """

    def __init__(self, engine: AsyncEngine, page_size: int = 5, link_base: str = "") -> None:
        self.engine = engine
        self.page_size = page_size
        self.link_base = link_base
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def close(self) -> Result[None]:
        """Release pooled connections."""
        try:
            await self.engine.dispose()
        except SQLAlchemyError as exc:
            return _db_error("close", exc)
        return ok(None)

    async def clear(self) -> Result[List[str]]:
        try:
            async with self._sessions.begin() as session:
                for model in (SensorReadingRow, SensorRow, SensorTypeRow):
                    await session.execute(delete(model))
        except SQLAlchemyError as exc:
            return _db_error("clear", exc)
        logger.info("Cleared sensor store")
        return ok([])

    async def add_sensor_type(
        self, raw: Mapping[str, Any], replace: bool = True
    ) -> Result[List[SensorType]]:
        """Error kinds: REQUIRED, BAD_VAL, BAD_RANGE, EXISTS, DB."""
        checked = make_sensor_type(raw)
        if isinstance(checked, Err):
            log_rejection("sensor_type", raw.get("id"), checked)
            return checked
        sensor_type = checked.value
        try:
            async with self._sessions.begin() as session:
                await self._write(
                    session, SensorTypeRow, SensorTypeRow.values_of(sensor_type), ("id",), replace
                )
        except IntegrityError as exc:
            return self._conflict("sensor_type", sensor_type.id, exc, replace)
        except SQLAlchemyError as exc:
            return _db_error("add_sensor_type", exc)
        return ok([sensor_type])

    async def add_sensor(self, raw: Mapping[str, Any], replace: bool = True) -> Result[List[Sensor]]:
        """Error kinds: REQUIRED, BAD_VAL, BAD_RANGE, BAD_ID, EXISTS, DB."""
        checked = make_sensor(raw)
        if isinstance(checked, Err):
            log_rejection("sensor", raw.get("id"), checked)
            return checked
        sensor = checked.value
        try:
            async with self._sessions.begin() as session:
                row = await session.scalar(
                    select(SensorTypeRow).where(SensorTypeRow.id == sensor.sensor_type_id)
                )
                failure = check_sensor_type_reference(
                    sensor, row.to_entity() if row is not None else None
                )
                if failure is not None:
                    log_rejection("sensor", sensor.id, failure)
                    return failure
                await self._write(session, SensorRow, SensorRow.values_of(sensor), ("id",), replace)
        except IntegrityError as exc:
            return self._conflict("sensor", sensor.id, exc, replace)
        except SQLAlchemyError as exc:
            return _db_error("add_sensor", exc)
        return ok([sensor])

    async def add_sensor_reading(
        self, raw: Mapping[str, Any], replace: bool = True
    ) -> Result[List[SensorReading]]:
        """Error kinds: REQUIRED, BAD_VAL, BAD_ID, EXISTS, DB."""
        checked = make_sensor_reading(raw)
        if isinstance(checked, Err):
            log_rejection("sensor_reading", raw.get("sensorId"), checked)
            return checked
        reading = checked.value
        try:
            async with self._sessions.begin() as session:
                row = await session.scalar(
                    select(SensorRow).where(SensorRow.id == reading.sensor_id)
                )
                failure = check_sensor_reference(
                    reading, row.to_entity() if row is not None else None
                )
                if failure is not None:
                    log_rejection("sensor_reading", reading.key, failure)
                    return failure
                await self._write(
                    session,
                    SensorReadingRow,
                    SensorReadingRow.values_of(reading),
                    ("sensor_id", "timestamp"),
                    replace,
                )
        except IntegrityError as exc:
            return self._conflict("sensor_reading", reading.key, exc, replace)
        except SQLAlchemyError as exc:
            return _db_error("add_sensor_reading", exc)
        return ok([reading])

    async def find_sensor_types(self, req: Mapping[str, str]) -> Result[Page]:
        """Page of sensor types matching ``req`` ordered by id."""
        parsed = self._parse_find(SensorTypeSearch, req)
        if isinstance(parsed, Err):
            return parsed
        search, paging = parsed.value
        stmt = select(SensorTypeRow).order_by(SensorTypeRow.id)
        if search.id is not None:
            stmt = stmt.where(SensorTypeRow.id == search.id)
        if search.manufacturer is not None:
            stmt = stmt.where(SensorTypeRow.manufacturer == search.manufacturer)
        if search.model_number is not None:
            stmt = stmt.where(SensorTypeRow.model_number == search.model_number)
        if search.quantity is not None:
            stmt = stmt.where(SensorTypeRow.quantity == search.quantity.value)
        if search.unit is not None:
            stmt = stmt.where(SensorTypeRow.unit == search.unit)
        return await self._fetch_page(SENSOR_TYPES, stmt, search, paging, SensorTypeRow.to_entity)

    async def find_sensors(self, req: Mapping[str, str]) -> Result[Page]:
        parsed = self._parse_find(SensorSearch, req)
        if isinstance(parsed, Err):
            return parsed
        search, paging = parsed.value
        stmt = select(SensorRow).order_by(SensorRow.id)
        if search.id is not None:
            stmt = stmt.where(SensorRow.id == search.id)
        if search.sensor_type_id is not None:
            stmt = stmt.where(SensorRow.sensor_type_id == search.sensor_type_id)
        return await self._fetch_page(SENSORS, stmt, search, paging, SensorRow.to_entity)

    async def find_sensor_readings(self, req: Mapping[str, str]) -> Result[Page]:
        """Page of readings for ``req['sensorId']`` ordered by timestamp."""
        parsed = self._parse_find(SensorReadingSearch, req)
        if isinstance(parsed, Err):
            return parsed
        search, paging = parsed.value
        stmt = (
            select(SensorReadingRow)
            .where(SensorReadingRow.sensor_id == search.sensor_id)
            .order_by(SensorReadingRow.timestamp)
        )
        if search.min_value is not None:
            stmt = stmt.where(SensorReadingRow.value >= search.min_value)
        if search.max_value is not None:
            stmt = stmt.where(SensorReadingRow.value <= search.max_value)
        if search.min_timestamp is not None:
            stmt = stmt.where(SensorReadingRow.timestamp >= search.min_timestamp)
        if search.max_timestamp is not None:
            stmt = stmt.where(SensorReadingRow.timestamp <= search.max_timestamp)
        return await self._fetch_page(
            SENSOR_READINGS, stmt, search, paging, SensorReadingRow.to_entity
        )

    async def find_by_link(self, href: str) -> Result[Page]:
        """Resolve a ``prev``/``next`` href produced by an earlier page."""
        target = parse_href(href)
        if isinstance(target, Err):
            return target
        finders = {
            SENSOR_TYPES: self.find_sensor_types,
            SENSORS: self.find_sensors,
            SENSOR_READINGS: self.find_sensor_readings,
        }
        return await finders[target.value.collection](target.value.params)

    def _parse_find(self, model: Type[S], req: Mapping[str, str]) -> Result[tuple[S, PageParams]]:
        split = split_page_params(req, self.page_size)
        if isinstance(split, Err):
            return split
        filters, paging = split.value
        search = validate_request(model, filters)
        if isinstance(search, Err):
            return search
        return ok((search.value, paging))

    async def _fetch_page(
        self,
        collection: str,
        stmt: Select[Any],
        search: FindRequest,
        paging: PageParams,
        to_entity: Callable[[Any], Any],
    ) -> Result[Page]:
        try:
            async with self._sessions() as session:
                rows: Sequence[Any] = (
                    await session.scalars(stmt.offset(paging.index).limit(paging.count + 1))
                ).all()
        except SQLAlchemyError as exc:
            return _db_error(f"find {collection}", exc)

        has_more = len(rows) > paging.count
        values = [to_entity(row).to_record() for row in rows[: paging.count]]
        prev_link, next_link = page_links(self.link_base, collection, search, paging, has_more)
        logger.debug(
            "Fetched %s page",
            collection,
            extra={"index": paging.index, "count": paging.count, "record_count": len(values)},
        )
        return ok(Page(values=values, prev=prev_link, next=next_link))

    async def _write(
        self,
        session: AsyncSession,
        model: Type[Base],
        values: Dict[str, Any],
        key_columns: Sequence[str],
        replace: bool,
    ) -> None:
        if not replace:
            await session.execute(insert(model).values(**values))
            return
        stmt = _UPSERT_DIALECTS[self.engine.dialect.name](model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key_columns),
            set_={name: stmt.excluded[name] for name in values if name not in key_columns},
        )
        await session.execute(stmt)

    @staticmethod
    def _conflict(entity: str, key: Any, exc: IntegrityError, replace: bool) -> Err:
        if replace:
            return _db_error(f"add {entity}", exc)
        failure = err(ErrorKind.EXISTS, f"{entity} {key!r} already exists")
        log_rejection(entity, key, failure)
        return failure


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or not parsed.database:
        return
    if parsed.database == ":memory:":
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


async def make_sensors_store(
    url: Optional[str] = None,
    page_size: Optional[int] = None,
    link_base: Optional[str] = None,
) -> Result[SensorsStore]:
    """Open the store at ``url`` and make sure its tables and indexes exist.

    Error kinds: DB.
    """
    settings = get_settings()
    database_url = settings.database_url if url is None else url
    try:
        _ensure_sqlite_directory(database_url)
        engine = create_async_engine(database_url, echo=False)
    except (OSError, SQLAlchemyError) as exc:
        return _db_error("connect", exc)
    if engine.dialect.name not in _UPSERT_DIALECTS:
        await engine.dispose()
        return err(ErrorKind.DB, f"unsupported database dialect {engine.dialect.name!r}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, SQLAlchemyError) as exc:
        await engine.dispose()
        return _db_error("connect", exc)

    return ok(
        SensorsStore(
            engine,
            page_size=settings.page_size if page_size is None else page_size,
            link_base=settings.link_base if link_base is None else link_base,
        )
    )
