"""Stateless pagination links: every href carries its filters and offset."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

from models.requests import FindRequest, PageParams
from models.results import Err, ErrorKind, Result, err, ok
from models.schemas import Link
from services.validator import validate_request

SENSOR_TYPES = "sensor-types"
SENSORS = "sensors"
SENSOR_READINGS = "sensor-readings"
COLLECTIONS = (SENSOR_TYPES, SENSORS, SENSOR_READINGS)

PAGE_KEYS = ("_index", "_count")


@dataclass(frozen=True)
class LinkTarget:
    collection: str
    params: Dict[str, str]


def split_page_params(
    raw: Mapping[str, str], default_count: int
) -> Result[Tuple[Dict[str, str], PageParams]]:
    """Separate ``_index``/``_count`` from the filters and validate them."""

    filters = {key: value for key, value in raw.items() if key not in PAGE_KEYS}
    paging_raw = {key: raw[key] for key in PAGE_KEYS if key in raw}
    paging_raw.setdefault("_count", str(default_count))
    paging = validate_request(PageParams, paging_raw)
    if isinstance(paging, Err):
        return paging
    return ok((filters, paging.value))


def build_href(base: str, collection: str, search: FindRequest, index: int, count: int) -> str:
    params = search.to_params()
    params.update({"_index": str(index), "_count": str(count)})
    return f"{base}/{collection}?{urlencode(params)}"


def page_links(
    base: str,
    collection: str,
    search: FindRequest,
    paging: PageParams,
    has_more: bool,
) -> Tuple[Optional[Link], Optional[Link]]:
    prev_link: Optional[Link] = None
    next_link: Optional[Link] = None
    if paging.index > 0:
        prev_index = max(0, paging.index - paging.count)
        prev_link = Link(
            rel="prev",
            href=build_href(base, collection, search, prev_index, paging.count),
        )
    if has_more:
        next_link = Link(
            rel="next",
            href=build_href(base, collection, search, paging.index + paging.count, paging.count),
        )
    return prev_link, next_link


def parse_href(href: str) -> Result[LinkTarget]:
    parts = urlsplit(href)
    collection = parts.path.rstrip("/").rsplit("/", 1)[-1]
    if collection not in COLLECTIONS:
        return err(ErrorKind.BAD_VAL, f"link {href!r} does not name a known collection", "href")
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    return ok(LinkTarget(collection=collection, params=params))
