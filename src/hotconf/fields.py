"""
Field types for configuration models.

``Date`` and ``Timestamp`` accept any of a configurable list of
``strptime`` formats, tried in order.
"""

from datetime import date, datetime
from typing import Annotated, List

from pydantic import BeforeValidator, PlainSerializer

DEFAULT_DATE_FORMATS = ["%Y-%m-%d", "%Y%m%d", "%Y-%m-%dT%H:%M:%S%z", "%Y%m%d%H%M%S%z"]
DEFAULT_TIME_FORMATS = ["%Y-%m-%dT%H:%M:%S%z", "%Y%m%d%H%M%S%z", "%Y-%m-%d", "%Y%m%d"]

_date_formats: List[str] = list(DEFAULT_DATE_FORMATS)
_time_formats: List[str] = list(DEFAULT_TIME_FORMATS)


def add_date_format(fmt: str) -> None:
    if fmt not in _date_formats:
        _date_formats.append(fmt)


def set_date_formats(formats: List[str]) -> None:
    _date_formats[:] = list(formats)


def date_formats() -> List[str]:
    return list(_date_formats)


def add_time_format(fmt: str) -> None:
    if fmt not in _time_formats:
        _time_formats.append(fmt)


def set_time_formats(formats: List[str]) -> None:
    _time_formats[:] = list(formats)


def time_formats() -> List[str]:
    return list(_time_formats)


def _parse(value: str, formats: List[str], what: str) -> datetime:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"cannot parse {value[:100]!r} as a {what}")


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _parse(value.strip(), _date_formats, "date").date()
    raise ValueError(f"invalid date {value!r:.100}")


def parse_timestamp(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return _parse(value.strip(), _time_formats, "timestamp")
    raise ValueError(f"invalid timestamp {value!r:.100}")


Date = Annotated[
    date,
    BeforeValidator(parse_date),
    PlainSerializer(lambda d: d.strftime("%Y-%m-%d"), return_type=str),
]

Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_timestamp),
    PlainSerializer(lambda t: t.isoformat(), return_type=str),
]
