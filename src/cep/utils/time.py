"""Datetime parsing for CAD export timestamps."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from dateutil import parser as date_parser

from cep.utils.coerce import is_nil

# Tried in order; the first format that consumes the whole value wins.
CAD_DATETIME_FORMATS: tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
)


def parse_cad_datetime(value: Optional[str], nil: bool = False) -> Optional[datetime]:
    """Parse a CAD timestamp into a naive wall-clock datetime.

    Known export formats are tried first, then dateutil's free-form parser.
    Offsets are dropped rather than converted, and sub-second precision is
    truncated. Unparseable input returns None.
    """
    if is_nil(value, nil):
        return None

    text = value.strip()
    for fmt in CAD_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return _wall_clock(parsed)

    return _parse_generic(text)


def _parse_generic(text: str) -> Optional[datetime]:
    try:
        return _wall_clock(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def _wall_clock(value: datetime) -> datetime:
    return value.replace(tzinfo=None, microsecond=0)
