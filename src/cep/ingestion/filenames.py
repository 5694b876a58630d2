"""Call export filename parsing and version selection.

Export files are named ``<CallNumber>_<YYYYMMDDHHMMSS><suffix>.xml``, for
example ``591_2026012705492672.xml``. Several files for the same call number
may arrive; the one with the greatest timestamp ordinal is the newest.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, Optional

FILENAME_PATTERN = re.compile(
    r"([0-9]+)_([0-9]{4})([0-9]{2})([0-9]{2})([0-9]{2})([0-9]{2})([0-9]{2})([0-9]+)"
)
_XML_SUFFIX = re.compile(r"\.xml$", re.IGNORECASE)

# Largest ordinal accepted; matches a signed 64-bit column.
MAX_TIMESTAMP_ORDINAL = 2**63 - 1


@dataclass(frozen=True)
class ParsedFilename:
    """Components of a conforming export filename."""

    call_number: str
    year: str
    month: str
    day: str
    hour: str
    minute: str
    second: str
    suffix: str
    timestamp: str
    timestamp_ordinal: int


def parse_filename(filename: str) -> Optional[ParsedFilename]:
    """Parse an export filename, or return None if it does not conform."""
    stem = _XML_SUFFIX.sub("", PurePath(filename).name)
    match = FILENAME_PATTERN.fullmatch(stem)
    if not match:
        return None

    call_number, year, month, day, hour, minute, second, suffix = match.groups()

    # Range checks only; day 31 is accepted for every month.
    if not 1 <= int(month) <= 12:
        return None
    if not 1 <= int(day) <= 31:
        return None
    if int(hour) > 23 or int(minute) > 59 or int(second) > 59:
        return None

    ordinal = int(f"{year}{month}{day}{hour}{minute}{second}{suffix}")
    if ordinal > MAX_TIMESTAMP_ORDINAL:
        return None

    return ParsedFilename(
        call_number=call_number,
        year=year,
        month=month,
        day=day,
        hour=hour,
        minute=minute,
        second=second,
        suffix=suffix,
        timestamp=f"{year}-{month}-{day} {hour}:{minute}:{second}.{suffix}",
        timestamp_ordinal=ordinal,
    )


def is_valid_filename(filename: str) -> bool:
    return parse_filename(filename) is not None


def call_number_of(filename: str) -> Optional[str]:
    parsed = parse_filename(filename)
    return parsed.call_number if parsed else None


def compare_filenames(first: str, second: str) -> Optional[int]:
    """Return -1, 0 or 1 by timestamp ordinal; None if either is unparseable."""
    a = parse_filename(first)
    b = parse_filename(second)
    if a is None or b is None:
        return None
    if a.timestamp_ordinal < b.timestamp_ordinal:
        return -1
    if a.timestamp_ordinal > b.timestamp_ordinal:
        return 1
    return 0


def group_by_call_number(filenames: Iterable[str]) -> dict[str, list[str]]:
    """Group parseable filenames by call number, in first-seen order."""
    grouped: dict[str, list[str]] = {}
    for filename in filenames:
        parsed = parse_filename(filename)
        if parsed is None:
            continue
        grouped.setdefault(parsed.call_number, []).append(filename)
    return grouped


def get_latest_files(filenames: Iterable[str]) -> list[str]:
    """Return the newest filename per call number."""
    latest: list[str] = []
    for files in group_by_call_number(filenames).values():
        # max() keeps the first of equal ordinals.
        latest.append(max(files, key=_ordinal))
    return latest


def get_files_to_skip(filenames: Iterable[str]) -> list[str]:
    """Return parseable filenames superseded by a newer file for the same call.

    Unparseable names are not included; see get_unparseable_filenames.
    """
    names = list(filenames)
    keep = set(get_latest_files(names))
    return [name for name in names if name not in keep and is_valid_filename(name)]


def get_unparseable_filenames(filenames: Iterable[str]) -> list[str]:
    return [name for name in filenames if not is_valid_filename(name)]


def _ordinal(filename: str) -> int:
    parsed = parse_filename(filename)
    return parsed.timestamp_ordinal if parsed else -1
