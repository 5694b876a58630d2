"""Processed-file ledger helpers.

The ledger holds one row per distinct (filename, file_hash) pair and is only
appended to once the outcome of a processing attempt is known.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from psycopg import Cursor

from cep.models import LedgerEntry

# Bound stored error text; tracebacks live in the log.
MAX_ERROR_CHARS = 2000


def find_entry(cursor: Cursor, filename: str, file_hash: str) -> Optional[LedgerEntry]:
    cursor.execute(
        "select filename, file_hash, status, records_processed, error_message, processed_at "
        "from processed_files where filename = %s and file_hash = %s",
        (filename, file_hash),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return LedgerEntry(
        filename=row[0],
        file_hash=row[1],
        status=row[2],
        records_processed=row[3],
        error_message=row[4],
        processed_at=row[5],
    )


def record_success(
    cursor: Cursor,
    filename: str,
    file_hash: str,
    records_processed: int,
    processed_at: Optional[datetime] = None,
) -> None:
    cursor.execute(
        "insert into processed_files "
        "(filename, file_hash, status, records_processed, processed_at) "
        "values (%s, %s, 'success', %s, %s) "
        "on conflict (filename, file_hash) do nothing",
        (filename, file_hash, records_processed, processed_at or _now()),
    )


def record_failure(
    cursor: Cursor,
    filename: str,
    file_hash: str,
    error: Exception | str,
    processed_at: Optional[datetime] = None,
) -> None:
    cursor.execute(
        "insert into processed_files "
        "(filename, file_hash, status, error_message, processed_at) "
        "values (%s, %s, 'failed', %s, %s) "
        "on conflict (filename, file_hash) do nothing",
        (filename, file_hash, str(error)[:MAX_ERROR_CHARS], processed_at or _now()),
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)
