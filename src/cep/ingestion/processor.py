"""Per-file processing: ledger gate, load, map, write, record."""

from __future__ import annotations

from pathlib import Path

import psycopg

from cep.db.client import transaction_cursor
from cep.ingestion.ledger import find_entry, record_failure, record_success
from cep.ingestion.loader import DocumentLoadError, parse_document
from cep.ingestion.mapper import CallMappingError, map_call_graph
from cep.ingestion.upsert import CallWriteError, write_call_graph
from cep.models import ProcessResult
from cep.utils.hashing import hash_bytes
from cep.utils.logging import get_logger


logger = get_logger(__name__)

# Pipeline errors; anything else is logged with a traceback.
EXPECTED_ERRORS = (DocumentLoadError, CallMappingError, CallWriteError)


class DocumentProcessor:
    """Run one export file through the pipeline on a shared connection.

    A file is identified in the ledger by its base name and the SHA-256 of its
    bytes. The graph write and the success ledger row commit together; a
    failure rolls both back and is then recorded on its own.
    """

    def __init__(self, connection: psycopg.Connection) -> None:
        self._conn = connection

    def process_file(self, path: Path) -> ProcessResult:
        path = Path(path)
        filename = path.name
        try:
            content = path.read_bytes()
        except OSError as exc:
            logger.error("processor.read_failed filename=%s error=%s", filename, exc)
            return ProcessResult(filename=filename, success=False, error=str(exc))

        file_hash = hash_bytes(content)
        with transaction_cursor(self._conn) as cursor:
            existing = find_entry(cursor, filename, file_hash)

        if existing is not None:
            # Any recorded outcome for identical content counts as done.
            logger.info(
                "processor.duplicate filename=%s hash=%s status=%s",
                filename,
                file_hash[:12],
                existing.status,
            )
            return ProcessResult(
                filename=filename,
                file_hash=file_hash,
                success=True,
                duplicate=True,
                records_processed=existing.records_processed or 0,
            )

        call_id = None
        try:
            document = parse_document(content, source=str(path))
            graph = map_call_graph(document)
            call_id = graph.call.call_id
            with transaction_cursor(self._conn) as cursor:
                written = write_call_graph(cursor, graph)
                record_success(cursor, filename, file_hash, written.rows_written)
        except Exception as exc:
            if isinstance(exc, EXPECTED_ERRORS):
                logger.error(
                    "processor.failed filename=%s call_id=%s error=%s", filename, call_id, exc
                )
            else:
                logger.exception("processor.error filename=%s call_id=%s", filename, call_id)
            try:
                with transaction_cursor(self._conn) as cursor:
                    record_failure(cursor, filename, file_hash, exc)
            except Exception as ledger_exc:
                logger.error(
                    "processor.ledger_failed filename=%s error=%s", filename, ledger_exc
                )
            return ProcessResult(
                filename=filename,
                file_hash=file_hash,
                success=False,
                call_id=call_id,
                error=str(exc),
            )

        logger.info(
            "processor.success filename=%s call_id=%s call_pk=%s inserted=%s rows=%s",
            filename,
            call_id,
            written.call_pk,
            written.inserted,
            written.rows_written,
        )
        return ProcessResult(
            filename=filename,
            file_hash=file_hash,
            success=True,
            call_id=call_id,
            call_pk=written.call_pk,
            records_processed=written.rows_written,
        )
