from datetime import datetime, timedelta, timezone

import pytest

from cep.db.client import transaction_cursor
from cep.ingestion import upsert
from cep.ingestion.loader import parse_document
from cep.ingestion.mapper import map_call_graph
from cep.ingestion.upsert import CallWriteError, write_call_graph


def _write(db, content: bytes, now=None):
    graph = map_call_graph(parse_document(content))
    with transaction_cursor(db) as cursor:
        return write_call_graph(cursor, graph, now=now)


def _count(db, table: str) -> int:
    return db.scalar(f"select count(*) from {table}")


def test_insert_writes_full_graph(db, call_xml):
    result = _write(db, call_xml())

    assert result.inserted is True
    assert result.rows_written == 13
    assert _count(db, "calls") == 1
    assert _count(db, "units") == 1
    assert _count(db, "unit_personnel") == 1
    assert _count(db, "unit_logs") == 2
    assert _count(db, "unit_dispositions") == 1
    assert _count(db, "locations") == 1
    assert _count(db, "call_dispositions") == 1
    assert db.scalar("select call_id from calls where id = %s", (result.call_pk,)) == 1001


def test_children_keep_document_order(db, call_xml):
    _write(db, call_xml(units=("E1", "L2", "M3"), persons=("Able", "Baker")))

    units = db.rows("select unit_number from units order by id")
    assert [row[0] for row in units] == ["E1", "L2", "M3"]
    persons = db.rows("select last_name from persons order by id")
    assert [row[0] for row in persons] == ["Able", "Baker"]


def test_reimport_replaces_children(db, call_xml):
    first = _write(db, call_xml(units=("E1", "E2", "E3")))
    assert _count(db, "units") == 3
    assert _count(db, "unit_logs") == 6

    second = _write(db, call_xml(nature="MEDICAL", units=("M9",)))

    assert second.inserted is False
    assert second.call_pk == first.call_pk
    assert _count(db, "calls") == 1
    assert [row[0] for row in db.rows("select unit_number from units")] == ["M9"]
    assert _count(db, "unit_logs") == 2
    assert _count(db, "unit_personnel") == 1
    assert db.scalar("select nature_of_call from calls") == "MEDICAL"


def test_reimport_refreshes_updated_at_only(db, call_xml):
    created = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)
    _write(db, call_xml(), now=created)
    _write(db, call_xml(), now=created + timedelta(hours=1))

    row = db.rows("select created_at, updated_at from calls")[0]
    assert row[0] == created
    assert row[1] == created + timedelta(hours=1)


def test_failure_mid_graph_leaves_existing_call_intact(db, call_xml, monkeypatch):
    _write(db, call_xml(units=("E1", "E2")))
    updated_before = db.scalar("select updated_at from calls")

    def _boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(upsert, "_insert_persons", _boom)

    with pytest.raises(CallWriteError) as exc_info:
        _write(db, call_xml(nature="MEDICAL", units=("M9",)))

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert db.scalar("select nature_of_call from calls") == "STRUCTURE FIRE"
    assert db.scalar("select updated_at from calls") == updated_before
    assert [row[0] for row in db.rows("select unit_number from units order by id")] == [
        "E1",
        "E2",
    ]
    assert _count(db, "persons") == 1


def test_failure_on_new_call_writes_nothing(db, call_xml, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("constraint")

    monkeypatch.setattr(upsert, "_insert_vehicles", _boom)

    with pytest.raises(CallWriteError):
        _write(db, call_xml())

    assert _count(db, "calls") == 0
    assert _count(db, "units") == 0


def test_xml_data_is_stored_as_json(db, call_xml):
    _write(db, call_xml())
    data = db.scalar("select xml_data from calls")
    assert data["CallNumber"] == "24-000123"


def test_chunked_splits_batches():
    assert upsert._chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
