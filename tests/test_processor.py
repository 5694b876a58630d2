from cep.ingestion import processor as processor_module
from cep.ingestion import upsert
from cep.ingestion.processor import DocumentProcessor
from cep.utils.hashing import hash_bytes


def _ledger(db):
    return db.rows(
        "select filename, file_hash, status, records_processed, error_message "
        "from processed_files order by id"
    )


def test_process_file_success_records_ledger(db, call_xml, tmp_path):
    path = tmp_path / "1001_2024012610000001.xml"
    path.write_bytes(call_xml())

    result = DocumentProcessor(db).process_file(path)

    assert result.success is True
    assert result.duplicate is False
    assert result.call_id == 1001
    assert result.records_processed == 13
    assert _ledger(db) == [(path.name, hash_bytes(path.read_bytes()), "success", 13, None)]


def test_same_file_twice_is_a_noop(db, call_xml, tmp_path):
    path = tmp_path / "1001_2024012610000001.xml"
    path.write_bytes(call_xml())
    processor = DocumentProcessor(db)

    processor.process_file(path)
    calls_before = db.rows("select id, updated_at from calls")
    second = processor.process_file(path)

    assert second.success is True
    assert second.duplicate is True
    assert second.records_processed == 13
    assert db.rows("select id, updated_at from calls") == calls_before
    assert len(_ledger(db)) == 1


def test_new_content_same_name_is_processed(db, call_xml, tmp_path):
    path = tmp_path / "1001_2024012610000001.xml"
    processor = DocumentProcessor(db)

    path.write_bytes(call_xml(units=("E1", "E2")))
    processor.process_file(path)
    path.write_bytes(call_xml(units=("E1",)))
    result = processor.process_file(path)

    assert result.success is True
    assert result.duplicate is False
    assert db.scalar("select count(*) from units") == 1
    assert len(_ledger(db)) == 2


def test_malformed_file_records_failure(db, tmp_path):
    path = tmp_path / "broken.xml"
    path.write_bytes(b"<CallExport><CallId>1</CallExport>")

    result = DocumentProcessor(db).process_file(path)

    assert result.success is False
    assert "XML parsing errors" in result.error
    rows = _ledger(db)
    assert len(rows) == 1
    assert rows[0][2] == "failed"
    assert rows[0][4]
    assert db.scalar("select count(*) from calls") == 0


def test_redelivered_failed_file_is_a_duplicate_success(db, tmp_path):
    path = tmp_path / "broken.xml"
    path.write_bytes(b"<CallExport/>")
    processor = DocumentProcessor(db)

    first = processor.process_file(path)
    second = processor.process_file(path)

    assert first.success is False
    assert second.success is True
    assert second.duplicate is True
    assert second.error is None
    assert [row[2] for row in _ledger(db)] == ["failed"]
    assert db.scalar("select count(*) from calls") == 0


def test_ledger_write_failure_keeps_original_error(db, tmp_path, monkeypatch):
    def _ledger_down(*args, **kwargs):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(processor_module, "record_failure", _ledger_down)
    path = tmp_path / "broken.xml"
    path.write_bytes(b"<CallExport/>")

    result = DocumentProcessor(db).process_file(path)

    assert result.success is False
    assert result.error == "Document has no usable CallId"
    assert _ledger(db) == []


def test_write_failure_rolls_back_and_records_failure(db, call_xml, tmp_path, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("persons table locked")

    monkeypatch.setattr(upsert, "_insert_persons", _boom)
    path = tmp_path / "1001_2024012610000001.xml"
    path.write_bytes(call_xml())

    result = DocumentProcessor(db).process_file(path)

    assert result.success is False
    assert result.call_id == 1001
    assert "persons table locked" in result.error
    assert db.scalar("select count(*) from calls") == 0
    assert [row[2] for row in _ledger(db)] == ["failed"]


def test_unreadable_file_fails_without_ledger(db, tmp_path):
    result = DocumentProcessor(db).process_file(tmp_path / "gone.xml")

    assert result.success is False
    assert _ledger(db) == []
