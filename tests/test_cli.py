from typer.testing import CliRunner

from cep.cli.main import app


runner = CliRunner()


def test_files_inspect_reports_versions(tmp_path):
    for name in (
        "591_2026012705492672.xml",
        "591_2026012705500000.xml",
        "592_2026012705492672.XML",
        "readme.xml",
        "notes.txt",
    ):
        (tmp_path / name).write_bytes(b"")

    result = runner.invoke(app, ["files", "inspect", "--folder", str(tmp_path)])

    assert result.exit_code == 0
    assert "files=4 latest=2 superseded=1 unparseable=1" in result.output
    assert "latest      591_2026012705500000.xml call=591" in result.output
    assert "superseded  591_2026012705492672.xml" in result.output
    assert "unparseable readme.xml" in result.output
    assert "notes.txt" not in result.output


def test_files_inspect_missing_folder(tmp_path):
    result = runner.invoke(app, ["files", "inspect", "--folder", str(tmp_path / "nope")])
    assert result.exit_code == 1


def test_watch_exits_when_database_is_unavailable(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://nobody@127.0.0.1:1/none")
    monkeypatch.setenv("DB_CONNECT_RETRIES", "1")
    monkeypatch.setenv("DB_CONNECT_DELAY_SECONDS", "0")

    def _refuse(settings=None):
        raise OSError("connection refused")

    monkeypatch.setattr("cep.cli.main.get_connection", _refuse)

    result = runner.invoke(app, ["watch", "--folder", str(tmp_path), "--once"])
    assert result.exit_code == 1
