import sys
import threading

import pytest

from conftest import messages_at
from emlvault import cli
from emlvault.utils.error_handling import IngestionAborted, StoreInitError


def test_missing_arguments_exit_with_usage(log_service, log_records):
    assert cli.run([], log_service) == 1
    assert cli.USAGE in messages_at(log_records, "ERROR")


def test_missing_source_directory(tmp_path, log_service, log_records):
    code = cli.run([str(tmp_path / "nope"), str(tmp_path / "out.db")], log_service)

    assert code == 1
    assert any("Source directory not found" in message for message in messages_at(log_records, "ERROR"))


def test_database_path_that_is_a_directory(source_dir, tmp_path, log_service):
    assert cli.run([str(source_dir), str(tmp_path)], log_service) == 1


def test_successful_run_prints_summary(source_dir, write_message, tmp_path, log_service, log_records, temp_config):
    write_message("a.eml", "Subject: a")
    write_message("b.eml", "Subject: b")
    db_path = tmp_path / "data" / "emails.db"

    code = cli.run([str(source_dir), str(db_path)], log_service, config=temp_config)

    assert code == 0
    assert db_path.exists()
    info = messages_at(log_records, "INFO")
    header = next(message for message in info if message.startswith("Processing Summary"))
    assert len(header) == 40
    assert any(message.startswith("Files Processed:") and message.endswith(" 2") for message in info)
    assert any(message.startswith("Files Skipped:") and message.endswith(" 0") for message in info)
    assert "-" * 40 in info


def test_aborted_run_exits_with_3(source_dir, tmp_path, log_service, log_records, monkeypatch):
    def aborted(*args, **kwargs):
        raise IngestionAborted("Ingestion aborted: 1 worker(s) failed", [RuntimeError("boom")])

    monkeypatch.setattr(cli, "ingest_directory", aborted)

    assert cli.run([str(source_dir), str(tmp_path / "x.db")], log_service) == 3
    errors = messages_at(log_records, "ERROR")
    assert "Inner Exception: boom" in errors
    assert errors[0].startswith("Fatal Error")


def test_unexpected_failure_exits_with_4(source_dir, tmp_path, log_service, monkeypatch):
    def failing(*args, **kwargs):
        raise StoreInitError("cannot open")

    monkeypatch.setattr(cli, "ingest_directory", failing)

    assert cli.run([str(source_dir), str(tmp_path / "x.db")], log_service) == 4


def test_main_configures_logging_and_returns_code(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)

    assert cli.main([str(tmp_path / "missing"), str(tmp_path / "x.db")]) == 1
    assert sys.excepthook is not sys.__excepthook__


def test_help_exits_cleanly(log_service):
    with pytest.raises(SystemExit) as excinfo:
        cli.run(["--help"], log_service)
    assert excinfo.value.code == 0
