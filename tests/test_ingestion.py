import json
import threading
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select

from conftest import messages_at
from emlvault.config import IngestConfig
from emlvault.db.models import EmailRow
from emlvault.services.ingestion import IngestionPipeline, ingest_directory
from emlvault.utils.error_handling import IngestionAborted, StoreWriteError


def _fetch_rows(db_path: Path):
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        with engine.connect() as connection:
            return connection.execute(select(EmailRow.__table__).order_by(EmailRow.id)).mappings().all()
    finally:
        engine.dispose()


def test_empty_directory_creates_empty_store(source_dir, tmp_path, log_service, log_records, temp_config):
    db_path = tmp_path / "empty.db"

    result = ingest_directory(source_dir, db_path, log_service, config=temp_config)

    assert result.files_discovered == 0
    assert result.rows_copied == 0
    assert db_path.exists()
    assert _fetch_rows(db_path) == []
    assert "Processed file count: 0, Total files in queue: 0" in messages_at(log_records, "INFO")


def test_corrupt_file_is_skipped_with_one_error(source_dir, tmp_path, write_message, log_service, log_records, temp_config):
    write_message("good1.eml", "Subject: one", "From: a@example.com", "To: b@example.com")
    write_message("nested/good2.eml", "Subject: two")
    (source_dir / "broken.eml").write_bytes(b"\x00\x01\x02 not a message\n")
    db_path = tmp_path / "mixed.db"

    result = ingest_directory(source_dir, db_path, log_service, config=temp_config)

    assert result.files_discovered == 3
    assert result.files_processed == 2
    assert result.files_failed == 1
    assert sorted(row["subject"] for row in _fetch_rows(db_path)) == ["one", "two"]
    errors = messages_at(log_records, "ERROR")
    assert len(errors) == 1
    assert "broken.eml" in errors[0]


def test_batches_flush_at_batch_size(source_dir, write_message, staging_store, durable_store, log_service):
    for index in range(501):
        write_message(f"mail_{index:04d}.eml", f"Subject: message {index}")
    config = IngestConfig(batch_size=500, queue_capacity=64, worker_count=1)

    result = IngestionPipeline(source_dir, staging_store, durable_store, log_service, config=config).run()

    assert staging_store.commit_count == 2
    assert result.batches_committed == 2
    assert result.rows_copied == 501
    assert durable_store.count() == 501


def test_rows_carry_extracted_metadata(source_dir, write_message, tmp_path, log_service, temp_config):
    path = write_message(
        "meta.eml",
        "From: Alice <alice@example.com>",
        "To: bob@example.com",
        "Cc: BOB@example.com, carol@example.com",
        "Subject: Status",
        "Date: Tue, 02 Jan 2024 10:00:00 +0200",
    )
    db_path = tmp_path / "meta.db"

    ingest_directory(source_dir, db_path, log_service, config=temp_config)

    (row,) = _fetch_rows(db_path)
    assert row["file_name"] == "meta.eml"
    assert row["file_size"] == path.stat().st_size
    assert row["sender"] == "<alice@example.com>"
    assert row["recipients"] == "<bob@example.com>, <carol@example.com>"
    assert row["creation_time"] == "2024-01-02 08:00:00"
    assert row["has_attachments"] == 0
    assert row["attachment_names"] is None
    assert len(row["file_hash"]) == 32


def test_generated_dataset_ingests_all_valid_messages(generated_dataset, tmp_path, log_service, temp_config):
    summary = json.loads((generated_dataset / "summary.json").read_text(encoding="utf-8"))
    db_path = tmp_path / "generated.db"

    result = ingest_directory(generated_dataset / "emails", db_path, log_service, config=temp_config)

    assert result.files_processed == summary["email_count"]
    assert result.files_failed == summary["corrupt_count"]
    assert len(_fetch_rows(db_path)) == summary["email_count"]
    assert result.batches_committed >= 2


def test_store_failure_aborts_run(source_dir, write_message, staging_store, durable_store, log_service, monkeypatch, temp_config):
    for index in range(5):
        write_message(f"m{index}.eml", f"Subject: {index}")

    def failing_insert(records):
        raise StoreWriteError("Bulk insert failed: disk full")

    monkeypatch.setattr(staging_store, "bulk_insert", failing_insert)
    pipeline = IngestionPipeline(source_dir, staging_store, durable_store, log_service, config=temp_config)

    with pytest.raises(IngestionAborted) as excinfo:
        pipeline.run()

    assert excinfo.value.errors
    assert all(isinstance(error, StoreWriteError) for error in excinfo.value.errors)
    assert pipeline.cancelled
    assert durable_store.count() == 0


def test_cancelled_run_does_not_write_durable_store(source_dir, write_message, staging_store, durable_store, log_service, temp_config):
    write_message("m.eml", "Subject: x")
    pipeline = IngestionPipeline(source_dir, staging_store, durable_store, log_service, config=temp_config)
    pipeline.cancel()

    with pytest.raises(IngestionAborted, match="cancelled"):
        pipeline.run()

    assert durable_store.count() == 0


def test_raw_utf8_subject_is_stored(source_dir, tmp_path, write_message, log_service, temp_config):
    for index in range(3):
        write_message(f"plain{index}.eml", f"Subject: plain {index}")
    (source_dir / "utf8.eml").write_bytes("Subject: Café 报告\r\nFrom: a@example.com\r\n\r\nbody".encode("utf-8"))
    db_path = tmp_path / "utf8.db"

    result = ingest_directory(source_dir, db_path, log_service, config=temp_config)

    assert result.rows_copied == 4
    assert "Café 报告" in {row["subject"] for row in _fetch_rows(db_path)}


def test_worker_crash_with_unexpected_error_does_not_hang(source_dir, write_message, staging_store, durable_store, log_service, monkeypatch):
    for index in range(20):
        write_message(f"m{index:02d}.eml", f"Subject: {index}")

    def exploding_insert(records):
        raise ValueError("cannot bind parameter")

    monkeypatch.setattr(staging_store, "bulk_insert", exploding_insert)
    config = IngestConfig(batch_size=1, queue_capacity=2, worker_count=1)
    pipeline = IngestionPipeline(source_dir, staging_store, durable_store, log_service, config=config)
    outcome = {}

    def target():
        try:
            pipeline.run()
        except BaseException as exc:  # noqa: BLE001
            outcome["error"] = exc

    runner = threading.Thread(target=target, daemon=True)
    runner.start()
    runner.join(10)

    assert not runner.is_alive()
    assert isinstance(outcome["error"], IngestionAborted)
    assert isinstance(outcome["error"].errors[0], ValueError)
    assert pipeline.cancelled
    assert durable_store.count() == 0
