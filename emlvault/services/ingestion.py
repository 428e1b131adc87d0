"""Concurrent ingestion pipeline: discovery, parsing workers, staging and copy-out."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from emlvault.config import IngestConfig, load_config
from emlvault.db.stores import DurableStore, StagingStore
from emlvault.parsers.models import EmailRecord
from emlvault.parsers.parser_email import parse_email_file
from emlvault.services.discovery import WorkQueue, discover_files
from emlvault.utils.error_handling import IngestionAborted, StoreWriteError
from emlvault.utils.log_service import LogService

PROGRESS_INTERVAL = 1000


@dataclass(slots=True)
class RunStatistics:
    """Process-wide counters; every update happens under ``_lock``."""

    files_discovered: int = 0
    files_processed: int = 0
    files_failed: int = 0
    bytes_processed: int = 0
    batches_committed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, name: str, amount: int = 1) -> int:
        with self._lock:
            value = getattr(self, name) + amount
            setattr(self, name, value)
            return value

    def record_file(self, record: EmailRecord) -> int:
        with self._lock:
            self.files_processed += 1
            self.bytes_processed += record.file_size
            return self.files_processed


@dataclass(slots=True)
class IngestionResult:
    files_discovered: int
    files_processed: int
    files_failed: int
    bytes_processed: int
    batches_committed: int
    rows_copied: int
    elapsed_seconds: float


class IngestionPipeline:
    """Coordinates one ingestion run over ``source_dir``.

    One producer (discovery, on the calling thread) feeds a bounded queue that
    ``worker_count`` threads drain. Workers batch records and flush them into
    the staging store; once discovery and every worker have finished, the
    staged rows are copied into the durable store in a single transaction.
    """

    def __init__(
        self,
        source_dir: Path,
        staging: StagingStore,
        durable: DurableStore,
        log: LogService,
        config: Optional[IngestConfig] = None,
    ) -> None:
        self.source_dir = Path(source_dir).resolve()
        self.staging = staging
        self.durable = durable
        self.config = config or load_config()
        self.stats = RunStatistics()
        self._log = log
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Ask discovery and workers to stop at their next iteration boundary."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self) -> IngestionResult:
        """Run the pipeline to completion.

        Raises:
            IngestionAborted: If any worker failed or the run was cancelled
            StoreWriteError: If the final copy into the durable store fails
        """
        started = time.perf_counter()
        worker_count = max(1, self.config.worker_count)
        work_queue = WorkQueue(self.config.queue_capacity, self._cancel)
        self._log.process_start(f"ingesting {self.source_dir} with {worker_count} worker(s)")

        errors: List[BaseException] = []
        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="emlvault-worker") as pool:
            futures = [pool.submit(self._consume, work_queue, index) for index in range(worker_count)]
            try:
                discover_files(
                    self.source_dir,
                    work_queue,
                    self._log.child("discovery"),
                    extension=self.config.file_extension,
                    on_discovered=lambda: self.stats.add("files_discovered"),
                )
            except BaseException:
                self._cancel.set()
                raise
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as exc:  # noqa: BLE001
                    errors.append(exc)

        if errors:
            raise IngestionAborted(f"Ingestion aborted: {len(errors)} worker(s) failed", errors)
        if self._cancel.is_set():
            raise IngestionAborted("Ingestion cancelled before completion", [])

        pending = work_queue.pending()
        if pending:
            raise IngestionAborted(f"{pending} queued file(s) were never processed", [])

        copy_started = time.perf_counter()
        rows_copied = self.durable.copy_from(self.staging, chunk_size=self.config.copy_chunk_size)
        self._log.step("Save To File", (time.perf_counter() - copy_started) * 1000)
        self._log.info(
            "Processed file count: {}, Total files in queue: {}",
            self.stats.files_processed,
            self.stats.files_discovered,
        )

        return IngestionResult(
            files_discovered=self.stats.files_discovered,
            files_processed=self.stats.files_processed,
            files_failed=self.stats.files_failed,
            bytes_processed=self.stats.bytes_processed,
            batches_committed=self.stats.batches_committed,
            rows_copied=rows_copied,
            elapsed_seconds=time.perf_counter() - started,
        )

    def _consume(self, work_queue: WorkQueue, worker_id: int) -> None:
        log = self._log.child(f"worker-{worker_id}")
        try:
            self._drain(work_queue, log)
        except BaseException:
            # Any worker exiting by exception cancels the run.
            self._cancel.set()
            raise

    def _drain(self, work_queue: WorkQueue, log: LogService) -> None:
        batch: List[EmailRecord] = []
        batch_started = time.perf_counter()

        for path in work_queue:
            try:
                record = parse_email_file(path)
            except Exception as exc:  # noqa: BLE001
                self.stats.add("files_failed")
                log.error("Failed to process file '{}': {}", path, exc)
                continue

            batch.append(record)
            processed = self.stats.record_file(record)
            if processed % PROGRESS_INTERVAL == 0:
                log.progress("{} file(s) processed", processed)

            if len(batch) >= self.config.batch_size:
                self._flush(batch, log)
                log.batch("Batch insert", (time.perf_counter() - batch_started) * 1000, len(batch))
                batch.clear()
                batch_started = time.perf_counter()

        if batch and not self._cancel.is_set():
            self._flush(batch, log)
            log.batch("Final batch insert", (time.perf_counter() - batch_started) * 1000, len(batch))

    def _flush(self, batch: List[EmailRecord], log: LogService) -> None:
        started = time.perf_counter()
        try:
            self.staging.bulk_insert(batch)
        except StoreWriteError as exc:
            log.error("Insert Mail Data failed: {}", exc)
            self._cancel.set()
            raise
        self.stats.add("batches_committed")
        log.step("Insert Mail Data", (time.perf_counter() - started) * 1000)


def ingest_directory(
    source_dir: Path,
    db_path: Path,
    log: LogService,
    config: Optional[IngestConfig] = None,
) -> IngestionResult:
    """Create both stores, run one pipeline over ``source_dir`` and release them."""
    cfg = config or load_config()
    with StagingStore(log.child("staging")) as staging, DurableStore(db_path, log.child("durable")) as durable:
        pipeline = IngestionPipeline(source_dir, staging, durable, log, config=cfg)
        return pipeline.run()
