"""
Job tracking and background execution for PDF conversions.

This module manages the lifecycle of conversion jobs:
- Job creation with monotonically increasing integer identifiers
- Background pipeline execution on a thread pool
- Status transitions (pending -> processing -> completed | failed, or
  pending -> failed when a job cannot be scheduled)
- Progress counters and per-page error collection
- Thread-safe snapshots for status polling

Job records live in process memory only and are never evicted; a restart
forgets every job.
"""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from omegaconf import DictConfig

from .configuration import make_runtime_config
from .exceptions import InvalidTransitionError, JobNotFoundError
from .models import JobDetail, JobStatus
from .optimizer import ImageOptimizer
from .pipeline import ConversionPipeline
from .renderer import PageRenderer
from .utils import ensure_directory

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: Dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    """
    Internal representation of a conversion job with full state.

    Attributes:
        id: Process-unique job identifier
        directory_id: Grouping key that selects the output subdirectory
        source_path: Path of the uploaded PDF
        status: Current lifecycle state
        progress: Percentage of pages converted (forced to 100 on completion)
        total_pages: Page count, 0 until the document is opened
        processed_pages: Pages successfully written so far
        current_page: Page currently being converted
        start_time: Creation timestamp (UTC)
        end_time: Timestamp of reaching a terminal state
        output_path: Absolute output directory, set only when completed
        error: Fatal error message, set only when failed
        errors: Per-page error messages, in page order
        compression_ratio: Overall original/compressed size ratio, set only when completed
    """

    id: int
    directory_id: str
    source_path: Path
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total_pages: int = 0
    processed_pages: int = 0
    current_page: int = 0
    start_time: datetime = field(default_factory=_utcnow)
    end_time: Optional[datetime] = None
    output_path: Optional[Path] = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    compression_ratio: Optional[float] = None

    def transition(self, status: JobStatus) -> None:
        if self.status.is_terminal:
            raise InvalidTransitionError(f"Job {self.id} already finished as {self.status.value}")
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(f"Job {self.id} cannot move from {self.status.value} to {status.value}")
        self.status = status

    def to_detail(self) -> JobDetail:
        """
        Convert to the public API representation.

        Returns:
            JobDetail snapshot that shares no mutable state with the record
        """
        return JobDetail(
            id=self.id,
            directory_id=self.directory_id,
            status=self.status,
            progress=self.progress,
            processed_pages=self.processed_pages,
            total_pages=self.total_pages,
            current_page=self.current_page,
            output_path=str(self.output_path) if self.output_path else None,
            start_time=self.start_time,
            end_time=self.end_time,
            error=self.error,
            errors=list(self.errors),
            compression_ratio=self.compression_ratio,
        )


class JobManager:
    """
    Central coordinator for conversion jobs.

    This class owns the job registry and the worker pool:
    - Registering jobs for uploaded documents
    - Running the conversion pipeline detached from the request
    - Applying state transitions and progress updates for the pipeline
    - Serving consistent snapshots to status queries

    Thread Safety:
        Every read and write of the registry or a record happens under a
        single lock. Each record is mutated by exactly one pipeline run.

    Attributes:
        config: Resolved process configuration
        upload_root: Directory holding uploaded PDFs
        output_root: Root directory for rendered pages
        pipeline: Conversion pipeline bound to this manager
    """

    def __init__(
        self,
        config: DictConfig | None = None,
        renderer: PageRenderer | None = None,
        optimizer: ImageOptimizer | None = None,
    ) -> None:
        """
        Initialize the job manager.

        Args:
            config: Process configuration (default: built from defaults and environment)
            renderer: Page renderer (default: PyMuPDF renderer at the configured scale)
            optimizer: Image optimizer (default: built from the ``compression`` section)
        """
        self.config = config if config is not None else make_runtime_config()
        self.upload_root = ensure_directory(Path(self.config.input_dir))
        self.output_root = ensure_directory(Path(self.config.output_dir))
        self._jobs: Dict[int, JobRecord] = {}
        self._lock = Lock()
        self._ids = itertools.count(1)
        self._executor: Optional[ThreadPoolExecutor] = None
        self.pipeline = ConversionPipeline(
            tracker=self,
            renderer=renderer or PageRenderer(scale=self.config.scale),
            optimizer=optimizer or ImageOptimizer(self.config.compression),
            output_root=self.output_root,
            image_format=self.config.image_format,
        )

    def create_job(self, directory_id: str, source_path: Path) -> int:
        """
        Register a new pending job.

        Args:
            directory_id: Output grouping key
            source_path: Path to the stored PDF

        Returns:
            The new job's identifier

        Thread Safety:
            The record is visible to status queries as soon as this returns
        """
        with self._lock:
            job_id = next(self._ids)
            self._jobs[job_id] = JobRecord(id=job_id, directory_id=directory_id, source_path=source_path)
        logger.info("Created new job %d for directory %s", job_id, directory_id)
        return job_id

    def get_job(self, job_id: int) -> Optional[JobDetail]:
        """
        Get a snapshot of a job.

        Args:
            job_id: The job identifier

        Returns:
            JobDetail if found, None otherwise
        """
        with self._lock:
            record = self._jobs.get(job_id)
            return record.to_detail() if record else None

    def list_jobs(self) -> list[JobDetail]:
        """Snapshots of all jobs, newest first."""
        with self._lock:
            records = sorted(self._jobs.values(), key=lambda r: r.id, reverse=True)
            return [record.to_detail() for record in records]

    def active_jobs(self) -> int:
        """Number of jobs registered since the process started."""
        with self._lock:
            return len(self._jobs)

    def submit(self, job_id: int) -> None:
        """
        Schedule the conversion pipeline for a registered job.

        The caller keeps only the job id; outcome is observed by polling
        :meth:`get_job`.

        Raises:
            JobNotFoundError: If the job is not registered
        """
        with self._lock:
            record = self._require(job_id)
            source_path, directory_id = record.source_path, record.directory_id

        future = self._get_executor().submit(self.pipeline.run, source_path, directory_id, job_id)
        future.add_done_callback(partial(self._log_outcome, job_id))

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=int(self.config.max_workers),
                    thread_name_prefix="pdf-raster",
                )
            return self._executor

    def _log_outcome(self, job_id: int, future: Future) -> None:
        # The pipeline has already logged the traceback of a fatal error.
        exc = future.exception()
        if exc is not None:
            logger.error("Job %d failed: %s", job_id, exc)
        else:
            logger.info("Conversion job %d completed", job_id)

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop the worker pool, by default once every submitted job has finished.

        A later :meth:`submit` starts a fresh pool.
        """
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # Pipeline-facing mutations

    def _require(self, job_id: int) -> JobRecord:
        record = self._jobs.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def _update_job(self, job_id: int, **kwargs: Any) -> None:
        with self._lock:
            record = self._require(job_id)
            for key, value in kwargs.items():
                setattr(record, key, value)

    def mark_processing(self, job_id: int) -> None:
        with self._lock:
            self._require(job_id).transition(JobStatus.PROCESSING)

    def set_total_pages(self, job_id: int, total_pages: int) -> None:
        self._update_job(job_id, total_pages=total_pages, processed_pages=0)

    def set_current_page(self, job_id: int, page_number: int) -> None:
        self._update_job(job_id, current_page=page_number)

    def record_page_success(self, job_id: int) -> None:
        with self._lock:
            record = self._require(job_id)
            record.processed_pages = min(record.processed_pages + 1, record.total_pages)
            record.progress = record.processed_pages * 100 // record.total_pages

    def record_page_error(self, job_id: int, message: str) -> None:
        with self._lock:
            self._require(job_id).errors.append(message)

    def mark_completed(self, job_id: int, output_path: Path, compression_ratio: float) -> None:
        """
        Move a job to ``completed``.

        Progress is forced to 100 even when pages were skipped.
        """
        with self._lock:
            record = self._require(job_id)
            record.transition(JobStatus.COMPLETED)
            record.output_path = output_path
            record.compression_ratio = compression_ratio
            record.progress = 100
            record.end_time = _utcnow()

    def mark_failed(self, job_id: int, error: str) -> None:
        """Move a pending or processing job to ``failed`` with its fatal error."""
        with self._lock:
            record = self._require(job_id)
            record.transition(JobStatus.FAILED)
            record.error = error
            record.end_time = _utcnow()
