"""
Extraction Jobs — shared model and client interface
════════════════════════════════════════════════════

Both extraction backends (Textract text detection, Transcribe
speech-to-text) are long-running asynchronous jobs with the same shape:

    start(bucket, key) → job_id
    poll(job_id)       → JobStatusReport(status, result_text)

Status state machine (forward only):

    PENDING ──► IN_PROGRESS ──► SUCCEEDED
       │             │
       │             └────────► FAILED
       └──► SUCCEEDED | FAILED     (a backend may finish before we look)

ExtractionJob is created when a job starts and mutated only by the
JobPoller through advance(). A backward transition or any change after a
terminal state is a backend protocol violation → JobQueryError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from app.core.errors import JobQueryError
from app.processing.classifier import FileKind
from app.storage.s3 import ObjectRef


class JobStatus(str, Enum):
    PENDING     = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED   = "succeeded"
    FAILED      = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


_RANK: dict[JobStatus, int] = {
    JobStatus.PENDING:     0,
    JobStatus.IN_PROGRESS: 1,
    JobStatus.SUCCEEDED:   2,
    JobStatus.FAILED:      2,
}


@dataclass(frozen=True)
class JobStatusReport:
    """One poll() answer from a backend."""
    status:      JobStatus
    result_text: str | None = None   # set only when SUCCEEDED
    reason:      str | None = None   # backend failure message, if any


@dataclass
class ExtractionJob:
    job_id:      str
    kind:        FileKind
    source:      ObjectRef
    status:      JobStatus  = JobStatus.PENDING
    result_text: str | None = None
    reason:      str | None = None
    polls:       int        = 0

    def advance(self, report: JobStatusReport) -> None:
        """Apply a poll result, enforcing forward-only transitions."""
        if self.status.is_terminal:
            raise JobQueryError(
                "Job already terminal", job_id=self.job_id, status=self.status.value
            )
        if _RANK[report.status] < _RANK[self.status]:
            raise JobQueryError(
                "Job status regressed",
                job_id=self.job_id,
                previous=self.status.value,
                reported=report.status.value,
            )
        self.status = report.status
        if report.status is JobStatus.SUCCEEDED:
            self.result_text = report.result_text or ""
        elif report.status is JobStatus.FAILED:
            self.reason = report.reason


class ExtractionJobClient(ABC):
    """
    Abstract base for extraction backends.

    Implementations:
      - raise JobStartError when the backend rejects the job or returns no id
      - raise JobQueryError on transport failure or an unrecognized status
      - report terminal failure as JobStatus.FAILED (the poller raises)
    """

    @property
    @abstractmethod
    def kind(self) -> FileKind:
        """Which FileKind this client handles."""

    @abstractmethod
    async def start(self, bucket: str, key: str) -> str:
        """Start a job for s3://bucket/key and return its id."""

    @abstractmethod
    async def poll(self, job_id: str) -> JobStatusReport:
        """Query the job once."""
