"""
Job Poller — wait for one extraction job to reach a terminal state.

Loop:
  1. poll() the backend and apply the report to the job (forward-only)
  2. SUCCEEDED → return the text immediately
     FAILED    → raise JobFailedError(source_key) immediately
  3. otherwise sleep interval_seconds and go to 1

The loop is bounded twice: max_attempts polls and a wall-clock deadline
of timeout_seconds from the first poll. Hitting either raises
JobTimeoutError; the backend job is abandoned (there is no cancel).

sleep and clock are injectable so tests can simulate time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from app.core.config import PipelineSettings
from app.core.errors import JobFailedError, JobTimeoutError
from app.processing.jobs import ExtractionJob, ExtractionJobClient, JobStatus

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class JobPoller:

    def __init__(
        self,
        interval_seconds: float = 5.0,
        max_attempts:     int   = 120,
        timeout_seconds:  float = 900.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        if interval_seconds <= 0 or max_attempts < 1 or timeout_seconds <= 0:
            raise ValueError("poll interval, attempts and timeout must be positive")
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, pipeline: PipelineSettings, **kwargs) -> "JobPoller":
        return cls(
            interval_seconds=pipeline.poll_interval_seconds,
            max_attempts=pipeline.max_poll_attempts,
            timeout_seconds=pipeline.job_timeout_seconds,
            **kwargs,
        )

    async def wait(self, client: ExtractionJobClient, job: ExtractionJob) -> str:
        """Poll until terminal. Returns the extracted text."""
        deadline = self._clock() + self.timeout_seconds

        while True:
            report = await client.poll(job.job_id)
            job.polls += 1
            job.advance(report)

            logger.debug(
                "Job poll | job=%s key=%s attempt=%d status=%s",
                job.job_id, job.source.key, job.polls, job.status.value,
            )

            if job.status is JobStatus.SUCCEEDED:
                logger.info(
                    "Job succeeded | kind=%s job=%s key=%s polls=%d chars=%d",
                    job.kind.value, job.job_id, job.source.key, job.polls,
                    len(job.result_text or ""),
                )
                return job.result_text or ""

            if job.status is JobStatus.FAILED:
                logger.error(
                    "Job failed | kind=%s job=%s key=%s reason=%s",
                    job.kind.value, job.job_id, job.source.key, job.reason,
                )
                raise JobFailedError(job.source.key, job.job_id, job.reason)

            if job.polls >= self.max_attempts or self._clock() + self.interval_seconds > deadline:
                logger.error(
                    "Job timed out | job=%s key=%s polls=%d status=%s",
                    job.job_id, job.source.key, job.polls, job.status.value,
                )
                raise JobTimeoutError(
                    f"Extraction job did not finish for file: {job.source.key}",
                    job_id=job.job_id,
                    key=job.source.key,
                    polls=job.polls,
                )

            await self._sleep(self.interval_seconds)
