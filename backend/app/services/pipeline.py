"""
Batch Extraction & Summarization Pipeline
══════════════════════════════════════════

For one identifier:

  ┌──────────────────────────────────────────────────────────────────┐
  │ 1. list_objects(bucket, "<id>/")        → [ObjectRef] (ordered)  │
  │      zero objects → NotFoundError, nothing dispatched            │
  │ 2. enumerate_candidates                 → dispatchable / skipped │
  │ 3. for each candidate, in listing order:                         │
  │      dispatch_one: start job → JobPoller.wait → text             │
  │      aggregator.append(position, key, kind, text)                │
  │ 4. summarizer.summarize(aggregator.render())                     │
  └──────────────────────────────────────────────────────────────────┘

Failure policy (pipeline.failure_mode):
  all_or_nothing  (default) the first job error aborts the request; text
                  aggregated so far is dropped and the error propagates
                  unmodified to the caller. No retries.
  partial         job errors are recorded in PipelineResult.failures and
                  the remaining objects are still processed.

Listing, storage and summarizer errors always propagate.

Jobs run strictly one at a time: the next job starts only after the
previous one is terminal. All per-request state (aggregator, result
lists) lives inside run(); the pipeline object itself only holds
injected clients and immutable settings, so one instance serves
concurrent requests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from app.core.config import FailureMode
from app.core.errors import (
    JobFailedError,
    JobQueryError,
    JobStartError,
    JobTimeoutError,
    PipelineError,
)
from app.processing.aggregator import TextAggregator
from app.processing.classifier import FileKind, classify
from app.processing.jobs import ExtractionJob, ExtractionJobClient
from app.processing.poller import JobPoller
from app.services.summarizer import Summarizer
from app.storage.s3 import ObjectRef, S3StorageService

logger = logging.getLogger(__name__)

_JOB_ERRORS = (JobStartError, JobQueryError, JobFailedError, JobTimeoutError)


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchRequest:
    identifier: str
    prefix:     str

    @classmethod
    def for_identifier(cls, identifier: str) -> "BatchRequest":
        identifier = identifier.strip()
        if not identifier.strip("/"):
            raise ValueError("identifier must not be blank")
        prefix = identifier if identifier.endswith("/") else f"{identifier}/"
        return cls(identifier=identifier, prefix=prefix)


@dataclass(frozen=True)
class Candidate:
    """A listed object that will get an extraction job."""
    position: int      # index in the storage listing
    ref:      ObjectRef
    kind:     FileKind


@dataclass(frozen=True)
class JobFailure:
    source_key: str
    kind:       FileKind
    error_code: str
    message:    str


@dataclass
class PipelineResult:
    identifier:      str
    prefix:          str
    summary:         str
    aggregated_text: str
    processed: list[str]        = field(default_factory=list)
    skipped:   list[str]        = field(default_factory=list)
    failures:  list[JobFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class BatchPipeline:

    def __init__(
        self,
        storage:    S3StorageService,
        clients:    list[ExtractionJobClient],
        summarizer: Summarizer,
        poller:     JobPoller,
        bucket:     str,
        failure_mode: FailureMode = FailureMode.ALL_OR_NOTHING,
        transcription_enabled: bool = False,
    ) -> None:
        self._storage = storage
        self._clients = {c.kind: c for c in clients}
        self._summarizer = summarizer
        self._poller = poller
        self._bucket = bucket
        self._failure_mode = failure_mode
        self._transcription_enabled = transcription_enabled

    # ------------------------------------------------------------------
    # Step 2: enumerate candidates
    # ------------------------------------------------------------------

    def enumerate_candidates(
        self,
        refs: list[ObjectRef],
    ) -> tuple[list[Candidate], list[ObjectRef]]:
        """Split a listing into dispatchable candidates and skipped objects."""
        candidates: list[Candidate] = []
        skipped: list[ObjectRef] = []

        for position, ref in enumerate(refs):
            kind = classify(ref.extension)
            if kind is FileKind.UNSUPPORTED:
                logger.info("Skipping unsupported file | key=%s ext=%s", ref.key, ref.extension or "-")
                skipped.append(ref)
            elif kind is FileKind.TRANSCRIPTION and not self._transcription_enabled:
                logger.info("Transcription disabled, skipping | key=%s", ref.key)
                skipped.append(ref)
            elif kind not in self._clients:
                logger.warning("No extraction client for kind=%s, skipping | key=%s", kind.value, ref.key)
                skipped.append(ref)
            else:
                candidates.append(Candidate(position=position, ref=ref, kind=kind))

        return candidates, skipped

    # ------------------------------------------------------------------
    # Step 3: dispatch + await one job
    # ------------------------------------------------------------------

    async def dispatch_one(self, candidate: Candidate) -> str:
        """Start the matching job and poll it to a terminal state."""
        client = self._clients[candidate.kind]
        job_id = await client.start(self._bucket, candidate.ref.key)

        job = ExtractionJob(job_id=job_id, kind=candidate.kind, source=candidate.ref)
        return await self._poller.wait(client, job)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, request: BatchRequest) -> PipelineResult:
        t0 = time.monotonic()
        logger.info("Pipeline start | id=%s bucket=%s prefix=%s", request.identifier, self._bucket, request.prefix)

        refs = await self._storage.list_objects(self._bucket, request.prefix)
        candidates, skipped = self.enumerate_candidates(refs)

        aggregator = TextAggregator()
        failures: list[JobFailure] = []

        for candidate in candidates:
            try:
                text = await self.dispatch_one(candidate)
            except _JOB_ERRORS as exc:
                if self._failure_mode is FailureMode.ALL_OR_NOTHING:
                    logger.error(
                        "Pipeline aborted | id=%s key=%s error=%s discarded_parts=%d",
                        request.identifier, candidate.ref.key, exc.code, len(aggregator),
                    )
                    raise
                failures.append(_failure(candidate, exc))
                logger.warning(
                    "Job failed, continuing | id=%s key=%s error=%s",
                    request.identifier, candidate.ref.key, exc.code,
                )
                continue

            aggregator.append(candidate.position, candidate.ref.key, candidate.kind, text)

        aggregated_text = aggregator.render()
        summary = await self._summarizer.summarize(aggregated_text)

        logger.info(
            "Pipeline done | id=%s objects=%d processed=%d skipped=%d failed=%d elapsed_ms=%.0f",
            request.identifier, len(refs), len(aggregator), len(skipped), len(failures),
            (time.monotonic() - t0) * 1000,
        )

        return PipelineResult(
            identifier=request.identifier,
            prefix=request.prefix,
            summary=summary,
            aggregated_text=aggregated_text,
            processed=[part.source_key for part in aggregator.parts],
            skipped=[ref.key for ref in skipped],
            failures=failures,
        )


def _failure(candidate: Candidate, exc: PipelineError) -> JobFailure:
    return JobFailure(
        source_key=candidate.ref.key,
        kind=candidate.kind,
        error_code=exc.code,
        message=exc.message,
    )
