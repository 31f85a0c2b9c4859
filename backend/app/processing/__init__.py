"""
Extraction Processing Package
══════════════════════════════

Building blocks of the batch pipeline, leaves first:

  File kind → Extraction job → Poll to terminal → Ordered aggregate

Modules
───────
  classifier.py  extension → FileKind (OCR | TRANSCRIPTION | UNSUPPORTED)
  jobs.py        ExtractionJob state machine + ExtractionJobClient interface
  textract.py    AWS Textract async text detection client
  transcribe.py  AWS Transcribe speech-to-text client
  poller.py      bounded polling loop with injectable sleep/clock
  aggregator.py  listing-ordered text concatenation

Design principles
─────────────────
  • Backend clients are constructed once and injected; none read global config.
  • Nothing here retries — failures propagate to the pipeline orchestrator.
  • Every step emits pipe-delimited log lines (key=value).
"""

from app.processing.aggregator import AggregatedPart, TextAggregator
from app.processing.classifier import FileKind, classify
from app.processing.jobs import ExtractionJob, ExtractionJobClient, JobStatus, JobStatusReport
from app.processing.poller import JobPoller

__all__ = [
    "AggregatedPart",
    "TextAggregator",
    "FileKind",
    "classify",
    "ExtractionJob",
    "ExtractionJobClient",
    "JobStatus",
    "JobStatusReport",
    "JobPoller",
]
