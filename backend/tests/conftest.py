"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : settings, fake_time, poller, mock_storage,
                    ocr_client, transcription_client, summarizer,
                    make_pipeline, mock_functions, mock_aurora,
                    make_app, async_client

Environment strategy:
  - No test talks to AWS. aioboto3 sessions are MagicMocks whose
    client() returns an async context manager mock (see build_aws_client).
  - Extraction backends are replaced by ScriptedJobClient, which replays
    a per-key list of JobStatusReports.
  - Time is simulated: FakeTime provides the poller's sleep + clock, so
    a 5 s poll interval costs nothing.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # FastAPI routing stack, mocked backends
"""

from __future__ import annotations

import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Environment BEFORE any app imports: app.main builds settings at import
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("REGION",                "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID",     "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("S3__DEFAULT_BUCKET",    "test-bucket")
os.environ.setdefault("APP_ENV",               "development")
os.environ.pop("AWS_CONFIG_FILE", None)

from app.core.config import Settings  # noqa: E402
from app.core.errors import JobStartError  # noqa: E402
from app.processing.classifier import FileKind  # noqa: E402
from app.processing.jobs import ExtractionJobClient, JobStatus, JobStatusReport  # noqa: E402
from app.processing.poller import JobPoller  # noqa: E402
from app.services.pipeline import BatchPipeline  # noqa: E402
from app.services.summarizer import Summarizer, TruncatingSummarizer  # noqa: E402
from app.storage.s3 import ObjectRef, S3StorageService  # noqa: E402

TEST_BUCKET = "test-bucket"


# ─────────────────────────────────────────────────────────────────────────────
# Report shorthands
# ─────────────────────────────────────────────────────────────────────────────

PENDING     = JobStatusReport(JobStatus.PENDING)
IN_PROGRESS = JobStatusReport(JobStatus.IN_PROGRESS)


def succeeded(text: str) -> JobStatusReport:
    return JobStatusReport(JobStatus.SUCCEEDED, result_text=text)


def failed(reason: str = "backend said no") -> JobStatusReport:
    return JobStatusReport(JobStatus.FAILED, reason=reason)


def refs(*keys: str) -> list[ObjectRef]:
    return [ObjectRef.from_key(k) for k in keys]


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeTime:
    """Injectable sleep + monotonic clock. sleep() advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedJobClient(ExtractionJobClient):
    """
    Replays a list of reports per source key. The last report repeats
    forever, so [IN_PROGRESS] models a job that never finishes.
    """

    def __init__(
        self,
        kind: FileKind,
        scripts: dict[str, list[JobStatusReport]] | None = None,
        reject: set[str] | None = None,
    ) -> None:
        self._kind = kind
        self.scripts: dict[str, list[JobStatusReport]] = {k: list(v) for k, v in (scripts or {}).items()}
        self.reject = reject or set()
        self.started: list[str] = []
        self.polled: list[str] = []
        self._jobs: dict[str, str] = {}

    @property
    def kind(self) -> FileKind:
        return self._kind

    async def start(self, bucket: str, key: str) -> str:
        self.started.append(key)
        if key in self.reject:
            raise JobStartError(f"Failed to start job for file: {key}", key=key)
        job_id = f"{self._kind.value}-job-{len(self.started)}"
        self._jobs[job_id] = key
        return job_id

    async def poll(self, job_id: str) -> JobStatusReport:
        self.polled.append(job_id)
        script = self.scripts[self._jobs[job_id]]
        return script.pop(0) if len(script) > 1 else script[0]

    def script(self, key: str, *reports: JobStatusReport) -> None:
        self.scripts[key] = list(reports)


class RecordingSummarizer(Summarizer):
    """Truncating summarizer that remembers every input."""

    def __init__(self) -> None:
        self.inputs: list[str] = []
        self._inner = TruncatingSummarizer()

    async def summarize(self, text: str) -> str:
        self.inputs.append(text)
        return await self._inner.summarize(text)


def build_aws_client(**methods) -> AsyncMock:
    """Mock aioboto3 client usable as `async with session.client(...) as c`."""
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__  = AsyncMock(return_value=None)
    for name, value in methods.items():
        setattr(client, name, value)
    return client


def build_session(client: AsyncMock) -> MagicMock:
    session = MagicMock()
    session.client.return_value = client
    return session


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(s3={"default_bucket": TEST_BUCKET})


# ─────────────────────────────────────────────────────────────────────────────
# Pipeline collaborators
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def poller(fake_time) -> JobPoller:
    return JobPoller(
        interval_seconds=5.0,
        max_attempts=10,
        timeout_seconds=300.0,
        sleep=fake_time.sleep,
        clock=fake_time.clock,
    )


@pytest.fixture
def mock_storage() -> MagicMock:
    """S3StorageService with AsyncMock methods — no real AWS calls made."""
    storage = MagicMock(spec=S3StorageService)
    storage.list_objects    = AsyncMock(return_value=[])
    storage.get_object      = AsyncMock(return_value=b"file content")
    storage.put_object      = AsyncMock(return_value=None)
    storage.download_object = AsyncMock(side_effect=lambda bucket, key, path: path)
    storage.download_prefix = AsyncMock(return_value=[])
    return storage


@pytest.fixture
def ocr_client() -> ScriptedJobClient:
    return ScriptedJobClient(FileKind.OCR)


@pytest.fixture
def transcription_client() -> ScriptedJobClient:
    return ScriptedJobClient(FileKind.TRANSCRIPTION)


@pytest.fixture
def summarizer() -> RecordingSummarizer:
    return RecordingSummarizer()


@pytest.fixture
def make_pipeline(mock_storage, ocr_client, transcription_client, summarizer, poller):
    """Factory: BatchPipeline wired to the fakes above."""
    def _build(**overrides) -> BatchPipeline:
        kwargs = dict(
            storage=mock_storage,
            clients=[ocr_client, transcription_client],
            summarizer=summarizer,
            poller=poller,
            bucket=TEST_BUCKET,
        )
        kwargs.update(overrides)
        return BatchPipeline(**kwargs)
    return _build


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI app + HTTP client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_functions() -> MagicMock:
    from app.services.functions import LambdaInvoker
    functions = MagicMock(spec=LambdaInvoker)
    functions.default_function = "process-data"
    functions.invoke = AsyncMock(return_value={"ok": True})
    return functions


@pytest.fixture
def mock_aurora() -> MagicMock:
    from app.db.rds_data import AuroraQueryService
    aurora = MagicMock(spec=AuroraQueryService)
    aurora.query = AsyncMock(return_value=[{"ok": 1}])
    return aurora


@pytest.fixture
def make_app(settings, mock_storage, mock_functions, mock_aurora, make_pipeline):
    """
    Factory: FastAPI app whose container holds mocked backends.
    Pass settings=... to change error mode etc.
    """
    from app.api.dependencies import ServiceContainer
    from app.main import create_app

    def _build(app_settings: Settings | None = None, pipeline: BatchPipeline | None = None):
        app_settings = app_settings or settings
        container = ServiceContainer(
            settings=app_settings,
            storage=mock_storage,
            pipeline=pipeline or make_pipeline(),
            functions=mock_functions,
            aurora=mock_aurora,
        )
        return create_app(settings=app_settings, container=container)

    return _build


@pytest_asyncio.fixture
async def async_client(make_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the structured-error app."""
    transport = ASGITransport(app=make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
