"""
AWS Transcribe — asynchronous speech-to-text.

Job names are generated per start() call (transcription-job-<uuid>) and
double as the job id. Transcripts are written to the source bucket
(OutputBucketName) and read back through the storage service, so no
unauthenticated HTTP fetch of the transcript URI is needed.

Transcript JSON shape (only the part we use):
    {"results": {"transcripts": [{"transcript": "..."}, ...]}}
"""

from __future__ import annotations

import json
import logging
import uuid
from urllib.parse import unquote, urlparse

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import JobQueryError, JobStartError, PipelineError
from app.processing.classifier import FileKind
from app.processing.jobs import ExtractionJobClient, JobStatus, JobStatusReport
from app.storage.s3 import S3StorageService

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, JobStatus] = {
    "QUEUED":      JobStatus.PENDING,
    "IN_PROGRESS": JobStatus.IN_PROGRESS,
    "COMPLETED":   JobStatus.SUCCEEDED,
    "FAILED":      JobStatus.FAILED,
}


class TranscribeJobClient(ExtractionJobClient):

    def __init__(
        self,
        settings: Settings,
        storage: S3StorageService,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._session = session or aioboto3.Session()

    @property
    def kind(self) -> FileKind:
        return FileKind.TRANSCRIPTION

    def _client(self):
        return self._session.client("transcribe", **self._settings.aws_client_kwargs())

    async def start(self, bucket: str, key: str) -> str:
        job_name = f"transcription-job-{uuid.uuid4().hex}"
        try:
            async with self._client() as transcribe:
                resp = await transcribe.start_transcription_job(
                    TranscriptionJobName=job_name,
                    LanguageCode=self._settings.pipeline.transcription_language,
                    Media={"MediaFileUri": f"s3://{bucket}/{key}"},
                    OutputBucketName=bucket,
                )
        except (ClientError, BotoCoreError) as exc:
            raise JobStartError(f"Failed to start transcription job for file: {key}", key=key) from exc

        started = resp.get("TranscriptionJob", {}).get("TranscriptionJobName")
        if not started:
            raise JobStartError(f"Failed to start transcription job for file: {key}", key=key)

        logger.info("Transcribe job started | job=%s source=s3://%s/%s", started, bucket, key)
        return started

    async def poll(self, job_id: str) -> JobStatusReport:
        try:
            async with self._client() as transcribe:
                resp = await transcribe.get_transcription_job(TranscriptionJobName=job_id)
        except (ClientError, BotoCoreError) as exc:
            raise JobQueryError("Transcribe status query failed", job_id=job_id) from exc

        job = resp.get("TranscriptionJob", {})
        raw_status = job.get("TranscriptionJobStatus", "")
        status = _STATUS_MAP.get(raw_status)

        if status is None:
            raise JobQueryError(
                "Unrecognized Transcribe job status", job_id=job_id, status=raw_status
            )
        if status is JobStatus.FAILED:
            return JobStatusReport(status=status, reason=job.get("FailureReason"))
        if status is not JobStatus.SUCCEEDED:
            return JobStatusReport(status=status)

        uri = job.get("Transcript", {}).get("TranscriptFileUri", "")
        bucket, key = transcript_location(uri, job_id)
        try:
            raw = await self._storage.get_object(bucket, key)
        except PipelineError as exc:
            raise JobQueryError("Transcript fetch failed", job_id=job_id, uri=uri) from exc
        return JobStatusReport(status=status, result_text=transcript_text(raw, job_id))


def transcript_location(uri: str, job_id: str) -> tuple[str, str]:
    """
    Split a path-style transcript URI into (bucket, key):
    https://s3.us-east-1.amazonaws.com/<bucket>/<key>
    """
    path = unquote(urlparse(uri).path).lstrip("/")
    bucket, _, key = path.partition("/")
    if not bucket or not key:
        raise JobQueryError("Transcript location missing", job_id=job_id, uri=uri)
    return bucket, key


def transcript_text(raw: bytes, job_id: str) -> str:
    try:
        data = json.loads(raw)
        transcripts = data["results"]["transcripts"]
    except (ValueError, KeyError, TypeError) as exc:
        raise JobQueryError("Malformed transcript document", job_id=job_id) from exc
    return "\n".join(t.get("transcript", "") for t in transcripts)
