"""
AWS Textract — asynchronous document text detection.

Uses the async job API (StartDocumentTextDetection /
GetDocumentTextDetection) against the object already in S3, so PDFs of
any page count are handled the same way.

Result text is the LINE blocks joined with "\\n", in the order Textract
returns them (page order, then reading order within the page). Results
larger than one response are paged with NextToken.

IAM permissions required:
  textract:StartDocumentTextDetection
  textract:GetDocumentTextDetection
  s3:GetObject on the source bucket
"""

from __future__ import annotations

import logging

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import JobQueryError, JobStartError
from app.processing.classifier import FileKind
from app.processing.jobs import ExtractionJobClient, JobStatus, JobStatusReport

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, JobStatus] = {
    "IN_PROGRESS":     JobStatus.IN_PROGRESS,
    "SUCCEEDED":       JobStatus.SUCCEEDED,
    "PARTIAL_SUCCESS": JobStatus.SUCCEEDED,
    "FAILED":          JobStatus.FAILED,
}


class TextractJobClient(ExtractionJobClient):

    def __init__(
        self,
        settings: Settings,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or aioboto3.Session()

    @property
    def kind(self) -> FileKind:
        return FileKind.OCR

    def _client(self):
        return self._session.client("textract", **self._settings.aws_client_kwargs())

    async def start(self, bucket: str, key: str) -> str:
        try:
            async with self._client() as textract:
                resp = await textract.start_document_text_detection(
                    DocumentLocation={"S3Object": {"Bucket": bucket, "Name": key}},
                )
        except (ClientError, BotoCoreError) as exc:
            raise JobStartError(f"Failed to start OCR job for file: {key}", key=key) from exc

        job_id = resp.get("JobId")
        if not job_id:
            raise JobStartError(f"Failed to start OCR job for file: {key}", key=key)

        logger.info("Textract job started | job=%s source=s3://%s/%s", job_id, bucket, key)
        return job_id

    async def poll(self, job_id: str) -> JobStatusReport:
        try:
            async with self._client() as textract:
                resp = await textract.get_document_text_detection(JobId=job_id)
                raw_status = resp.get("JobStatus", "")
                status = _STATUS_MAP.get(raw_status)

                if status is None:
                    raise JobQueryError(
                        "Unrecognized Textract job status", job_id=job_id, status=raw_status
                    )
                if status is JobStatus.FAILED:
                    return JobStatusReport(status=status, reason=resp.get("StatusMessage"))
                if status is not JobStatus.SUCCEEDED:
                    return JobStatusReport(status=status)

                if raw_status == "PARTIAL_SUCCESS":
                    logger.warning(
                        "Textract partial success | job=%s message=%s",
                        job_id, resp.get("StatusMessage"),
                    )

                blocks = list(resp.get("Blocks", []))
                next_token = resp.get("NextToken")
                while next_token:
                    page = await textract.get_document_text_detection(
                        JobId=job_id, NextToken=next_token,
                    )
                    blocks.extend(page.get("Blocks", []))
                    next_token = page.get("NextToken")
        except (ClientError, BotoCoreError) as exc:
            raise JobQueryError("Textract status query failed", job_id=job_id) from exc

        return JobStatusReport(status=JobStatus.SUCCEEDED, result_text=lines_text(blocks))


def lines_text(blocks: list[dict]) -> str:
    """Join the text of LINE blocks with newlines."""
    return "\n".join(
        block.get("Text", "")
        for block in blocks
        if block.get("BlockType") == "LINE"
    )
