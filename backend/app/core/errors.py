"""
Error taxonomy shared by the adapters, the pipeline and the API layer.

Every error carries a stable machine-readable ``code`` (the error kind)
and a ``context`` dict with the identifiers needed to correlate logs.
Adapters wrap SDK exceptions (botocore ClientError / BotoCoreError) into
these types with ``raise ... from exc``; the pipeline propagates them
unmodified and the REST boundary decides how much to expose.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class — never raised directly."""

    code: str = "PIPELINE_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        ctx = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} | {ctx}"


class ConfigurationError(PipelineError):
    """Configuration absent or invalid — fatal at startup."""
    code = "CONFIGURATION_ERROR"


class NotFoundError(PipelineError):
    """No objects under the requested prefix (or a missing single object)."""
    code = "NOT_FOUND"


class StorageError(PipelineError):
    """Transport or permission failure talking to the object store."""
    code = "STORAGE_ERROR"


class JobStartError(PipelineError):
    """Extraction backend rejected the job or returned no job id."""
    code = "JOB_START_ERROR"


class JobQueryError(PipelineError):
    """Status query failed, or the backend reported something unusable."""
    code = "JOB_QUERY_ERROR"


class JobFailedError(PipelineError):
    """Backend reported a terminal failure for the job."""
    code = "JOB_FAILED"

    def __init__(
        self,
        source_key: str,
        job_id: str,
        reason: str | None = None,
    ) -> None:
        super().__init__(
            f"Extraction job failed for file: {source_key}",
            source_key=source_key,
            job_id=job_id,
            reason=reason or "unknown",
        )
        self.source_key = source_key
        self.job_id = job_id
        self.reason = reason


class JobTimeoutError(PipelineError):
    """Job did not reach a terminal state within the polling limits."""
    code = "JOB_TIMEOUT"


class SummarizationError(PipelineError):
    code = "SUMMARIZATION_ERROR"


class FunctionInvocationError(PipelineError):
    """Lambda invocation failed or the function raised."""
    code = "FUNCTION_INVOCATION_ERROR"


class QueryError(PipelineError):
    """Relational query (RDS Data API) failed."""
    code = "QUERY_ERROR"
