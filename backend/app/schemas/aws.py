"""
AWS Facade — Pydantic Request/Response Schemas

Covers every route under /aws:
  - request bodies (camelCase field names kept for existing clients)
  - success envelopes ({message, ...})
  - structured error envelope (ErrorResponse) and the legacy {error} body
  - error kind → HTTP status mapping used in structured mode
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.errors import PipelineError


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class DownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key:              str = Field(..., min_length=1, description="Object key in the default bucket")
    destination_path: str = Field(..., min_length=1, alias="destinationPath")


class DownloadFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key:                str = Field(..., min_length=1, description="Folder prefix in the default bucket")
    destination_folder: str = Field(..., min_length=1, alias="destinationFolder")


class ProcessIdRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=1024, description="Case identifier; objects under '<id>/' are processed")

    @field_validator("id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value.strip("/"):
            raise ValueError("id must not be blank")
        return value


# ---------------------------------------------------------------------------
# Success responses
# ---------------------------------------------------------------------------

class MessageResponse(BaseModel):
    message: str


class JobFailureOut(BaseModel):
    source_key: str
    kind:       str
    error_code: str
    message:    str


class ProcessIdResponse(BaseModel):
    message:   str
    summary:   str
    processed: list[str]           = Field(default_factory=list)
    skipped:   list[str]           = Field(default_factory=list)
    failures:  list[JobFailureOut] = Field(default_factory=list)


class ConfigResponse(BaseModel):
    message: str
    config:  dict[str, Any]


class ResultResponse(BaseModel):
    message: str
    result:  Any = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


class LegacyErrorResponse(BaseModel):
    """Collapsed error body (api.error_mode=legacy), returned with HTTP 200."""
    error: str


HTTP_STATUS_BY_CODE: dict[str, int] = {
    "NOT_FOUND":                 404,
    "CONFIGURATION_ERROR":       500,
    "STORAGE_ERROR":             502,
    "JOB_START_ERROR":           502,
    "JOB_QUERY_ERROR":           502,
    "JOB_FAILED":                502,
    "JOB_TIMEOUT":               504,
    "SUMMARIZATION_ERROR":       502,
    "FUNCTION_INVOCATION_ERROR": 502,
    "QUERY_ERROR":               502,
}


def error_from_exception(exc: PipelineError, request_id: str | None = None) -> ErrorResponse:
    details = [
        ErrorDetail(field=key, message=str(value), code=exc.code)
        for key, value in exc.context.items()
    ]
    return ErrorResponse(
        error_code=exc.code,
        message=exc.message,
        details=details,
        request_id=request_id,
    )
