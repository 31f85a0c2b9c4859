"""
AWS Facade Router
/aws/*

  POST /aws/upload-to-default-bucket      sample object → default bucket
  POST /aws/download-from-default-bucket  one object → local path
  POST /aws/download-folder-from-s3       prefix → local folder
  POST /aws/process-id                    batch extraction + summary
  POST /aws/invoke-default-lambda         processData function
  POST /aws/query-default-aurora          sample Data API query
  GET  /aws/config                        redacted configuration

Error responses depend on api.error_mode:
  structured  HTTP status per error kind + ErrorResponse envelope
  legacy      HTTP 200 + {"error": "<generic message>"} for every failure
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.api.dependencies import ServiceContainer, Services
from app.core.config import ErrorMode
from app.core.errors import PipelineError
from app.schemas.aws import (
    HTTP_STATUS_BY_CODE,
    ConfigResponse,
    DownloadFolderRequest,
    DownloadRequest,
    ErrorResponse,
    JobFailureOut,
    LegacyErrorResponse,
    MessageResponse,
    ProcessIdRequest,
    ProcessIdResponse,
    ResultResponse,
    error_from_exception,
)
from app.services.pipeline import BatchRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/aws",
    tags=["AWS"],
    responses={
        404: {"model": ErrorResponse, "description": "Nothing stored under the requested key/prefix"},
        500: {"model": ErrorResponse, "description": "Configuration error"},
        502: {"model": ErrorResponse, "description": "Backend (S3, Textract, Transcribe, Lambda, RDS) failure"},
        504: {"model": ErrorResponse, "description": "Extraction job timed out"},
    },
)

SAMPLE_OBJECT_KEY = "example-file.txt"
SAMPLE_OBJECT_BODY = b"This is a sample file content for S3."
SAMPLE_AURORA_SQL = "SELECT 1 AS ok;"


def _error(
    request: Request,
    services: ServiceContainer,
    exc: PipelineError,
    legacy_message: str,
) -> JSONResponse:
    """Render a PipelineError according to the configured error mode."""
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Request failed | path=%s code=%s error=%s request_id=%s",
        request.url.path, exc.code, exc, request_id,
    )

    if services.settings.api.error_mode is ErrorMode.LEGACY:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=LegacyErrorResponse(error=legacy_message).model_dump(),
        )

    return JSONResponse(
        status_code=HTTP_STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=error_from_exception(exc, request_id).model_dump(mode="json"),
    )


# ---------------------------------------------------------------------------
# Storage helpers
# ---------------------------------------------------------------------------

@router.post("/upload-to-default-bucket", response_model=MessageResponse)
async def upload_to_default_bucket(request: Request, services: Services):
    bucket = services.settings.default_bucket
    try:
        await services.storage.put_object(
            bucket, SAMPLE_OBJECT_KEY, SAMPLE_OBJECT_BODY, content_type="text/plain",
        )
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to upload file to S3")

    return MessageResponse(
        message=f"File '{SAMPLE_OBJECT_KEY}' uploaded to bucket '{bucket}' successfully",
    )


@router.post("/download-from-default-bucket", response_model=MessageResponse)
async def download_from_default_bucket(body: DownloadRequest, request: Request, services: Services):
    try:
        path = await services.storage.download_object(
            services.settings.default_bucket, body.key, body.destination_path,
        )
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to download file from S3")

    return MessageResponse(message=f"File '{body.key}' downloaded to '{path}' successfully")


@router.post("/download-folder-from-s3", response_model=MessageResponse)
async def download_folder_from_s3(body: DownloadFolderRequest, request: Request, services: Services):
    try:
        files = await services.storage.download_prefix(
            services.settings.default_bucket, body.key, body.destination_folder,
        )
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to download folder from S3")

    return MessageResponse(
        message=(
            f"Folder '{body.key}' downloaded to '{body.destination_folder}' "
            f"successfully ({len(files)} files)"
        ),
    )


# ---------------------------------------------------------------------------
# Batch pipeline
# ---------------------------------------------------------------------------

@router.post("/process-id", response_model=ProcessIdResponse)
async def process_id(body: ProcessIdRequest, request: Request, services: Services):
    batch = BatchRequest.for_identifier(body.id)
    try:
        result = await services.pipeline.run(batch)
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to process ID")

    message = f"ID '{batch.identifier}' processed successfully"
    if not result.complete:
        message = f"ID '{batch.identifier}' processed with {len(result.failures)} failed file(s)"

    return ProcessIdResponse(
        message=message,
        summary=result.summary,
        processed=result.processed,
        skipped=result.skipped,
        failures=[
            JobFailureOut(
                source_key=f.source_key,
                kind=f.kind.value,
                error_code=f.error_code,
                message=f.message,
            )
            for f in result.failures
        ],
    )


# ---------------------------------------------------------------------------
# Function + relational query
# ---------------------------------------------------------------------------

@router.post("/invoke-default-lambda", response_model=ResultResponse)
async def invoke_default_lambda(request: Request, services: Services):
    payload = {"action": "test-action", "timestamp": datetime.now(timezone.utc).isoformat()}
    try:
        function_name = services.functions.default_function
        result = await services.functions.invoke(function_name, payload)
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to invoke Lambda function")

    return ResultResponse(
        message=f"Lambda function '{function_name}' invoked successfully",
        result=result,
    )


@router.post("/query-default-aurora", response_model=ResultResponse)
async def query_default_aurora(request: Request, services: Services):
    try:
        rows = await services.aurora.query(SAMPLE_AURORA_SQL)
    except PipelineError as exc:
        return _error(request, services, exc, "Failed to query Aurora database")

    return ResultResponse(message="Aurora query executed successfully", result=rows)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@router.get("/config", response_model=ConfigResponse)
async def get_config(services: Services):
    return ConfigResponse(
        message="AWS Configuration loaded successfully",
        config=services.settings.redacted(),
    )
