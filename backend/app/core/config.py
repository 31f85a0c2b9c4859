"""
Application configuration (12-factor + optional JSON document).

Pydantic BaseSettings validates and coerces all values at startup.
Sources, highest priority first:

  1. Keyword arguments (tests, scripts)
  2. Environment variables   — nested fields use "__", e.g. S3__DEFAULT_BUCKET
  3. .env file
  4. JSON config document    — AWS_CONFIG_FILE, default config/aws-config.json

The JSON document keeps the shape operators already use:

    {
      "region": "us-east-1",
      "aws_access_key_id": "...",
      "aws_secret_access_key": "...",
      "s3":     {"default_bucket": "my-bucket"},
      "lambda": {"functions": {"processData": "process-data"}},
      "rds":    {"secret_arn": "...", "resource_arn": "...", "database_name": "..."}
    }

Settings are built exactly once (load_settings) and handed to every
component by reference. A missing or invalid document is fatal.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from app.core.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/aws-config.json"


# ---------------------------------------------------------------------------
# Per-backend sections
# ---------------------------------------------------------------------------

class S3Settings(BaseModel):
    default_bucket: str = Field(..., min_length=3)


class LambdaFunctions(BaseModel):
    model_config = {"populate_by_name": True}

    process_data: str | None = Field(None, alias="processData")


class LambdaSettings(BaseModel):
    functions: LambdaFunctions = Field(default_factory=LambdaFunctions)


class RdsSettings(BaseModel):
    secret_arn:    str
    resource_arn:  str
    database_name: str


class FailureMode(str, Enum):
    ALL_OR_NOTHING = "all_or_nothing"   # first failed job aborts the request
    PARTIAL        = "partial"          # failures collected, summary over survivors


class PipelineSettings(BaseModel):
    poll_interval_seconds: float = Field(5.0, gt=0)
    max_poll_attempts:     int   = Field(120, ge=1)
    job_timeout_seconds:   float = Field(900.0, gt=0)

    # Audio is classified but not dispatched unless enabled
    transcription_enabled:  bool = False
    transcription_language: str  = "en-US"

    failure_mode: FailureMode = FailureMode.ALL_OR_NOTHING


class SummarizerBackend(str, Enum):
    TRUNCATE = "truncate"
    OPENAI   = "openai"


class SummarizerSettings(BaseModel):
    backend:     SummarizerBackend = SummarizerBackend.TRUNCATE
    max_chars:   int   = Field(100, ge=1)    # truncate backend only
    model:       str   = "gpt-4o-mini"
    api_key:     str   = ""
    temperature: float = 0.0


class ErrorMode(str, Enum):
    STRUCTURED = "structured"   # status code per error kind + ErrorResponse
    LEGACY     = "legacy"       # HTTP 200 + {"error": "..."}


class ApiSettings(BaseModel):
    error_mode: ErrorMode = ErrorMode.STRUCTURED


# ---------------------------------------------------------------------------
# JSON document source
# ---------------------------------------------------------------------------

class JsonDocumentSource(PydanticBaseSettingsSource):
    """Reads the operator-maintained JSON config document, if present."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self._path = path

    def get_field_value(self, field, field_name):  # pragma: no cover - unused
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if self._path is None:
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Config file unreadable: {self._path}", path=str(self._path)
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file must hold a JSON object: {self._path}", path=str(self._path)
            )
        # Some deployments nest everything under "aws-config"
        return data.get("aws-config", data)


def _resolve_config_path() -> Path | None:
    explicit = os.getenv("AWS_CONFIG_FILE")
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise ConfigurationError(f"Config file not found at path: {path}", path=str(path))
        return path
    default = Path(DEFAULT_CONFIG_PATH)
    return default if default.exists() else None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # AWS credentials: empty means "use the default provider chain"
    # ------------------------------------------------------------------
    region:                str = "us-east-1"
    aws_access_key_id:     str = ""
    aws_secret_access_key: str = ""

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------
    s3:         S3Settings
    lambda_:    LambdaSettings     = Field(default_factory=LambdaSettings, alias="lambda")
    rds:        RdsSettings | None = None
    pipeline:   PipelineSettings   = Field(default_factory=PipelineSettings)
    summarizer: SummarizerSettings = Field(default_factory=SummarizerSettings)
    api:        ApiSettings        = Field(default_factory=ApiSettings)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str  = "development"   # development | staging | production
    debug:   bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonDocumentSource(settings_cls, _resolve_config_path()),
        )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def default_bucket(self) -> str:
        return self.s3.default_bucket

    def aws_client_kwargs(self) -> dict[str, str]:
        """Keyword arguments for aioboto3 Session.client()."""
        kwargs = {"region_name": self.region}
        # Static keys for local dev; prod relies on the task role
        if self.aws_access_key_id and self.aws_secret_access_key:
            kwargs["aws_access_key_id"] = self.aws_access_key_id
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key
        return kwargs

    def redacted(self) -> dict[str, Any]:
        """Config view safe to return over the API."""
        data = self.model_dump(mode="json", by_alias=True)
        for secret in ("aws_access_key_id", "aws_secret_access_key"):
            if data.get(secret):
                data[secret] = "***"
        if data["summarizer"].get("api_key"):
            data["summarizer"]["api_key"] = "***"
        return data


def load_settings(**overrides: Any) -> Settings:
    """Build Settings once at startup. Any problem is a ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise ConfigurationError(
            "AWS configuration is missing or invalid", fields=fields
        ) from exc
