"""
Composed FastAPI Dependencies

Backend adapters are built exactly once, at startup, into a
ServiceContainer stored on app.state. Route handlers receive it through
Depends(get_container) — nothing reads settings or creates SDK clients
per request.

This is the single wiring point for the whole service. Tests hand a
container of mocks to create_app() instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import aioboto3
from fastapi import Depends, Request

from app.core.config import Settings
from app.db.rds_data import AuroraQueryService
from app.processing.poller import JobPoller
from app.processing.textract import TextractJobClient
from app.processing.transcribe import TranscribeJobClient
from app.services.functions import LambdaInvoker
from app.services.pipeline import BatchPipeline
from app.services.summarizer import build_summarizer
from app.storage.s3 import S3StorageService


@dataclass(frozen=True)
class ServiceContainer:
    settings:  Settings
    storage:   S3StorageService
    pipeline:  BatchPipeline
    functions: LambdaInvoker
    aurora:    AuroraQueryService

    @classmethod
    def build(
        cls,
        settings: Settings,
        session: aioboto3.Session | None = None,
    ) -> "ServiceContainer":
        session = session or aioboto3.Session()
        storage = S3StorageService(settings, session=session)

        pipeline = BatchPipeline(
            storage=storage,
            clients=[
                TextractJobClient(settings, session=session),
                TranscribeJobClient(settings, storage=storage, session=session),
            ],
            summarizer=build_summarizer(settings),
            poller=JobPoller.from_settings(settings.pipeline),
            bucket=settings.default_bucket,
            failure_mode=settings.pipeline.failure_mode,
            transcription_enabled=settings.pipeline.transcription_enabled,
        )

        return cls(
            settings=settings,
            storage=storage,
            pipeline=pipeline,
            functions=LambdaInvoker(settings, session=session),
            aurora=AuroraQueryService(settings, session=session),
        )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


Services = Annotated[ServiceContainer, Depends(get_container)]
