"""
Serverless function invoker (AWS Lambda).

Synchronous RequestResponse invocation with a JSON payload. The function's
response payload is decoded as JSON when possible, otherwise returned as
text. A FunctionError in the response (the function raised) is surfaced
as FunctionInvocationError, same as a transport failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import ConfigurationError, FunctionInvocationError

logger = logging.getLogger(__name__)


class LambdaInvoker:

    def __init__(
        self,
        settings: Settings,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or aioboto3.Session()

    @property
    def default_function(self) -> str:
        name = self._settings.lambda_.functions.process_data
        if not name:
            raise ConfigurationError("lambda.functions.processData is not configured")
        return name

    async def invoke(self, function_name: str, payload: dict[str, Any]) -> Any:
        try:
            async with self._session.client("lambda", **self._settings.aws_client_kwargs()) as lam:
                resp = await lam.invoke(
                    FunctionName=function_name,
                    InvocationType="RequestResponse",
                    Payload=json.dumps(payload).encode("utf-8"),
                )
                raw = await resp["Payload"].read()
        except (ClientError, BotoCoreError) as exc:
            logger.error("Lambda invoke failed | function=%s error=%s", function_name, exc)
            raise FunctionInvocationError(
                "Failed to invoke function", function=function_name
            ) from exc

        body = _decode(raw)
        if resp.get("FunctionError"):
            logger.error(
                "Lambda function error | function=%s kind=%s",
                function_name, resp["FunctionError"],
            )
            raise FunctionInvocationError(
                "Function raised an error",
                function=function_name,
                kind=resp["FunctionError"],
            )

        logger.info(
            "Lambda invoke ok | function=%s status=%s",
            function_name, resp.get("StatusCode"),
        )
        return body

    async def invoke_default(self, payload: dict[str, Any]) -> Any:
        return await self.invoke(self.default_function, payload)


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8") if raw else ""
    try:
        return json.loads(text) if text else None
    except ValueError:
        return text
