"""
Unit Tests — Lambda Invoker & Aurora Data API
══════════════════════════════════════════════
Tests for app/services/functions.py and app/db/rds_data.py

Coverage:
  ✅ Lambda RequestResponse invoke with JSON payload, JSON reply decoded
  ✅ Non-JSON reply returned as text
  ✅ FunctionError / ClientError → FunctionInvocationError
  ✅ Unconfigured default function → ConfigurationError
  ✅ Data API call carries ARNs, database and formatRecordsAs=JSON
  ✅ Python parameters mapped onto SqlParameters
  ✅ Missing rds block → ConfigurationError; ClientError → QueryError
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from app.core.config import Settings
from app.core.errors import ConfigurationError, FunctionInvocationError, QueryError
from app.db.rds_data import AuroraQueryService
from app.services.functions import LambdaInvoker

from tests.conftest import build_aws_client, build_session

RDS = {
    "secret_arn": "arn:aws:secretsmanager:us-east-1:1:secret:db",
    "resource_arn": "arn:aws:rds:us-east-1:1:cluster:cases",
    "database_name": "cases",
}


def _client_error(code: str = "ServiceException") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test"}}, "operation")


def _invoke_response(payload: bytes, **extra) -> dict:
    stream = MagicMock()
    stream.read = AsyncMock(return_value=payload)
    return {"StatusCode": 200, "Payload": stream, **extra}


@pytest.fixture
def lambda_settings() -> Settings:
    return Settings(s3={"default_bucket": "b-1"}, **{"lambda": {"functions": {"processData": "process-data"}}})


@pytest.mark.unit
class TestLambdaInvoker:

    async def test_invoke_decodes_json(self, lambda_settings):
        lam = build_aws_client(invoke=AsyncMock(return_value=_invoke_response(b'{"statusCode": 200}')))
        invoker = LambdaInvoker(lambda_settings, session=build_session(lam))

        result = await invoker.invoke_default({"action": "test-action"})

        assert result == {"statusCode": 200}
        kwargs = lam.invoke.await_args.kwargs
        assert kwargs["FunctionName"] == "process-data"
        assert kwargs["InvocationType"] == "RequestResponse"
        assert json.loads(kwargs["Payload"]) == {"action": "test-action"}

    async def test_plain_text_reply(self, lambda_settings):
        lam = build_aws_client(invoke=AsyncMock(return_value=_invoke_response(b"done")))
        invoker = LambdaInvoker(lambda_settings, session=build_session(lam))

        assert await invoker.invoke("fn", {}) == "done"

    async def test_function_error(self, lambda_settings):
        lam = build_aws_client(invoke=AsyncMock(
            return_value=_invoke_response(b'{"errorMessage": "boom"}', FunctionError="Unhandled"),
        ))
        invoker = LambdaInvoker(lambda_settings, session=build_session(lam))

        with pytest.raises(FunctionInvocationError) as exc_info:
            await invoker.invoke("fn", {})

        assert exc_info.value.context["kind"] == "Unhandled"

    async def test_client_error(self, lambda_settings):
        lam = build_aws_client(invoke=AsyncMock(side_effect=_client_error("ResourceNotFoundException")))
        invoker = LambdaInvoker(lambda_settings, session=build_session(lam))

        with pytest.raises(FunctionInvocationError):
            await invoker.invoke("fn", {})

    def test_default_function_required(self, settings):
        with pytest.raises(ConfigurationError):
            LambdaInvoker(settings, session=MagicMock()).default_function


@pytest.mark.unit
class TestAuroraQueryService:

    async def test_query_returns_rows(self):
        settings = Settings(s3={"default_bucket": "b-1"}, rds=RDS)
        client = build_aws_client(execute_statement=AsyncMock(
            return_value={"formattedRecords": '[{"id": "case123", "files": 3}]'},
        ))
        aurora = AuroraQueryService(settings, session=build_session(client))

        rows = await aurora.query(
            "SELECT * FROM cases WHERE id = :id AND open = :open AND score > :score",
            {"id": "case123", "open": True, "score": 0.5},
        )

        assert rows == [{"id": "case123", "files": 3}]
        request = client.execute_statement.await_args.kwargs
        assert request["secretArn"] == RDS["secret_arn"]
        assert request["resourceArn"] == RDS["resource_arn"]
        assert request["database"] == "cases"
        assert request["formatRecordsAs"] == "JSON"
        assert request["parameters"] == [
            {"name": "id", "value": {"stringValue": "case123"}},
            {"name": "open", "value": {"booleanValue": True}},
            {"name": "score", "value": {"doubleValue": 0.5}},
        ]

    async def test_no_records(self):
        settings = Settings(s3={"default_bucket": "b-1"}, rds=RDS)
        client = build_aws_client(execute_statement=AsyncMock(return_value={"numberOfRecordsUpdated": 1}))

        rows = await AuroraQueryService(settings, session=build_session(client)).query("UPDATE x SET y = 1")

        assert rows == []
        assert "parameters" not in client.execute_statement.await_args.kwargs

    async def test_missing_rds_block(self, settings):
        with pytest.raises(ConfigurationError):
            await AuroraQueryService(settings, session=MagicMock()).query("SELECT 1")

    async def test_client_error(self):
        settings = Settings(s3={"default_bucket": "b-1"}, rds=RDS)
        client = build_aws_client(execute_statement=AsyncMock(side_effect=_client_error("BadRequestException")))

        with pytest.raises(QueryError):
            await AuroraQueryService(settings, session=build_session(client)).query("SELECT 1")
