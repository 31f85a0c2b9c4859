"""
Aurora Serverless queries through the RDS Data API.

No connection pool and no driver: every statement is an HTTPS call
(rds-data:ExecuteStatement) authenticated by a Secrets Manager secret.
Rows come back as JSON (formatRecordsAs="JSON") and are returned as a
list of dicts keyed by column name.

Parameters use the Data API named form:
    query("SELECT * FROM cases WHERE id = :id", {"id": "case123"})
"""

from __future__ import annotations

import json
import logging
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import RdsSettings, Settings
from app.core.errors import ConfigurationError, QueryError

logger = logging.getLogger(__name__)


def _to_sql_parameter(name: str, value: Any) -> dict[str, Any]:
    """Map a Python value onto a Data API SqlParameter."""
    if value is None:
        field = {"isNull": True}
    elif isinstance(value, bool):
        field = {"booleanValue": value}
    elif isinstance(value, int):
        field = {"longValue": value}
    elif isinstance(value, float):
        field = {"doubleValue": value}
    else:
        field = {"stringValue": str(value)}
    return {"name": name, "value": field}


class AuroraQueryService:

    def __init__(
        self,
        settings: Settings,
        session: aioboto3.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or aioboto3.Session()

    def _rds(self) -> RdsSettings:
        if self._settings.rds is None:
            raise ConfigurationError("rds configuration block is missing")
        return self._settings.rds

    async def query(
        self,
        sql: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        rds = self._rds()
        request: dict[str, Any] = {
            "secretArn":       rds.secret_arn,
            "resourceArn":     rds.resource_arn,
            "database":        rds.database_name,
            "sql":             sql,
            "formatRecordsAs": "JSON",
        }
        if parameters:
            request["parameters"] = [_to_sql_parameter(k, v) for k, v in parameters.items()]

        try:
            async with self._session.client("rds-data", **self._settings.aws_client_kwargs()) as client:
                resp = await client.execute_statement(**request)
        except (ClientError, BotoCoreError) as exc:
            logger.error("Aurora query failed | database=%s error=%s", rds.database_name, exc)
            raise QueryError("Failed to query Aurora database", database=rds.database_name) from exc

        records = resp.get("formattedRecords")
        rows = json.loads(records) if records else []
        logger.info("Aurora query ok | database=%s rows=%d", rds.database_name, len(rows))
        return rows
