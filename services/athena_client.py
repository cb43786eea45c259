# athena_client.py - Run Athena queries and collect rows as dicts
import time
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import athena_client
from config import CONFIG
from logging_config import get_logger, get_metrics_logger

logger = get_logger("athena_client")
metrics = get_metrics_logger("athena_client")

TERMINAL_STATES = ("SUCCEEDED", "FAILED", "CANCELLED")


class AthenaQueryError(Exception):
    pass


class AthenaClient:
    def __init__(self, client=None, output_location: str = "",
                 workgroup: Optional[str] = None, poll_interval: Optional[float] = None,
                 max_polls: Optional[int] = None):
        self._client = client
        self.output_location = output_location
        self.workgroup = workgroup or CONFIG.aws.athena_workgroup
        self.poll_interval = CONFIG.aws.athena_poll_interval_sec if poll_interval is None else poll_interval
        self.max_polls = max_polls or CONFIG.aws.athena_max_polls

    @property
    def client(self):
        if self._client is None:
            self._client = athena_client()
        return self._client

    def _start(self, sql: str, database: str) -> str:
        params: Dict[str, Any] = {
            "QueryString": sql,
            "QueryExecutionContext": {"Database": database},
            "WorkGroup": self.workgroup,
        }
        if self.output_location:
            params["ResultConfiguration"] = {"OutputLocation": self.output_location}
        return self.client.start_query_execution(**params)["QueryExecutionId"]

    def _wait(self, query_id: str) -> str:
        for _ in range(self.max_polls):
            status = self.client.get_query_execution(QueryExecutionId=query_id)["QueryExecution"]["Status"]
            state = status["State"]
            if state in TERMINAL_STATES:
                if state != "SUCCEEDED":
                    reason = status.get("StateChangeReason", "unknown")
                    raise AthenaQueryError(f"Athena query {query_id} {state}: {reason}")
                return state
            time.sleep(self.poll_interval)
        raise AthenaQueryError(f"Athena query {query_id} did not finish after {self.max_polls} polls")

    def _rows(self, query_id: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        columns: List[str] = []
        first_page = True
        paginator = self.client.get_paginator("get_query_results")
        for page in paginator.paginate(QueryExecutionId=query_id):
            result_set = page["ResultSet"]
            if not columns:
                columns = [c["Name"] for c in result_set["ResultSetMetadata"]["ColumnInfo"]]
            data = result_set["Rows"]
            # Header row only appears on the first page
            if first_page and data:
                data = data[1:]
            first_page = False
            for row in data:
                values = [cell.get("VarCharValue") for cell in row["Data"]]
                rows.append(dict(zip(columns, values)))
        return rows

    def query(self, sql: str, database: str, description: str = "athena query") -> List[Dict[str, Any]]:
        """Start the query, wait for it and return every result row."""
        started = time.perf_counter()
        try:
            query_id = self._start(sql, database)
            logger.info("athena_query_started", description=description, query_id=query_id)
            state = self._wait(query_id)
            rows = self._rows(query_id)
        except (ClientError, BotoCoreError) as e:
            logger.error("athena_query_failed", description=description, error=str(e))
            raise AthenaQueryError(str(e)) from e
        metrics.athena_query(description, query_id,
                             int((time.perf_counter() - started) * 1000), state, rows=len(rows))
        return rows
