#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2025 Frank Contrepois
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
GCP billing export provider.

Queries the Cloud Billing export table in BigQuery, summing cost and credits
per day, service and currency. The export keeps the billing account's
currency, which is JPY for most Japanese accounts.
"""

import math
import re
from datetime import date
from typing import Any, Iterable, List, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import bigquery

from common.cost_entry import CostEntry, as_day
from common.errors import ProviderQueryFailed

DEFAULT_GCP_CURRENCY = "JPY"
UNKNOWN_SERVICE = "Unknown"
IDENTIFIER_PATTERN = re.compile(r"^[\w-]+$")

QUERY_TEMPLATE = """
    SELECT
      FORMAT_DATE('%Y-%m-%d', DATE(usage_start_time)) AS date,
      service.description AS service,
      SUM(cost) + SUM(IFNULL((SELECT SUM(c.amount) FROM UNNEST(credits) c), 0)) AS amount,
      currency
    FROM `{table}`
    WHERE usage_start_time >= TIMESTAMP(@start_date)
      AND usage_start_time < TIMESTAMP(@end_date)
    GROUP BY date, service, currency
    HAVING amount > 0
    ORDER BY date, service
"""


def build_table_name(project_id: str, dataset: str, table: str) -> str:
    """Return project.dataset.table, rejecting anything that is not a plain identifier."""
    for part in (project_id, dataset, table):
        if not part or not IDENTIFIER_PATTERN.match(part):
            raise ValueError(f"Invalid BigQuery identifier '{part}'.")
    return f"{project_id}.{dataset}.{table}"


def build_client(project_id: str, key_file: Optional[str] = None) -> bigquery.Client:
    if key_file:
        return bigquery.Client.from_service_account_json(key_file, project=project_id)
    return bigquery.Client(project=project_id)


def _row_value(row: Any, key: str) -> Any:
    try:
        return row[key]
    except (KeyError, IndexError):
        return None


def parse_row_date(value: Any) -> date:
    """Billing rows carry the day as a string, a date, or a {'value': str} mapping."""
    if isinstance(value, dict):
        value = value.get("value")
    return as_day(value)


def parse_rows(rows: Iterable[Any]) -> List[CostEntry]:
    entries: List[CostEntry] = []
    for row in rows:
        try:
            amount = float(_row_value(row, "amount"))
        except (TypeError, ValueError):
            continue
        if not math.isfinite(amount) or amount <= 0:
            continue
        service = _row_value(row, "service") or UNKNOWN_SERVICE
        currency = (_row_value(row, "currency") or DEFAULT_GCP_CURRENCY).upper()
        entries.append(CostEntry(parse_row_date(_row_value(row, "date")), service, amount, currency))
    return entries


def get_gcp_costs(
    start_date: date,
    end_date: date,
    project_id: str,
    dataset: str,
    table: str,
    key_file: Optional[str] = None,
) -> List[CostEntry]:
    """
    Fetch GCP costs for [start_date, end_date) from the billing export.

    Raises:
        ValueError: If project, dataset or table is not a valid identifier
        ProviderQueryFailed: If authentication or the query fails
    """
    query = QUERY_TEMPLATE.format(table=build_table_name(project_id, dataset, table))
    job_config = bigquery.QueryJobConfig(
        query_parameters=[
            bigquery.ScalarQueryParameter("start_date", "DATE", start_date),
            bigquery.ScalarQueryParameter("end_date", "DATE", end_date),
        ]
    )

    try:
        client = build_client(project_id, key_file)
        rows = client.query(query, job_config=job_config).result()
        return parse_rows(rows)
    except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
        raise ProviderQueryFailed(f"BigQuery query failed: {e}") from e
    except FileNotFoundError as e:
        raise ProviderQueryFailed(f"GCP key file not found: {key_file}") from e
