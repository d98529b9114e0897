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
OpenAI organization costs provider.

Reads daily cost buckets from the Admin API (`/v1/organization/costs`),
grouped by line item. Requires an Admin API key (sk-admin-...).
"""

import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from common.cli_utils import log_verbose
from common.cost_entry import CostEntry, DEFAULT_CURRENCY
from common.errors import ProviderQueryFailed

API_URL = "https://api.openai.com/v1/organization/costs"
BUCKET_WIDTH = "1d"
PAGE_LIMIT = 180
REQUEST_TIMEOUT = 30
OTHER_LINE_ITEM = "(other)"


def to_unix_seconds(day: date) -> int:
    """Midnight UTC of the given day as epoch seconds."""
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())


def unix_seconds_to_day(ts: int) -> date:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date()


def build_http_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(total=3, backoff_factor=0.6, status_forcelist=[429, 500, 502, 503, 504])
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    return session


def build_params(start_date: date, end_date: date, page: Optional[str] = None) -> List[tuple]:
    params = [
        ("start_time", str(to_unix_seconds(start_date))),
        ("end_time", str(to_unix_seconds(end_date))),
        ("bucket_width", BUCKET_WIDTH),
        ("group_by", "line_item"),
        ("limit", str(PAGE_LIMIT)),
    ]
    if page:
        params.append(("page", page))
    return params


def parse_buckets(buckets: List[Dict[str, Any]]) -> List[CostEntry]:
    """Turn cost buckets into entries, skipping non-positive or unparsable amounts."""
    entries: List[CostEntry] = []
    for bucket in buckets:
        try:
            day = unix_seconds_to_day(int(bucket["start_time"]))
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise ProviderQueryFailed(f"OpenAI API returned a malformed cost bucket: {e!r}") from e
        for result in bucket.get("results") or []:
            amount_info = result.get("amount") or {}
            try:
                amount = float(amount_info.get("value") or 0)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(amount) or amount <= 0:
                continue
            currency = (amount_info.get("currency") or DEFAULT_CURRENCY).upper()
            service = result.get("line_item") or OTHER_LINE_ITEM
            entries.append(CostEntry(day, service, amount, currency))
    return entries


def get_openai_costs(
    start_date: date,
    end_date: date,
    api_key: str,
    session: Optional[requests.Session] = None,
    verbose: bool = False,
) -> List[CostEntry]:
    """
    Fetch OpenAI costs for [start_date, end_date), one bucket per UTC day.

    Raises:
        ProviderQueryFailed: On network errors or a non-success HTTP status
    """
    session = session or build_http_session()
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    buckets: List[Dict[str, Any]] = []
    page = None
    page_number = 1
    while True:
        log_verbose(f"[OpenAI] Fetching page {page_number}...", verbose)
        try:
            response = session.get(
                API_URL,
                params=build_params(start_date, end_date, page),
                headers=headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise ProviderQueryFailed(f"OpenAI API request failed: {e}") from e

        if not response.ok:
            raise ProviderQueryFailed(
                f"OpenAI API error: {response.status_code} {response.reason} - {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderQueryFailed(f"OpenAI API returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ProviderQueryFailed("OpenAI API returned an unexpected response body")

        buckets.extend(payload.get("data") or [])
        page = payload.get("next_page")
        if not payload.get("has_more") or not page:
            break
        page_number += 1

    return parse_buckets(buckets)
