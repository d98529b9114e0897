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
AWS Cost Explorer provider.

Runs `aws ce get-cost-and-usage` through the AWS CLI, grouped by SERVICE,
and normalizes every group with a positive UnblendedCost into a CostEntry.

Dependencies:
    - AWS CLI configured with ce:GetCostAndUsage permission
"""

import json
import shutil
import subprocess
from datetime import date
from typing import Any, Dict, List, Optional

from common.cli_utils import log_verbose
from common.cost_entry import CostEntry, DEFAULT_CURRENCY, parse_day
from common.errors import ProviderQueryFailed

VALID_GRANULARITIES = ["DAILY", "MONTHLY"]
COST_METRIC = "UnblendedCost"
CE_REGION = "us-east-1"
DEFAULT_PROFILE = "default"
UNKNOWN_SERVICE = "Unknown"


def is_aws_cli_available() -> bool:
    """Return True when the aws executable is on PATH."""
    return shutil.which("aws") is not None


def check_aws_cli_available() -> None:
    """Raise ProviderQueryFailed when the AWS CLI is missing."""
    if not is_aws_cli_available():
        raise ProviderQueryFailed("AWS CLI is not installed or not found in PATH.")


def run_aws_cli(cmd: List[str]) -> Dict[str, Any]:
    """Runs the AWS CLI command and returns the parsed JSON output."""
    try:
        result = subprocess.run(cmd, capture_output=True, check=True, text=True)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        if "Unable to locate credentials" in stderr:
            raise ProviderQueryFailed("AWS CLI credentials not found. Please configure your AWS credentials.") from e
        if "is not authorized to perform" in stderr:
            raise ProviderQueryFailed(f"Permission denied. {stderr}") from e
        if "could not be found" in stderr and "profile" in stderr:
            raise ProviderQueryFailed(f"AWS profile not found. {stderr}") from e
        raise ProviderQueryFailed(f"Running AWS CLI: {stderr}") from e
    except FileNotFoundError as e:
        raise ProviderQueryFailed("AWS CLI is not installed or not found in PATH.") from e

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProviderQueryFailed(f"Failed to parse AWS CLI output: {e}") from e


def build_cost_command(
    start_date: str,
    end_date: str,
    granularity: str,
    profile: Optional[str] = None,
    next_token: Optional[str] = None,
) -> List[str]:
    """Build the `aws ce get-cost-and-usage` command line."""
    cmd = [
        "aws", "ce", "get-cost-and-usage",
        "--time-period", f"Start={start_date},End={end_date}",
        "--granularity", granularity,
        "--metrics", COST_METRIC,
        "--group-by", "Type=DIMENSION,Key=SERVICE",
        "--region", CE_REGION,
        "--output", "json",
    ]
    if profile and profile != DEFAULT_PROFILE:
        cmd += ["--profile", profile]
    if next_token:
        cmd += ["--next-page-token", next_token]
    return cmd


def fetch_results(
    start_date: str,
    end_date: str,
    granularity: str,
    profile: Optional[str] = None,
    verbose: bool = False,
) -> List[Dict[str, Any]]:
    """Fetch every page of ResultsByTime from Cost Explorer."""
    all_results: List[Dict[str, Any]] = []
    next_token = None
    page = 1
    while True:
        log_verbose(f"[AWS] Fetching page {page}...", verbose)
        response = run_aws_cli(build_cost_command(start_date, end_date, granularity, profile, next_token))
        all_results.extend(response.get("ResultsByTime", []))
        next_token = response.get("NextPageToken")
        if not next_token:
            break
        page += 1
    return all_results


def parse_results(results: List[Dict[str, Any]]) -> List[CostEntry]:
    """Turn ResultsByTime groups into cost entries, dropping non-positive amounts."""
    entries: List[CostEntry] = []
    for time_period in results:
        start = (time_period.get("TimePeriod") or {}).get("Start")
        if not start:
            continue
        period_start = parse_day(start[:10])
        for group in time_period.get("Groups", []):
            keys = group.get("Keys") or []
            service = keys[0] if keys else UNKNOWN_SERVICE
            metric = (group.get("Metrics") or {}).get(COST_METRIC) or {}
            try:
                amount = float(metric.get("Amount") or 0)
            except ValueError:
                continue
            currency = (metric.get("Unit") or DEFAULT_CURRENCY).upper()
            if amount > 0:
                entries.append(CostEntry(period_start, service, amount, currency))
    return entries


def get_aws_costs(
    start_date: date,
    end_date: date,
    granularity: str = "DAILY",
    profile: Optional[str] = None,
    verbose: bool = False,
) -> List[CostEntry]:
    """
    Query Cost Explorer for [start_date, end_date) grouped by service.

    Args:
        start_date: First day of the report
        end_date: Day after the last day of the report
        granularity: DAILY or MONTHLY
        profile: AWS CLI profile; the default profile is not passed explicitly
        verbose: Print pagination progress to stderr

    Raises:
        ValueError: If granularity is not supported
        ProviderQueryFailed: If the AWS CLI is missing or the query fails
    """
    granularity = granularity.upper()
    if granularity not in VALID_GRANULARITIES:
        raise ValueError(f"Invalid granularity '{granularity}'. Valid options: {', '.join(VALID_GRANULARITIES)}")

    check_aws_cli_available()
    results = fetch_results(start_date.isoformat(), end_date.isoformat(), granularity, profile, verbose)
    return parse_results(results)
