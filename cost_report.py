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
Command Name: cost_report

Purpose:
    Shows cloud and AI service costs (AWS, OpenAI, GCP) as a fixed-width table
    with USD and JPY columns. USD amounts are converted with the live USD/JPY
    rate; days without any cost are listed with a "-" placeholder row.

Subcommands:
    aws      AWS Cost Explorer (through the AWS CLI)
    openai   OpenAI organization costs (Admin API key)
    gcp      GCP billing export in BigQuery
    all      Every configured provider in one mixed-currency report

Output Format:
    table (default), csv or json, always on stdout.
    CSV columns: Date, Service, Currency, Amount, USD, JPY

Error Handling:
    - Exit code 1: Invalid arguments, provider or exchange rate failures
    - Exit code 2: Command line usage errors (argparse)
    - In `all`, a failing provider is reported as "[<Provider>] Skipped: ..."
      and left out of the report

Configuration:
    Values can be set in the environment or in a .env file:
    OPENAI_ADMIN_API_KEY, GCP_PROJECT_ID, GCP_BILLING_DATASET,
    GCP_BILLING_TABLE, GCP_KEY_FILE, AWS_PROFILE

Examples:
    # AWS costs for the current month
    python cost_report.py aws

    # Monthly AWS costs for a named profile
    python cost_report.py aws --granularity monthly --profile prod --start 2026-01-01 --end 2026-03-01

    # OpenAI costs as CSV
    python cost_report.py openai --start 2026-02-01 --end 2026-02-19 --output-format csv

    # Every provider in one report
    python cost_report.py all

Author: Frank Contrepois
License: MIT
"""

# Standard library imports first
import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

# Third-party imports second
from dotenv import load_dotenv

# Shared utilities
from common.aggregation import ProviderResult, fill_zero_days, merge_providers
from common.cli_utils import get_env, handle_error, log_verbose, write_csv_output, write_json_output
from common.cost_entry import CostEntry, DisplayMode, parse_day
from common.currency import ExchangeRateProvider, FixedRateProvider
from common.errors import CostViewerError, NoProvidersAvailable
from common.formatter import ReportOptions, detect_display_mode, entries_to_dataframe, format_table
from providers.aws_costs import DEFAULT_PROFILE, get_aws_costs, is_aws_cli_available
from providers.gcp_costs import get_gcp_costs
from providers.openai_costs import get_openai_costs

VERSION = "0.2.0"
OUTPUT_FORMATS = ["table", "csv", "json"]
GRANULARITIES = ["DAILY", "MONTHLY"]
PROVIDER_WORKERS = 4


def default_start_date() -> str:
    """First day of the current UTC month."""
    return datetime.now(timezone.utc).date().replace(day=1).isoformat()


def default_end_date() -> str:
    """Today in UTC."""
    return datetime.now(timezone.utc).date().isoformat()


def parse_date(date_str: str) -> date:
    """Parses a date string in YYYY-MM-DD format."""
    try:
        return parse_day(date_str)
    except (TypeError, ValueError):
        handle_error(f"Invalid date format '{date_str}'. Use YYYY-MM-DD.", 1)


def resolve_date_range(args) -> Tuple[date, date]:
    start = parse_date(args.start)
    end = parse_date(args.end)
    if end < start:
        handle_error(f"--end ({args.end}) must not be before --start ({args.start}).", 1)
    return start, end


def parse_granularity(value: str) -> str:
    granularity = value.upper()
    if granularity not in GRANULARITIES:
        handle_error("--granularity must be DAILY or MONTHLY", 1)
    return granularity


def build_rate_provider(args):
    if args.rate is not None:
        if args.rate <= 0:
            handle_error("--rate must be a positive number.", 1)
        return FixedRateProvider(args.rate)
    return ExchangeRateProvider()


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--start",
        type=str,
        default=default_start_date(),
        help="Start date (YYYY-MM-DD, default: first day of this month)"
    )
    parser.add_argument(
        "--end",
        type=str,
        default=default_end_date(),
        help="End date, exclusive (YYYY-MM-DD, default: today)"
    )
    parser.add_argument(
        "--output-format",
        choices=OUTPUT_FORMATS,
        default="table",
        help="Output format: table, csv or json (default: table, always prints to standard out)"
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help="USD to JPY rate to use instead of fetching the live rate"
    )
    parser.add_argument(
        "--no-fill",
        action="store_true",
        help="Do not add placeholder rows for days without costs"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print debug info (pagination, skipped providers, etc.)"
    )


def _add_aws_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--granularity",
        type=str,
        default="DAILY",
        help="DAILY or MONTHLY (default: DAILY)"
    )
    parser.add_argument(
        "--profile",
        type=str,
        default=get_env("AWS_PROFILE", DEFAULT_PROFILE),
        help="AWS profile name (default: $AWS_PROFILE or 'default')"
    )


def _add_openai_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="OpenAI Admin API key (or env: OPENAI_ADMIN_API_KEY)"
    )


def _add_gcp_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--project-id", type=str, default=None, help="GCP project ID (or env: GCP_PROJECT_ID)")
    parser.add_argument("--dataset", type=str, default=None, help="Billing export dataset (or env: GCP_BILLING_DATASET)")
    parser.add_argument("--table", type=str, default=None, help="Billing export table (or env: GCP_BILLING_TABLE)")
    parser.add_argument("--key-file", type=str, default=None, help="Service account key file (or env: GCP_KEY_FILE)")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for this command."""
    parser = argparse.ArgumentParser(
        prog="cost-viewer",
        description="View cloud/AI service costs in JPY",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # AWS costs for the current month
    python cost_report.py aws

    # OpenAI costs as CSV
    python cost_report.py openai --output-format csv

    # Every provider in one report
    python cost_report.py all
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    aws_parser = subparsers.add_parser("aws", help="Show AWS costs via Cost Explorer API")
    _add_common_arguments(aws_parser)
    _add_aws_arguments(aws_parser)

    openai_parser = subparsers.add_parser("openai", help="Show OpenAI costs via Admin API")
    _add_common_arguments(openai_parser)
    _add_openai_arguments(openai_parser)

    gcp_parser = subparsers.add_parser("gcp", help="Show GCP costs via the BigQuery billing export")
    _add_common_arguments(gcp_parser)
    _add_gcp_arguments(gcp_parser)

    all_parser = subparsers.add_parser("all", help="Show costs of every configured provider")
    _add_common_arguments(all_parser)
    _add_aws_arguments(all_parser)
    _add_openai_arguments(all_parser)
    _add_gcp_arguments(all_parser)

    return parser


def resolve_openai_key(args) -> Optional[str]:
    return args.api_key or get_env("OPENAI_ADMIN_API_KEY")


def resolve_gcp_config(args) -> Optional[dict]:
    """Return GCP query settings, or None when project/dataset/table are incomplete."""
    config = {
        "project_id": args.project_id or get_env("GCP_PROJECT_ID"),
        "dataset": args.dataset or get_env("GCP_BILLING_DATASET"),
        "table": args.table or get_env("GCP_BILLING_TABLE"),
        "key_file": args.key_file or get_env("GCP_KEY_FILE"),
    }
    if not (config["project_id"] and config["dataset"] and config["table"]):
        return None
    return config


def fetch_with_rate(fetch: Callable[[], List[CostEntry]], rate_provider) -> Tuple[List[CostEntry], float]:
    """Run a provider query and the exchange rate lookup side by side."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        entries_future = executor.submit(fetch)
        rate_future = executor.submit(rate_provider.get_rate)
        return entries_future.result(), rate_future.result()


def collect_providers(
    fetchers: List[Tuple[str, Callable[[], List[CostEntry]]]],
    verbose: bool = False,
) -> List[ProviderResult]:
    """
    Query every provider concurrently, skipping the ones that fail.

    Results keep the order of fetchers. A provider that returns no entries
    still counts as available.

    Raises:
        NoProvidersAvailable: If no provider could be queried
    """
    if not fetchers:
        raise NoProvidersAvailable("No providers are configured. Set up AWS, OpenAI or GCP credentials.")

    results: List[ProviderResult] = []
    with ThreadPoolExecutor(max_workers=PROVIDER_WORKERS) as executor:
        futures = [(name, executor.submit(fetch)) for name, fetch in fetchers]
        for name, future in futures:
            try:
                entries = future.result()
            except Exception as e:
                print(f"[{name}] Skipped: {e}", file=sys.stderr)
                continue
            log_verbose(f"[{name}] {len(entries)} cost entries", verbose)
            results.append(ProviderResult(name, entries))

    if not results:
        raise NoProvidersAvailable("All providers failed. No cost data is available.")
    return results


def build_all_fetchers(args, start: date, end: date) -> List[Tuple[str, Callable[[], List[CostEntry]]]]:
    fetchers: List[Tuple[str, Callable[[], List[CostEntry]]]] = []

    if is_aws_cli_available():
        fetchers.append(("AWS", lambda: get_aws_costs(start, end, "DAILY", args.profile, args.verbose)))
    else:
        log_verbose("[AWS] Not configured (AWS CLI not found), skipping.", args.verbose)

    api_key = resolve_openai_key(args)
    if api_key:
        fetchers.append(("OpenAI", lambda: get_openai_costs(start, end, api_key, verbose=args.verbose)))
    else:
        log_verbose("[OpenAI] Not configured (no OPENAI_ADMIN_API_KEY), skipping.", args.verbose)

    gcp_config = resolve_gcp_config(args)
    if gcp_config:
        fetchers.append(("GCP", lambda: get_gcp_costs(start, end, **gcp_config)))
    else:
        log_verbose("[GCP] Not configured (project/dataset/table missing), skipping.", args.verbose)

    return fetchers


def render_report(entries: List[CostEntry], options: ReportOptions, output_format: str, command: str) -> None:
    """Print the report in the requested output format."""
    if output_format == "table":
        print(format_table(entries, options))
        return

    df = entries_to_dataframe(entries, options.mode, options.rate)
    if output_format == "csv":
        write_csv_output(df)
    elif output_format == "json":
        json_data = {
            "metadata": {
                "command": command,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "title": options.title,
                "start_date": options.start_date,
                "end_date": options.end_date,
                "display_mode": options.mode.value,
                "exchange_rate": None if options.mode is DisplayMode.JPY else options.rate,
            },
            "data": df.astype(object).where(df.notna(), None).to_dict("records"),
        }
        write_json_output(json_data)
    else:
        handle_error("Invalid output format.", 1)


def run_aws(args) -> None:
    start, end = resolve_date_range(args)
    granularity = parse_granularity(args.granularity)
    rate_provider = build_rate_provider(args)

    entries, rate = fetch_with_rate(
        lambda: get_aws_costs(start, end, granularity, args.profile, args.verbose),
        rate_provider,
    )
    if granularity == "DAILY" and not args.no_fill:
        entries = fill_zero_days(entries, start, end)

    options = ReportOptions(
        title="AWS Cost Report",
        start_date=args.start,
        end_date=args.end,
        rate=rate,
        profile=args.profile,
    )
    render_report(entries, options, args.output_format, "aws")


def run_openai(args) -> None:
    start, end = resolve_date_range(args)
    api_key = resolve_openai_key(args)
    if not api_key:
        handle_error("OpenAI Admin API key is required. Use --api-key or set OPENAI_ADMIN_API_KEY.", 1)
    rate_provider = build_rate_provider(args)

    entries, rate = fetch_with_rate(
        lambda: get_openai_costs(start, end, api_key, verbose=args.verbose),
        rate_provider,
    )
    if not args.no_fill:
        entries = fill_zero_days(entries, start, end)

    options = ReportOptions(
        title="OpenAI Cost Report",
        start_date=args.start,
        end_date=args.end,
        rate=rate,
    )
    render_report(entries, options, args.output_format, "openai")


def run_gcp(args) -> None:
    start, end = resolve_date_range(args)
    gcp_config = resolve_gcp_config(args)
    if not gcp_config:
        handle_error(
            "GCP project, dataset and table are required. "
            "Use --project-id/--dataset/--table or set GCP_PROJECT_ID, GCP_BILLING_DATASET, GCP_BILLING_TABLE.",
            1,
        )

    entries = get_gcp_costs(start, end, **gcp_config)
    mode = detect_display_mode(entries, DisplayMode.JPY)
    # Only USD rows need the exchange rate.
    rate = 0.0 if mode is DisplayMode.JPY else build_rate_provider(args).get_rate()
    if not args.no_fill:
        entries = fill_zero_days(entries, start, end)

    options = ReportOptions(
        title="GCP Cost Report",
        start_date=args.start,
        end_date=args.end,
        rate=rate,
        mode=mode,
    )
    render_report(entries, options, args.output_format, "gcp")


def run_all(args) -> None:
    start, end = resolve_date_range(args)
    rate_provider = build_rate_provider(args)
    fetchers = build_all_fetchers(args, start, end)

    # The rate is resolved first so the provider fan-out never races on it.
    rate = rate_provider.get_rate()
    log_verbose(f"Exchange rate: 1 USD = {rate:.2f} JPY", args.verbose)

    results = collect_providers(fetchers, args.verbose)
    entries = merge_providers(results)
    if not args.no_fill:
        entries = fill_zero_days(entries, start, end)

    options = ReportOptions(
        title="All Providers Cost Report",
        start_date=args.start,
        end_date=args.end,
        rate=rate,
        mode=DisplayMode.MIXED,
    )
    render_report(entries, options, args.output_format, "all")


COMMANDS = {
    "aws": run_aws,
    "openai": run_openai,
    "gcp": run_gcp,
    "all": run_all,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI tool."""
    load_dotenv()
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        COMMANDS[args.command](args)
    except (CostViewerError, ValueError) as e:
        handle_error(str(e), 1)


if __name__ == "__main__":
    main()
