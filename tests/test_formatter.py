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
Tests for common/formatter.py.

This module tests the report table including:
- Header lines for each display mode
- Row layout, truncation and number formatting
- TOTAL row per display mode
- Display mode selection and the DataFrame export
"""

import os
import sys
from dataclasses import replace

import pandas as pd
import pytest

# Add the project root to the path so we can import the command
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from common.cost_entry import CostEntry, DisplayMode, parse_day
from common.formatter import (
    DATAFRAME_COLUMNS,
    ReportOptions,
    detect_display_mode,
    entries_to_dataframe,
    format_table,
    row_amounts,
    separator,
)

BASE_OPTIONS = ReportOptions(
    title="AWS Cost Report",
    start_date="2026-02-01",
    end_date="2026-02-19",
    profile="default",
    rate=150,
)


def _entry(service="Amazon EC2", amount=1.23, currency="USD", day="2026-02-01"):
    return CostEntry(parse_day(day), service, amount, currency)


def _total_line(output):
    return [line for line in output.split("\n") if line.startswith("TOTAL")][0]


class TestHeader:
    """Test the header lines."""

    def test_title_and_date_range(self):
        output = format_table([], BASE_OPTIONS)
        assert output.split("\n")[0] == "AWS Cost Report: 2026-02-01 → 2026-02-19"

    def test_exchange_rate_with_profile(self):
        output = format_table([], BASE_OPTIONS)
        assert output.split("\n")[1] == "Profile: default | Exchange rate: 1 USD = ¥150.00"

    def test_omits_profile_when_not_provided(self):
        output = format_table([], replace(BASE_OPTIONS, profile=None))
        assert "Profile:" not in output
        assert output.split("\n")[1] == "Exchange rate: 1 USD = ¥150.00"

    def test_uses_provided_title(self):
        output = format_table([], replace(BASE_OPTIONS, title="OpenAI Cost Report"))
        assert "OpenAI Cost Report: 2026-02-01 → 2026-02-19" in output

    def test_column_header_and_separator(self):
        lines = format_table([], BASE_OPTIONS).split("\n")
        assert lines[2] == ""
        assert lines[3] == f"{'Date':<11} {'Service':<30} {'USD':>12} {'JPY':>12}"
        assert lines[4] == "-" * 11 + " " + "-" * 30 + " " + "-" * 12 + " " + "-" * 12


class TestUsdMode:
    """Test the default USD display mode."""

    def test_row_shows_usd_and_jpy(self):
        output = format_table([_entry()], BASE_OPTIONS)
        expected = f"{'2026-02-01':<11} {'Amazon EC2':<30} {'$1.23':>12} {'¥185':>12}"
        assert expected in output.split("\n")

    def test_total(self):
        entries = [_entry("Amazon EC2", 2.00), _entry("Amazon S3", 1.00)]
        total = _total_line(format_table(entries, BASE_OPTIONS))
        assert total == f"{'TOTAL':<11} {'':<30} {'$3.00':>12} {'¥450':>12}"

    def test_total_jpy_sums_rounded_rows(self):
        """Test round-per-row-then-sum: 3 x round(1.5) = 6, not round(4.5) = 5."""
        entries = [_entry(amount=0.01)] * 3
        total = _total_line(format_table(entries, BASE_OPTIONS))
        assert "$0.03" in total
        assert "¥6" in total

    def test_thousands_separator(self):
        output = format_table([_entry(amount=100.0)], BASE_OPTIONS)
        assert "¥15,000" in output

    def test_jpy_entry_is_still_converted(self):
        """Test that USD mode ignores the entry currency."""
        output = format_table([_entry(amount=2, currency="JPY")], BASE_OPTIONS)
        assert "$2.00" in output
        assert "¥300" in output

    def test_long_service_name_is_truncated(self):
        service = "Amazon Elastic Container Service for Kubernetes"
        output = format_table([_entry(service=service)], BASE_OPTIONS)
        assert service[:30] in output
        assert service not in output

    def test_row_width_is_fixed(self):
        lines = format_table([_entry(service="x" * 50)], BASE_OPTIONS).split("\n")
        assert len(lines[5]) == len(separator())

    def test_placeholder_row(self):
        output = format_table([_entry(service="-", amount=0)], BASE_OPTIONS)
        expected = f"{'2026-02-01':<11} {'-':<30} {'$0.00':>12} {'¥0':>12}"
        assert expected in output.split("\n")

    def test_zero_rate_and_negative_amount_do_not_fail(self):
        output = format_table([_entry(amount=-1.0)], replace(BASE_OPTIONS, rate=0))
        assert "$-1.00" in output
        assert "¥0" in output


class TestJpyMode:
    """Test the JPY-only display mode."""

    OPTIONS = replace(BASE_OPTIONS, title="GCP Cost Report", profile=None, mode=DisplayMode.JPY)

    def test_header_shows_jpy_billing(self):
        lines = format_table([], self.OPTIONS).split("\n")
        assert lines[1] == "(JPY billing)"
        assert lines[3] == f"{'Date':<11} {'Service':<30} {'JPY':>12}"
        assert lines[4] == "-" * 11 + " " + "-" * 30 + " " + "-" * 12

    def test_profile_prefix(self):
        output = format_table([], replace(self.OPTIONS, profile="billing"))
        assert output.split("\n")[1] == "Profile: billing | (JPY billing)"

    def test_amounts_are_not_converted(self):
        entries = [_entry("Compute Engine", 1234.5, "JPY"), _entry("Cloud Storage", 45, "JPY")]
        output = format_table(entries, self.OPTIONS)

        assert f"{'2026-02-01':<11} {'Compute Engine':<30} {'¥1,235':>12}" in output.split("\n")
        assert _total_line(output) == f"{'TOTAL':<11} {'':<30} {'¥1,280':>12}"

    def test_never_shows_usd(self):
        output = format_table([_entry("Compute Engine", 12, "JPY")], self.OPTIONS)
        assert "$" not in output
        assert "Exchange rate" not in output

    def test_empty(self):
        output = format_table([], self.OPTIONS)
        assert "(JPY billing)" in output
        assert "Exchange rate" not in output
        assert "$" not in output
        assert "¥0" in _total_line(output)


class TestMixedMode:
    """Test the mixed-currency display mode."""

    OPTIONS = replace(BASE_OPTIONS, title="All Providers Cost Report", profile=None, mode=DisplayMode.MIXED)

    def test_shows_exchange_rate(self):
        output = format_table([], self.OPTIONS)
        assert "Exchange rate: 1 USD = ¥150.00" in output

    def test_jpy_rows_pass_through(self):
        entries = [_entry("AWS / EC2", 1.00, "USD"), _entry("GCP / Run", 100, "JPY")]
        lines = format_table(entries, self.OPTIONS).split("\n")

        assert f"{'2026-02-01':<11} {'AWS / EC2':<30} {'$1.00':>12} {'¥150':>12}" in lines
        assert f"{'2026-02-01':<11} {'GCP / Run':<30} {'':>12} {'¥100':>12}" in lines

    def test_total_shows_jpy_only(self):
        entries = [_entry(amount=1.00, currency="USD"), _entry(amount=100, currency="JPY")]
        total = _total_line(format_table(entries, self.OPTIONS))

        assert "¥250" in total
        assert "$" not in total

    def test_unknown_currency_is_treated_as_usd(self):
        output = format_table([_entry(amount=2.0, currency="EUR")], self.OPTIONS)
        assert "$2.00" in output
        assert "¥300" in output


class TestEmptyEntries:
    """Test output for an empty entry list."""

    def test_message_and_zero_total(self):
        lines = format_table([], BASE_OPTIONS).split("\n")

        assert lines[5] == "(no costs found for this period)"
        assert lines[6] == separator()
        assert lines[7] == f"{'TOTAL':<11} {'':<30} {'$0.00':>12} {'¥0':>12}"


class TestReportOptionsMode:
    """Test that ReportOptions only holds DisplayMode values."""

    def test_string_mode_is_coerced(self):
        options = replace(BASE_OPTIONS, mode="JPY", profile=None)
        output = format_table([_entry("Cloud Run", 100, "JPY")], options)

        assert options.mode is DisplayMode.JPY
        assert output.split("\n")[1] == "(JPY billing)"
        assert "$" not in output
        assert "¥100" in output

    def test_mixed_string(self):
        assert replace(BASE_OPTIONS, mode="mixed").mode is DisplayMode.MIXED

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="Invalid source currency 'EUR'"):
            replace(BASE_OPTIONS, mode="EUR")


class TestRowAmounts:
    """Test the row_amounts function."""

    def test_per_mode(self):
        usd_entry = _entry(amount=1.23)
        jpy_entry = _entry(amount=99.5, currency="JPY")

        assert row_amounts(usd_entry, DisplayMode.USD, 150) == (1.23, 185)
        assert row_amounts(jpy_entry, DisplayMode.JPY, 150) == (None, 100)
        assert row_amounts(jpy_entry, DisplayMode.MIXED, 150) == (None, 100)
        assert row_amounts(usd_entry, DisplayMode.MIXED, 150) == (1.23, 185)


class TestDisplayMode:
    """Test display mode parsing and detection."""

    def test_from_source_currency(self):
        assert DisplayMode.from_source_currency(None) is DisplayMode.USD
        assert DisplayMode.from_source_currency("USD") is DisplayMode.USD
        assert DisplayMode.from_source_currency("JPY") is DisplayMode.JPY
        assert DisplayMode.from_source_currency("mixed") is DisplayMode.MIXED

    def test_rejects_unknown_value(self):
        with pytest.raises(ValueError, match="Invalid source currency 'EUR'"):
            DisplayMode.from_source_currency("EUR")

    def test_detect_display_mode(self):
        usd = _entry(currency="USD")
        jpy = _entry(currency="JPY")

        assert detect_display_mode([jpy, jpy], DisplayMode.USD) is DisplayMode.JPY
        assert detect_display_mode([usd], DisplayMode.JPY) is DisplayMode.USD
        assert detect_display_mode([usd, jpy], DisplayMode.USD) is DisplayMode.MIXED
        assert detect_display_mode([], DisplayMode.JPY) is DisplayMode.JPY


class TestEntriesToDataframe:
    """Test the entries_to_dataframe function."""

    def test_columns_and_values(self):
        entries = [_entry("AWS / EC2", 1.23, "USD"), _entry("GCP / Run", 100, "JPY")]
        df = entries_to_dataframe(entries, DisplayMode.MIXED, 150)

        assert list(df.columns) == DATAFRAME_COLUMNS
        assert df.loc[0, "Date"] == "2026-02-01"
        assert df.loc[0, "USD"] == 1.23
        assert df.loc[0, "JPY"] == 185
        assert pd.isna(df.loc[1, "USD"])
        assert df.loc[1, "JPY"] == 100

    def test_empty(self):
        df = entries_to_dataframe([], DisplayMode.USD, 150)
        assert df.empty
        assert list(df.columns) == DATAFRAME_COLUMNS


if __name__ == "__main__":
    pytest.main([__file__])
