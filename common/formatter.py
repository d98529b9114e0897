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
Fixed-width text report for cost entries.

Display modes:
    USD:   Date, Service, USD, JPY. Every row is treated as USD and converted.
    JPY:   Date, Service, JPY. Amounts are already yen, no exchange rate line.
    MIXED: Date, Service, USD, JPY. JPY rows pass through unconverted with a
           blank USD cell; every other currency is treated as USD.

JPY figures are rounded per row and then summed for the TOTAL row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from common.cost_entry import CostEntry, DisplayMode
from common.currency import convert_to_jpy, round_half_up

COL_DATE = 11
COL_SERVICE = 30
COL_USD = 12
COL_JPY = 12

NO_COSTS_MESSAGE = "(no costs found for this period)"
JPY_BILLING_LABEL = "(JPY billing)"
TOTAL_LABEL = "TOTAL"

DATAFRAME_COLUMNS = ["Date", "Service", "Currency", "Amount", "USD", "JPY"]


@dataclass(frozen=True)
class ReportOptions:
    title: str
    start_date: str
    end_date: str
    rate: float = 0.0
    profile: Optional[str] = None
    mode: DisplayMode = DisplayMode.USD

    def __post_init__(self):
        if not isinstance(self.mode, DisplayMode):
            object.__setattr__(self, "mode", DisplayMode.from_source_currency(self.mode))


def pad(text: str, width: int) -> str:
    return text[:width] if len(text) >= width else text + " " * (width - len(text))


def pad_left(text: str, width: int) -> str:
    return text[:width] if len(text) >= width else " " * (width - len(text)) + text


def format_usd(amount: Optional[float]) -> str:
    return "" if amount is None else f"${amount:.2f}"


def format_jpy(amount: int) -> str:
    return f"¥{amount:,}"


def row_amounts(entry: CostEntry, mode: DisplayMode, rate: float) -> Tuple[Optional[float], int]:
    """Return the (USD, JPY) cells for one entry; USD is None when the cell stays blank."""
    if mode is DisplayMode.JPY:
        return None, round_half_up(entry.amount)
    if mode is DisplayMode.MIXED and entry.currency == "JPY":
        return None, round_half_up(entry.amount)
    return entry.amount, convert_to_jpy(entry.amount, rate)


def detect_display_mode(entries: List[CostEntry], default: DisplayMode) -> DisplayMode:
    """Pick the display mode matching the currencies present in entries."""
    if not entries:
        return default
    jpy_count = sum(1 for entry in entries if entry.currency == "JPY")
    if jpy_count == len(entries):
        return DisplayMode.JPY
    if jpy_count == 0:
        return DisplayMode.USD
    return DisplayMode.MIXED


def _format_line(mode: DisplayMode, date_cell: str, service_cell: str, usd_cell: str, jpy_cell: str) -> str:
    cells = [pad(date_cell, COL_DATE), pad(service_cell, COL_SERVICE)]
    if mode is not DisplayMode.JPY:
        cells.append(pad_left(usd_cell, COL_USD))
    cells.append(pad_left(jpy_cell, COL_JPY))
    return " ".join(cells)


def separator(mode: DisplayMode = DisplayMode.USD) -> str:
    widths = [COL_DATE, COL_SERVICE]
    if mode is not DisplayMode.JPY:
        widths.append(COL_USD)
    widths.append(COL_JPY)
    return " ".join("-" * width for width in widths)


def format_table(entries: List[CostEntry], options: ReportOptions) -> str:
    """Render entries and their totals as a fixed-width table."""
    mode = options.mode
    lines: List[str] = []

    lines.append(f"{options.title}: {options.start_date} → {options.end_date}")
    profile_part = f"Profile: {options.profile} | " if options.profile else ""
    if mode is DisplayMode.JPY:
        lines.append(f"{profile_part}{JPY_BILLING_LABEL}")
    else:
        lines.append(f"{profile_part}Exchange rate: 1 USD = ¥{options.rate:.2f}")
    lines.append("")

    lines.append(_format_line(mode, "Date", "Service", "USD", "JPY"))
    lines.append(separator(mode))

    total_usd = 0.0
    total_jpy = 0
    for entry in entries:
        usd, jpy = row_amounts(entry, mode, options.rate)
        if usd is not None:
            total_usd += usd
        total_jpy += jpy
        lines.append(_format_line(mode, entry.date_str, entry.service, format_usd(usd), format_jpy(jpy)))

    if not entries:
        lines.append(NO_COSTS_MESSAGE)

    lines.append(separator(mode))

    total_usd_cell = format_usd(total_usd) if mode is DisplayMode.USD else ""
    lines.append(_format_line(mode, TOTAL_LABEL, "", total_usd_cell, format_jpy(total_jpy)))

    return "\n".join(lines)


def entries_to_dataframe(entries: List[CostEntry], mode: DisplayMode, rate: float) -> pd.DataFrame:
    """Tabulate entries with the same per-row conversion as format_table."""
    rows = []
    for entry in entries:
        usd, jpy = row_amounts(entry, mode, rate)
        rows.append({
            "Date": entry.date_str,
            "Service": entry.service,
            "Currency": entry.currency,
            "Amount": entry.amount,
            "USD": usd,
            "JPY": jpy,
        })
    return pd.DataFrame(rows, columns=DATAFRAME_COLUMNS)
