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
Helpers that combine and densify cost entry lists.

- merge_providers: flatten per-provider results, prefixing service names
- fill_zero_days: add "-" placeholder rows for days without any cost
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterable, List, Union

from common.cost_entry import CostEntry, DEFAULT_CURRENCY, as_day

PLACEHOLDER_SERVICE = "-"
SERVICE_SEPARATOR = " / "

DayLike = Union[date, str]


@dataclass(frozen=True)
class ProviderResult:
    """Entries returned by one successfully queried provider."""

    name: str
    entries: List[CostEntry] = field(default_factory=list)


def iter_days(start_date: DayLike, end_date: DayLike) -> Iterable[date]:
    """Yield every calendar day in [start_date, end_date)."""
    day = as_day(start_date)
    end = as_day(end_date)
    while day < end:
        yield day
        day += timedelta(days=1)


def fill_zero_days(
    entries: List[CostEntry],
    start_date: DayLike,
    end_date: DayLike,
) -> List[CostEntry]:
    """
    Return entries plus a zero placeholder for each day in range without costs.

    The range is half-open, so end_date itself is never filled. Placeholders
    all take the currency of the first entry (USD when there are none).
    The result is sorted by date; entries sharing a date keep their order.
    """
    present = {entry.date for entry in entries}
    currency = entries[0].currency if entries else DEFAULT_CURRENCY

    filled = list(entries)
    for day in iter_days(start_date, end_date):
        if day not in present:
            filled.append(CostEntry(day, PLACEHOLDER_SERVICE, 0, currency))

    return sorted(filled, key=lambda entry: entry.date)


def merge_providers(results: Iterable[ProviderResult]) -> List[CostEntry]:
    """Concatenate provider entries, renaming services to '<provider> / <service>'."""
    merged: List[CostEntry] = []
    for result in results:
        for entry in result.entries:
            merged.append(replace(entry, service=f"{result.name}{SERVICE_SEPARATOR}{entry.service}"))
    return merged
