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
Common cost record shared by every billing provider.

Providers normalize their native line items into CostEntry values; the
aggregation and formatting helpers only ever see this shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_CURRENCY = "USD"


def parse_day(date_str: str) -> date:
    """Parse a YYYY-MM-DD string into a calendar day."""
    return datetime.strptime(date_str, DATE_FORMAT).date()


def as_day(value) -> date:
    """Accept either a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_day(value)


@dataclass(frozen=True)
class CostEntry:
    """One normalized billing record."""

    date: date
    service: str
    amount: float
    currency: str = DEFAULT_CURRENCY

    @property
    def date_str(self) -> str:
        return self.date.strftime(DATE_FORMAT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date_str,
            "service": self.service,
            "amount": self.amount,
            "currency": self.currency,
        }


class DisplayMode(Enum):
    """How the report table treats currencies."""

    USD = "USD"
    JPY = "JPY"
    MIXED = "mixed"

    @classmethod
    def from_source_currency(cls, value: Optional[str]) -> "DisplayMode":
        """
        Map a source currency label to a display mode.

        None and "USD" select the USD layout, "JPY" the JPY-only layout and
        "mixed" the mixed-currency layout. Any other value is rejected.
        """
        if value is None:
            return cls.USD
        for mode in cls:
            if mode.value == value:
                return mode
        raise ValueError(f"Invalid source currency '{value}'. Valid options: USD, JPY, mixed")
