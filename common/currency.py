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
USD to JPY conversion.

The live rate comes from open.er-api.com (free, no key required). A rate
provider fetches it once and keeps it for the rest of the process; call
reset() to force a new lookup.
"""

from __future__ import annotations

import math
import threading
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import requests

from common.errors import RateUnavailable

EXCHANGE_RATE_URL = "https://open.er-api.com/v6/latest/USD"
TARGET_CURRENCY = "JPY"
DEFAULT_TIMEOUT = 20


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (1.5 -> 2, 2.5 -> 3).

    NaN and infinite values round to 0.
    """
    if not math.isfinite(value):
        return 0
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def convert_to_jpy(usd: float, rate: float) -> int:
    """Convert a USD amount to whole yen."""
    return round_half_up(usd * rate)


class ExchangeRateProvider:
    """Fetches and caches the USD to JPY rate."""

    def __init__(
        self,
        url: str = EXCHANGE_RATE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._session = session
        self._rate: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def cached_rate(self) -> Optional[float]:
        return self._rate

    def get_rate(self) -> float:
        """Return the cached rate, fetching it on first use."""
        with self._lock:
            if self._rate is None:
                self._rate = self._fetch()
            return self._rate

    def reset(self) -> None:
        with self._lock:
            self._rate = None

    def _fetch(self) -> float:
        http = self._session or requests
        try:
            response = http.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RateUnavailable(f"Failed to fetch exchange rate: {e}") from e

        if not response.ok:
            raise RateUnavailable(
                f"Failed to fetch exchange rate: {response.status_code} {response.reason}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RateUnavailable(f"Exchange rate API returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise RateUnavailable("Exchange rate API returned an unexpected response")

        result = data.get("result")
        if result != "success":
            raise RateUnavailable(f"Exchange rate API error: {result}")

        rate = (data.get("rates") or {}).get(TARGET_CURRENCY)
        if rate is None:
            raise RateUnavailable(f"{TARGET_CURRENCY} rate not found in exchange rate response")

        try:
            rate = float(rate)
        except (TypeError, ValueError):
            raise RateUnavailable(f"Invalid {TARGET_CURRENCY} rate in exchange rate response: {rate!r}")
        if not rate > 0:
            raise RateUnavailable(f"Invalid {TARGET_CURRENCY} rate in exchange rate response: {rate}")
        return rate


class FixedRateProvider:
    """Rate provider returning a caller-supplied rate (e.g. --rate)."""

    def __init__(self, rate: float):
        if not rate > 0:
            raise ValueError("Exchange rate must be a positive number.")
        self._rate = float(rate)

    @property
    def cached_rate(self) -> Optional[float]:
        return self._rate

    def get_rate(self) -> float:
        return self._rate

    def reset(self) -> None:
        # Nothing to refetch.
        pass
