"""Cached exchange rates used to report bill totals in a single currency."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Callable, Mapping, Optional, Protocol

import httpx

from .billing_amounts import quantize_amount, to_decimal
from .billing_errors import InvalidInputError
from .job_config import read_int

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_CURRENCY = "INR"
DEFAULT_TTL = timedelta(hours=1)
FAILED_FETCH_RETRY = timedelta(minutes=5)
API_URL_TEMPLATE = "https://v6.exchangerate-api.com/v6/{api_key}/latest/{base}"

# Units of INR per one unit of each currency, used until a fetch succeeds.
DEFAULT_INR_RATES: dict[str, Decimal] = {
    "INR": Decimal("1"),
    "USD": Decimal("83.50"),
    "EUR": Decimal("90.00"),
    "GBP": Decimal("105.00"),
    "AUD": Decimal("54.00"),
    "CAD": Decimal("59.00"),
}


class ExchangeRateFetchError(RuntimeError):
    """Raised when the rate provider cannot be reached or returns bad data."""


class ExchangeRateFetcher(Protocol):
    def fetch(self, base_currency: str) -> Mapping[str, Decimal]:
        """Return how many units of each currency one unit of ``base_currency`` buys."""


class HttpExchangeRateFetcher:
    """Load rates from the exchangerate-api.com v6 endpoint."""

    def __init__(self, api_key: str, *, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        if not api_key:
            raise ValueError("An API key is required to fetch exchange rates")
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    def fetch(self, base_currency: str) -> Mapping[str, Decimal]:
        url = API_URL_TEMPLATE.format(api_key=self.api_key, base=base_currency)
        try:
            if self.client is not None:
                response = self.client.get(url, timeout=self.timeout)
            else:
                response = httpx.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ExchangeRateFetchError(f"Exchange rate request failed: {exc}") from exc

        conversion_rates = payload.get("conversion_rates") if isinstance(payload, dict) else None
        if not isinstance(conversion_rates, dict) or not conversion_rates:
            raise ExchangeRateFetchError("Exchange rate response has no conversion_rates")

        rates: dict[str, Decimal] = {}
        for code, value in conversion_rates.items():
            try:
                rates[str(code).upper()] = Decimal(str(value))
            except InvalidOperation:
                LOGGER.debug("Skipping unreadable rate %s=%r", code, value)
        return rates


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExchangeRateCache:
    """Keep "units of base currency per one unit of X" for a limited time."""

    def __init__(
        self,
        fetcher: Optional[ExchangeRateFetcher] = None,
        *,
        base_currency: str = DEFAULT_BASE_CURRENCY,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
        defaults: Optional[Mapping[str, Decimal]] = None,
    ) -> None:
        self.fetcher = fetcher
        self.base_currency = base_currency.upper()
        self.ttl = ttl
        self.clock = clock
        if defaults is None:
            defaults = DEFAULT_INR_RATES if self.base_currency == "INR" else {}
        self._defaults = {code.upper(): to_decimal(rate) for code, rate in defaults.items()}
        self._defaults[self.base_currency] = Decimal("1")
        self._rates: dict[str, Decimal] = dict(self._defaults)
        self._fetched_at: Optional[datetime] = None
        self._attempted_at: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    def _is_stale(self, now: datetime) -> bool:
        if self._fetched_at is None:
            return self._attempted_at is None or now - self._attempted_at >= FAILED_FETCH_RETRY
        if now - self._fetched_at < self.ttl:
            return False
        return self._attempted_at is None or now - self._attempted_at >= min(
            self.ttl, FAILED_FETCH_RETRY
        )

    def _refresh(self, now: datetime) -> None:
        self._attempted_at = now
        try:
            quoted = self.fetcher.fetch(self.base_currency)
        except ExchangeRateFetchError as exc:
            LOGGER.warning("Using cached exchange rates: %s", exc)
            return

        inverted = {self.base_currency: Decimal("1")}
        for code, per_base in quoted.items():
            if per_base > 0:
                inverted[code.upper()] = Decimal("1") / per_base
        self._rates = {**self._defaults, **inverted}
        self._fetched_at = now
        LOGGER.info("Exchange rates refreshed for %d currencies", len(inverted))

    def rates(self) -> dict[str, Decimal]:
        with self._lock:
            now = self.clock()
            if self.fetcher is not None and self._is_stale(now):
                self._refresh(now)
            return dict(self._rates)

    def rate_for(self, currency: str) -> Decimal:
        code = (currency or self.base_currency).strip().upper()
        rate = self.rates().get(code)
        if rate is None:
            raise InvalidInputError(f"Unsupported currency: {code}")
        return rate

    def convert(self, amount: object, from_currency: str) -> Decimal:
        """Convert ``amount`` expressed in ``from_currency`` into the base currency."""

        value = to_decimal(amount)
        if value < 0:
            raise InvalidInputError("Amount to convert cannot be negative")
        return quantize_amount(value * self.rate_for(from_currency))


def build_exchange_rate_cache_from_env() -> ExchangeRateCache:
    base_currency = os.getenv("EXCHANGE_RATE_BASE_CURRENCY", DEFAULT_BASE_CURRENCY).strip().upper()
    ttl_seconds = read_int(
        "EXCHANGE_RATE_TTL_SECONDS", int(DEFAULT_TTL.total_seconds()), minimum=60
    )
    api_key = os.getenv("EXCHANGE_RATE_API_KEY", "").strip()
    fetcher = HttpExchangeRateFetcher(api_key) if api_key else None
    if fetcher is None:
        LOGGER.info("EXCHANGE_RATE_API_KEY not set; using built-in exchange rates")
    return ExchangeRateCache(
        fetcher, base_currency=base_currency, ttl=timedelta(seconds=ttl_seconds)
    )


@lru_cache(maxsize=1)
def get_exchange_rate_cache() -> ExchangeRateCache:
    """Return the process-wide cache; routers receive it through ``Depends``."""

    return build_exchange_rate_cache_from_env()
