"""
Currency conversion for incoming USD payments into PKR accounts.

The live USD→PKR quote comes from an external rate source. When the source
is unreachable or returns garbage the service either falls back to a fixed
rate (fail-open, the default) or raises ExchangeRateUnavailableError
(fail-closed), depending on EXCHANGE_RATE_FAIL_OPEN.

Usage:
    from screening.services.currency_service import CurrencyConversionService

    service = CurrencyConversionService()
    if service.needs_conversion("USD", account.currency):
        result = service.convert(Decimal("5.00"))
        result.converted_amount  # Decimal("1392.50") at 278.50
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from core.services import BaseService
from screening.exceptions import ExchangeRateUnavailableError

if TYPE_CHECKING:
    from typing import Any


USD = "USD"
PKR = "PKR"
RATE_PROVIDER = "FreeCurrencyAPI"
RATE_CACHE_KEY = "screening:exchange_rate:USD:PKR"

CENTS = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "PKR": "₨",
    "EUR": "€",
    "GBP": "£",
}


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of converting a USD amount into PKR.

    Attributes:
        original_amount: Amount in USD as received
        original_currency: Always "USD"
        converted_amount: PKR amount rounded half-up to 2 decimal places
        converted_currency: Always "PKR"
        exchange_rate: Rate applied (live or fallback)
        provider: Name of the quote source
        timestamp: When the conversion happened
    """

    original_amount: Decimal
    original_currency: str
    converted_amount: Decimal
    converted_currency: str
    exchange_rate: Decimal
    provider: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalAmount": str(self.original_amount),
            "originalCurrency": self.original_currency,
            "convertedAmount": str(self.converted_amount),
            "convertedCurrency": self.converted_currency,
            "exchangeRate": str(self.exchange_rate),
            "provider": self.provider,
            "timestamp": self.timestamp.isoformat(),
        }


class CurrencyConversionService(BaseService):
    """
    Fetches the USD→PKR rate, converts amounts and scores conversion risk.

    Collaborator settings default to Django settings and can be overridden
    per instance, which is how tests pin the rate source and fallback.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        fallback_rate: Decimal | str | None = None,
        timeout: int | None = None,
        cache_seconds: int | None = None,
        fail_open: bool | None = None,
    ):
        self.api_url = api_url if api_url is not None else settings.EXCHANGE_RATE_API_URL
        self.api_key = api_key if api_key is not None else settings.EXCHANGE_RATE_API_KEY
        self.fallback_rate = Decimal(
            str(fallback_rate if fallback_rate is not None else settings.EXCHANGE_RATE_FALLBACK)
        )
        self.timeout = timeout if timeout is not None else settings.EXCHANGE_RATE_TIMEOUT_SECONDS
        self.cache_seconds = (
            cache_seconds if cache_seconds is not None else settings.EXCHANGE_RATE_CACHE_SECONDS
        )
        self.fail_open = fail_open if fail_open is not None else settings.EXCHANGE_RATE_FAIL_OPEN

    # =========================================================================
    # Rate
    # =========================================================================

    def rate(self) -> Decimal:
        """
        Current USD→PKR rate.

        Returns the cached live rate if present, otherwise fetches one.
        On any fetch, parse or validation failure (including non-positive
        rates) returns the fallback rate when failing open.

        Raises:
            ExchangeRateUnavailableError: Only when failing closed
        """
        logger = self.get_logger()

        if self.cache_seconds:
            cached = cache.get(RATE_CACHE_KEY)
            if cached is not None:
                return Decimal(cached)

        start_time = time.time()
        try:
            live_rate = self._fetch_live_rate()
        except (
            requests.RequestException,
            ValueError,
            KeyError,
            TypeError,
            InvalidOperation,
        ) as exc:
            if not self.fail_open:
                logger.error(
                    "Exchange rate unavailable, failing closed",
                    extra={"error": f"{type(exc).__name__}: {exc}"},
                )
                raise ExchangeRateUnavailableError(
                    "Exchange rate is currently unavailable",
                    details={"pair": "USD/PKR"},
                ) from exc

            logger.warning(
                "Exchange rate fetch failed, using fallback rate %s",
                self.fallback_rate,
                extra={
                    "error": f"{type(exc).__name__}: {exc}",
                    "fallback_rate": str(self.fallback_rate),
                },
            )
            return self.fallback_rate

        logger.info(
            "Fetched live USD to PKR rate %s",
            live_rate,
            extra={
                "rate": str(live_rate),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        if self.cache_seconds:
            cache.set(RATE_CACHE_KEY, str(live_rate), timeout=self.cache_seconds)
        return live_rate

    def _fetch_live_rate(self) -> Decimal:
        response = requests.get(
            self.api_url,
            params={
                "apikey": self.api_key,
                "currencies": PKR,
                "base_currency": USD,
            },
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()

        raw_rate = response.json()["data"][PKR]
        if isinstance(raw_rate, bool):
            raise ValueError("Rate source returned a boolean rate")
        rate = Decimal(str(raw_rate))
        if not rate.is_finite() or rate <= 0:
            raise ValueError(f"Rate source returned invalid rate {raw_rate!r}")
        return rate

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert(self, usd_amount: Decimal | int | float | str) -> ConversionResult:
        """
        Convert a USD amount to PKR at the current rate.

        The converted amount is rounded half-up to 2 decimal places.
        """
        original = Decimal(str(usd_amount))
        exchange_rate = self.rate()
        converted = (original * exchange_rate).quantize(CENTS, rounding=ROUND_HALF_UP)

        self.get_logger().info(
            "Converted %s to %s (rate %s)",
            format_currency_amount(original, USD),
            format_currency_amount(converted, PKR),
            exchange_rate,
        )

        return ConversionResult(
            original_amount=original,
            original_currency=USD,
            converted_amount=converted,
            converted_currency=PKR,
            exchange_rate=exchange_rate,
            provider=RATE_PROVIDER,
            timestamp=timezone.now(),
        )

    @staticmethod
    def needs_conversion(payment_currency: str, account_currency: str) -> bool:
        """True only for a USD payment into a PKR account (case-sensitive)."""
        return payment_currency == USD and account_currency == PKR

    @staticmethod
    def calculate_conversion_risk(usd_amount: Any) -> int:
        """
        Risk score for a converted payment, bucketed on the USD amount.

            < 1000            -> 10
            [1000, 5000)      -> 25
            [5000, 10000)     -> 45
            >= 10000          -> 75

        NaN, negative and non-numeric input score 10; +Infinity scores 75.
        """
        try:
            value = Decimal(str(usd_amount))
        except InvalidOperation:
            return 10

        if value.is_nan() or value < 0:
            return 10
        if value >= 10000:
            return 75
        if value >= 5000:
            return 45
        if value >= 1000:
            return 25
        return 10


def currency_symbol(currency: str) -> str:
    """Display symbol for a currency code; unknown codes are returned as given."""
    return CURRENCY_SYMBOLS.get(currency, currency)


def format_currency_amount(amount: Decimal | int | float, currency: str) -> str:
    """
    Format an amount for logs and admin.

        format_currency_amount(100, "USD")   -> "$100.00"
        format_currency_amount(27850, "PKR") -> "₨27850.00"
        format_currency_amount(100, "EUR")   -> "EUR 100.00"
    """
    value = Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)
    if currency in (USD, PKR):
        return f"{CURRENCY_SYMBOLS[currency]}{value}"
    return f"{currency} {value}"
