import logging
import os
import sqlite3
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from gemledger.db import (
    get_all_settings,
    get_cached_prices,
    get_rate_table,
    is_price_fresh,
    save_price,
    save_settings,
)
from gemledger.models import RateTable
from gemledger.providers.base import MetalPriceProvider

logger = logging.getLogger(__name__)

# Spot symbols and the per-gram rate setting each one feeds.
SYMBOL_RATE_KEYS = {
    "XAU": "gold_rate_24k",
    "XPD": "palladium_rate",
    "XPT": "platinum_rate",
    "XAG": "silver_rate",
}


class MetalPriceAPIProvider(MetalPriceProvider):
    """
    Provider implementation for metalpriceapi.com.

    The endpoint returns rates in the shape 'metal units per currency unit' for
    the requested base, so each rate is inverted to get price per troy ounce.
    """

    provider_name = "metalpriceapi"
    endpoint = "https://api.metalpriceapi.com/v1/latest"

    def __init__(self, api_key: str | None = None, timeout_seconds: int = 10):
        self.api_key = api_key or os.getenv("METALPRICEAPI_KEY", "")
        self.timeout_seconds = timeout_seconds

    def fetch_latest_per_oz(self, symbols: list[str], currency: str) -> dict[str, float]:
        if not self.api_key:
            raise RuntimeError("Missing METALPRICEAPI_KEY in .env")

        response = requests.get(
            self.endpoint,
            params={
                "api_key": self.api_key,
                "base": currency,
                "currencies": ",".join(symbols),
            },
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()

        payload: dict[str, Any] = response.json()
        if payload.get("success") is False:
            raise RuntimeError(payload.get("error", "Provider returned unsuccessful response"))

        rates = payload.get("rates", {})
        result: dict[str, float] = {}
        for symbol in symbols:
            rate = rates.get(symbol)
            if rate is None:
                continue
            if float(rate) <= 0:
                raise RuntimeError(f"Invalid {symbol} rate from provider")
            result[symbol] = 1 / float(rate)

        return result


class GoldAPIProvider(MetalPriceProvider):
    """
    Provider implementation for gold-api.com.

    GET {base_url}/{symbol} returns a numeric `price` per troy ounce. A
    `currency` field that differs from the requested currency is rejected.
    """

    provider_name = "goldapi"
    endpoint_base = "https://api.gold-api.com/price"

    def __init__(self, api_key: str | None = None, timeout_seconds: int = 10):
        self.api_key = api_key or os.getenv("GOLDAPI_KEY", "")
        self.timeout_seconds = timeout_seconds
        override_base = os.getenv("GOLDAPI_BASE_URL", "").strip()
        base_urls = [override_base] if override_base else [self.endpoint_base]

        fallback_raw = os.getenv("GOLDAPI_FALLBACK_BASE_URLS", "").strip()
        if fallback_raw:
            base_urls.extend(url.strip() for url in fallback_raw.split(",") if url.strip())

        self.base_urls: list[str] = []
        for base_url in base_urls:
            cleaned = base_url.rstrip("/")
            if cleaned and cleaned not in self.base_urls:
                self.base_urls.append(cleaned)

        self.session = requests.Session()
        retry = Retry(
            total=2,
            connect=2,
            read=2,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _fetch_payload(self, symbol: str, headers: dict[str, str]) -> dict[str, Any]:
        last_error: requests.RequestException | ValueError | None = None
        for base_url in self.base_urls:
            try:
                response = self.session.get(
                    f"{base_url}/{symbol}",
                    headers=headers,
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
                return response.json()
            except (requests.RequestException, ValueError) as exc:
                logger.debug("Gold API request to %s failed for %s: %s", base_url, symbol, exc)
                last_error = exc
        raise RuntimeError(
            f"Gold API request failed for {symbol} across configured URLs. Last error: {last_error}"
        )

    def fetch_latest_per_oz(self, symbols: list[str], currency: str) -> dict[str, float]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["x-access-token"] = self.api_key

        result: dict[str, float] = {}
        for symbol in symbols:
            payload = self._fetch_payload(symbol, headers)
            if "price" not in payload:
                raise RuntimeError(f"Missing price field for {symbol} from Gold API")

            payload_currency = str(payload.get("currency", currency)).upper()
            if payload_currency != currency.upper():
                raise RuntimeError(
                    f"Gold API returned {payload_currency} for {symbol}. Expected {currency} pricing."
                )

            price_value = float(payload["price"])
            if price_value <= 0:
                raise RuntimeError(f"Invalid {symbol} price from Gold API")

            result[symbol] = price_value

        return result


def _build_provider_from_env() -> MetalPriceProvider:
    provider_name = os.getenv("PRICE_PROVIDER", "goldapi").strip().lower()
    if provider_name == "metalpriceapi":
        return MetalPriceAPIProvider()
    if provider_name == "goldapi":
        return GoldAPIProvider()
    raise RuntimeError("Unsupported PRICE_PROVIDER. Use 'goldapi' or 'metalpriceapi'.")


def refresh_rate_table(
    conn: sqlite3.Connection,
    force_refresh: bool = False,
    provider: MetalPriceProvider | None = None,
) -> tuple[RateTable, str | None]:
    """
    Returns the configured rate table, refreshing spot-derived rates when stale.

    Fresh spot prices are cached per troy ounce and written into the per-gram
    rate settings. Karat overrides are left alone. If the provider fails, the
    rates already in settings are returned together with a warning message.
    """
    settings = get_all_settings(conn)
    ttl = settings["price_cache_ttl_minutes"]
    currency = settings["currency"]
    symbols = list(SYMBOL_RATE_KEYS)
    cached = get_cached_prices(conn, symbols)

    need_refresh = force_refresh
    for symbol in symbols:
        row = cached.get(symbol)
        if row is None or row["currency"] != currency or not is_price_fresh(row["fetched_at"], ttl):
            need_refresh = True
            break

    warning = None
    if need_refresh:
        try:
            active_provider = provider or _build_provider_from_env()
            fresh = active_provider.fetch_latest_per_oz(symbols, currency)
        except (RuntimeError, requests.RequestException) as exc:
            if cached:
                warning = f"Price API unavailable. Using configured rates. Details: {exc}"
            else:
                warning = f"Price API unavailable and no cached prices yet. Details: {exc}"
            logger.warning(warning)
        else:
            for symbol, value in fresh.items():
                save_price(conn, symbol, value, currency, active_provider.provider_name)
            troy_oz_to_grams = settings["troy_oz_to_grams"]
            save_settings(
                conn,
                {
                    SYMBOL_RATE_KEYS[symbol]: value / troy_oz_to_grams
                    for symbol, value in fresh.items()
                },
            )
            logger.info("Refreshed %d metal rates from %s", len(fresh), active_provider.provider_name)

    return get_rate_table(conn), warning
