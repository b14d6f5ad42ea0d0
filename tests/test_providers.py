"""
Tests for spot price providers and the cached rate refresh.
"""

import pytest
import requests

from gemledger.db import get_cached_prices, get_rate_table, save_settings
from gemledger.providers import GoldAPIProvider, MetalPriceAPIProvider, MetalPriceProvider, refresh_rate_table

TROY_OZ = 31.1034768


class FakeProvider(MetalPriceProvider):
    provider_name = "fake"

    def __init__(self, prices=None, error=None):
        self.prices = prices or {}
        self.error = error
        self.calls = 0

    def fetch_latest_per_oz(self, symbols, currency):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {symbol: price for symbol, price in self.prices.items() if symbol in symbols}


SPOT = {"XAU": 700000.0, "XPD": 280000.0, "XPT": 290000.0, "XAG": 8000.0}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class TestRefreshRateTable:
    def test_spot_prices_become_per_gram_rates(self, conn):
        provider = FakeProvider(SPOT)

        rates, warning = refresh_rate_table(conn, provider=provider)

        assert warning is None
        assert rates.gold_rate_24k == pytest.approx(700000 / TROY_OZ)
        assert rates.silver_rate == pytest.approx(8000 / TROY_OZ)
        assert get_cached_prices(conn, ["XAU"])["XAU"]["provider"] == "fake"

    def test_fresh_cache_skips_provider(self, conn):
        provider = FakeProvider(SPOT)
        refresh_rate_table(conn, provider=provider)

        refresh_rate_table(conn, provider=provider)
        assert provider.calls == 1

        refresh_rate_table(conn, force_refresh=True, provider=provider)
        assert provider.calls == 2

    def test_provider_failure_keeps_configured_rates(self, conn):
        provider = FakeProvider(error=RuntimeError("quota exceeded"))

        rates, warning = refresh_rate_table(conn, provider=provider)

        assert "quota exceeded" in warning
        assert rates == get_rate_table(conn)
        assert rates.gold_rate_24k == 20000

    def test_karat_override_survives_refresh(self, conn):
        save_settings(conn, {"gold_rate_21k": 19500})

        rates, _ = refresh_rate_table(conn, provider=FakeProvider(SPOT))

        assert rates.gold_rate("21k") == 19500


class TestMetalPriceAPIProvider:
    def test_rates_are_inverted_to_price_per_oz(self, monkeypatch):
        captured = {}

        def fake_get(url, params, timeout):
            captured.update(params)
            return FakeResponse({"success": True, "rates": {"XAU": 0.0000016, "XAG": 0.000125}})

        monkeypatch.setattr(requests, "get", fake_get)

        prices = MetalPriceAPIProvider(api_key="test-key").fetch_latest_per_oz(["XAU", "XAG"], "PKR")

        assert captured["base"] == "PKR"
        assert prices["XAU"] == pytest.approx(625000)
        assert prices["XAG"] == pytest.approx(8000)

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("METALPRICEAPI_KEY", raising=False)

        with pytest.raises(RuntimeError, match="METALPRICEAPI_KEY"):
            MetalPriceAPIProvider().fetch_latest_per_oz(["XAU"], "PKR")


class TestGoldAPIProvider:
    @pytest.fixture
    def provider(self, monkeypatch):
        monkeypatch.setenv("GOLDAPI_BASE_URL", "https://primary.test/price")
        monkeypatch.setenv("GOLDAPI_FALLBACK_BASE_URLS", "https://backup.test/price/")
        return GoldAPIProvider(api_key="")

    def test_falls_back_to_next_base_url(self, provider, monkeypatch):
        requested = []

        def fake_get(url, headers, timeout):
            requested.append(url)
            if url.startswith("https://primary.test"):
                raise requests.ConnectionError("primary down")
            return FakeResponse({"price": 650000, "currency": "PKR"})

        monkeypatch.setattr(provider.session, "get", fake_get)

        prices = provider.fetch_latest_per_oz(["XAU"], "PKR")

        assert prices == {"XAU": 650000.0}
        assert requested == ["https://primary.test/price/XAU", "https://backup.test/price/XAU"]

    def test_currency_mismatch_rejected(self, provider, monkeypatch):
        monkeypatch.setattr(
            provider.session, "get", lambda url, headers, timeout: FakeResponse({"price": 2300, "currency": "USD"})
        )

        with pytest.raises(RuntimeError, match="USD"):
            provider.fetch_latest_per_oz(["XAU"], "PKR")

    def test_all_urls_failing_raises(self, provider, monkeypatch):
        monkeypatch.setattr(
            provider.session, "get", lambda url, headers, timeout: FakeResponse({}, status_code=503)
        )

        with pytest.raises(RuntimeError, match="across configured URLs"):
            provider.fetch_latest_per_oz(["XAG"], "PKR")
