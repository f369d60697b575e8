# backend/tests/services/market_data/test_symbols.py
"""Tests for coin id mapping and ISIN detection."""

import pytest

from portfolio_core.services.market_data.symbols import (
    coin_id_for,
    looks_like_isin,
    metal_coin_id_for,
)


class TestCoinIdFor:

    @pytest.mark.parametrize("identifier,expected", [
        ("BTC", "bitcoin"),
        ("btc", "bitcoin"),
        ("XRP", "ripple"),
        ("Bitcoin (BTC)", "bitcoin"),
        ("  Ethereum  ", "ethereum"),
        ("Render Token", "render-token"),
        ("avalanche-2", "avalanche-2"),
    ])
    def test_mapping(self, identifier, expected):
        assert coin_id_for(identifier) == expected


class TestMetalCoinIdFor:

    def test_known_metals(self):
        assert metal_coin_id_for("Gold") == "pax-gold"
        assert metal_coin_id_for(" silver ") == "kinesis-silver"

    def test_metal_without_token(self):
        assert metal_coin_id_for("rhodium") is None


class TestLooksLikeIsin:

    @pytest.mark.parametrize("identifier", ["IE00B4L5Y983", "us0378331005", "DE0007164600"])
    def test_isin(self, identifier):
        assert looks_like_isin(identifier)

    @pytest.mark.parametrize("identifier", ["AAPL", "SAP.DE", "IE00B4L5Y98X", "IE00B4L5Y9831"])
    def test_not_isin(self, identifier):
        assert not looks_like_isin(identifier)
