# backend/portfolio_core/services/market_data/symbols.py
"""
Identifier normalization for the coin market and ISIN handling.

The coin market API addresses coins by id ("ripple"), while users enter
tickers ("XRP"), names ("Bitcoin (BTC)") or ids. Precious metals are priced
through gold and silver backed tokens; those token prices stand in for the
bullion spot price per troy ounce, which is an approximation.
"""

import re

SYMBOL_TO_COINGECKO_ID: dict[str, str] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "xrp": "ripple",
    "usdc": "usd-coin",
    "usdt": "tether",
    "bnb": "binancecoin",
    "ada": "cardano",
    "sol": "solana",
    "doge": "dogecoin",
    "dot": "polkadot",
    "matic": "matic-network",
    "shib": "shiba-inu",
    "ltc": "litecoin",
    "avax": "avalanche-2",
    "link": "chainlink",
    "uni": "uniswap",
    "atom": "cosmos",
    "xlm": "stellar",
    "algo": "algorand",
    "vet": "vechain",
    "fil": "filecoin",
    "trx": "tron",
    "near": "near",
    "apt": "aptos",
    "arb": "arbitrum",
    "op": "optimism",
    "inj": "injective-protocol",
    "sui": "sui",
    "sei": "sei-network",
    "pepe": "pepe",
    "wif": "dogwifcoin",
    "bch": "bitcoin-cash",
    "etc": "ethereum-classic",
}

METAL_TO_COINGECKO_ID: dict[str, str] = {
    "gold": "pax-gold",
    "silver": "kinesis-silver",
}

_ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")
_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")
_WHITESPACE = re.compile(r"\s+")


def looks_like_isin(identifier: str) -> bool:
    """Shape check only (country prefix, 9 alphanumerics, check digit)."""
    return bool(_ISIN_PATTERN.match(identifier.strip().upper()))


def coin_id_for(identifier: str) -> str:
    """
    Map a user-entered crypto identifier to a coin market id.

    >>> coin_id_for("Bitcoin (BTC)")
    'bitcoin'
    >>> coin_id_for("XRP")
    'ripple'
    >>> coin_id_for("Render Token")
    'render-token'
    """
    cleaned = _PARENTHETICAL.sub("", identifier.strip()).strip()
    raw_id = _WHITESPACE.sub("-", cleaned.lower())
    return SYMBOL_TO_COINGECKO_ID.get(raw_id, raw_id)


def metal_coin_id_for(identifier: str) -> str | None:
    """Token id standing in for a metal, or None for metals without one."""
    return METAL_TO_COINGECKO_ID.get(identifier.strip().lower())
