"""Static mapping of asset tickers to CoinGecko coin ids."""

from typing import Dict

SYMBOL_TO_ID: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "SOL": "solana",
    "USDC": "usd-coin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "TRX": "tron",
    "AVAX": "avalanche-2",
    "SHIB": "shiba-inu",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "XLM": "stellar",
}


def resolve_asset_id(symbol: str) -> str:
    """Provider asset id for a ticker; unknown tickers fall back to the lower-cased symbol."""
    symbol = symbol.strip()
    return SYMBOL_TO_ID.get(symbol.upper(), symbol.lower())
