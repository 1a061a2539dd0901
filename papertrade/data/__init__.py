"""Market data: price providers, response cache and symbol table."""

from papertrade.data.cache import TTLCache
from papertrade.data.providers import (
    CoinGeckoPriceProvider,
    IPriceProvider,
    ProviderUnavailable,
    StaticPriceProvider,
)
from papertrade.data.symbols import SYMBOL_TO_ID, resolve_asset_id

__all__ = [
    "TTLCache",
    "CoinGeckoPriceProvider",
    "IPriceProvider",
    "ProviderUnavailable",
    "StaticPriceProvider",
    "SYMBOL_TO_ID",
    "resolve_asset_id",
]
