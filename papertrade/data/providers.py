"""Market data providers used to value holdings and price market orders."""

from __future__ import annotations

import logging
import ssl
import threading
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

import certifi
import httpx

from .cache import TTLCache

logger = logging.getLogger(__name__)

COINGECKO_BASE = "https://api.coingecko.com/api/v3"
COINGECKO_KEY_HEADER = "x-cg-demo-api-key"


class ProviderUnavailable(Exception):
    """Raised when the market data source cannot be reached or answers garbage."""


class IPriceProvider(ABC):
    """Interface for market data providers.

    Prices are keyed by the provider's asset id (e.g., "bitcoin"), see
    ``papertrade.data.symbols.resolve_asset_id``.
    """

    @abstractmethod
    def get_price(self, asset_id: str) -> Optional[Decimal]:
        """Get the current USD price of an asset.

        Returns:
            Current price, or None if the provider has no price for it

        Raises:
            ProviderUnavailable: If the provider cannot be queried
        """
        ...

    def get_prices(self, asset_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Get current prices for several assets; unknown ids are left out."""
        out: Dict[str, Decimal] = {}
        for asset_id in asset_ids:
            price = self.get_price(asset_id)
            if price is not None:
                out[asset_id] = price
        return out


class StaticPriceProvider(IPriceProvider):
    """Provider backed by a price table that callers update directly.

    Used offline and in tests; ``set_available(False)`` makes every lookup
    raise ``ProviderUnavailable``.
    """

    def __init__(self, prices: Optional[Dict[str, Decimal]] = None) -> None:
        self._prices: Dict[str, Decimal] = {}
        self._available = True
        for asset_id, price in (prices or {}).items():
            self.update_price(asset_id, price)

    def update_price(self, asset_id: str, price: Decimal | float | str) -> None:
        self._prices[asset_id.lower()] = Decimal(str(price))

    def set_available(self, available: bool) -> None:
        self._available = available

    def get_price(self, asset_id: str) -> Optional[Decimal]:
        if not self._available:
            raise ProviderUnavailable("static price feed disabled")
        return self._prices.get(asset_id.lower())

    def get_prices_snapshot(self) -> Dict[str, Decimal]:
        """Get a shallow copy of the current price table."""
        return dict(self._prices)


class CoinGeckoPriceProvider(IPriceProvider):
    """CoinGecko ``/simple/price`` client with a per-instance TTL cache."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_s: float = 5.0,
        cache: Optional[TTLCache] = None,
        base_url: str = COINGECKO_BASE,
    ) -> None:
        headers = {"accept": "application/json"}
        if api_key:
            headers[COINGECKO_KEY_HEADER] = api_key
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_s,
            headers=headers,
            verify=ssl.create_default_context(cafile=certifi.where()),
        )
        self._cache = cache if cache is not None else TTLCache(default_ttl=60.0)
        self._lock = threading.Lock()

    def get_price(self, asset_id: str) -> Optional[Decimal]:
        return self.get_prices([asset_id]).get(asset_id)

    def get_prices(self, asset_ids: Iterable[str]) -> Dict[str, Decimal]:
        out: Dict[str, Decimal] = {}
        missing = []
        for asset_id in dict.fromkeys(asset_ids):
            cached = self._cache.get(asset_id)
            if cached is not None:
                out[asset_id] = cached
            else:
                missing.append(asset_id)
        if not missing:
            return out

        fetched = self._fetch(missing)
        for asset_id, price in fetched.items():
            self._cache.set(asset_id, price)
        out.update(fetched)
        return out

    def _fetch(self, asset_ids: list) -> Dict[str, Decimal]:
        params = {"ids": ",".join(asset_ids), "vs_currencies": "usd"}
        try:
            with self._lock:
                r = self._client.get("/simple/price", params=params)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"CoinGecko price request failed for {asset_ids}: {e}")
            raise ProviderUnavailable(f"CoinGecko request failed: {e}") from e

        out: Dict[str, Decimal] = {}
        for asset_id, obj in (data or {}).items():
            try:
                price = Decimal(str(obj["usd"]))
            except (KeyError, TypeError, InvalidOperation):
                logger.warning(f"Unexpected CoinGecko payload for '{asset_id}': {obj!r}")
                continue
            out[asset_id] = price
        return out

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CoinGeckoPriceProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
