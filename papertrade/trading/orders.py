"""Order service for paper trading.

This module provides order submission on top of the ledger:
- Trading settings supply the exchange and order type when omitted
- Market orders are priced from the market data provider
- Limit orders are filled at the caller's limit price
"""

import logging
import random
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from papertrade.data.providers import IPriceProvider, ProviderUnavailable
from papertrade.data.symbols import resolve_asset_id

from .fees import simulate_slippage
from .ledger import PortfolioLedger
from .models import ORDER_TYPES, normalize_symbol
from .money import Number, to_decimal
from .results import OrderRejectionReason, OrderResult

logger = logging.getLogger(__name__)


class IOrderService(ABC):
    """Interface for order submission service."""

    @abstractmethod
    def submit_buy(
        self,
        account_id: str,
        symbol: str,
        quantity: Number,
        name: str = "",
        order_type: Optional[str] = None,
        exchange: Optional[str] = None,
        limit_price: Optional[Number] = None,
    ) -> OrderResult:
        """Submit a buy order.

        Returns:
            OrderResult with execution status
        """
        ...

    @abstractmethod
    def submit_sell(
        self,
        account_id: str,
        symbol: str,
        quantity: Number,
        name: str = "",
        order_type: Optional[str] = None,
        exchange: Optional[str] = None,
        limit_price: Optional[Number] = None,
    ) -> OrderResult:
        """Submit a sell order.

        Returns:
            OrderResult with execution status
        """
        ...


class OrderService(IOrderService):
    """Order execution service for paper trading.

    Resolves the execution price and the account's default exchange and
    order type, then hands the trade to the ledger, which validates it
    against the balance and holdings.
    """

    def __init__(
        self,
        ledger: PortfolioLedger,
        price_provider: IPriceProvider,
        apply_slippage: bool = False,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize order service.

        Args:
            ledger: Ledger that executes the trades
            price_provider: Data provider for market order prices
            apply_slippage: Simulate 0.1%-0.3% adverse slippage on market orders
            rng: Random source for slippage
        """
        self._ledger = ledger
        self._price_provider = price_provider
        self._apply_slippage = apply_slippage
        self._rng = rng

    def submit_buy(
        self,
        account_id: str,
        symbol: str,
        quantity: Number,
        name: str = "",
        order_type: Optional[str] = None,
        exchange: Optional[str] = None,
        limit_price: Optional[Number] = None,
    ) -> OrderResult:
        return self._submit("buy", account_id, symbol, quantity, name, order_type, exchange, limit_price)

    def submit_sell(
        self,
        account_id: str,
        symbol: str,
        quantity: Number,
        name: str = "",
        order_type: Optional[str] = None,
        exchange: Optional[str] = None,
        limit_price: Optional[Number] = None,
    ) -> OrderResult:
        return self._submit("sell", account_id, symbol, quantity, name, order_type, exchange, limit_price)

    def _submit(
        self,
        side: str,
        account_id: str,
        symbol: str,
        quantity: Number,
        name: str,
        order_type: Optional[str],
        exchange: Optional[str],
        limit_price: Optional[Number],
    ) -> OrderResult:
        symbol = normalize_symbol(symbol)
        if order_type is None or exchange is None:
            settings = self._ledger.get_settings(account_id)
            order_type = order_type or settings.default_order_type
            exchange = exchange or settings.selected_exchange
        if order_type not in ORDER_TYPES:
            return OrderResult.rejected(
                OrderRejectionReason.INVALID_ORDER_TYPE,
                f"Unknown order type: {order_type}",
            )

        if order_type == "limit":
            if limit_price is None:
                return OrderResult.rejected(
                    OrderRejectionReason.INVALID_PRICE,
                    "Limit orders require a limit price",
                )
            price = limit_price
        else:
            price = self._market_price(symbol)
            if price is None:
                return OrderResult.rejected(
                    OrderRejectionReason.NO_PRICE_DATA,
                    f"No price data available for {symbol}",
                )
            if self._apply_slippage:
                price = simulate_slippage(price, order_type, side, self._rng)

        if side == "buy":
            return self._ledger.execute_buy(account_id, symbol, name, quantity, price, order_type, exchange)
        return self._ledger.execute_sell(account_id, symbol, name, quantity, price, order_type, exchange)

    def _market_price(self, symbol: str) -> Optional[Decimal]:
        asset_id = resolve_asset_id(symbol)
        try:
            price = self._price_provider.get_price(asset_id)
        except ProviderUnavailable as e:
            logger.warning(f"No market price for {symbol} ({asset_id}): {e}")
            return None
        if price is None or price <= 0:
            return None
        return to_decimal(price)
