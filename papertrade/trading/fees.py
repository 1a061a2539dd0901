"""Exchange fee schedule and trade amount calculation."""

import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional

from .models import ORDER_TYPES, SIDES, TradeAmounts


@dataclass(frozen=True)
class ExchangeFee:
    """Fee rates of one exchange, as fractions (0.001 == 0.1%).

    Attributes:
        name: Display name of the exchange
        maker_fee: Rate applied to limit orders
        taker_fee: Rate applied to market orders
        withdrawal_fee: Rate applied to withdrawals, informational only
    """
    name: str
    maker_fee: Decimal
    taker_fee: Decimal
    withdrawal_fee: Decimal

    def rate_for(self, order_type: str) -> Decimal:
        """Fee rate for an order type: taker for market, maker for limit."""
        if order_type not in ORDER_TYPES:
            raise ValueError(f"Unknown order type: {order_type!r}")
        return self.taker_fee if order_type == "market" else self.maker_fee


EXCHANGES: Dict[str, ExchangeFee] = {
    "binance": ExchangeFee(
        name="Binance",
        maker_fee=Decimal("0.001"),
        taker_fee=Decimal("0.001"),
        withdrawal_fee=Decimal("0.0005"),
    ),
    "coinbase": ExchangeFee(
        name="Coinbase Pro",
        maker_fee=Decimal("0.004"),
        taker_fee=Decimal("0.006"),
        withdrawal_fee=Decimal("0.01"),
    ),
    "kraken": ExchangeFee(
        name="Kraken",
        maker_fee=Decimal("0.0016"),
        taker_fee=Decimal("0.0026"),
        withdrawal_fee=Decimal("0.0015"),
    ),
}


class UnknownExchangeError(KeyError):
    """Raised when an exchange key is not in the fee schedule."""


def get_exchange(
    exchange: str, schedule: Optional[Mapping[str, ExchangeFee]] = None
) -> ExchangeFee:
    """Look up an exchange in the fee schedule (built-in schedule by default)."""
    schedule = EXCHANGES if schedule is None else schedule
    try:
        return schedule[exchange]
    except KeyError:
        raise UnknownExchangeError(exchange) from None


def calculate_fee(
    quantity: Decimal,
    price: Decimal,
    order_type: str,
    exchange: str,
    schedule: Optional[Mapping[str, ExchangeFee]] = None,
) -> Decimal:
    """Fee in USD for trading ``quantity`` units at ``price``."""
    rate = get_exchange(exchange, schedule).rate_for(order_type)
    return quantity * price * rate


def calculate_net_amount(
    quantity: Decimal,
    price: Decimal,
    order_type: str,
    exchange: str,
    side: str,
    schedule: Optional[Mapping[str, ExchangeFee]] = None,
) -> TradeAmounts:
    """Compute subtotal, fee and net total of a trade.

    The fee always works against the trader: a buy costs ``subtotal + fee``,
    a sell yields ``subtotal - fee``. Amounts are exact (not rounded).

    Raises:
        ValueError: If quantity or price is not positive, or the order
            type or side is unknown
        UnknownExchangeError: If the exchange is not in the schedule
    """
    if quantity <= 0:
        raise ValueError("Quantity must be greater than zero")
    if price <= 0:
        raise ValueError("Price must be greater than zero")
    if side not in SIDES:
        raise ValueError(f"Unknown side: {side!r}")

    subtotal = quantity * price
    fee = calculate_fee(quantity, price, order_type, exchange, schedule)
    total = subtotal + fee if side == "buy" else subtotal - fee
    return TradeAmounts(subtotal=subtotal, fee=fee, total=total)


def simulate_slippage(
    price: Decimal, order_type: str, side: str = "buy", rng: Optional[random.Random] = None
) -> Decimal:
    """Apply simulated market-order slippage of 0.1% to 0.3%.

    Limit orders fill at their price. Market buys fill higher and market
    sells fill lower.
    """
    if order_type == "limit":
        return price
    draw = (rng or random).random()
    slippage = Decimal("0.001") + Decimal(str(draw)) * Decimal("0.002")
    if side == "sell":
        return price * (1 - slippage)
    return price * (1 + slippage)
