"""Data models for paper trading."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Literal
import uuid

Action = Literal["BUY", "SELL"]
OrderType = Literal["market", "limit"]
Side = Literal["buy", "sell"]

ORDER_TYPES = ("market", "limit")
SIDES = ("buy", "sell")

DEFAULT_STARTING_BALANCE = Decimal("10000.00")
DEFAULT_EXCHANGE = "binance"
DEFAULT_ORDER_TYPE = "market"


def normalize_symbol(symbol: str) -> str:
    """Normalize an asset ticker to its uppercase holding key."""
    return symbol.strip().upper()


@dataclass
class Holding:
    """A position in one asset symbol.

    Attributes:
        symbol: Uppercase asset ticker (e.g., "BTC")
        name: Display name, informational only
        quantity: Amount of asset held, always positive
        avg_cost_basis: Volume-weighted average USD cost per unit
        total_cost: USD cost of the units still held
        last_updated: Time of the last mutation
    """
    symbol: str
    name: str
    quantity: Decimal
    avg_cost_basis: Decimal
    total_cost: Decimal
    last_updated: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Transaction:
    """An executed trade. Immutable once created.

    Attributes:
        id: Unique transaction identifier (UUID)
        symbol: Asset ticker
        name: Asset display name
        action: "BUY" or "SELL"
        quantity: Amount traded
        price: Quoted execution price per unit, not adjusted for fee
        fee: Fee charged in USD
        order_type: "market" or "limit"
        exchange: Fee schedule key the fee was computed from
        total: USD that moved (buy cost incl. fee, or sell proceeds net of fee)
        timestamp: Time of execution
    """
    symbol: str
    name: str
    action: Action
    quantity: Decimal
    price: Decimal
    fee: Decimal
    order_type: OrderType
    exchange: str
    total: Decimal
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def subtotal(self) -> Decimal:
        """Trade value before fees."""
        return self.quantity * self.price


@dataclass(frozen=True)
class TradeAmounts:
    """USD amounts of a trade: value before fee, fee, and net amount that moves."""
    subtotal: Decimal
    fee: Decimal
    total: Decimal


@dataclass
class TradingSettings:
    """Per-account trading preferences."""
    selected_exchange: str = DEFAULT_EXCHANGE
    default_order_type: OrderType = DEFAULT_ORDER_TYPE

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TradingSettings":
        """Create from dictionary."""
        return cls(
            selected_exchange=data.get("selected_exchange", DEFAULT_EXCHANGE),
            default_order_type=data.get("default_order_type", DEFAULT_ORDER_TYPE),
        )


@dataclass
class HoldingView:
    """A holding valued at a current market price. Derived, never stored."""
    symbol: str
    name: str
    quantity: Decimal
    avg_cost_basis: Decimal
    total_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal
    price_is_live: bool
    last_updated: datetime


@dataclass
class PortfolioSummary:
    """Cash balance plus valued holdings and their aggregate gain/loss."""
    balance: Decimal
    holdings: List[HoldingView]
    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percent: Decimal

    @property
    def net_worth(self) -> Decimal:
        """Cash plus market value of all holdings."""
        return self.balance + self.total_value
