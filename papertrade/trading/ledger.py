"""Portfolio ledger for paper trading accounts.

Keeps an account's cash balance, its holdings and its transaction log
consistent across buys and sells. Every trade runs inside
``IPortfolioStore.atomic`` so the balance update, the holding upsert and the
transaction append are applied together or not at all, and two trades on the
same account never interleave.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Mapping, Optional, Tuple

from papertrade.data.providers import IPriceProvider
from papertrade.storage.base import IPortfolioStore, StorageError

from .fees import EXCHANGES, ExchangeFee, UnknownExchangeError, calculate_net_amount
from .models import (
    DEFAULT_EXCHANGE,
    DEFAULT_ORDER_TYPE,
    DEFAULT_STARTING_BALANCE,
    ORDER_TYPES,
    Holding,
    HoldingView,
    PortfolioSummary,
    TradeAmounts,
    TradingSettings,
    Transaction,
    normalize_symbol,
)
from .money import (
    Number,
    quantize_quantity,
    quantize_usd,
    quantize_usd_down,
    quantize_usd_up,
    to_decimal,
)
from .results import OrderRejectionReason, OrderResult, OrderStatus
from .valuation import summarize, value_holdings

logger = logging.getLogger(__name__)


class IPortfolioLedger(ABC):
    """Interface for portfolio ledger operations."""

    @abstractmethod
    def get_balance(self, account_id: str) -> Decimal:
        """Get current cash balance, provisioning the account on first access."""
        ...

    @abstractmethod
    def compute_trade(
        self, quantity: Number, price: Number, order_type: str, exchange: str, side: str
    ) -> TradeAmounts:
        """Compute subtotal, fee and total of a trade without touching state."""
        ...

    @abstractmethod
    def execute_buy(
        self,
        account_id: str,
        symbol: str,
        name: str,
        quantity: Number,
        price: Number,
        order_type: str = DEFAULT_ORDER_TYPE,
        exchange: str = DEFAULT_EXCHANGE,
    ) -> OrderResult:
        """Execute a buy order and update the account."""
        ...

    @abstractmethod
    def execute_sell(
        self,
        account_id: str,
        symbol: str,
        name: str,
        quantity: Number,
        price: Number,
        order_type: str = DEFAULT_ORDER_TYPE,
        exchange: str = DEFAULT_EXCHANGE,
    ) -> OrderResult:
        """Execute a sell order and update the account."""
        ...

    @abstractmethod
    def get_holdings(self, account_id: str) -> List[Holding]:
        ...

    @abstractmethod
    def get_transactions(self, account_id: str) -> List[Transaction]:
        """Get the transaction log, most recent first."""
        ...

    @abstractmethod
    def get_holdings_with_live_valuation(
        self, account_id: str, price_provider: IPriceProvider
    ) -> List[HoldingView]:
        """Value every holding at its current market price."""
        ...

    @abstractmethod
    def reset_account(self, account_id: str, initial_balance: Optional[Number] = None) -> Decimal:
        """Reset an account to a fresh balance with no holdings or history."""
        ...


class PortfolioLedger(IPortfolioLedger):
    """Ledger over an ``IPortfolioStore``.

    Uses the weighted average cost method. By default the fee paid on a buy
    is part of the cost basis (the cost of a buy is its fee-inclusive total);
    pass ``include_fees_in_cost_basis=False`` to track the pre-fee subtotal
    instead.

    Money is rounded to cents (always against the trader) and quantities to
    8 decimal places when a trade is settled. Orders worth less than a cent
    are rejected. Cost basis keeps full precision.
    """

    def __init__(
        self,
        store: IPortfolioStore,
        fee_schedule: Optional[Mapping[str, ExchangeFee]] = None,
        starting_balance: Number = DEFAULT_STARTING_BALANCE,
        include_fees_in_cost_basis: bool = True,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Persistent store for account documents
            fee_schedule: Exchange fee table (default: built-in EXCHANGES)
            starting_balance: Balance of newly provisioned accounts
            include_fees_in_cost_basis: Whether buy fees raise the cost basis
        """
        self._store = store
        self._fee_schedule = EXCHANGES if fee_schedule is None else fee_schedule
        self._starting_balance = quantize_usd(to_decimal(starting_balance))
        if self._starting_balance < 0:
            raise ValueError("Starting balance must not be negative")
        self._include_fees_in_cost_basis = include_fees_in_cost_basis

    @property
    def fee_schedule(self) -> Mapping[str, ExchangeFee]:
        return self._fee_schedule

    @property
    def starting_balance(self) -> Decimal:
        return self._starting_balance

    @property
    def include_fees_in_cost_basis(self) -> bool:
        return self._include_fees_in_cost_basis

    # Balance

    def get_balance(self, account_id: str) -> Decimal:
        with self._store.atomic(account_id):
            return self._provisioned_balance(account_id)

    def _provisioned_balance(self, account_id: str) -> Decimal:
        balance = self._store.get_account_balance(account_id)
        if balance is None:
            balance = self._starting_balance
            self._store.set_account_balance(account_id, balance)
            logger.info(f"Provisioned account '{account_id}' with balance {balance}")
        return balance

    # Trade math

    def compute_trade(
        self, quantity: Number, price: Number, order_type: str, exchange: str, side: str
    ) -> TradeAmounts:
        """Compute subtotal, fee and total of a trade.

        Pure and exact: ``fee = quantity * price * rate`` with the taker rate
        for market orders and the maker rate for limit orders; the total is
        ``subtotal + fee`` for a buy and ``subtotal - fee`` for a sell.

        Raises:
            ValueError: For non-positive quantity or price, or an unknown
                order type or side
            UnknownExchangeError: If the exchange is not in the fee schedule
        """
        return calculate_net_amount(
            to_decimal(quantity),
            to_decimal(price),
            order_type,
            exchange,
            side,
            self._fee_schedule,
        )

    def _settle(
        self, quantity: Decimal, price: Decimal, order_type: str, exchange: str, side: str
    ) -> TradeAmounts:
        """Trade amounts rounded to cents against the trader.

        A buy total is rounded up and sell proceeds are rounded down; the
        fee is what remains, so total == subtotal +/- fee exactly.
        """
        exact = self.compute_trade(quantity, price, order_type, exchange, side)
        subtotal = quantize_usd(exact.subtotal)
        if side == "buy":
            total = quantize_usd_up(exact.total)
            fee = total - subtotal
        else:
            total = quantize_usd_down(exact.total)
            fee = subtotal - total
        return TradeAmounts(subtotal=subtotal, fee=fee, total=total)

    def _check_order(
        self, quantity: Number, price: Number, order_type: str, exchange: str
    ) -> Tuple[Decimal, Decimal, Optional[OrderResult]]:
        try:
            qty = quantize_quantity(to_decimal(quantity))
        except ValueError:
            qty = Decimal("0")
        if qty <= 0:
            return qty, Decimal("0"), OrderResult.rejected(
                OrderRejectionReason.INVALID_QUANTITY,
                "Quantity must be greater than zero",
            )

        try:
            px = to_decimal(price)
        except ValueError:
            px = Decimal("0")
        if px <= 0:
            return qty, px, OrderResult.rejected(
                OrderRejectionReason.INVALID_PRICE,
                "Price must be greater than zero",
            )

        if order_type not in ORDER_TYPES:
            return qty, px, OrderResult.rejected(
                OrderRejectionReason.INVALID_ORDER_TYPE,
                f"Unknown order type: {order_type}",
            )
        if exchange not in self._fee_schedule:
            return qty, px, OrderResult.rejected(
                OrderRejectionReason.UNKNOWN_EXCHANGE,
                f"Unknown exchange: {exchange}",
            )
        if quantize_usd(qty * px) <= 0:
            return qty, px, OrderResult.rejected(
                OrderRejectionReason.INVALID_QUANTITY,
                "Order value must be at least $0.01",
            )
        return qty, px, None

    # Trades

    def execute_buy(
        self,
        account_id: str,
        symbol: str,
        name: str,
        quantity: Number,
        price: Number,
        order_type: str = DEFAULT_ORDER_TYPE,
        exchange: str = DEFAULT_EXCHANGE,
    ) -> OrderResult:
        """Execute a buy order.

        Debits the fee-inclusive total from the balance, creates the holding
        or folds the purchase into its average cost basis, and appends a BUY
        transaction. Rejected with INSUFFICIENT_BALANCE when the total
        exceeds the balance, in which case nothing changes.
        """
        symbol = normalize_symbol(symbol)
        qty, px, rejection = self._check_order(quantity, price, order_type, exchange)
        if rejection is not None:
            return rejection

        amounts = self._settle(qty, px, order_type, exchange, "buy")
        cost = amounts.total if self._include_fees_in_cost_basis else amounts.subtotal

        try:
            with self._store.atomic(account_id):
                balance = self._provisioned_balance(account_id)
                if amounts.total > balance:
                    return OrderResult.rejected(
                        OrderRejectionReason.INSUFFICIENT_BALANCE,
                        f"Insufficient balance. Need ${amounts.total:,.2f} "
                        f"(including ${amounts.fee:,.2f} fee)",
                        required_amount=amounts.total,
                    )

                now = datetime.now()
                existing = self._store.get_holding(account_id, symbol)
                if existing is not None:
                    new_quantity = existing.quantity + qty
                    new_total_cost = existing.total_cost + cost
                    holding = Holding(
                        symbol=symbol,
                        name=existing.name,
                        quantity=new_quantity,
                        avg_cost_basis=new_total_cost / new_quantity,
                        total_cost=new_total_cost,
                        last_updated=now,
                    )
                else:
                    holding = Holding(
                        symbol=symbol,
                        name=name or symbol,
                        quantity=qty,
                        avg_cost_basis=cost / qty,
                        total_cost=cost,
                        last_updated=now,
                    )

                transaction = Transaction(
                    symbol=symbol,
                    name=name or symbol,
                    action="BUY",
                    quantity=qty,
                    price=px,
                    fee=amounts.fee,
                    order_type=order_type,
                    exchange=exchange,
                    total=amounts.total,
                    timestamp=now,
                )
                self._store.set_account_balance(account_id, balance - amounts.total)
                self._store.upsert_holding(account_id, holding)
                self._store.append_transaction(account_id, transaction)
        except StorageError:
            logger.exception(f"Error executing buy of {qty} {symbol} for account '{account_id}'")
            return OrderResult.rejected(OrderRejectionReason.PERSISTENCE_FAILURE, "Transaction failed")

        logger.info(
            f"Account '{account_id}' bought {qty} {symbol} at {px} on {exchange} "
            f"(fee {amounts.fee}, total {amounts.total})"
        )
        return OrderResult(
            status=OrderStatus.EXECUTED,
            transaction=transaction,
            message=f"Purchase successful! Fee: ${amounts.fee:,.2f}",
        )

    def execute_sell(
        self,
        account_id: str,
        symbol: str,
        name: str,
        quantity: Number,
        price: Number,
        order_type: str = DEFAULT_ORDER_TYPE,
        exchange: str = DEFAULT_EXCHANGE,
    ) -> OrderResult:
        """Execute a sell order.

        Credits the proceeds net of fee, reduces the holding at its old
        average cost basis (deleting it when the quantity reaches zero), and
        appends a SELL transaction. The average cost basis itself does not
        change on a sell.
        """
        symbol = normalize_symbol(symbol)
        qty, px, rejection = self._check_order(quantity, price, order_type, exchange)
        if rejection is not None:
            return rejection

        amounts = self._settle(qty, px, order_type, exchange, "sell")

        try:
            with self._store.atomic(account_id):
                holding = self._store.get_holding(account_id, symbol)
                if holding is None:
                    return OrderResult.rejected(
                        OrderRejectionReason.NO_HOLDING,
                        "No holdings to sell",
                    )
                if qty > holding.quantity:
                    return OrderResult.rejected(
                        OrderRejectionReason.INSUFFICIENT_HOLDINGS,
                        f"Insufficient holdings: need {qty}, have {holding.quantity}",
                    )

                balance = self._provisioned_balance(account_id)
                now = datetime.now()
                new_quantity = holding.quantity - qty
                if new_quantity == 0:
                    self._store.delete_holding(account_id, symbol)
                else:
                    self._store.upsert_holding(
                        account_id,
                        Holding(
                            symbol=symbol,
                            name=holding.name,
                            quantity=new_quantity,
                            avg_cost_basis=holding.avg_cost_basis,
                            total_cost=holding.total_cost - qty * holding.avg_cost_basis,
                            last_updated=now,
                        ),
                    )

                transaction = Transaction(
                    symbol=symbol,
                    name=name or holding.name,
                    action="SELL",
                    quantity=qty,
                    price=px,
                    fee=amounts.fee,
                    order_type=order_type,
                    exchange=exchange,
                    total=amounts.total,
                    timestamp=now,
                )
                self._store.set_account_balance(account_id, balance + amounts.total)
                self._store.append_transaction(account_id, transaction)
        except StorageError:
            logger.exception(f"Error executing sell of {qty} {symbol} for account '{account_id}'")
            return OrderResult.rejected(OrderRejectionReason.PERSISTENCE_FAILURE, "Transaction failed")

        logger.info(
            f"Account '{account_id}' sold {qty} {symbol} at {px} on {exchange} "
            f"(fee {amounts.fee}, total {amounts.total})"
        )
        return OrderResult(
            status=OrderStatus.EXECUTED,
            transaction=transaction,
            message=(
                f"Sale successful! Fee: ${amounts.fee:,.2f}. "
                f"Net proceeds: ${amounts.total:,.2f}"
            ),
        )

    # Reads

    def get_holding(self, account_id: str, symbol: str) -> Optional[Holding]:
        return self._store.get_holding(account_id, normalize_symbol(symbol))

    def get_holdings(self, account_id: str) -> List[Holding]:
        return self._store.list_holdings(account_id)

    def get_transactions(self, account_id: str) -> List[Transaction]:
        # Reversing first keeps later appends ahead of earlier ones on equal timestamps
        transactions = list(reversed(self._store.list_transactions(account_id)))
        return sorted(transactions, key=lambda t: t.timestamp, reverse=True)

    def get_holdings_with_live_valuation(
        self, account_id: str, price_provider: IPriceProvider
    ) -> List[HoldingView]:
        """Value every holding at its current market price.

        Read-only. Holdings whose price is unavailable, zero, or whose
        provider fails are valued at their average cost basis.
        """
        return value_holdings(self._store.list_holdings(account_id), price_provider)

    def get_portfolio_summary(
        self, account_id: str, price_provider: IPriceProvider
    ) -> PortfolioSummary:
        """Balance plus live-valued holdings with total gain/loss."""
        balance = self.get_balance(account_id)
        return summarize(balance, self.get_holdings_with_live_valuation(account_id, price_provider))

    # Account maintenance

    def reset_account(self, account_id: str, initial_balance: Optional[Number] = None) -> Decimal:
        """Reset an account.

        Clears all holdings and transactions and sets the balance to
        ``initial_balance`` (default: the ledger's starting balance).
        Trading settings are kept.
        """
        balance = self._starting_balance
        if initial_balance is not None:
            balance = quantize_usd(to_decimal(initial_balance))
        if balance < 0:
            raise ValueError("Initial balance must not be negative")
        self._store.reset_account(account_id, balance)
        logger.info(f"Reset account '{account_id}' to balance {balance}")
        return balance

    def get_settings(self, account_id: str) -> TradingSettings:
        data = self._store.get_settings(account_id)
        return TradingSettings() if data is None else TradingSettings.from_dict(data)

    def update_settings(
        self,
        account_id: str,
        selected_exchange: Optional[str] = None,
        default_order_type: Optional[str] = None,
    ) -> TradingSettings:
        """Merge changes into the account's trading settings.

        Raises:
            UnknownExchangeError: If the exchange is not in the fee schedule
            ValueError: If the order type is unknown
        """
        if selected_exchange is not None and selected_exchange not in self._fee_schedule:
            raise UnknownExchangeError(selected_exchange)
        if default_order_type is not None and default_order_type not in ORDER_TYPES:
            raise ValueError(f"Unknown order type: {default_order_type!r}")

        with self._store.atomic(account_id):
            settings = self.get_settings(account_id)
            if selected_exchange is not None:
                settings.selected_exchange = selected_exchange
            if default_order_type is not None:
                settings.default_order_type = default_order_type
            self._store.save_settings(account_id, settings.to_dict())
        return settings
