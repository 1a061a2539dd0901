"""Performance analytics for paper trading."""

import csv
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Tuple

from .models import Transaction


@dataclass
class PerformanceMetrics:
    """Performance metrics for trading activity.

    Attributes:
        total_trades: Total number of completed sell trades
        profitable_trades: Number of sells with positive realized PnL
        win_rate: Percentage of profitable trades (0-100)
        realized_pnl: Total realized profit/loss from closed quantities
        total_volume: Sum of trade values before fees
        total_fees: Sum of all fees paid
    """
    total_trades: int
    profitable_trades: int
    win_rate: Decimal
    realized_pnl: Decimal
    total_volume: Decimal
    total_fees: Decimal


class IPerformanceAnalytics(ABC):
    """Interface for performance analytics operations."""

    @abstractmethod
    def calculate_metrics(self, transactions: List[Transaction]) -> PerformanceMetrics:
        ...

    @abstractmethod
    def calculate_realized_pnl(self, transactions: List[Transaction]) -> Decimal:
        ...

    @abstractmethod
    def export_to_csv(self, transactions: List[Transaction], filepath: str) -> None:
        ...

    @abstractmethod
    def sort_transactions_by_timestamp(
        self, transactions: List[Transaction], descending: bool = True
    ) -> List[Transaction]:
        ...


class PerformanceAnalytics(IPerformanceAnalytics):
    """Realized gain/loss reporting over a transaction log.

    Replays the log with the weighted average cost method the ledger uses.
    A sell realizes its net proceeds minus the average cost of the units
    sold, so both buy and sell fees reduce realized PnL. With
    ``include_fees_in_cost_basis=False`` buys contribute their pre-fee
    subtotal to the cost basis, matching a ledger configured the same way.
    """

    def __init__(self, include_fees_in_cost_basis: bool = True) -> None:
        self._include_fees_in_cost_basis = include_fees_in_cost_basis

    def calculate_metrics(self, transactions: List[Transaction]) -> PerformanceMetrics:
        sell_pnls = self._calculate_per_trade_pnl(transactions)
        total_trades = len(sell_pnls)
        profitable_trades = sum(1 for pnl in sell_pnls if pnl > Decimal("0"))

        if total_trades > 0:
            win_rate = (Decimal(profitable_trades) / Decimal(total_trades)) * Decimal("100")
        else:
            win_rate = Decimal("0")

        return PerformanceMetrics(
            total_trades=total_trades,
            profitable_trades=profitable_trades,
            win_rate=win_rate,
            realized_pnl=sum(sell_pnls, Decimal("0")),
            total_volume=sum((txn.subtotal for txn in transactions), Decimal("0")),
            total_fees=sum((txn.fee for txn in transactions), Decimal("0")),
        )

    def calculate_realized_pnl(self, transactions: List[Transaction]) -> Decimal:
        return sum(self._calculate_per_trade_pnl(transactions), Decimal("0"))

    def _calculate_per_trade_pnl(self, transactions: List[Transaction]) -> List[Decimal]:
        """Realized PnL of each sell, in chronological order.

        Transactions with equal timestamps are replayed in the order given.
        """
        # symbol -> (quantity held, cost of quantity held)
        cost_basis: Dict[str, Tuple[Decimal, Decimal]] = {}
        sell_pnls: List[Decimal] = []

        for txn in sorted(transactions, key=lambda t: t.timestamp):
            qty, cost = cost_basis.get(txn.symbol, (Decimal("0"), Decimal("0")))

            if txn.action == "BUY":
                buy_cost = txn.total if self._include_fees_in_cost_basis else txn.subtotal
                cost_basis[txn.symbol] = (qty + txn.quantity, cost + buy_cost)
            elif txn.action == "SELL":
                if qty <= 0:
                    # Sell without a recorded buy, e.g. a truncated log
                    sell_pnls.append(Decimal("0"))
                    continue
                avg_cost = cost / qty
                sell_pnls.append(txn.total - avg_cost * txn.quantity)
                remaining = qty - txn.quantity
                if remaining > 0:
                    cost_basis[txn.symbol] = (remaining, avg_cost * remaining)
                else:
                    cost_basis.pop(txn.symbol, None)

        return sell_pnls

    def sort_transactions_by_timestamp(
        self, transactions: List[Transaction], descending: bool = True
    ) -> List[Transaction]:
        return sorted(transactions, key=lambda t: t.timestamp, reverse=descending)

    def export_to_csv(self, transactions: List[Transaction], filepath: str) -> None:
        """Export transaction history to a CSV file, one row per transaction."""
        fieldnames = [
            "id", "symbol", "name", "action", "quantity", "price",
            "fee", "order_type", "exchange", "total", "timestamp",
        ]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
            writer.writeheader()

            for txn in transactions:
                writer.writerow({
                    "id": txn.id,
                    "symbol": txn.symbol,
                    "name": txn.name,
                    "action": txn.action,
                    "quantity": str(txn.quantity),
                    "price": str(txn.price),
                    "fee": str(txn.fee),
                    "order_type": txn.order_type,
                    "exchange": txn.exchange,
                    "total": str(txn.total),
                    "timestamp": txn.timestamp.isoformat(),
                })
