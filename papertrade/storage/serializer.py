"""Conversion of ledger records to and from JSON-compatible dictionaries."""

from datetime import datetime
from decimal import Decimal

from papertrade.trading.models import Holding, Transaction


class RecordSerializer:
    """Serializer for holdings and transactions.

    Decimals are stored as strings and timestamps as ISO-8601 text so that
    no precision is lost through JSON.
    """

    @staticmethod
    def holding_to_dict(holding: Holding) -> dict:
        return {
            "symbol": holding.symbol,
            "name": holding.name,
            "quantity": str(holding.quantity),
            "avg_cost_basis": str(holding.avg_cost_basis),
            "total_cost": str(holding.total_cost),
            "last_updated": holding.last_updated.isoformat(),
        }

    @staticmethod
    def holding_from_dict(data: dict) -> Holding:
        return Holding(
            symbol=data["symbol"],
            name=data.get("name", data["symbol"]),
            quantity=Decimal(data["quantity"]),
            avg_cost_basis=Decimal(data["avg_cost_basis"]),
            total_cost=Decimal(data["total_cost"]),
            last_updated=datetime.fromisoformat(data["last_updated"]),
        )

    @staticmethod
    def transaction_to_dict(txn: Transaction) -> dict:
        return {
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
        }

    @staticmethod
    def transaction_from_dict(data: dict) -> Transaction:
        return Transaction(
            id=data["id"],
            symbol=data["symbol"],
            name=data.get("name", data["symbol"]),
            action=data["action"],
            quantity=Decimal(data["quantity"]),
            price=Decimal(data["price"]),
            fee=Decimal(data["fee"]),
            order_type=data["order_type"],
            exchange=data["exchange"],
            total=Decimal(data["total"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
