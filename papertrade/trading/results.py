"""Outcome types of trade requests."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .models import Transaction


class OrderStatus(Enum):
    """Status of an order after submission."""
    EXECUTED = "executed"
    REJECTED = "rejected"


class OrderRejectionReason(Enum):
    """Reason for order rejection."""
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NO_HOLDING = "no_holding"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_PRICE = "invalid_price"
    INVALID_ORDER_TYPE = "invalid_order_type"
    UNKNOWN_EXCHANGE = "unknown_exchange"
    NO_PRICE_DATA = "no_price_data"
    PERSISTENCE_FAILURE = "persistence_failure"


@dataclass
class OrderResult:
    """Result of an order submission.

    Attributes:
        status: EXECUTED or REJECTED
        transaction: The transaction record if the order was executed
        rejection_reason: The reason for rejection if the order was rejected
        message: Human-readable message describing the result
        required_amount: USD the order needed, set on INSUFFICIENT_BALANCE
    """
    status: OrderStatus
    transaction: Optional[Transaction] = None
    rejection_reason: Optional[OrderRejectionReason] = None
    message: str = ""
    required_amount: Optional[Decimal] = None

    @property
    def success(self) -> bool:
        return self.status is OrderStatus.EXECUTED

    @classmethod
    def rejected(
        cls,
        reason: OrderRejectionReason,
        message: str,
        required_amount: Optional[Decimal] = None,
    ) -> "OrderResult":
        return cls(
            status=OrderStatus.REJECTED,
            rejection_reason=reason,
            message=message,
            required_amount=required_amount,
        )
