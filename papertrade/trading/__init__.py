# Trading module
"""Paper trading components: ledger, fee schedule, order service, valuation and analytics."""

from .models import (
    Holding,
    HoldingView,
    PortfolioSummary,
    TradeAmounts,
    TradingSettings,
    Transaction,
)
from .fees import (
    EXCHANGES,
    ExchangeFee,
    UnknownExchangeError,
    calculate_fee,
    calculate_net_amount,
    get_exchange,
    simulate_slippage,
)
from .results import OrderStatus, OrderRejectionReason, OrderResult
from .ledger import IPortfolioLedger, PortfolioLedger
from .orders import IOrderService, OrderService
from .analytics import (
    PerformanceMetrics,
    IPerformanceAnalytics,
    PerformanceAnalytics,
)

__all__ = [
    "Holding",
    "HoldingView",
    "PortfolioSummary",
    "TradeAmounts",
    "TradingSettings",
    "Transaction",
    "EXCHANGES",
    "ExchangeFee",
    "UnknownExchangeError",
    "calculate_fee",
    "calculate_net_amount",
    "get_exchange",
    "simulate_slippage",
    "OrderStatus",
    "OrderRejectionReason",
    "OrderResult",
    "IPortfolioLedger",
    "PortfolioLedger",
    "IOrderService",
    "OrderService",
    "PerformanceMetrics",
    "IPerformanceAnalytics",
    "PerformanceAnalytics",
]
