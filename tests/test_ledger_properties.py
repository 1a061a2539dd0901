"""Property-based tests for the portfolio ledger.

Tests balance, holding and transaction bookkeeping of buys and sells using
Hypothesis.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from papertrade.storage import InMemoryPortfolioStore
from papertrade.trading.fees import EXCHANGES
from papertrade.trading.ledger import PortfolioLedger
from papertrade.trading.money import quantize_quantity, quantize_usd
from papertrade.trading.results import OrderRejectionReason, OrderStatus

ACCOUNT = "user-1"
ROUNDING_TOLERANCE = Decimal("0.01")

# Strategies for generating valid test data
small_balance_strategy = st.decimals(
    min_value=Decimal("1000"),
    max_value=Decimal("10000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

positive_quantity_strategy = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("50"),
    places=8,
    allow_nan=False,
    allow_infinity=False
)

positive_price_strategy = st.decimals(
    min_value=Decimal("10"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

# Sells can be as small as 0.00001 units and must still be worth a cent
sell_price_strategy = st.decimals(
    min_value=Decimal("1000"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

fraction_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("1"),
    places=4,
    allow_nan=False,
    allow_infinity=False
)

symbol_strategy = st.sampled_from(["BTC", "ETH", "BNB", "SOL", "ADA"])
exchange_strategy = st.sampled_from(sorted(EXCHANGES))
order_type_strategy = st.sampled_from(["market", "limit"])


def make_ledger(starting_balance=Decimal("10000000")) -> PortfolioLedger:
    return PortfolioLedger(InMemoryPortfolioStore(), starting_balance=starting_balance)


def assert_cost_invariant(holding) -> None:
    expected = holding.avg_cost_basis * holding.quantity
    scale = max(abs(holding.total_cost), Decimal("1"))
    assert abs(holding.total_cost - expected) <= Decimal("1e-6") * scale


@given(balance=small_balance_strategy)
@settings(max_examples=50)
def test_first_access_provisions_starting_balance(balance: Decimal):
    """
    Reading the balance of an unknown account creates it with the starting
    balance, and later reads return the same value.
    """
    ledger = make_ledger(balance)

    assert ledger.get_balance(ACCOUNT) == balance
    assert ledger.get_balance(ACCOUNT) == balance
    assert ledger.get_holdings(ACCOUNT) == []
    assert ledger.get_transactions(ACCOUNT) == []


@given(
    quantity=positive_quantity_strategy,
    price=positive_price_strategy,
    symbol=symbol_strategy,
    exchange=exchange_strategy,
    order_type=order_type_strategy,
)
@settings(max_examples=100)
def test_buy_debits_fee_inclusive_total(
    quantity: Decimal, price: Decimal, symbol: str, exchange: str, order_type: str
):
    """
    For any valid buy, the balance decreases by the transaction total and
    total == quantity * price * (1 + fee rate) up to cent rounding.
    """
    ledger = make_ledger()
    before = ledger.get_balance(ACCOUNT)
    rate = EXCHANGES[exchange].rate_for(order_type)

    result = ledger.execute_buy(ACCOUNT, symbol, symbol, quantity, price, order_type, exchange)

    assert result.status == OrderStatus.EXECUTED, result.message
    txn = result.transaction
    assert ledger.get_balance(ACCOUNT) == before - txn.total
    assert abs(txn.total - quantity * price * (1 + rate)) <= ROUNDING_TOLERANCE
    assert txn.total == quantize_usd(txn.subtotal) + txn.fee
    assert txn.action == "BUY"
    assert txn.price == price
    assert txn.fee >= 0

    holding = ledger.get_holding(ACCOUNT, symbol)
    assert holding is not None
    assert holding.quantity == quantity
    assert holding.total_cost == txn.total
    assert_cost_invariant(holding)


@given(
    balance=small_balance_strategy,
    quantity=st.decimals(min_value=Decimal("1"), max_value=Decimal("10"), places=8),
    price=st.decimals(min_value=Decimal("20000"), max_value=Decimal("100000"), places=2),
    symbol=symbol_strategy,
)
@settings(max_examples=100)
def test_insufficient_balance_rejection(
    balance: Decimal, quantity: Decimal, price: Decimal, symbol: str
):
    """
    A buy whose total exceeds the balance is rejected with
    INSUFFICIENT_BALANCE and leaves balance, holdings and history unchanged.
    """
    ledger = make_ledger(balance)

    result = ledger.execute_buy(ACCOUNT, symbol, symbol, quantity, price)

    assert result.status == OrderStatus.REJECTED
    assert result.rejection_reason == OrderRejectionReason.INSUFFICIENT_BALANCE
    assert result.transaction is None
    assert result.required_amount is not None and result.required_amount > balance
    assert ledger.get_balance(ACCOUNT) == balance
    assert ledger.get_holding(ACCOUNT, symbol) is None
    assert ledger.get_transactions(ACCOUNT) == []


@given(
    buy_quantity=positive_quantity_strategy,
    fraction=fraction_strategy,
    buy_price=positive_price_strategy,
    sell_price=sell_price_strategy,
    symbol=symbol_strategy,
    exchange=exchange_strategy,
    order_type=order_type_strategy,
)
@settings(max_examples=100)
def test_sell_credits_net_proceeds(
    buy_quantity: Decimal,
    fraction: Decimal,
    buy_price: Decimal,
    sell_price: Decimal,
    symbol: str,
    exchange: str,
    order_type: str,
):
    """
    For any valid sell, the balance increases by the transaction total,
    total == quantity * price * (1 - fee rate) up to cent rounding, and the
    holding shrinks by the sold quantity at an unchanged average cost.
    """
    ledger = make_ledger()
    ledger.execute_buy(ACCOUNT, symbol, symbol, buy_quantity, buy_price)
    before = ledger.get_balance(ACCOUNT)
    held = ledger.get_holding(ACCOUNT, symbol)
    sell_quantity = max(quantize_quantity(buy_quantity * fraction), Decimal("0.00000001"))
    rate = EXCHANGES[exchange].rate_for(order_type)

    result = ledger.execute_sell(ACCOUNT, symbol, symbol, sell_quantity, sell_price, order_type, exchange)

    assert result.status == OrderStatus.EXECUTED, result.message
    txn = result.transaction
    assert txn.action == "SELL"
    assert ledger.get_balance(ACCOUNT) == before + txn.total
    assert abs(txn.total - sell_quantity * sell_price * (1 - rate)) <= ROUNDING_TOLERANCE

    holding = ledger.get_holding(ACCOUNT, symbol)
    remaining = buy_quantity - sell_quantity
    if remaining == 0:
        assert holding is None
    else:
        assert holding.quantity == remaining
        assert holding.avg_cost_basis == held.avg_cost_basis
        assert_cost_invariant(holding)


@given(
    buy_quantity=positive_quantity_strategy,
    extra=positive_quantity_strategy,
    price=positive_price_strategy,
    symbol=symbol_strategy,
)
@settings(max_examples=100)
def test_insufficient_holdings_rejection(
    buy_quantity: Decimal, extra: Decimal, price: Decimal, symbol: str
):
    """
    Selling more than is held is rejected with INSUFFICIENT_HOLDINGS and
    leaves the holding and balance unchanged.
    """
    ledger = make_ledger()
    ledger.execute_buy(ACCOUNT, symbol, symbol, buy_quantity, price)
    balance = ledger.get_balance(ACCOUNT)
    before = ledger.get_holding(ACCOUNT, symbol)

    result = ledger.execute_sell(ACCOUNT, symbol, symbol, buy_quantity + extra, price)

    assert result.status == OrderStatus.REJECTED
    assert result.rejection_reason == OrderRejectionReason.INSUFFICIENT_HOLDINGS
    assert ledger.get_balance(ACCOUNT) == balance
    assert ledger.get_holding(ACCOUNT, symbol) == before
    assert len(ledger.get_transactions(ACCOUNT)) == 1


@given(
    quantity=positive_quantity_strategy,
    price=positive_price_strategy,
    symbol=symbol_strategy,
)
@settings(max_examples=100)
def test_selling_full_quantity_removes_holding(quantity: Decimal, price: Decimal, symbol: str):
    """Selling exactly the held quantity deletes the holding instead of keeping it at zero."""
    ledger = make_ledger()
    ledger.execute_buy(ACCOUNT, symbol, symbol, quantity, price)

    result = ledger.execute_sell(ACCOUNT, symbol, symbol, quantity, price)

    assert result.status == OrderStatus.EXECUTED
    assert ledger.get_holding(ACCOUNT, symbol) is None
    assert ledger.get_holdings(ACCOUNT) == []


@given(
    steps=st.lists(
        st.tuples(
            st.sampled_from(["BUY", "SELL"]),
            positive_quantity_strategy,
            fraction_strategy,
            positive_price_strategy,
        ),
        min_size=1,
        max_size=15,
    ),
)
@settings(max_examples=100)
def test_cost_basis_invariant_holds_after_any_sequence(steps):
    """
    After any sequence of buys and sells on one symbol, the holding's
    total_cost equals avg_cost_basis * quantity within 1e-6 relative.
    """
    ledger = make_ledger(Decimal("100000000"))

    for action, quantity, fraction, price in steps:
        holding = ledger.get_holding(ACCOUNT, "BTC")
        if action == "SELL" and holding is not None:
            sell_quantity = max(quantize_quantity(holding.quantity * fraction), Decimal("0.00000001"))
            ledger.execute_sell(ACCOUNT, "BTC", "Bitcoin", sell_quantity, price)
        else:
            ledger.execute_buy(ACCOUNT, "BTC", "Bitcoin", quantity, price)

        holding = ledger.get_holding(ACCOUNT, "BTC")
        if holding is not None:
            assert holding.quantity > 0
            assert_cost_invariant(holding)


@given(
    quantity=positive_quantity_strategy,
    price=positive_price_strategy,
    symbol=symbol_strategy,
)
@settings(max_examples=100)
def test_transaction_record_completeness(quantity: Decimal, price: Decimal, symbol: str):
    """
    Every executed order is recorded with id, symbol, action, quantity,
    price, fee, order type, exchange, total and timestamp.
    """
    ledger = make_ledger()
    transaction = ledger.execute_buy(ACCOUNT, symbol.lower(), "Some Coin", quantity, price).transaction

    assert transaction.id
    assert transaction.symbol == symbol
    assert transaction.name == "Some Coin"
    assert transaction.action in ("BUY", "SELL")
    assert transaction.quantity > 0
    assert transaction.price > 0
    assert transaction.fee >= 0
    assert transaction.order_type == "market"
    assert transaction.exchange == "binance"
    assert isinstance(transaction.timestamp, datetime)

    transactions = ledger.get_transactions(ACCOUNT)
    assert len(transactions) == 1
    assert transactions[0] == transaction
