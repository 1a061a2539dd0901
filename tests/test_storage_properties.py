"""Property-based tests for the storage module.

Tests the key/value storage services and record serialization using
Hypothesis.
"""

from __future__ import annotations

import tempfile
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

import pytest
from hypothesis import given, settings, strategies as st

from papertrade.storage import InMemoryStorage, JsonFileStorage, StorageError
from papertrade.storage.serializer import RecordSerializer
from papertrade.trading.models import Holding, Transaction


symbol_strategy = st.sampled_from(["BTC", "ETH", "BNB", "SOL", "ADA"])

quantity_strategy = st.decimals(
    min_value=Decimal("0.00000001"),
    max_value=Decimal("1000"),
    places=8,
    allow_nan=False,
    allow_infinity=False
)

usd_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

timestamp_strategy = st.datetimes(
    min_value=datetime(2020, 1, 1),
    max_value=datetime(2035, 12, 31),
)


@st.composite
def holding_strategy(draw):
    quantity = draw(quantity_strategy)
    total_cost = draw(usd_strategy)
    return Holding(
        symbol=draw(symbol_strategy),
        name=draw(st.text(max_size=20)),
        quantity=quantity,
        avg_cost_basis=total_cost / quantity,
        total_cost=total_cost,
        last_updated=draw(timestamp_strategy),
    )


@st.composite
def transaction_strategy(draw):
    return Transaction(
        symbol=draw(symbol_strategy),
        name=draw(st.text(max_size=20)),
        action=draw(st.sampled_from(["BUY", "SELL"])),
        quantity=draw(quantity_strategy),
        price=draw(usd_strategy),
        fee=draw(usd_strategy),
        order_type=draw(st.sampled_from(["market", "limit"])),
        exchange=draw(st.sampled_from(["binance", "coinbase", "kraken"])),
        total=draw(usd_strategy),
        timestamp=draw(timestamp_strategy),
        id=str(draw(st.uuids())),
    )


@st.composite
def account_document_strategy(draw):
    """Generate account documents shaped like the ones the portfolio store writes."""
    holdings = draw(st.lists(holding_strategy(), max_size=5, unique_by=lambda h: h.symbol))
    transactions = draw(st.lists(transaction_strategy(), max_size=20))
    balance = draw(st.decimals(
        min_value=Decimal("0"),
        max_value=Decimal("10000000"),
        places=2
    ))
    return {
        "balance": str(balance),
        "created_at": draw(timestamp_strategy).isoformat(),
        "holdings": {h.symbol: RecordSerializer.holding_to_dict(h) for h in holdings},
        "transactions": [RecordSerializer.transaction_to_dict(t) for t in transactions],
        "settings": {"selected_exchange": "kraken", "default_order_type": "limit"},
        "ai_usage": None,
    }


@given(document=account_document_strategy())
@settings(max_examples=100, deadline=None)
def test_account_document_round_trip(document: Dict[str, Any]):
    """
    For any account document, saving and loading through the JSON file
    storage and the in-memory storage yields an equal document.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        for storage in (JsonFileStorage(tmpdir), InMemoryStorage()):
            storage.save("account_user-1", document)

            loaded = storage.load("account_user-1")

            assert loaded == document


@given(holding=holding_strategy(), transaction=transaction_strategy())
@settings(max_examples=100)
def test_records_survive_serialization(holding: Holding, transaction: Transaction):
    """Decimals and timestamps keep full precision through the serializer."""
    assert RecordSerializer.holding_from_dict(RecordSerializer.holding_to_dict(holding)) == holding
    assert (
        RecordSerializer.transaction_from_dict(RecordSerializer.transaction_to_dict(transaction))
        == transaction
    )


@given(key=st.text(min_size=1, max_size=50, alphabet=st.characters(whitelist_categories=('L', 'N'))))
@settings(max_examples=50)
def test_storage_delete_removes_data(key: str):
    """Test that delete properly removes stored data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        test_data = {"test": "value"}

        storage.save(key, test_data)
        assert storage.load(key) == test_data

        storage.delete(key)

        assert storage.load(key) is None


def test_storage_load_nonexistent_returns_none(tmp_path):
    assert JsonFileStorage(tmp_path).load("nonexistent_key") is None
    assert InMemoryStorage().load("nonexistent_key") is None


def test_corrupted_file_raises_storage_error(tmp_path):
    storage = JsonFileStorage(tmp_path)
    (tmp_path / "account_user-1.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        storage.load("account_user-1")


@pytest.mark.parametrize("storage_factory", [InMemoryStorage, None])
def test_unserializable_data_raises_storage_error(tmp_path, storage_factory):
    storage = storage_factory() if storage_factory else JsonFileStorage(tmp_path)

    with pytest.raises(StorageError):
        storage.save("bad", {"value": Decimal("1.5")})


def test_failed_save_keeps_previous_document(tmp_path):
    storage = JsonFileStorage(tmp_path)
    storage.save("account_user-1", {"balance": "10000.00"})

    with pytest.raises(StorageError):
        storage.save("account_user-1", {"balance": object()})

    assert storage.load("account_user-1") == {"balance": "10000.00"}
    assert [p.name for p in tmp_path.iterdir()] == ["account_user-1.json"]
