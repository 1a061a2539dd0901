from __future__ import annotations

import pytest

from papertrade.storage import InMemoryPortfolioStore
from papertrade.trading.ledger import PortfolioLedger


@pytest.fixture
def store():
    return InMemoryPortfolioStore()


@pytest.fixture
def ledger(store):
    return PortfolioLedger(store)
