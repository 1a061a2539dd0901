# Storage module
"""Persistence services for portfolio and application state."""

from papertrade.storage.storage import (
    IStorageService,
    InMemoryStorage,
    JsonFileStorage,
    StorageError,
)
from papertrade.storage.base import IPortfolioStore
from papertrade.storage.portfolio_store import (
    DocumentPortfolioStore,
    InMemoryPortfolioStore,
    JsonFilePortfolioStore,
)

__all__ = [
    "IStorageService",
    "InMemoryStorage",
    "JsonFileStorage",
    "StorageError",
    "IPortfolioStore",
    "DocumentPortfolioStore",
    "InMemoryPortfolioStore",
    "JsonFilePortfolioStore",
]
