"""Persistent store contract consumed by the portfolio ledger."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, ContextManager, List, Optional

from .storage import StorageError

if TYPE_CHECKING:
    from papertrade.trading.models import Holding, Transaction

__all__ = ["IPortfolioStore", "StorageError"]


class IPortfolioStore(ABC):
    """Per-account storage of balance, holdings, transactions and preferences.

    Every method may raise ``StorageError``. Calls made inside
    ``atomic(account_id)`` are applied all together when the block exits
    normally, and not at all when it raises.
    """

    @abstractmethod
    def atomic(self, account_id: str) -> ContextManager[None]:
        """Serialize access to one account and group writes into one unit.

        Blocks may nest for the same account; only the outermost block
        commits.
        """
        ...

    @abstractmethod
    def get_account_balance(self, account_id: str) -> Optional[Decimal]:
        """Current balance, or None if the account has not been provisioned."""
        ...

    @abstractmethod
    def set_account_balance(self, account_id: str, balance: Decimal) -> None:
        ...

    @abstractmethod
    def get_holding(self, account_id: str, symbol: str) -> Optional[Holding]:
        ...

    @abstractmethod
    def upsert_holding(self, account_id: str, holding: Holding) -> None:
        """Create or replace the holding keyed by ``holding.symbol``."""
        ...

    @abstractmethod
    def delete_holding(self, account_id: str, symbol: str) -> None:
        ...

    @abstractmethod
    def append_transaction(self, account_id: str, transaction: Transaction) -> str:
        """Append to the account's transaction log.

        Returns:
            The stored transaction's id
        """
        ...

    @abstractmethod
    def list_holdings(self, account_id: str) -> List[Holding]:
        ...

    @abstractmethod
    def list_transactions(self, account_id: str) -> List[Transaction]:
        """All transactions in the order they were appended."""
        ...

    @abstractmethod
    def get_settings(self, account_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def save_settings(self, account_id: str, settings: dict) -> None:
        ...

    @abstractmethod
    def get_ai_usage(self, account_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def save_ai_usage(self, account_id: str, usage: dict) -> None:
        ...

    @abstractmethod
    def reset_account(self, account_id: str, balance: Decimal) -> None:
        """Drop all holdings and transactions and set a fresh balance."""
        ...
