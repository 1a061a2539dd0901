"""Document-per-account portfolio stores.

Each account is one JSON-compatible document::

    {
        "balance": "10000.00" | null,
        "created_at": "...",
        "holdings": {"BTC": {...}},
        "transactions": [{...}],
        "settings": {...} | null,
        "ai_usage": {...} | null
    }

Mutations are staged on a copy of the document while a per-account lock is
held and written back in a single ``save`` call, which makes a buy or sell
(balance + holding + transaction) all-or-nothing.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import ContextManager, Dict, Iterator, List, Optional

from filelock import FileLock, Timeout

from papertrade.trading.models import Holding, Transaction

from .base import IPortfolioStore
from .serializer import RecordSerializer
from .storage import IStorageService, InMemoryStorage, JsonFileStorage, StorageError

logger = logging.getLogger(__name__)


class DocumentPortfolioStore(IPortfolioStore):
    """Portfolio store over any key/value ``IStorageService``."""

    def __init__(self, storage: IStorageService, key_prefix: str = "account") -> None:
        """Initialize the store.

        Args:
            storage: Key/value backend holding one document per account
            key_prefix: Prefix of the storage key of each account document
        """
        self._storage = storage
        self._key_prefix = key_prefix
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        # account id -> [document, dirty]; only touched while the account lock is held
        self._staged: Dict[str, list] = {}

    def _key(self, account_id: str) -> str:
        return f"{self._key_prefix}_{account_id}"

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock

    def _account_lock(self, account_id: str) -> ContextManager[None]:
        """Lock shared with other processes using the same backend."""
        return nullcontext()

    @staticmethod
    def _empty_document() -> dict:
        return {
            "balance": None,
            "created_at": datetime.now().isoformat(),
            "holdings": {},
            "transactions": [],
            "settings": None,
            "ai_usage": None,
        }

    @contextmanager
    def atomic(self, account_id: str) -> Iterator[None]:
        with self._lock_for(account_id):
            if account_id in self._staged:
                yield
                return

            with self._account_lock(account_id):
                self._staged[account_id] = [self._storage.load(self._key(account_id)), False]
                try:
                    yield
                except BaseException:
                    del self._staged[account_id]
                    logger.debug(f"Rolled back changes to account '{account_id}'")
                    raise
                document, dirty = self._staged.pop(account_id)
                if dirty:
                    self._storage.save(self._key(account_id), document)

    def _read(self, account_id: str) -> Optional[dict]:
        staged = self._staged.get(account_id)
        if staged is not None:
            return staged[0]
        return self._storage.load(self._key(account_id))

    @contextmanager
    def _edit(self, account_id: str) -> Iterator[dict]:
        """Yield the account document for in-place modification."""
        with self.atomic(account_id):
            staged = self._staged[account_id]
            if staged[0] is None:
                staged[0] = self._empty_document()
            yield staged[0]
            staged[1] = True

    def get_account_balance(self, account_id: str) -> Optional[Decimal]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        if doc is None or doc.get("balance") is None:
            return None
        return Decimal(doc["balance"])

    def set_account_balance(self, account_id: str, balance: Decimal) -> None:
        with self._edit(account_id) as doc:
            doc["balance"] = str(balance)

    def get_holding(self, account_id: str, symbol: str) -> Optional[Holding]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        data = (doc or {}).get("holdings", {}).get(symbol)
        return None if data is None else RecordSerializer.holding_from_dict(data)

    def upsert_holding(self, account_id: str, holding: Holding) -> None:
        with self._edit(account_id) as doc:
            doc["holdings"][holding.symbol] = RecordSerializer.holding_to_dict(holding)

    def delete_holding(self, account_id: str, symbol: str) -> None:
        with self._edit(account_id) as doc:
            doc["holdings"].pop(symbol, None)

    def append_transaction(self, account_id: str, transaction: Transaction) -> str:
        with self._edit(account_id) as doc:
            doc["transactions"].append(RecordSerializer.transaction_to_dict(transaction))
        return transaction.id

    def list_holdings(self, account_id: str) -> List[Holding]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        holdings = (doc or {}).get("holdings", {})
        return [RecordSerializer.holding_from_dict(h) for h in holdings.values()]

    def list_transactions(self, account_id: str) -> List[Transaction]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        return [
            RecordSerializer.transaction_from_dict(t)
            for t in (doc or {}).get("transactions", [])
        ]

    def get_settings(self, account_id: str) -> Optional[dict]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        settings = (doc or {}).get("settings")
        return None if settings is None else dict(settings)

    def save_settings(self, account_id: str, settings: dict) -> None:
        with self._edit(account_id) as doc:
            doc["settings"] = dict(settings)

    def get_ai_usage(self, account_id: str) -> Optional[dict]:
        with self._lock_for(account_id):
            doc = self._read(account_id)
        usage = (doc or {}).get("ai_usage")
        return None if usage is None else dict(usage)

    def save_ai_usage(self, account_id: str, usage: dict) -> None:
        with self._edit(account_id) as doc:
            doc["ai_usage"] = dict(usage)

    def reset_account(self, account_id: str, balance: Decimal) -> None:
        with self._edit(account_id) as doc:
            doc["balance"] = str(balance)
            doc["holdings"] = {}
            doc["transactions"] = []


class InMemoryPortfolioStore(DocumentPortfolioStore):
    """Portfolio store kept in process memory."""

    def __init__(self) -> None:
        super().__init__(InMemoryStorage())


class JsonFilePortfolioStore(DocumentPortfolioStore):
    """Portfolio store with one JSON file per account under ``base_path``.

    Each trade holds an ``<account file>.lock`` file lock, so several
    processes (or store instances) can share one data directory without
    losing updates.
    """

    def __init__(self, base_path: str | Path, lock_timeout: float = 10.0) -> None:
        """Initialize the store.

        Args:
            base_path: Data directory, created if missing
            lock_timeout: Seconds to wait for another writer of the same account
        """
        try:
            storage = JsonFileStorage(base_path)
        except OSError as e:
            raise StorageError(f"Cannot use data directory '{base_path}'") from e
        super().__init__(storage)
        self._files = storage
        self._lock_timeout = lock_timeout

    @contextmanager
    def _account_lock(self, account_id: str) -> Iterator[None]:
        lock_path = self._files.path_for(self._key(account_id)).with_suffix(".lock")
        lock = FileLock(str(lock_path), timeout=self._lock_timeout)
        try:
            lock.acquire()
        except Timeout as e:
            logger.error(f"Timed out waiting for lock on account '{account_id}'")
            raise StorageError(f"Account '{account_id}' is locked by another process") from e
        try:
            yield
        finally:
            lock.release()
