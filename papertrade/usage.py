"""Free-tier usage counters for the AI analysis and forecast features.

Each account may run one analysis and one forecast for free; premium
accounts are never limited. Only the bookkeeping lives here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from papertrade.storage.base import IPortfolioStore, StorageError

logger = logging.getLogger(__name__)


@dataclass
class AIUsage:
    """AI feature usage of one account."""
    analysis_used: bool = False
    forecast_used: bool = False
    analysis_count: int = 0
    forecast_count: int = 0
    last_analysis_at: Optional[datetime] = None
    last_forecast_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "analysis_used": self.analysis_used,
            "forecast_used": self.forecast_used,
            "analysis_count": self.analysis_count,
            "forecast_count": self.forecast_count,
            "last_analysis_at": self.last_analysis_at.isoformat() if self.last_analysis_at else None,
            "last_forecast_at": self.last_forecast_at.isoformat() if self.last_forecast_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AIUsage":
        def _ts(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        return cls(
            analysis_used=bool(data.get("analysis_used", False)),
            forecast_used=bool(data.get("forecast_used", False)),
            analysis_count=int(data.get("analysis_count", 0)),
            forecast_count=int(data.get("forecast_count", 0)),
            last_analysis_at=_ts(data.get("last_analysis_at")),
            last_forecast_at=_ts(data.get("last_forecast_at")),
        )


@dataclass(frozen=True)
class UsageDecision:
    allowed: bool
    reason: Optional[str] = None


class AIUsageTracker:
    """Records AI feature usage per account and gates the free tier."""

    def __init__(self, store: IPortfolioStore, premium_user_ids: Iterable[str] = ()) -> None:
        self._store = store
        self._premium = {uid for uid in premium_user_ids if uid}

    def is_premium(self, account_id: str) -> bool:
        return account_id in self._premium

    def get_usage(self, account_id: str) -> AIUsage:
        """Get usage, creating a zeroed record for unknown accounts."""
        if not account_id:
            return AIUsage()
        with self._store.atomic(account_id):
            data = self._store.get_ai_usage(account_id)
            if data is None:
                usage = AIUsage()
                self._store.save_ai_usage(account_id, usage.to_dict())
                return usage
        return AIUsage.from_dict(data)

    def record_analysis(self, account_id: str) -> AIUsage:
        return self._record(account_id, "analysis")

    def record_forecast(self, account_id: str) -> AIUsage:
        return self._record(account_id, "forecast")

    def _record(self, account_id: str, feature: str) -> AIUsage:
        if not account_id:
            return AIUsage()
        with self._store.atomic(account_id):
            data = self._store.get_ai_usage(account_id)
            usage = AIUsage() if data is None else AIUsage.from_dict(data)
            now = datetime.now()
            if feature == "analysis":
                usage.analysis_used = True
                usage.analysis_count += 1
                usage.last_analysis_at = now
            else:
                usage.forecast_used = True
                usage.forecast_count += 1
                usage.last_forecast_at = now
            self._store.save_ai_usage(account_id, usage.to_dict())
        logger.info(f"Recorded AI {feature} use for account '{account_id}'")
        return usage

    def can_use_analysis(self, account_id: str) -> UsageDecision:
        return self._can_use(account_id, "analysis")

    def can_use_forecast(self, account_id: str) -> UsageDecision:
        return self._can_use(account_id, "forecast")

    def _can_use(self, account_id: str, feature: str) -> UsageDecision:
        if not account_id:
            return UsageDecision(False, "Authentication required")
        if self.is_premium(account_id):
            return UsageDecision(True)

        try:
            usage = self.get_usage(account_id)
        except StorageError as e:
            # An unreadable usage record must not lock users out
            logger.error(f"Error checking {feature} permission for '{account_id}': {e}")
            return UsageDecision(True)

        used = usage.analysis_used if feature == "analysis" else usage.forecast_used
        if used:
            label = "AI analysis" if feature == "analysis" else "forecasts"
            return UsageDecision(
                False, f"Free trial used. Upgrade to premium for unlimited {label}."
            )
        return UsageDecision(True)

    def reset(self, account_id: str) -> None:
        """Clear an account's usage (admin operation)."""
        if not account_id:
            return
        self._store.save_ai_usage(account_id, AIUsage().to_dict())
        logger.info(f"Reset AI usage for account '{account_id}'")
