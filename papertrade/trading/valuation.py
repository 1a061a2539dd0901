"""Live valuation of holdings."""

import logging
from decimal import Decimal
from typing import Dict, List, Sequence

from papertrade.data.providers import IPriceProvider, ProviderUnavailable
from papertrade.data.symbols import resolve_asset_id

from .models import Holding, HoldingView, PortfolioSummary

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return Decimal("0")
    return part / whole * _HUNDRED


def fetch_prices(holdings: Sequence[Holding], price_provider: IPriceProvider) -> Dict[str, Decimal]:
    """Current prices keyed by holding symbol. Symbols without a usable price are left out."""
    asset_ids = {h.symbol: resolve_asset_id(h.symbol) for h in holdings}
    if not asset_ids:
        return {}
    try:
        by_asset = price_provider.get_prices(asset_ids.values())
    except ProviderUnavailable as e:
        logger.warning(f"Price lookup failed, valuing holdings at cost basis: {e}")
        return {}

    prices = {}
    for symbol, asset_id in asset_ids.items():
        price = by_asset.get(asset_id)
        if price is not None and price > 0:
            prices[symbol] = price
    return prices


def value_holding(holding: Holding, price: Decimal | None) -> HoldingView:
    """Value one holding.

    Without a usable price the holding is shown at its average cost basis,
    so its gain/loss reads as zero instead of failing.
    """
    if price is not None and price > 0:
        current_price = price
        current_value = price * holding.quantity
        live = True
    else:
        current_price = holding.avg_cost_basis
        current_value = holding.total_cost
        live = False
    gain_loss = current_value - holding.total_cost
    return HoldingView(
        symbol=holding.symbol,
        name=holding.name,
        quantity=holding.quantity,
        avg_cost_basis=holding.avg_cost_basis,
        total_cost=holding.total_cost,
        current_price=current_price,
        current_value=current_value,
        gain_loss=gain_loss,
        gain_loss_percent=_percent(gain_loss, holding.total_cost),
        price_is_live=live,
        last_updated=holding.last_updated,
    )


def value_holdings(holdings: Sequence[Holding], price_provider: IPriceProvider) -> List[HoldingView]:
    prices = fetch_prices(holdings, price_provider)
    return [value_holding(h, prices.get(h.symbol)) for h in holdings]


def summarize(balance: Decimal, views: List[HoldingView]) -> PortfolioSummary:
    total_value = sum((v.current_value for v in views), Decimal("0"))
    total_cost = sum((v.total_cost for v in views), Decimal("0"))
    total_gain_loss = total_value - total_cost
    return PortfolioSummary(
        balance=balance,
        holdings=views,
        total_value=total_value,
        total_cost=total_cost,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=_percent(total_gain_loss, total_cost),
    )
