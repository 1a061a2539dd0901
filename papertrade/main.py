from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from papertrade.data.cache import TTLCache
from papertrade.data.providers import CoinGeckoPriceProvider, IPriceProvider, StaticPriceProvider
from papertrade.storage import JsonFilePortfolioStore, StorageError
from papertrade.trading.analytics import PerformanceAnalytics
from papertrade.trading.fees import EXCHANGES
from papertrade.trading.ledger import PortfolioLedger
from papertrade.trading.models import ORDER_TYPES
from papertrade.trading.orders import OrderService
from papertrade.trading.results import OrderResult
from papertrade.usage import AIUsageTracker
from papertrade.util.env import LedgerConfig, configure_logging, fix_ssl_env, load_config

logger = logging.getLogger(__name__)


def _usd(value: Decimal) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="papertrade", description="Paper trading ledger")
    parser.add_argument("--account", default="local", help="account id (default: local)")
    parser.add_argument("--data-dir", help="directory of account files (overrides PAPERTRADE_DATA_DIR)")
    parser.add_argument("--log-level", help="logging level (overrides PAPERTRADE_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("balance", help="show cash balance")

    for side in ("buy", "sell"):
        p = sub.add_parser(side, help=f"{side} an asset")
        p.add_argument("symbol")
        p.add_argument("quantity")
        p.add_argument("--price", help="execution price; market orders use the live price when omitted")
        p.add_argument("--name", default="", help="asset display name")
        p.add_argument("--order-type", choices=ORDER_TYPES)
        p.add_argument("--exchange", choices=sorted(EXCHANGES))
        p.add_argument("--slippage", action="store_true", help="simulate market order slippage")

    for name in ("holdings", "summary"):
        p = sub.add_parser(name, help=f"show {name} at live prices")
        p.add_argument("--offline", action="store_true", help="value holdings at cost basis")

    p = sub.add_parser("history", help="show transactions, most recent first")
    p.add_argument("--csv", help="also export the history to this CSV file")

    p = sub.add_parser("settings", help="show or change trading settings")
    p.add_argument("--exchange", choices=sorted(EXCHANGES))
    p.add_argument("--order-type", choices=ORDER_TYPES)

    p = sub.add_parser("reset", help="reset balance and clear holdings and history")
    p.add_argument("--balance", help="new starting balance")

    p = sub.add_parser("ai-usage", help="show or record free-tier AI feature usage")
    p.add_argument("--record", choices=("analysis", "forecast"), help="record one use of a feature")
    p.add_argument("--reset", action="store_true", help="clear the usage counters")

    sub.add_parser("fees", help="show the exchange fee schedule")
    return parser


def _price_provider(cfg: LedgerConfig, offline: bool = False) -> IPriceProvider:
    if offline:
        return StaticPriceProvider()
    return CoinGeckoPriceProvider(
        api_key=cfg.coingecko_api_key,
        timeout_s=cfg.http_timeout,
        cache=TTLCache(default_ttl=cfg.price_cache_ttl),
    )


def _print_result(result: OrderResult) -> int:
    print(result.message)
    if result.success and result.transaction is not None:
        t = result.transaction
        print(f"  {t.action} {t.quantity} {t.symbol} @ {_usd(t.price)} on {t.exchange} ({t.order_type})")
        print(f"  fee {_usd(t.fee)}  total {_usd(t.total)}")
        return 0
    return 1


def _trade(args: argparse.Namespace, cfg: LedgerConfig, ledger: PortfolioLedger) -> int:
    settings = ledger.get_settings(args.account)
    order_type = args.order_type or settings.default_order_type
    exchange = args.exchange or settings.selected_exchange

    if args.price is not None:
        execute = ledger.execute_buy if args.command == "buy" else ledger.execute_sell
        return _print_result(
            execute(args.account, args.symbol, args.name, args.quantity, args.price, order_type, exchange)
        )

    provider = _price_provider(cfg)
    try:
        service = OrderService(ledger, provider, apply_slippage=args.slippage)
        submit = service.submit_buy if args.command == "buy" else service.submit_sell
        result = submit(
            args.account,
            args.symbol,
            args.quantity,
            name=args.name,
            order_type=order_type,
            exchange=exchange,
        )
    finally:
        if isinstance(provider, CoinGeckoPriceProvider):
            provider.close()
    return _print_result(result)


def _show_holdings(args: argparse.Namespace, cfg: LedgerConfig, ledger: PortfolioLedger) -> int:
    provider = _price_provider(cfg, offline=args.offline)
    try:
        summary = ledger.get_portfolio_summary(args.account, provider)
    finally:
        if isinstance(provider, CoinGeckoPriceProvider):
            provider.close()

    if not summary.holdings:
        print("No holdings")
    for h in summary.holdings:
        marker = "" if h.price_is_live else " (cost basis)"
        print(
            f"{h.symbol:<6} {h.quantity:>16} @ {_usd(h.current_price)}{marker}  "
            f"value {_usd(h.current_value)}  P/L {_usd(h.gain_loss)} ({h.gain_loss_percent:.2f}%)"
        )
    if args.command == "summary":
        print(f"Cash:        {_usd(summary.balance)}")
        print(f"Holdings:    {_usd(summary.total_value)}")
        print(f"Net worth:   {_usd(summary.net_worth)}")
        print(f"Gain/loss:   {_usd(summary.total_gain_loss)} ({summary.total_gain_loss_percent:.2f}%)")
    return 0


def _show_history(args: argparse.Namespace, ledger: PortfolioLedger) -> int:
    transactions = ledger.get_transactions(args.account)
    if not transactions:
        print("No transactions")
    for t in transactions:
        print(
            f"{t.timestamp:%Y-%m-%d %H:%M:%S}  {t.action:<4} {t.quantity} {t.symbol} @ {_usd(t.price)}"
            f"  fee {_usd(t.fee)}  total {_usd(t.total)}  {t.exchange}/{t.order_type}"
        )
    analytics = PerformanceAnalytics(ledger.include_fees_in_cost_basis)
    metrics = analytics.calculate_metrics(list(reversed(transactions)))
    if metrics.total_trades:
        print(
            f"Realized P/L {_usd(metrics.realized_pnl)} over {metrics.total_trades} sells "
            f"(win rate {metrics.win_rate:.1f}%), fees paid {_usd(metrics.total_fees)}"
        )
    if args.csv:
        analytics.export_to_csv(transactions, args.csv)
        print(f"Exported {len(transactions)} transactions to {args.csv}")
    return 0


def _ai_usage(args: argparse.Namespace, cfg: LedgerConfig, store: JsonFilePortfolioStore) -> int:
    tracker = AIUsageTracker(store, cfg.premium_user_ids)
    if args.reset:
        tracker.reset(args.account)
    if args.record:
        check = tracker.can_use_analysis if args.record == "analysis" else tracker.can_use_forecast
        decision = check(args.account)
        if not decision.allowed:
            print(decision.reason)
            return 1
        record = tracker.record_analysis if args.record == "analysis" else tracker.record_forecast
        record(args.account)

    usage = tracker.get_usage(args.account)
    tier = "premium" if tracker.is_premium(args.account) else "free"
    print(f"tier: {tier}  analyses: {usage.analysis_count}  forecasts: {usage.forecast_count}")
    return 0


def run(args: argparse.Namespace, cfg: LedgerConfig) -> int:
    if args.command == "fees":
        for key, fee in EXCHANGES.items():
            print(
                f"{key:<9} {fee.name:<13} maker {fee.maker_fee * 100:.2f}%  "
                f"taker {fee.taker_fee * 100:.2f}%  withdrawal {fee.withdrawal_fee * 100:.2f}%"
            )
        return 0

    store = JsonFilePortfolioStore(cfg.data_dir)
    ledger = PortfolioLedger(
        store,
        starting_balance=cfg.starting_balance,
        include_fees_in_cost_basis=cfg.include_fees_in_cost_basis,
    )

    if args.command == "balance":
        print(_usd(ledger.get_balance(args.account)))
        return 0
    if args.command in ("buy", "sell"):
        return _trade(args, cfg, ledger)
    if args.command in ("holdings", "summary"):
        return _show_holdings(args, cfg, ledger)
    if args.command == "history":
        return _show_history(args, ledger)
    if args.command == "settings":
        if args.exchange or args.order_type:
            settings = ledger.update_settings(args.account, args.exchange, args.order_type)
        else:
            settings = ledger.get_settings(args.account)
        print(f"exchange: {settings.selected_exchange}  default order type: {settings.default_order_type}")
        return 0
    if args.command == "reset":
        balance = ledger.reset_account(args.account, args.balance)
        print(f"Account reset to {_usd(balance)}")
        return 0
    if args.command == "ai-usage":
        return _ai_usage(args, cfg, store)
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = load_config()
    except ValueError as e:
        parser.error(str(e))
    if args.data_dir:
        cfg.data_dir = Path(args.data_dir).expanduser()
    configure_logging(args.log_level or cfg.log_level)
    fix_ssl_env()

    try:
        return run(args, cfg)
    except StorageError as e:
        logger.error(f"Storage failure: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
