"""End-to-end tests of the command line front end over a JSON file store."""

from __future__ import annotations

import csv

import pytest

from papertrade.main import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PAPERTRADE_DATA_DIR",
        "PAPERTRADE_STARTING_BALANCE",
        "PAPERTRADE_FEES_IN_COST_BASIS",
        "PAPERTRADE_PREMIUM_USER_IDS",
        "PAPERTRADE_LOG_LEVEL",
        "COINGECKO_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli(tmp_path, capsys):
    def run(*argv):
        code = main(["--data-dir", str(tmp_path / "data"), *argv])
        return code, capsys.readouterr().out
    return run


def test_new_account_balance(cli):
    assert cli("balance") == (0, "$10,000.00\n")


def test_buy_then_balance_and_holdings(cli):
    code, out = cli("buy", "btc", "0.1", "--price", "50000", "--name", "Bitcoin")
    assert code == 0
    assert "Purchase successful! Fee: $5.00" in out
    assert "total $5,005.00" in out

    assert cli("balance") == (0, "$4,995.00\n")

    code, out = cli("holdings", "--offline")
    assert code == 0
    assert out.startswith("BTC")
    assert "(cost basis)" in out
    assert "P/L $0.00" in out


def test_rejected_buy_exits_nonzero(cli):
    code, out = cli("buy", "BTC", "1", "--price", "50000")

    assert code == 1
    assert "Insufficient balance. Need $50,050.00 (including $50.00 fee)" in out
    assert cli("balance") == (0, "$10,000.00\n")


def test_sell_and_history_export(cli, tmp_path):
    cli("buy", "ETH", "2", "--price", "1000", "--exchange", "kraken")
    code, out = cli("sell", "ETH", "2", "--price", "1100", "--exchange", "kraken", "--order-type", "limit")
    assert code == 0
    assert "Sale successful!" in out

    export = tmp_path / "history.csv"
    code, out = cli("history", "--csv", str(export))
    lines = out.splitlines()
    assert code == 0
    assert "SELL" in lines[0]
    assert "BUY" in lines[1]
    assert "over 1 sells" in out

    with open(export, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["action"] for r in rows] == ["SELL", "BUY"]


def test_summary_offline(cli):
    cli("buy", "SOL", "10", "--price", "100")

    code, out = cli("summary", "--offline")

    assert code == 0
    assert "Cash:        $8,999.00" in out
    assert "Net worth:   $10,000.00" in out


def test_settings_drive_trade_defaults(cli):
    code, out = cli("settings", "--exchange", "coinbase", "--order-type", "limit")
    assert code == 0
    assert "exchange: coinbase  default order type: limit" in out

    code, out = cli("buy", "ADA", "100", "--price", "1")

    assert code == 0
    assert "on coinbase (limit)" in out
    assert "fee $0.40" in out


def test_reset(cli):
    cli("buy", "BTC", "0.1", "--price", "50000")

    assert cli("reset", "--balance", "2500") == (0, "Account reset to $2,500.00\n")
    assert cli("holdings", "--offline") == (0, "No holdings\n")
    assert cli("history") == (0, "No transactions\n")


def test_invalid_number_exits_with_usage_error(cli):
    code, _ = cli("reset", "--balance", "lots")

    assert code == 2


def test_ai_usage_free_trial(cli):
    assert cli("ai-usage", "--record", "analysis")[0] == 0

    code, out = cli("ai-usage", "--record", "analysis")
    assert code == 1
    assert "Free trial used" in out

    code, out = cli("ai-usage", "--reset")
    assert code == 0
    assert "tier: free  analyses: 0  forecasts: 0" in out


def test_ai_usage_premium(cli, monkeypatch):
    monkeypatch.setenv("PAPERTRADE_PREMIUM_USER_IDS", "local")

    cli("ai-usage", "--record", "forecast")
    code, out = cli("ai-usage", "--record", "forecast")

    assert code == 0
    assert "tier: premium  analyses: 0  forecasts: 2" in out


def test_fees_table(cli):
    code, out = cli("fees")

    assert code == 0
    assert "kraken    Kraken        maker 0.16%  taker 0.26%  withdrawal 0.15%" in out
    assert len(out.splitlines()) == 3
