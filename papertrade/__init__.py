"""Paper trading ledger: virtual balance, holdings and trade history with exchange fees."""

__version__ = "0.3.0"
