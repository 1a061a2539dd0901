from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional, Tuple

import certifi

from papertrade.trading.models import DEFAULT_STARTING_BALANCE
from papertrade.trading.money import to_decimal

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class LedgerConfig:
    """Runtime settings, normally read from the environment by ``load_config``."""
    data_dir: Path = field(default_factory=lambda: Path.home() / ".papertrade" / "data")
    starting_balance: Decimal = DEFAULT_STARTING_BALANCE
    include_fees_in_cost_basis: bool = True
    coingecko_api_key: Optional[str] = None
    price_cache_ttl: float = 60.0
    http_timeout: float = 5.0
    premium_user_ids: Tuple[str, ...] = ()
    log_level: str = "WARNING"


def _flag(value: str, name: str) -> bool:
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> LedgerConfig:
    """Build a LedgerConfig from ``PAPERTRADE_*`` variables and ``COINGECKO_API_KEY``.

    Unset variables keep their defaults; malformed ones raise ValueError.
    """
    env = os.environ if environ is None else environ
    cfg = LedgerConfig()

    if env.get("PAPERTRADE_DATA_DIR"):
        cfg.data_dir = Path(env["PAPERTRADE_DATA_DIR"]).expanduser()
    if env.get("PAPERTRADE_STARTING_BALANCE"):
        cfg.starting_balance = to_decimal(env["PAPERTRADE_STARTING_BALANCE"])
        if cfg.starting_balance < 0:
            raise ValueError("PAPERTRADE_STARTING_BALANCE must not be negative")
    if env.get("PAPERTRADE_FEES_IN_COST_BASIS"):
        cfg.include_fees_in_cost_basis = _flag(
            env["PAPERTRADE_FEES_IN_COST_BASIS"], "PAPERTRADE_FEES_IN_COST_BASIS"
        )
    cfg.coingecko_api_key = env.get("COINGECKO_API_KEY") or None
    if env.get("PAPERTRADE_PRICE_CACHE_TTL"):
        cfg.price_cache_ttl = float(env["PAPERTRADE_PRICE_CACHE_TTL"])
    if env.get("PAPERTRADE_HTTP_TIMEOUT"):
        cfg.http_timeout = float(env["PAPERTRADE_HTTP_TIMEOUT"])
    if env.get("PAPERTRADE_PREMIUM_USER_IDS"):
        cfg.premium_user_ids = tuple(
            uid.strip() for uid in env["PAPERTRADE_PREMIUM_USER_IDS"].split(",") if uid.strip()
        )
    if env.get("PAPERTRADE_LOG_LEVEL"):
        cfg.log_level = env["PAPERTRADE_LOG_LEVEL"].strip().upper()
    return cfg


def configure_logging(level: str = "WARNING") -> None:
    """Route package logs to stderr at the given level name."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)


def fix_ssl_env() -> None:
    """Normalize SSL certificate env vars.

    - If SSL_CERT_FILE points to a missing file, use the certifi bundle.
    - If SSL_CERT_DIR points to a missing directory, unset it.
    """
    file = os.environ.get("SSL_CERT_FILE")
    dir_ = os.environ.get("SSL_CERT_DIR")
    if file and not os.path.exists(file):
        os.environ["SSL_CERT_FILE"] = certifi.where()
    if dir_ and not os.path.isdir(dir_):
        os.environ.pop("SSL_CERT_DIR", None)
