from __future__ import annotations

import logging

from utils.cache_keys import normalize_symbols
from utils.env import get_list_env

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

DEFAULT_WARM_SYMBOLS = ["SPY", "BND", "AAPL", "MSFT"]


def warm_market_cache(service, symbols=None) -> dict:
    """Reload watchlist quotes and the sector table so requests hit a warm cache."""
    symbols = normalize_symbols(symbols or get_list_env("CACHE_WARM_SYMBOLS", DEFAULT_WARM_SYMBOLS))
    result = {"symbols": symbols}
    if symbols:
        result["quotes"] = service.refresh("quotes", symbols)
    result["sectors"] = service.refresh("sectors")
    logger.info(
        "Market cache warmed: quotes=%s sectors=%s (%d symbols)",
        result.get("quotes"),
        result["sectors"],
        len(symbols),
    )
    return result
