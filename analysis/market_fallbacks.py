"""
market_fallbacks.py
Purpose: synthetic-but-plausible payloads served when upstream data is unavailable.

Every generator is seeded from the request it stands in for, so the same
inputs always produce the same numbers. Payloads carry ``"synthetic": True``.
"""
import zlib
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

SENTIMENTS = ("positive", "negative", "neutral")

FALLBACK_SECTORS = [
    {
        "sector": "Technology",
        "etf": "XLK",
        "top_stocks": [{"symbol": "AAPL", "performance": 5.2}, {"symbol": "MSFT", "performance": 4.8}],
        "bottom_stocks": [{"symbol": "INTC", "performance": -2.1}, {"symbol": "AMD", "performance": -1.8}],
    },
    {
        "sector": "Finance",
        "etf": "XLF",
        "top_stocks": [{"symbol": "JPM", "performance": 3.5}, {"symbol": "BAC", "performance": 3.2}],
        "bottom_stocks": [{"symbol": "GS", "performance": -1.5}, {"symbol": "MS", "performance": -1.2}],
    },
    {
        "sector": "Healthcare",
        "etf": "XLV",
        "top_stocks": [{"symbol": "JNJ", "performance": 4.1}, {"symbol": "PFE", "performance": 3.9}],
        "bottom_stocks": [{"symbol": "ABBV", "performance": -2.3}, {"symbol": "BMY", "performance": -1.9}],
    },
]


def _rng(*parts) -> np.random.Generator:
    seed = zlib.crc32(":".join(str(p) for p in parts).encode("utf-8"))
    return np.random.default_rng(seed)


def _as_of(as_of: Optional[datetime]) -> datetime:
    return as_of or datetime.now(timezone.utc)


def fallback_quotes(symbols: Iterable[str], as_of: Optional[datetime] = None) -> List[dict]:
    timestamp = _as_of(as_of).isoformat()
    quotes = []
    for symbol in symbols:
        rng = _rng("quotes", symbol)
        price = round(float(rng.uniform(20, 1000)), 2)
        change_percent = round(float(rng.uniform(-2, 2)), 4)
        previous_close = round(price / (1 + change_percent / 100), 2)
        quotes.append(
            {
                "symbol": symbol,
                "price": price,
                "previous_close": previous_close,
                "change": round(price - previous_close, 4),
                "change_percent": change_percent,
                "volume": int(rng.integers(100_000, 5_000_000)),
                "timestamp": timestamp,
                "synthetic": True,
            }
        )
    return quotes


def fallback_history(symbol: str, days: int = 30, as_of: Optional[datetime] = None) -> List[dict]:
    """Geometric random walk of *days* business-day closes ending at *as_of*."""
    days = max(1, int(days))
    rng = _rng("history", symbol)
    start_price = float(rng.uniform(20, 1000))
    returns = rng.normal(0.0004, 0.015, size=days)
    closes = start_price * np.cumprod(1 + returns)
    volumes = rng.integers(100_000, 5_000_000, size=days)
    end = pd.Timestamp(_as_of(as_of))
    if end.tzinfo is not None:
        end = end.tz_convert(None)
    end = end.normalize()
    dates = pd.bdate_range(end=end, periods=days)
    return [
        {
            "symbol": symbol,
            "date": date.strftime("%Y-%m-%d"),
            "close": round(float(close), 2),
            "volume": int(volume),
            "synthetic": True,
        }
        for date, close, volume in zip(dates, closes, volumes)
    ]


def fallback_sentiment(symbols: Iterable[str], as_of: Optional[datetime] = None) -> List[dict]:
    timestamp = _as_of(as_of).isoformat()
    payload = []
    for symbol in symbols:
        rng = _rng("sentiment", symbol)
        payload.append(
            {
                "symbol": symbol,
                "sentiment": SENTIMENTS[int(rng.integers(0, len(SENTIMENTS)))],
                "confidence": round(float(rng.uniform(0.5, 0.9)), 4),
                "sources": int(rng.integers(1, 6)),
                "timestamp": timestamp,
                "synthetic": True,
            }
        )
    return payload


def fallback_sector_performance() -> List[dict]:
    payload = []
    for sector in FALLBACK_SECTORS:
        rng = _rng("sectors", sector["sector"])
        payload.append(
            {
                "sector": sector["sector"],
                "etf": sector["etf"],
                "performance": round(float(rng.uniform(-5, 5)), 4),
                "top_stocks": [dict(stock) for stock in sector["top_stocks"]],
                "bottom_stocks": [dict(stock) for stock in sector["bottom_stocks"]],
                "synthetic": True,
            }
        )
    return payload
