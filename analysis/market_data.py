"""
market_data.py
Purpose: market data for the dashboard, served through a read-through cache.
Pseudocode:
1) Normalise the requested symbols.
2) Route every upstream call (quotes, history, news) through the fetcher,
   pairing it with a deterministic fallback.
3) Build derived views (indicators, risk, sector table, portfolio metrics)
   from the cached upstream payloads.
"""
from datetime import datetime, timezone
from typing import Callable, List, Optional

import pandas as pd

from utils.cache_keys import normalize_symbols
from utils.env import get_float_env, get_int_env
from utils.read_through import ReadThroughFetcher
from utils.retry import EmptyResultError, RetryPolicy
from utils.ttl_cache import TTLCache
from .data_fetcher_market import fetch_history, fetch_quotes
from .indicators import compute_risk_metrics, technical_signals
from .market_fallbacks import (
    fallback_history,
    fallback_quotes,
    fallback_sector_performance,
    fallback_sentiment,
)
from .polygon_news import fetch_news, summarize_sentiment

BENCHMARK_SYMBOL = "SPY"

SECTOR_ETFS = {
    "XLK": ("Technology", ["AAPL", "MSFT", "NVDA", "AVGO", "ORCL"]),
    "XLF": ("Finance", ["JPM", "BAC", "WFC", "GS", "MS"]),
    "XLV": ("Healthcare", ["JNJ", "UNH", "PFE", "ABBV", "MRK"]),
    "XLE": ("Energy", ["XOM", "CVX", "COP", "SLB", "EOG"]),
    "XLI": ("Industrial", ["GE", "CAT", "HON", "UNP", "BA"]),
}

# approximate business days per yfinance period string
PERIOD_DAYS = {"1mo": 21, "3mo": 63, "6mo": 126, "1y": 252, "2y": 504}


def build_market_fetcher(
    ttl_seconds: Optional[float] = None,
    max_size: Optional[int] = None,
    retry_policy: Optional[RetryPolicy] = None,
    name: str = "market_data",
) -> ReadThroughFetcher:
    if ttl_seconds is None:
        ttl_seconds = get_int_env("MARKET_CACHE_TTL_SECONDS", 300)
    if max_size is None:
        max_size = get_int_env("MARKET_CACHE_MAX_SIZE", 512)
    if retry_policy is None:
        retry_policy = RetryPolicy(
            max_attempts=max(1, get_int_env("MARKET_RETRY_ATTEMPTS", 3)),
            backoff_seconds=max(0.0, get_float_env("MARKET_RETRY_BACKOFF_SECONDS", 1.0)),
        )
    cache = TTLCache(ttl_seconds=ttl_seconds, max_size=max_size)
    return ReadThroughFetcher(cache, retry_policy=retry_policy, name=name)


def _performance(quote: Optional[dict]) -> Optional[float]:
    if not quote or quote.get("change_percent") is None:
        return None
    return float(quote["change_percent"])


class MarketDataService:
    def __init__(
        self,
        fetcher: ReadThroughFetcher,
        quote_fn: Callable = fetch_quotes,
        history_fn: Callable = fetch_history,
        news_fn: Callable = fetch_news,
    ):
        self.fetcher = fetcher
        self.quote_fn = quote_fn
        self.history_fn = history_fn
        self.news_fn = news_fn

    def get_real_time_data(self, symbols) -> List[dict]:
        symbols = normalize_symbols(symbols)
        if not symbols:
            return []
        return self.fetcher.fetch(
            "quotes",
            symbols,
            lambda: self._produce_quotes(symbols),
            lambda: fallback_quotes(symbols),
        )

    def _produce_quotes(self, symbols: List[str]) -> List[dict]:
        quotes = self.quote_fn(symbols)
        returned = {quote.get("symbol") for quote in quotes or []}
        missing = [symbol for symbol in symbols if symbol not in returned]
        if missing:
            raise EmptyResultError(f"No quote for {', '.join(missing)}")
        return quotes

    def get_historical_data(self, symbol: str, period: str = "1y") -> List[dict]:
        symbol = (symbol or "").strip().upper()
        if not symbol:
            return []
        return self.fetcher.fetch(
            "history",
            {"symbol": symbol, "period": period},
            lambda: self.history_fn(symbol, period),
            lambda: fallback_history(symbol, days=PERIOD_DAYS.get(period, 30)),
        )

    def get_technical_indicators(self, symbol: str) -> List[dict]:
        symbol = (symbol or "").strip().upper()
        bars = self.get_historical_data(symbol, period="3mo")
        timestamp = datetime.now(timezone.utc).isoformat()
        synthetic = any(bar.get("synthetic") for bar in bars)
        indicators = technical_signals([bar["close"] for bar in bars])
        for indicator in indicators:
            indicator["symbol"] = symbol
            indicator["timestamp"] = timestamp
            if synthetic:
                indicator["synthetic"] = True
        return indicators

    def get_market_sentiment(self, symbols) -> List[dict]:
        symbols = normalize_symbols(symbols)
        if not symbols:
            return []

        def _produce():
            articles = self.news_fn(symbols)
            return [summarize_sentiment(symbol, articles) for symbol in symbols]

        return self.fetcher.fetch("sentiment", symbols, _produce, lambda: fallback_sentiment(symbols))

    def get_sector_performance(self) -> List[dict]:
        return self.fetcher.fetch(
            "sectors",
            None,
            self._produce_sector_performance,
            fallback_sector_performance,
        )

    def _produce_sector_performance(self) -> List[dict]:
        universe = list(SECTOR_ETFS)
        for _sector, members in SECTOR_ETFS.values():
            universe.extend(members)
        quotes = {quote["symbol"]: quote for quote in self.quote_fn(normalize_symbols(universe))}

        table = []
        for etf, (sector, members) in SECTOR_ETFS.items():
            performance = _performance(quotes.get(etf))
            if performance is None:
                continue
            ranked = sorted(
                (
                    {"symbol": member, "performance": _performance(quotes.get(member))}
                    for member in members
                    if _performance(quotes.get(member)) is not None
                ),
                key=lambda item: item["performance"],
                reverse=True,
            )
            top = ranked[:2]
            table.append(
                {
                    "sector": sector,
                    "etf": etf,
                    "performance": performance,
                    "top_stocks": top,
                    "bottom_stocks": [item for item in reversed(ranked) if item not in top][:2],
                }
            )
        if not table:
            raise EmptyResultError("No sector ETF quotes available")
        return table

    def _close_frame(self, symbols: List[str], period: str = "1y"):
        columns = {}
        synthetic = False
        for symbol in symbols:
            bars = self.get_historical_data(symbol, period=period)
            if not bars:
                continue
            synthetic = synthetic or any(bar.get("synthetic") for bar in bars)
            columns[symbol] = pd.Series(
                [bar["close"] for bar in bars],
                index=pd.to_datetime([bar["date"] for bar in bars]),
                dtype=float,
            )
        frame = pd.DataFrame(columns).sort_index() if columns else pd.DataFrame()
        return frame, synthetic

    def calculate_risk_metrics(self, symbols) -> dict:
        symbols = normalize_symbols(symbols)
        frame, synthetic = self._close_frame(symbols)
        benchmark_frame, benchmark_synthetic = self._close_frame([BENCHMARK_SYMBOL])
        benchmark = benchmark_frame[BENCHMARK_SYMBOL] if BENCHMARK_SYMBOL in benchmark_frame else None
        metrics = compute_risk_metrics(frame, benchmark=benchmark)
        if synthetic or benchmark_synthetic:
            metrics["synthetic"] = True
        return metrics

    def get_portfolio_metrics(self, symbols) -> dict:
        symbols = normalize_symbols(symbols)
        quotes = self.get_real_time_data(symbols)
        risk_metrics = self.calculate_risk_metrics(symbols)
        changes = [q["change_percent"] for q in quotes if q.get("change_percent") is not None]
        return {
            "total_value": sum(float(q.get("price") or 0) for q in quotes),
            "daily_pnl": (sum(changes) / len(changes)) if changes else 0.0,
            "positions": [
                {
                    "symbol": q["symbol"],
                    "quantity": 0,
                    "average_price": 0,
                    "current_price": q.get("price"),
                    "market_value": 0,
                    "unrealized_pnl": q.get("change_percent"),
                    "realized_pnl": 0,
                }
                for q in quotes
            ],
            "asset_allocation": [],
            "risk_metrics": risk_metrics,
        }

    def get_market_insights(self, symbols) -> dict:
        symbols = normalize_symbols(symbols)
        news = []
        if symbols:
            news = self.fetcher.fetch("news", symbols, lambda: self.news_fn(symbols), list)
        return {
            "market_data": self.get_real_time_data(symbols),
            "news_data": news,
            "economic_data": {},
        }

    def refresh(self, request_type: str, symbols=None) -> Optional[str]:
        """Force an upstream reload for one cached view; returns the serving source."""
        symbols = normalize_symbols(symbols)
        if request_type == "quotes":
            if not symbols:
                return None
            result = self.fetcher.refresh(
                "quotes", symbols, lambda: self._produce_quotes(symbols), lambda: fallback_quotes(symbols)
            )
        elif request_type == "sectors":
            result = self.fetcher.refresh(
                "sectors", None, self._produce_sector_performance, fallback_sector_performance
            )
        else:
            raise ValueError(f"Unsupported refresh type: {request_type}")
        return result.source

    def cache_stats(self) -> dict:
        return self.fetcher.stats()
