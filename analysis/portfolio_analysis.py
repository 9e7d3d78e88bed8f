"""
portfolio_analysis.py
Purpose: per-user model portfolio metrics, risk and allocation.

The model portfolio is split into stock, bond and cash sleeves priced with
ETF proxies. Results are cached per user under ``portfolio:<user>:<view>``.
Views built from synthetic market data are never cached; the placeholder
figures below are served instead until live data is back.
"""
from datetime import datetime, timezone
from typing import Optional

import pandas as pd

from utils.env import get_int_env
from utils.read_through import FetchSource, ReadThroughFetcher
from utils.retry import RetryPolicy, UpstreamError
from utils.ttl_cache import TTLCache
from .indicators import historical_var
from .market_data import PERIOD_DAYS, MarketDataService

DEFAULT_PORTFOLIO_VALUE = 100_000.0

# (asset, proxy symbol, weight)
MODEL_PORTFOLIO = (
    ("Stocks", "SPY", 0.60),
    ("Bonds", "BND", 0.30),
    ("Cash", None, 0.10),
)

PLACEHOLDER_ALLOCATION = [
    {"asset": "Stocks", "percentage": 60.0, "value": 60000.0, "daily_change": 900.0, "daily_change_percent": 1.5},
    {"asset": "Bonds", "percentage": 30.0, "value": 30000.0, "daily_change": -150.0, "daily_change_percent": -0.5},
    {"asset": "Cash", "percentage": 10.0, "value": 10000.0, "daily_change": 0.0, "daily_change_percent": 0.0},
]

PLACEHOLDER_RISK = {
    "risk_score": 0.6,
    "max_drawdown": 0.15,
    "var95": 0.08,
    "cvar95": 0.12,
    "correlation_matrix": {
        "Stocks": {"Bonds": -0.3, "Cash": 0.1},
        "Bonds": {"Stocks": -0.3, "Cash": 0.2},
        "Cash": {"Stocks": 0.1, "Bonds": 0.2},
    },
}

# annualised volatility treated as maximum risk
MAX_RISK_VOLATILITY = 0.30


class SyntheticDataError(UpstreamError):
    pass


def build_portfolio_fetcher(ttl_seconds: Optional[float] = None) -> ReadThroughFetcher:
    if ttl_seconds is None:
        ttl_seconds = get_int_env("PORTFOLIO_CACHE_TTL_SECONDS", 300)
    cache = TTLCache(ttl_seconds=ttl_seconds, max_size=get_int_env("PORTFOLIO_CACHE_MAX_SIZE", 1024))
    # market data is already retried underneath
    return ReadThroughFetcher(cache, retry_policy=RetryPolicy(max_attempts=1), name="portfolio")


def _placeholder_metrics() -> dict:
    return {
        "total_value": 100000.0,
        "daily_change": 500.0,
        "daily_change_percent": 0.5,
        "monthly_return": 2.5,
        "yearly_return": 8.0,
        "volatility": 0.15,
        "sharpe_ratio": 1.2,
        "max_drawdown": 0.1,
        "beta": 1.1,
        "last_updated": datetime.now(timezone.utc).isoformat(),
        "synthetic": True,
    }


def _period_return(closes: pd.Series, bars: Optional[int] = None) -> float:
    """Percent change over the last *bars* closes (whole series when None)."""
    if len(closes) < 2:
        return 0.0
    start = closes.iloc[0] if bars is None or bars >= len(closes) else closes.iloc[-bars - 1]
    if not start:
        return 0.0
    return float((closes.iloc[-1] / start - 1) * 100)


class PortfolioAnalysisService:
    def __init__(
        self,
        user_id: str,
        market_data: MarketDataService,
        fetcher: ReadThroughFetcher,
        total_value: float = DEFAULT_PORTFOLIO_VALUE,
    ):
        self.user_id = user_id
        self.market_data = market_data
        self.fetcher = fetcher
        self.total_value = total_value

    @property
    def _proxies(self):
        return [symbol for _asset, symbol, _weight in MODEL_PORTFOLIO if symbol]

    def _fetch_with_source(self, view: str, producer, fallback):
        return self.fetcher.fetch_with_source(f"portfolio:{self.user_id}", view, producer, fallback)

    def _fetch(self, view: str, producer, fallback):
        return self._fetch_with_source(view, producer, fallback).value

    def _allocation_result(self):
        return self._fetch_with_source(
            "allocation",
            self._compute_allocation,
            lambda: [dict(row) for row in PLACEHOLDER_ALLOCATION],
        )

    def get_asset_allocation(self) -> list:
        return self._allocation_result().value

    def _compute_allocation(self) -> list:
        quotes = {q["symbol"]: q for q in self.market_data.get_real_time_data(self._proxies)}
        if any(q.get("synthetic") for q in quotes.values()):
            raise SyntheticDataError("Proxy quotes are synthetic")

        rows = []
        for asset, symbol, weight in MODEL_PORTFOLIO:
            base_value = self.total_value * weight
            change_percent = 0.0
            if symbol is not None:
                quote = quotes.get(symbol)
                if quote is None:
                    raise SyntheticDataError(f"No quote for {symbol}")
                change_percent = float(quote.get("change_percent") or 0.0)
            daily_change = base_value * change_percent / 100
            rows.append(
                {
                    "asset": asset,
                    "value": base_value + daily_change,
                    "daily_change": daily_change,
                    "daily_change_percent": change_percent,
                }
            )

        total = sum(row["value"] for row in rows)
        for row in rows:
            row["percentage"] = (row["value"] / total * 100) if total else 0.0
        return rows

    def _proxy_closes(self) -> dict:
        closes = {}
        for symbol in self._proxies:
            bars = self.market_data.get_historical_data(symbol, period="1y")
            if not bars or any(bar.get("synthetic") for bar in bars):
                raise SyntheticDataError(f"History for {symbol} is synthetic")
            closes[symbol] = pd.Series(
                [bar["close"] for bar in bars],
                index=pd.to_datetime([bar["date"] for bar in bars]),
                dtype=float,
            )
        return closes

    def get_portfolio_metrics(self) -> dict:
        return self._fetch("metrics", self._compute_metrics, _placeholder_metrics)

    def _compute_metrics(self) -> dict:
        # same allocation the analysis response reports
        allocation = self._allocation_result()
        if allocation.source == FetchSource.FALLBACK:
            raise SyntheticDataError("Allocation is a placeholder")
        risk = self.market_data.calculate_risk_metrics(self._proxies)
        if risk.get("synthetic"):
            raise SyntheticDataError("Proxy history is synthetic")
        closes = self._proxy_closes()

        weights = {symbol: weight for _asset, symbol, weight in MODEL_PORTFOLIO if symbol}
        monthly_return = sum(
            weight * _period_return(closes[symbol], bars=PERIOD_DAYS["1mo"]) for symbol, weight in weights.items()
        )
        yearly_return = sum(weight * _period_return(closes[symbol]) for symbol, weight in weights.items())

        total_value = sum(row["value"] for row in allocation.value)
        daily_change = sum(row["daily_change"] for row in allocation.value)
        previous_value = total_value - daily_change
        return {
            "total_value": total_value,
            "daily_change": daily_change,
            "daily_change_percent": (daily_change / previous_value * 100) if previous_value else 0.0,
            "monthly_return": monthly_return,
            "yearly_return": yearly_return,
            "volatility": risk["volatility"],
            "sharpe_ratio": risk["sharpe_ratio"],
            "max_drawdown": risk["max_drawdown"],
            "beta": risk["beta"],
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

    def get_risk_metrics(self) -> dict:
        return self._fetch("risk", self._compute_risk, lambda: dict(PLACEHOLDER_RISK, synthetic=True))

    def _compute_risk(self) -> dict:
        returns = {
            symbol: series.pct_change(fill_method=None).dropna()
            for symbol, series in self._proxy_closes().items()
        }

        frame = pd.DataFrame(returns).dropna()
        stocks, bonds = frame["SPY"], frame["BND"]
        tail = historical_var(stocks, level=0.95)
        volatility = float(stocks.std(ddof=1) * (252 ** 0.5)) if len(stocks) > 1 else 0.0
        equity = (1 + stocks).cumprod()
        max_drawdown = float((1 - equity / equity.cummax()).max()) if not equity.empty else 0.0
        correlation = float(stocks.corr(bonds)) if len(frame) > 1 else 0.0
        if pd.isna(correlation):
            correlation = 0.0

        return {
            "risk_score": round(min(1.0, max(0.0, volatility / MAX_RISK_VOLATILITY)), 4),
            "max_drawdown": max_drawdown,
            "var95": tail["var"],
            "cvar95": tail["cvar"],
            "correlation_matrix": {
                "Stocks": {"Bonds": correlation, "Cash": 0.0},
                "Bonds": {"Stocks": correlation, "Cash": 0.0},
                "Cash": {"Stocks": 0.0, "Bonds": 0.0},
            },
        }

    def get_analysis(self) -> dict:
        return {
            "metrics": self.get_portfolio_metrics(),
            "riskMetrics": self.get_risk_metrics(),
            "allocation": self.get_asset_allocation(),
        }
