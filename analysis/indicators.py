"""
indicators.py
Purpose: technical indicators and portfolio risk statistics.
Pseudocode:
1) Use TA-Lib for SMA and RSI on a close series.
2) Turn the latest SMA/RSI readings into buy/sell/neutral signals.
3) Derive equal-weighted return statistics (volatility, Sharpe, drawdown,
   beta/alpha against a benchmark, VaR/CVaR) with pandas.
"""
import math
from typing import Optional

import numpy as np
import pandas as pd
import talib

TRADING_DAYS_PER_YEAR = 252


def _finite_or_none(value) -> Optional[float]:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _finite_or_zero(value) -> float:
    value = _finite_or_none(value)
    return 0.0 if value is None else value


def compute_sma(closes, period: int = 20) -> Optional[float]:
    """Latest simple moving average, or None with fewer than *period* closes."""
    values = np.asarray(closes, dtype=float)
    if len(values) < period:
        return None
    return _finite_or_none(talib.SMA(values, timeperiod=period)[-1])


def compute_rsi(closes, period: int = 14) -> Optional[float]:
    """Latest RSI, or None when the series is too short to seed it."""
    values = np.asarray(closes, dtype=float)
    if len(values) <= period:
        return None
    return _finite_or_none(talib.RSI(values, timeperiod=period)[-1])


def technical_signals(closes, sma_period: int = 20, rsi_period: int = 14) -> list:
    values = [float(c) for c in closes if c is not None]
    if not values:
        return []
    last_close = values[-1]
    indicators = []

    sma = compute_sma(values, sma_period)
    if sma is not None:
        indicators.append(
            {"name": "SMA", "value": sma, "signal": "buy" if last_close > sma else "sell"}
        )

    rsi = compute_rsi(values, rsi_period)
    if rsi is not None:
        if rsi > 70:
            signal = "sell"
        elif rsi < 30:
            signal = "buy"
        else:
            signal = "neutral"
        indicators.append({"name": "RSI", "value": rsi, "signal": signal})

    return indicators


def portfolio_returns(price_frame: pd.DataFrame) -> pd.Series:
    """Equal-weighted daily returns of the columns in a date-indexed close frame."""
    if price_frame is None or price_frame.empty:
        return pd.Series(dtype=float)
    prices = price_frame.sort_index().astype(float).ffill()
    returns = prices.pct_change(fill_method=None).dropna(how="all")
    return returns.mean(axis=1).dropna()


def _mean_pairwise_correlation(returns: pd.DataFrame) -> float:
    if returns.shape[1] < 2:
        return 1.0
    corr = returns.corr().to_numpy()
    upper = corr[np.triu_indices_from(corr, k=1)]
    upper = upper[np.isfinite(upper)]
    return float(upper.mean()) if upper.size else 0.0


def compute_risk_metrics(
    price_frame: pd.DataFrame,
    benchmark: Optional[pd.Series] = None,
    risk_free_rate: float = 0.0,
) -> dict:
    """
    Risk statistics of an equal-weighted basket.

    Parameters
    ----------
    price_frame : pd.DataFrame
        Daily closes, date index, one column per symbol.
    benchmark : pd.Series, optional
        Daily closes of the benchmark; without it beta is 1.0 and alpha 0.0.
    risk_free_rate : float
        Annual rate subtracted before computing the Sharpe ratio.

    Returns
    -------
    dict
        beta, alpha, sharpe_ratio, volatility, max_drawdown, correlation.
        Anything that cannot be computed is reported as 0.0.
    """
    returns = portfolio_returns(price_frame)
    metrics = {
        "beta": 1.0,
        "alpha": 0.0,
        "sharpe_ratio": 0.0,
        "volatility": 0.0,
        "max_drawdown": 0.0,
        "correlation": 0.0,
    }
    if returns.empty:
        return metrics

    volatility = returns.std(ddof=1) * math.sqrt(TRADING_DAYS_PER_YEAR)
    annual_return = returns.mean() * TRADING_DAYS_PER_YEAR
    metrics["volatility"] = _finite_or_zero(volatility)
    if metrics["volatility"] > 0:
        metrics["sharpe_ratio"] = _finite_or_zero((annual_return - risk_free_rate) / volatility)

    equity = (1 + returns).cumprod()
    drawdown = 1 - equity / equity.cummax()
    metrics["max_drawdown"] = _finite_or_zero(drawdown.max())

    member_returns = price_frame.sort_index().astype(float).ffill().pct_change(fill_method=None).dropna(how="all")
    metrics["correlation"] = _finite_or_zero(_mean_pairwise_correlation(member_returns))

    if benchmark is not None and not benchmark.empty:
        bench_returns = benchmark.sort_index().astype(float).pct_change(fill_method=None)
        aligned = pd.concat([returns, bench_returns], axis=1, join="inner").dropna()
        if len(aligned) >= 2:
            port_r, bench_r = aligned.iloc[:, 0], aligned.iloc[:, 1]
            variance = bench_r.var(ddof=1)
            if variance and math.isfinite(variance):
                beta = port_r.cov(bench_r) / variance
                metrics["beta"] = _finite_or_zero(beta)
                metrics["alpha"] = _finite_or_zero(
                    (port_r.mean() - metrics["beta"] * bench_r.mean()) * TRADING_DAYS_PER_YEAR
                )
    return metrics


def historical_var(returns: pd.Series, level: float = 0.95) -> dict:
    """Historical VaR/CVaR at *level*, expressed as positive loss fractions."""
    clean = pd.Series(returns, dtype=float).dropna()
    if clean.empty:
        return {"var": 0.0, "cvar": 0.0}
    cutoff = clean.quantile(1 - level)
    tail = clean[clean <= cutoff]
    var = max(0.0, -float(cutoff))
    cvar = max(0.0, -float(tail.mean())) if not tail.empty else var
    return {"var": _finite_or_zero(var), "cvar": _finite_or_zero(cvar)}
