# tests/test_indicators.py

import numpy as np
import pandas as pd
import pytest

from analysis.indicators import (
    compute_risk_metrics,
    compute_rsi,
    compute_sma,
    historical_var,
    technical_signals,
)


def test_compute_sma():
    closes = list(range(1, 21))
    assert compute_sma(closes, period=20) == pytest.approx(10.5)
    assert compute_sma(closes[:5], period=20) is None


def test_compute_rsi_extremes():
    rising = [float(i) for i in range(1, 31)]
    falling = list(reversed(rising))
    assert compute_rsi(rising) == pytest.approx(100.0)
    assert compute_rsi(falling) == pytest.approx(0.0)
    assert compute_rsi(rising[:10]) is None


def test_technical_signals_for_uptrend():
    closes = [float(i) for i in range(1, 31)]
    signals = {s["name"]: s for s in technical_signals(closes)}
    assert signals["SMA"]["signal"] == "buy"
    assert signals["RSI"]["signal"] == "sell"


def test_technical_signals_for_downtrend():
    closes = [float(i) for i in range(30, 0, -1)]
    signals = {s["name"]: s for s in technical_signals(closes)}
    assert signals["SMA"]["signal"] == "sell"
    assert signals["RSI"]["signal"] == "buy"


def test_technical_signals_short_series():
    assert technical_signals([]) == []
    assert technical_signals([1.0, 2.0]) == []


def _frame(columns):
    idx = pd.bdate_range("2024-01-02", periods=len(next(iter(columns.values()))))
    return pd.DataFrame(columns, index=idx, dtype=float)


def test_risk_metrics_flat_prices():
    metrics = compute_risk_metrics(_frame({"AAA": [100.0] * 10}))
    assert metrics["volatility"] == 0.0
    assert metrics["sharpe_ratio"] == 0.0
    assert metrics["max_drawdown"] == 0.0
    assert metrics["beta"] == 1.0
    assert metrics["correlation"] == 1.0


def test_risk_metrics_drawdown_and_beta():
    rng = np.random.default_rng(7)
    bench = 100 * np.cumprod(1 + rng.normal(0, 0.01, 120))
    frame = _frame({"AAA": bench, "BBB": bench})
    benchmark = frame["AAA"].copy()

    metrics = compute_risk_metrics(frame, benchmark=benchmark)
    assert metrics["beta"] == pytest.approx(1.0)
    assert metrics["alpha"] == pytest.approx(0.0, abs=1e-9)
    assert metrics["correlation"] == pytest.approx(1.0)
    assert metrics["volatility"] > 0

    crash = compute_risk_metrics(_frame({"AAA": [100.0, 120.0, 60.0, 90.0]}))
    assert crash["max_drawdown"] == pytest.approx(0.5)


def test_risk_metrics_empty_frame():
    metrics = compute_risk_metrics(pd.DataFrame())
    assert metrics == {
        "beta": 1.0,
        "alpha": 0.0,
        "sharpe_ratio": 0.0,
        "volatility": 0.0,
        "max_drawdown": 0.0,
        "correlation": 0.0,
    }


def test_historical_var():
    returns = pd.Series([-0.10, -0.05, 0.0, 0.01, 0.02, 0.03, 0.04, 0.05, 0.06, 0.07])
    tail = historical_var(returns, level=0.9)
    assert tail["var"] > 0
    assert tail["cvar"] >= tail["var"]
    assert historical_var(pd.Series(dtype=float)) == {"var": 0.0, "cvar": 0.0}
