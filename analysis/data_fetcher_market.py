"""
data_fetcher_market.py
Purpose: fetch OHLCV data, quotes and daily history from yfinance.
"""
import threading
import time

import numpy as np
import pandas as pd
import yfinance as yf

from utils.env import get_float_env
from utils.retry import EmptyResultError
from utils.serialization import convert_to_python_types

_YF_RATE_LOCK = threading.Lock()
_YF_NEXT_ALLOWED_TS = 0.0


def _is_rate_limit_error(exc: Exception) -> bool:
    name = exc.__class__.__name__
    if name == "YFRateLimitError":
        return True
    message = str(exc).lower()
    return "rate limit" in message or "too many requests" in message


def _apply_rate_limit_cooldown():
    cooldown = max(0.0, get_float_env("YF_RATE_LIMIT_COOLDOWN_SECONDS", 5.0))
    if cooldown <= 0:
        return
    global _YF_NEXT_ALLOWED_TS
    with _YF_RATE_LOCK:
        now = time.monotonic()
        _YF_NEXT_ALLOWED_TS = max(_YF_NEXT_ALLOWED_TS, now + cooldown)


def _throttle_yfinance():
    min_interval = max(0.0, get_float_env("YF_RATE_LIMIT_SECONDS", 0.75))
    if min_interval <= 0:
        return
    global _YF_NEXT_ALLOWED_TS
    with _YF_RATE_LOCK:
        now = time.monotonic()
        wait = _YF_NEXT_ALLOWED_TS - now
        if wait > 0:
            time.sleep(wait)
            now = time.monotonic()
        _YF_NEXT_ALLOWED_TS = now + min_interval


def _normalize_frame(ticker_df: pd.DataFrame, require_ohlc: bool) -> pd.DataFrame:
    ticker_df = ticker_df.reset_index()

    if "Date" in ticker_df.columns:
        date_col = "Date"
    elif "Datetime" in ticker_df.columns:
        date_col = "Datetime"
    else:
        date_col = ticker_df.columns[0]

    rename_dict = {
        date_col: "date",
        "Open": "open",
        "High": "high",
        "Low": "low",
        "Volume": "volume",
    }
    close_source = None
    if "Adj Close" in ticker_df.columns and ticker_df["Adj Close"].notna().any():
        close_source = "Adj Close"
    if "Close" in ticker_df.columns:
        if close_source is None:
            close_source = "Close"
        elif ticker_df["Close"].notna().sum() > ticker_df[close_source].notna().sum():
            close_source = "Close"
    if close_source:
        rename_dict[close_source] = "close"

    ticker_df = ticker_df.rename(columns=rename_dict)
    ticker_df = ticker_df.loc[:, ~ticker_df.columns.duplicated()]
    ticker_df["date"] = pd.to_datetime(ticker_df["date"])
    ticker_df = ticker_df.sort_values("date").reset_index(drop=True)

    ticker_df = ticker_df.replace({None: np.nan, np.inf: np.nan, -np.inf: np.nan})
    if "close" in ticker_df.columns:
        ticker_df["close"] = pd.to_numeric(ticker_df["close"], errors="coerce")
    if require_ohlc:
        required_cols = [col for col in ("open", "high", "low", "close") if col in ticker_df.columns]
    else:
        required_cols = ["close"] if "close" in ticker_df.columns else []
    if required_cols:
        ticker_df = ticker_df.dropna(axis=0, how="any", subset=required_cols)
    return ticker_df.reset_index(drop=True)


def fetch_stock_data(
    symbols,
    period="1mo",
    interval="1d",
    require_ohlc: bool = False,
    threads: bool = True,
):
    """Bulk download OHLCV bars, returning {symbol: DataFrame} (empty frame when missing)."""
    if isinstance(symbols, str):
        symbols = [symbols]

    upper_symbols = [sym.upper() for sym in symbols]
    threads = threads and len(upper_symbols) > 1

    _throttle_yfinance()
    try:
        raw_data = yf.download(
            tickers=" ".join(upper_symbols),
            period=period,
            interval=interval,
            group_by="ticker",
            auto_adjust=False,
            threads=threads,
            progress=False,
            timeout=10,
        )
    except Exception as exc:
        if _is_rate_limit_error(exc):
            _apply_rate_limit_cooldown()
        raw_data = pd.DataFrame()
    if len(upper_symbols) == 1 and isinstance(raw_data, pd.DataFrame) and raw_data.empty:
        _throttle_yfinance()
        try:
            raw_data = yf.Ticker(upper_symbols[0]).history(
                period=period,
                interval=interval,
                auto_adjust=False,
            )
        except Exception as exc:
            if _is_rate_limit_error(exc):
                _apply_rate_limit_cooldown()
            raw_data = pd.DataFrame()

    data_dict = {}
    is_single_frame = (
        isinstance(raw_data, pd.DataFrame)
        and not isinstance(raw_data.columns, pd.MultiIndex)
        and len(upper_symbols) == 1
    )

    for upper_sym in upper_symbols:
        try:
            if isinstance(raw_data, dict):
                ticker_df = raw_data[upper_sym].copy()
            elif is_single_frame:
                ticker_df = raw_data.copy()
            else:
                ticker_df = raw_data[upper_sym].copy()
        except KeyError:
            data_dict[upper_sym] = pd.DataFrame()
            continue

        if ticker_df is None or ticker_df.empty:
            data_dict[upper_sym] = pd.DataFrame()
            continue
        data_dict[upper_sym] = _normalize_frame(ticker_df, require_ohlc)

    return data_dict


def _close_series(df) -> pd.Series:
    if df is None or getattr(df, "empty", True) or "close" not in df.columns:
        return pd.Series(dtype=float)
    return pd.to_numeric(df["close"], errors="coerce").dropna()


def _quote_from_frame(symbol: str, df: pd.DataFrame):
    closes = _close_series(df)
    if closes.empty:
        return None
    price = float(closes.iloc[-1])
    previous_close = float(closes.iloc[-2]) if len(closes) >= 2 else None
    change = price - previous_close if previous_close is not None else 0.0
    change_percent = (change / previous_close) * 100 if previous_close else 0.0

    volume = None
    if "volume" in df.columns:
        volumes = pd.to_numeric(df["volume"], errors="coerce").dropna()
        if not volumes.empty:
            volume = int(volumes.iloc[-1])

    return {
        "symbol": symbol,
        "price": price,
        "previous_close": previous_close,
        "change": change,
        "change_percent": change_percent,
        "volume": volume,
        "timestamp": pd.Timestamp(df.loc[closes.index[-1], "date"]).isoformat(),
    }


def fetch_quotes(symbols) -> list:
    """Latest daily quote per symbol; raises EmptyResultError when none came back."""
    if isinstance(symbols, str):
        symbols = [symbols]
    data = fetch_stock_data(symbols, period="5d", interval="1d", threads=False)
    quotes = []
    for symbol in symbols:
        quote = _quote_from_frame(symbol.upper(), data.get(symbol.upper()))
        if quote is not None:
            quotes.append(quote)
    if not quotes:
        raise EmptyResultError(f"No quote data for {', '.join(symbols)}")
    return convert_to_python_types(quotes)


def fetch_history(symbol: str, period: str = "1y") -> list:
    """Daily closing bars for one symbol, oldest first."""
    symbol = symbol.upper()
    df = fetch_stock_data([symbol], period=period, interval="1d", threads=False).get(symbol)
    closes = _close_series(df)
    if closes.empty:
        raise EmptyResultError(f"No history for {symbol} ({period})")

    bars = []
    for idx, close in closes.items():
        row = df.loc[idx]
        volume = row.get("volume") if "volume" in df.columns else None
        bars.append(
            {
                "symbol": symbol,
                "date": pd.Timestamp(row["date"]).strftime("%Y-%m-%d"),
                "close": float(close),
                "volume": int(volume) if volume is not None and pd.notna(volume) else None,
            }
        )
    return bars
