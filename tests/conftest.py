# tests/conftest.py
import os
from dotenv import load_dotenv
import pandas as pd
import pytest

# Load environment variables from .env (if exists)
load_dotenv()

# Never talk to real upstreams or wait on the yfinance throttle from tests
os.environ["POLYGON_API_KEY"] = "test-key"
os.environ["POLYGON_BASE_URL"] = "https://polygon.test"
os.environ["YF_RATE_LIMIT_SECONDS"] = "0"
os.environ["YF_RATE_LIMIT_COOLDOWN_SECONDS"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

from app import create_app
from analysis.market_data import MarketDataService
from analysis.portfolio_analysis import build_portfolio_fetcher
from utils.read_through import ReadThroughFetcher
from utils.retry import RetryPolicy
from utils.ttl_cache import TTLCache


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_quote(symbol, price=100.0, change_percent=1.0):
    previous_close = price / (1 + change_percent / 100)
    return {
        "symbol": symbol,
        "price": price,
        "previous_close": previous_close,
        "change": price - previous_close,
        "change_percent": change_percent,
        "volume": 1000,
        "timestamp": "2024-05-02T00:00:00",
    }


def make_history(symbol, closes, start="2024-01-02"):
    dates = pd.bdate_range(start=start, periods=len(closes))
    return [
        {"symbol": symbol, "date": d.strftime("%Y-%m-%d"), "close": float(c), "volume": 1000}
        for d, c in zip(dates, closes)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    return RetryPolicy(max_attempts=3, backoff_seconds=1.0, sleep=sleeps.append)


@pytest.fixture
def fetcher(clock, retry_policy):
    cache = TTLCache(ttl_seconds=300, max_size=64, clock=clock)
    return ReadThroughFetcher(cache, retry_policy=retry_policy, name="test")


@pytest.fixture
def market_service(fetcher):
    """MarketDataService wired to in-memory fakes; tests override the fns they need."""

    def _quotes(symbols):
        return [make_quote(symbol) for symbol in symbols]

    def _history(symbol, period):
        return make_history(symbol, [100 + i for i in range(30)])

    def _news(symbols):
        return [{"tickers": list(symbols), "insights": [], "published_utc": "2024-05-02T00:00:00Z"}]

    return MarketDataService(fetcher, quote_fn=_quotes, history_fn=_history, news_fn=_news)


@pytest.fixture
def app(market_service):
    flask_app = create_app(
        testing=True,
        market_data_service=market_service,
        portfolio_fetcher=build_portfolio_fetcher(ttl_seconds=300),
    )
    flask_app.testing = True
    yield flask_app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client
