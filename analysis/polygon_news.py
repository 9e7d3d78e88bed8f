"""
polygon_news.py
Purpose: fetch ticker news from Polygon.io and summarise per-ticker sentiment.
Pseudocode:
1) GET /v2/reference/news filtered to the requested tickers.
2) Treat a missing or empty "results" list as a failed call.
3) Aggregate the per-article "insights" sentiment labels for each ticker.
"""
import os
from collections import Counter
from datetime import datetime, timezone

import requests
from dotenv import load_dotenv

from utils.env import get_float_env
from utils.retry import EmptyResultError

load_dotenv()

SENTIMENT_LABELS = ("positive", "negative", "neutral")


def _polygon_base_url() -> str:
    return os.getenv("POLYGON_BASE_URL", "https://api.polygon.io").rstrip("/")


def fetch_news(symbols, limit: int = 50) -> list:
    api_key = os.getenv("POLYGON_API_KEY")
    if not api_key:
        raise RuntimeError("POLYGON_API_KEY is not configured")

    params = {"limit": limit, "order": "desc", "sort": "published_utc", "apiKey": api_key}
    if symbols:
        params["ticker.any_of"] = ",".join(symbols)

    resp = requests.get(
        f"{_polygon_base_url()}/v2/reference/news",
        params=params,
        timeout=get_float_env("POLYGON_TIMEOUT_SECONDS", 10.0),
    )
    resp.raise_for_status()
    data = resp.json()

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list) or not results:
        raise EmptyResultError("No results found in news response")
    return results


def _article_mentions(article: dict, symbol: str) -> bool:
    tickers = article.get("tickers") or []
    if symbol in tickers:
        return True
    return any(
        isinstance(insight, dict) and insight.get("ticker") == symbol
        for insight in article.get("insights") or []
    )


def summarize_sentiment(symbol: str, articles: list) -> dict:
    """
    Majority sentiment for *symbol* over the articles that mention it.

    Ties, and articles without an insight for the symbol, resolve to neutral.
    """
    mentions = [a for a in articles or [] if isinstance(a, dict) and _article_mentions(a, symbol)]
    votes = Counter()
    for article in mentions:
        for insight in article.get("insights") or []:
            if not isinstance(insight, dict) or insight.get("ticker") != symbol:
                continue
            label = str(insight.get("sentiment", "")).lower()
            if label in SENTIMENT_LABELS:
                votes[label] += 1

    sentiment = "neutral"
    confidence = 0.0
    total = sum(votes.values())
    if total:
        ranked = votes.most_common()
        top_label, top_count = ranked[0]
        tied = len(ranked) > 1 and ranked[1][1] == top_count
        sentiment = "neutral" if tied else top_label
        confidence = (votes[sentiment] / total) if sentiment in votes else 0.0

    published = [a.get("published_utc") for a in mentions if a.get("published_utc")]
    timestamp = max(published) if published else datetime.now(timezone.utc).isoformat()
    return {
        "symbol": symbol,
        "sentiment": sentiment,
        "confidence": round(confidence, 4),
        "sources": len(mentions),
        "timestamp": timestamp,
    }
