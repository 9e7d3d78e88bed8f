# tests/test_market_data_routes.py

import pytest


@pytest.mark.parametrize("request_type", ["", "quotes", "unknown"])
def test_invalid_type_returns_400(client, request_type):
    response = client.get(f"/api/market-data?type={request_type}&symbols=AAPL")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid request type"}


def test_portfolio_type(client):
    response = client.get("/api/market-data?type=portfolio&symbols=aapl,msft")
    assert response.status_code == 200
    data = response.get_json()
    assert [p["symbol"] for p in data["positions"]] == ["AAPL", "MSFT"]
    assert data["total_value"] == 200.0


def test_market_insights_type(client):
    response = client.get("/api/market-data?type=market-insights&symbols=AAPL")
    assert response.status_code == 200
    data = response.get_json()
    assert set(data) == {"market_data", "news_data", "economic_data"}


def test_market_trends_type_ignores_symbols(client):
    response = client.get("/api/market-data?type=market-trends")
    assert response.status_code == 200
    sectors = [row["sector"] for row in response.get_json()]
    assert sectors == ["Technology", "Finance", "Healthcare", "Energy", "Industrial"]


def test_technical_indicators_type(client):
    response = client.get("/api/market-data?type=technical-indicators&symbols=AAPL,MSFT")
    assert response.status_code == 200
    data = response.get_json()
    assert len(data) == 2
    assert {i["symbol"] for i in data[0]} == {"AAPL"}


def test_market_sentiment_type(client):
    response = client.get("/api/market-data?type=market-sentiment&symbols=AAPL")
    assert response.status_code == 200
    assert response.get_json()[0]["symbol"] == "AAPL"


def test_risk_metrics_type(client):
    response = client.get("/api/market-data?type=risk-metrics&symbols=AAPL")
    assert response.status_code == 200
    assert "sharpe_ratio" in response.get_json()


def test_service_error_returns_500(client, market_service, monkeypatch):
    def boom(symbols):
        raise RuntimeError("boom")

    monkeypatch.setattr(market_service, "calculate_risk_metrics", boom)
    response = client.get("/api/market-data?type=risk-metrics&symbols=AAPL")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_cache_stats(client):
    client.get("/api/market-data?type=market-sentiment&symbols=AAPL")
    client.get("/api/market-data?type=market-sentiment&symbols=AAPL")

    response = client.get("/api/market-data/cache")
    assert response.status_code == 200
    stats = response.get_json()
    assert stats["market_data"]["fresh"] == 1
    assert stats["market_data"]["cache"] == 1
    assert stats["portfolio"]["name"] == "portfolio"
