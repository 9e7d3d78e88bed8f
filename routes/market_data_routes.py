# routes/market_data_routes.py

from flask import Blueprint, current_app, jsonify, request

from utils.cache_keys import normalize_symbols
from utils.serialization import convert_to_python_types

market_data_blueprint = Blueprint("market_data", __name__)

MARKET_DATA_TYPES = (
    "portfolio",
    "market-insights",
    "market-trends",
    "technical-indicators",
    "market-sentiment",
    "risk-metrics",
)


def _service():
    return current_app.extensions["market_data_service"]


def _dispatch(service, request_type: str, symbols: list):
    if request_type == "portfolio":
        return service.get_portfolio_metrics(symbols)
    if request_type == "market-insights":
        return service.get_market_insights(symbols)
    if request_type == "market-trends":
        return service.get_sector_performance()
    if request_type == "technical-indicators":
        return [service.get_technical_indicators(symbol) for symbol in symbols]
    if request_type == "market-sentiment":
        return service.get_market_sentiment(symbols)
    if request_type == "risk-metrics":
        return service.calculate_risk_metrics(symbols)
    raise ValueError(f"Unknown market data type: {request_type}")


@market_data_blueprint.route("/api/market-data", methods=["GET"])
def get_market_data():
    """
    Query params:
      type    - one of MARKET_DATA_TYPES
      symbols - comma separated tickers (ignored by market-trends)
    """
    request_type = (request.args.get("type") or "").strip()
    if request_type not in MARKET_DATA_TYPES:
        return jsonify({"error": "Invalid request type"}), 400

    symbols = normalize_symbols(request.args.get("symbols", ""))
    try:
        payload = _dispatch(_service(), request_type, symbols)
        return jsonify(convert_to_python_types(payload)), 200
    except Exception:
        current_app.logger.exception("Market data error for type=%s symbols=%s", request_type, symbols)
        return jsonify({"error": "Internal server error"}), 500


@market_data_blueprint.route("/api/market-data/cache", methods=["GET"])
def get_market_data_cache_stats():
    stats = {"market_data": _service().cache_stats()}
    portfolio_fetcher = current_app.extensions.get("portfolio_fetcher")
    if portfolio_fetcher is not None:
        stats["portfolio"] = portfolio_fetcher.stats()
    return jsonify(stats), 200
