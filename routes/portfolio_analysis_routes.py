# routes/portfolio_analysis_routes.py

from flask import Blueprint, current_app, jsonify, request

from analysis.portfolio_analysis import PortfolioAnalysisService
from utils.auth import AuthError, authenticate_bearer_token
from utils.serialization import convert_to_python_types

portfolio_analysis_blueprint = Blueprint("portfolio_analysis", __name__)


@portfolio_analysis_blueprint.route("/api/portfolio/analysis", methods=["GET"])
def get_portfolio_analysis():
    """
    Metrics, risk and allocation of the caller's model portfolio.
    Requires: Authorization: Bearer <jwt>
    """
    try:
        auth = authenticate_bearer_token(request.headers.get("Authorization"))
    except AuthError as exc:
        return jsonify({"error": "Unauthorized", "details": str(exc)}), 401

    service = PortfolioAnalysisService(
        auth.user_id,
        market_data=current_app.extensions["market_data_service"],
        fetcher=current_app.extensions["portfolio_fetcher"],
    )
    try:
        return jsonify(convert_to_python_types(service.get_analysis())), 200
    except Exception:
        current_app.logger.exception("Portfolio analysis failed for user %s", auth.user_id)
        return jsonify({"error": "Failed to get portfolio analysis"}), 500
