# app.py
import os
import atexit
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler import events
from pytz import timezone

from analysis.market_data import MarketDataService, build_market_fetcher
from analysis.portfolio_analysis import build_portfolio_fetcher
from utils.env import get_int_env, is_truthy

# Blueprints
from routes.market_data_routes import market_data_blueprint
from routes.portfolio_analysis_routes import portfolio_analysis_blueprint

# Scheduled job
from tasks.market_cache_tasks import warm_market_cache


def create_app(testing=False, market_data_service=None, portfolio_fetcher=None):
    """
    Application factory that configures and returns the Flask app.
    Services are injected for tests; otherwise they are built from env config.
    """
    load_dotenv()
    frontend_origin = "*" if testing else os.getenv("front_end_client_website")

    app = Flask(__name__)
    app.config["TESTING"] = testing

    # CORS
    CORS(app, resources={r"/api/*": {"origins": frontend_origin}})

    # Shared caches live on the app, not in module globals
    app.extensions["market_data_service"] = market_data_service or MarketDataService(build_market_fetcher())
    app.extensions["portfolio_fetcher"] = portfolio_fetcher or build_portfolio_fetcher()

    # Blueprints
    app.register_blueprint(market_data_blueprint)
    app.register_blueprint(portfolio_analysis_blueprint)

    return app


def create_scheduler(app):
    """
    Background scheduler pinned to America/New_York.
    Warms the market cache every CACHE_WARM_INTERVAL_MINUTES (default 5).
    """
    eastern = timezone("America/New_York")
    scheduler = BackgroundScheduler(
        timezone=eastern,
        job_defaults={
            "misfire_grace_time": 60,
            "coalesce": True,
            "max_instances": 1,
        },
    )

    scheduler.add_job(
        warm_market_cache,
        trigger="interval",
        id="warm_market_cache",
        minutes=max(1, get_int_env("CACHE_WARM_INTERVAL_MINUTES", 5)),
        args=[app.extensions["market_data_service"]],
    )

    def _log(event):
        if event.exception:
            app.logger.error("Job %s failed: %s", event.job_id, event.exception)
        else:
            app.logger.info("Job %s executed OK", event.job_id)

    scheduler.add_listener(_log, events.EVENT_JOB_EXECUTED | events.EVENT_JOB_ERROR)
    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))
    return scheduler


if __name__ == "__main__":
    app = create_app()
    # Optional one-time warm before the first interval fires
    if is_truthy(os.getenv("CACHE_WARM_ON_START", "1")):
        warm_market_cache(app.extensions["market_data_service"])
    create_scheduler(app)
    app.run(debug=True)
