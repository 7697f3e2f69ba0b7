# backend/sales_api/__init__.py
import logging
import threading

from flask import Flask

from .config import Config, describe_config
from .extensions import db, migrate
from .observability import InFlightTracker, SalesMetrics
from .pipeline import ShutdownSignal, install, install_deadline_guard


def create_app(test_config=None, *, shutdown=None, authenticator=None) -> Flask:
    """
    Build the API application.

    test_config overrides values from Config. shutdown is the signal the
    server run loop waits on; authenticator skips loading the key file.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    metrics = SalesMetrics()
    app.extensions["sales_api"] = {
        "authenticator": authenticator,
        "shutdown": shutdown or ShutdownSignal(),
        "in_flight": InFlightTracker(metrics.in_flight),
        "metrics": metrics,
        "lock": threading.Lock(),
    }

    install(app)
    with app.app_context():
        install_deadline_guard(db.engine)

    # Register blueprints
    from .routes.system import debug_bp, system_bp
    from .routes.users import users_bp
    from .routes.products import products_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(debug_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(products_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.debug("config:\n%s", describe_config(app.config))

    return app
