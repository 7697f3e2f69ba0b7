# backend/sales_api/routes/system.py
"""
System health and metrics endpoints.
"""

from flask import Blueprint, Response, current_app
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DomainError
from ..extensions import db
from ..pipeline import get_metrics

system_bp = Blueprint("system", __name__, url_prefix="/v1")


def check_database() -> None:
    """
    Round-trip a trivial query.

    A pooled connection can look alive after the database has gone away;
    running a statement forces the round trip.
    """
    db.session.execute(text("SELECT 1")).scalar()


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200 {"status": "OK"}: database reachable
    - 500 {"status": "db not ready"}: it is not
    """
    try:
        check_database()
    except (SQLAlchemyError, DomainError):
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "db not ready"}, 500

    return {"status": "OK"}, 200


debug_bp = Blueprint("debug", __name__, url_prefix="/debug")


@debug_bp.get("/metrics")
def metrics():
    """Prometheus text exposition of the request counters and process stats."""
    registry = get_metrics().registry
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
