# backend/sales_api/pipeline.py
"""
Request pipeline.

Every request passes through the same stages, in order:

1. before_request  - seed a RequestContext (trace id, start, deadline) and open a span
2. errorhandler    - any uncaught exception becomes a 500 (panic recovery)
3. after_request   - one log line per request: trace id, status, method, path, duration
4. metrics         - request/error counters and the in-flight tracker
5. @require_auth   - bearer token -> Claims (decorators.py, protected routes only)
6. @require_role   - role gate (decorators.py, role-restricted routes only)
7. the view        - calls a service, returns a value or raises DomainError
8. errorhandler    - DomainError kind -> HTTP status + {"error", "fields"} body

Views never build error responses. An IntegrityFaultError additionally asks
the run loop to shut the process down (see ShutdownSignal).
"""
from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from flask import Flask, current_app, g, has_app_context, request
from opentelemetry import trace
from opentelemetry.propagate import extract
from sqlalchemy import event
from werkzeug.exceptions import HTTPException

from .errors import (
    DeadlineExceededError,
    DomainError,
    ErrorKind,
    IntegrityFaultError,
    ValidationFailureError,
)
from .observability import InFlightTracker, SalesMetrics, tracer
from .services.token_service import Authenticator, Claims, load_authenticator
from .time_utils import utcnow


STATUS_BY_KIND = {
    ErrorKind.INVALID_IDENTIFIER: 400,
    ErrorKind.VALIDATION_FAILURE: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.AUTHENTICATION_FAILURE: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTEGRITY_FAULT: 500,
    ErrorKind.INTERNAL: 500,
}

GENERIC_ERROR = "Internal Server Error"


def status_for(kind: ErrorKind) -> int:
    return STATUS_BY_KIND[kind]


@dataclass
class RequestContext:
    """State owned by one request. Handed to views as their first argument."""
    trace_id: str
    start: datetime
    started: float
    deadline: float | None = None
    status_code: int | None = None
    claims: Claims | None = None
    span: trace.Span | None = field(default=None, repr=False)

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def require_claims(self) -> Claims:
        """Claims set by @require_auth; their absence means a mis-wired route."""
        if self.claims is None:
            raise IntegrityFaultError("auth claims missing from request context")
        return self.claims

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000


class ShutdownSignal:
    """
    Explicit stop request shared by the pipeline and the server run loop.

    The pipeline calls request() on an integrity fault; OS signal handlers
    call it on SIGINT/SIGTERM. The run loop waits on it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: str | None = None
        self.integrity_fault = False

    def request(self, reason: str, *, integrity_fault: bool = False) -> None:
        with self._lock:
            if self.reason is None:
                self.reason = reason
            self.integrity_fault = self.integrity_fault or integrity_fault
        self._event.set()

    def is_requested(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


def current_context() -> RequestContext:
    ctx = g.get("request_context")
    if ctx is None:
        raise IntegrityFaultError("request context missing; pipeline not installed")
    return ctx


def get_authenticator() -> Authenticator:
    """The app's Authenticator, loaded from the key file on first use."""
    state = current_app.extensions["sales_api"]
    if state["authenticator"] is None:
        with state["lock"]:
            if state["authenticator"] is None:
                state["authenticator"] = load_authenticator(current_app.config)
    return state["authenticator"]


def get_shutdown_signal() -> ShutdownSignal:
    return current_app.extensions["sales_api"]["shutdown"]


def get_in_flight() -> InFlightTracker:
    return current_app.extensions["sales_api"]["in_flight"]


def get_metrics() -> SalesMetrics:
    return current_app.extensions["sales_api"]["metrics"]


def decode_json():
    """Request body as parsed JSON; malformed or missing bodies are a validation failure."""
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationFailureError("request body must be valid JSON")
    return data


def _new_trace_id(span: trace.Span) -> str:
    span_ctx = span.get_span_context()
    if span_ctx.is_valid:
        return format(span_ctx.trace_id, "032x")
    return uuid.uuid4().hex


def _render(error: DomainError):
    ctx = g.get("request_context")
    status = status_for(error.kind)
    if status >= 500:
        body = {"error": GENERIC_ERROR}
    else:
        body = error.to_dict()
    if ctx is not None:
        ctx.status_code = status
    return body, status


def install(app: Flask) -> None:
    """Register the pipeline hooks and error handlers on app."""

    @app.before_request
    def seed_request_context():
        span = tracer.start_span(
            f"{request.method} {request.url_rule or request.path}",
            context=extract(request.headers),
            kind=trace.SpanKind.SERVER,
            attributes={"http.method": request.method, "http.target": request.path},
        )
        started = time.monotonic()
        timeout = app.config.get("WEB_REQUEST_TIMEOUT")
        g.request_context = RequestContext(
            trace_id=_new_trace_id(span),
            start=utcnow(),
            started=started,
            deadline=started + timeout if timeout is not None else None,
            span=span,
        )
        get_in_flight().enter()
        g.in_flight = True
        get_metrics().record_request(request.method)

    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        ctx = g.get("request_context")
        trace_id = ctx.trace_id if ctx else "-"

        if error.kind is ErrorKind.INTEGRITY_FAULT:
            app.logger.error("%s : integrity fault : %s", trace_id, error.message, exc_info=error)
            app.logger.error("error returned from handler indicated integrity issue, shutting down service")
            get_shutdown_signal().request(error.message, integrity_fault=True)
        elif status_for(error.kind) >= 500:
            app.logger.error("%s : unhandled error : %s", trace_id, error.message, exc_info=error)
        else:
            app.logger.info("%s : request error : %s", trace_id, error.message)

        return _render(error)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        ctx = g.get("request_context")
        if ctx is not None:
            ctx.status_code = error.code
        return {"error": error.description or error.name}, error.code

    @app.errorhandler(Exception)
    def recover(error: Exception):
        # Anything a view or service failed to classify
        ctx = g.get("request_context")
        trace_id = ctx.trace_id if ctx else "-"
        app.logger.exception("%s : unhandled error : %r", trace_id, error)
        return _render(DomainError())

    @app.after_request
    def log_request(response):
        ctx = g.get("request_context")
        if ctx is None:
            return response

        ctx.status_code = response.status_code
        if response.status_code >= 400:
            get_metrics().record_error(response.status_code)
        if ctx.span is not None:
            ctx.span.set_attribute("http.status_code", response.status_code)

        response.headers["X-Trace-Id"] = ctx.trace_id
        app.logger.info(
            "%s : (%d) : %s %s -> %s (%.3fms)",
            ctx.trace_id,
            response.status_code,
            request.method,
            request.path,
            request.remote_addr,
            ctx.elapsed_ms(),
        )
        return response

    @app.teardown_request
    def finish_request(exc):
        ctx = g.get("request_context")
        if ctx is not None and ctx.span is not None:
            ctx.span.end()
        if g.pop("in_flight", False):
            get_in_flight().leave()


def install_deadline_guard(engine) -> None:
    """Abort store calls issued after the current request's deadline."""

    @event.listens_for(engine, "before_cursor_execute")
    def check_deadline(conn, cursor, statement, parameters, context, executemany):
        ctx = g.get("request_context") if has_app_context() else None
        if ctx is not None and ctx.expired():
            raise DeadlineExceededError()