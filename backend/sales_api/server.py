# backend/sales_api/server.py
"""
Process run loop.

Serves the API on a threaded WSGI server (one thread per request) until a
ShutdownSignal fires: SIGINT/SIGTERM, a failed listener, or an integrity
fault raised inside a request. Then it stops accepting connections, gives
in-flight requests WEB_SHUTDOWN_TIMEOUT seconds to finish, and closes.
"""
from __future__ import annotations

import logging
import signal
import sys
import threading

from werkzeug.serving import make_server

from . import create_app
from .config import describe_config
from .observability import InFlightTracker, setup_tracing
from .pipeline import ShutdownSignal, get_authenticator, get_in_flight, get_shutdown_signal


def parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"WEB_ADDRESS must be host:port, got {address!r}")
    return host or "0.0.0.0", int(port)


def serve(app, server, *, poll_interval: float = 0.5) -> int:
    """
    Run server until the app's ShutdownSignal fires, then drain and close.

    Returns the process exit code: 1 when the listener failed or a request
    raised an integrity fault, 0 otherwise.
    """
    log = app.logger
    with app.app_context():
        shutdown = get_shutdown_signal()
        in_flight = get_in_flight()

    listener_errors: list[BaseException] = []

    def listen():
        try:
            server.serve_forever()
        except Exception as e:
            listener_errors.append(e)
            shutdown.request(f"listener failed: {e}")

    api = threading.Thread(target=listen, name="api-listener", daemon=True)
    api.start()
    log.info("main: API listening on %s:%d", server.host, server.port)

    while not shutdown.wait(poll_interval):
        pass

    log.info("main: Start shutdown: %s", shutdown.reason)
    drain_and_close(server, in_flight, app.config["WEB_SHUTDOWN_TIMEOUT"], log)

    if listener_errors:
        log.error("main: listening and serving: %s", listener_errors[0])
        return 1
    if shutdown.integrity_fault:
        log.error("main: integrity error detected, asking for self shutdown")
        return 1

    log.info("main: Completed")
    return 0


def drain_and_close(server, in_flight: InFlightTracker, grace: float, log) -> bool:
    """
    Stop accepting connections, wait up to grace seconds for in-flight
    requests, then close the listener. False when requests were abandoned.
    """
    # Request threads keep running after this; only the accept loop stops
    server.shutdown()

    drained = in_flight.wait_idle(grace)
    if not drained:
        log.warning(
            "main: graceful shutdown did not complete in %ss; closing %d in-flight request(s)",
            grace,
            in_flight.count,
        )
    server.server_close()
    return drained


def run() -> int:
    shutdown = ShutdownSignal()
    app = create_app(shutdown=shutdown)
    log = app.logger

    log.info("main: Started")
    log.info("main: Config:\n%s", describe_config(app.config))

    # Fail before listening if the signing key is unusable
    with app.app_context():
        get_authenticator()

    tracing = setup_tracing(app.config)

    host, port = parse_address(app.config["WEB_ADDRESS"])
    server = make_server(host, port, app, threaded=True)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    def on_signal(signum, frame):
        shutdown.request(f"signal {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    try:
        return serve(app, server)
    finally:
        tracing.shutdown()


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
