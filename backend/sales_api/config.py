# backend/sales_api/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # SQLite DB stored next to the process by default; Postgres in deployment
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///garagesale.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Web
    WEB_ADDRESS = os.environ.get("WEB_ADDRESS", "localhost:8000")
    WEB_REQUEST_TIMEOUT = float(os.environ.get("WEB_REQUEST_TIMEOUT", "5"))
    WEB_SHUTDOWN_TIMEOUT = float(os.environ.get("WEB_SHUTDOWN_TIMEOUT", "5"))

    # Auth: RSA private key in PEM format; the public half is derived from it
    AUTH_PRIVATE_KEY_FILE = os.environ.get("AUTH_PRIVATE_KEY_FILE", "private.pem")
    AUTH_KEY_ID = os.environ.get("AUTH_KEY_ID", "1")
    AUTH_ALGORITHM = os.environ.get("AUTH_ALGORITHM", "RS256")
    AUTH_TOKEN_TTL = int(os.environ.get("AUTH_TOKEN_TTL", "3600"))

    # Tracing
    TRACE_SERVICE = os.environ.get("TRACE_SERVICE", "sales-api")
    TRACE_PROBABILITY = float(os.environ.get("TRACE_PROBABILITY", "1"))
    TRACE_CONSOLE = _env_bool("TRACE_CONSOLE")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


# Keys whose values never appear in startup logs.
SECRET_CONFIG_KEYS = {"SQLALCHEMY_DATABASE_URI"}

LOGGED_CONFIG_KEYS = (
    "SQLALCHEMY_DATABASE_URI",
    "WEB_ADDRESS",
    "WEB_REQUEST_TIMEOUT",
    "WEB_SHUTDOWN_TIMEOUT",
    "AUTH_PRIVATE_KEY_FILE",
    "AUTH_KEY_ID",
    "AUTH_ALGORITHM",
    "AUTH_TOKEN_TTL",
    "TRACE_SERVICE",
    "TRACE_PROBABILITY",
    "TRACE_CONSOLE",
    "LOG_LEVEL",
)


def describe_config(config) -> str:
    """Render the effective configuration, masking credentials in the DB URL."""
    lines = []
    for key in LOGGED_CONFIG_KEYS:
        value = config.get(key)
        if key in SECRET_CONFIG_KEYS and isinstance(value, str):
            value = _mask_url_password(value)
        lines.append(f"{key}={value}")
    return "\n".join(lines)


def _mask_url_password(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    creds, at, host = rest.rpartition("@")
    user, colon, _ = creds.partition(":")
    if not colon:
        return url
    return f"{scheme}://{user}:xxxxxx@{host}"
