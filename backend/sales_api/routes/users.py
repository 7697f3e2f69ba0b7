# backend/sales_api/routes/users.py
"""
Token issuance.

The client sends email and password with HTTP Basic auth and receives a
signed bearer token for the protected routes.
"""

from datetime import timedelta

from flask import Blueprint, current_app, request

from ..decorators import with_context
from ..errors import UnauthenticatedError
from ..pipeline import get_authenticator
from ..services import auth_service

users_bp = Blueprint("users", __name__, url_prefix="/v1/users")


@users_bp.get("/token")
@with_context
def token(ctx):
    """
    Returns {"token": "<jwt>"}.

    401 when Basic credentials are missing or do not match a user.
    """
    creds = request.authorization
    if creds is None or creds.type != "basic" or not creds.username or creds.password is None:
        raise UnauthenticatedError("must provide email and password in Basic auth")

    claims = auth_service.authenticate(
        creds.username,
        creds.password,
        ctx.start,
        ttl=timedelta(seconds=current_app.config["AUTH_TOKEN_TTL"]),
    )

    return {"token": get_authenticator().generate_token(claims)}, 200
