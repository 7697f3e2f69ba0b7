# Overview: Request decorators for API routes (authentication and role gates).

from functools import wraps
from flask import request

from .errors import IntegrityFaultError, UnauthenticatedError
from .pipeline import current_context, get_authenticator
from .services import policy_service


def with_context(f):
    """Pass the RequestContext to a public route as its first argument."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return f(current_context(), *args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require a valid bearer token.

    Parses `Authorization: Bearer <token>` (scheme is case-insensitive),
    verifies it, stores the Claims on the RequestContext and passes that
    context to the route as its first argument.

    Raises UnauthenticatedError (401) if the header is missing or malformed,
    InvalidTokenError (401) if the token does not verify. The route is not
    called in either case.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = current_context()

        parts = request.headers.get("Authorization", "").split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise UnauthenticatedError("expected authorization header format: Bearer <token>")

        ctx.claims = get_authenticator().parse_claims(parts[1])

        return f(ctx, *args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles. Stack below @require_auth.

    Raises ForbiddenError (403) if the caller lacks every role.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(ctx, *args, **kwargs):
            if ctx.claims is None:
                raise IntegrityFaultError("require_role used without require_auth: claims missing")

            policy_service.require_role(ctx.claims, *roles)

            return f(ctx, *args, **kwargs)

        return decorated_function
    return decorator
