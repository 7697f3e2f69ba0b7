# Overview: Authorization rules for products and sales.

"""
Authorization Policy

Two rules, composed per action:
- Role rule: the caller must hold one of the named roles.
- Ownership rule: the caller must be an admin or own the product.

Callers load the target resource first; a missing resource is reported as
not-found before any of these checks run. Nothing is cached: every call
reads the claims it is handed.
"""
from __future__ import annotations

from ..errors import ForbiddenError
from ..models import Product
from ..models.auth import ROLE_ADMIN
from .token_service import Claims


def require_role(claims: Claims, *roles: str) -> None:
    """Raise ForbiddenError unless claims hold at least one of roles."""
    if not claims.has_role(*roles):
        raise ForbiddenError()


def can_modify_product(claims: Claims, product: Product) -> bool:
    if claims.has_role(ROLE_ADMIN):
        return True
    return product.user_id is not None and product.user_id == claims.subject


def require_product_owner(claims: Claims, product: Product) -> None:
    """Admins may modify any product; everyone else only their own."""
    if not can_modify_product(claims, product):
        raise ForbiddenError()
