# backend/sales_api/services/products_service.py
"""
Products Service

sold/revenue are summed from sales with a LEFT JOIN at read time, so a
product with no sales reports zeros.

Identifiers are validated before any query runs: a malformed id never
reaches the store.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from opentelemetry import trace
from sqlalchemy import func

from ..errors import InvalidIdentifierError, NotFoundError
from ..extensions import db
from ..models import Product, Sale
from ..validation import enforce_rules_product
from .policy_service import require_product_owner
from .token_service import Claims

tracer = trace.get_tracer(__name__)

PRODUCT_MUTABLE_FIELDS = ("name", "cost", "quantity")


def parse_id(value) -> str:
    """Canonical string form of a UUID, or InvalidIdentifierError."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise InvalidIdentifierError()


def _with_aggregates():
    sold = func.coalesce(func.sum(Sale.quantity), 0).label("sold")
    revenue = func.coalesce(func.sum(Sale.paid), 0).label("revenue")
    return (
        db.session.query(Product, sold, revenue)
        .outerjoin(Sale, Sale.product_id == Product.product_id)
        .group_by(Product.product_id)
    )


def apply_product_patch(p: Product, patch: dict) -> None:
    for k in PRODUCT_MUTABLE_FIELDS:
        if k in patch:
            setattr(p, k, patch[k])


@tracer.start_as_current_span("services.products.list")
def list_products() -> list[dict]:
    rows = _with_aggregates().all()
    return [p.to_dict(sold=sold, revenue=revenue) for p, sold, revenue in rows]


@tracer.start_as_current_span("services.products.retrieve")
def retrieve_product(product_id: str) -> dict:
    """
    Raises:
        InvalidIdentifierError: product_id is not a UUID
        NotFoundError: no product with that id
    """
    pid = parse_id(product_id)

    row = _with_aggregates().filter(Product.product_id == pid).first()
    if row is None:
        raise NotFoundError("product not found")

    p, sold, revenue = row
    return p.to_dict(sold=sold, revenue=revenue)


@tracer.start_as_current_span("services.products.create")
def create_product(claims: Claims, new_product: dict, now: datetime) -> dict:
    """
    Create a product owned by the caller.

    new_product holds name, cost and quantity, already validated by the
    route; the range rules are re-applied for callers outside HTTP.
    """
    enforce_rules_product(new_product)

    p = Product(
        product_id=str(uuid.uuid4()),
        name=new_product["name"],
        cost=new_product["cost"],
        quantity=new_product["quantity"],
        user_id=claims.subject,
        date_created=now,
        date_updated=now,
    )

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


@tracer.start_as_current_span("services.products.update")
def update_product(claims: Claims, product_id: str, update: dict, now: datetime) -> None:
    """
    Merge the fields present in update into the product.

    Absent keys keep their stored values; date_updated always moves to now.

    Raises:
        InvalidIdentifierError, NotFoundError: from the lookup
        ForbiddenError: caller is neither admin nor owner
    """
    pid = parse_id(product_id)

    p = db.session.get(Product, pid)
    if p is None:
        raise NotFoundError("product not found")

    require_product_owner(claims, p)

    enforce_rules_product(update)
    apply_product_patch(p, update)
    p.date_updated = now

    db.session.commit()


@tracer.start_as_current_span("services.products.delete")
def delete_product(product_id: str) -> None:
    """
    Delete a product and (via FK cascade) its sales.

    Deleting an id that matches no row is not an error.
    """
    pid = parse_id(product_id)

    db.session.query(Product).filter(Product.product_id == pid).delete(synchronize_session=False)
    db.session.commit()
