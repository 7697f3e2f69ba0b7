# backend/sales_api/services/sales_service.py
"""
Sales Service

Sales are append-only: there is no update or delete. Recording a sale does
not touch the product's quantity column; stock and sales are tracked
independently.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from opentelemetry import trace

from ..errors import NotFoundError
from ..extensions import db
from ..models import Product, Sale
from ..validation import enforce_rules_sale
from .products_service import parse_id

tracer = trace.get_tracer(__name__)


@tracer.start_as_current_span("services.sales.add")
def add_sale(new_sale: dict, product_id: str, now: datetime) -> dict:
    """
    Record a sale against a product.

    Raises:
        InvalidIdentifierError: product_id is not a UUID
        NotFoundError: the product does not exist (no orphaned sales)
    """
    pid = parse_id(product_id)
    enforce_rules_sale(new_sale)

    if db.session.get(Product, pid) is None:
        raise NotFoundError("product not found")

    s = Sale(
        sale_id=str(uuid.uuid4()),
        product_id=pid,
        quantity=new_sale["quantity"],
        paid=new_sale["paid"],
        date_created=now,
    )

    db.session.add(s)
    db.session.commit()
    return s.to_dict()


@tracer.start_as_current_span("services.sales.list")
def list_sales(product_id: str) -> list[dict]:
    """All sales for one product, oldest first. Unknown products have none."""
    pid = parse_id(product_id)

    sales = (
        db.session.query(Sale)
        .filter(Sale.product_id == pid)
        .order_by(Sale.date_created.asc(), Sale.sale_id.asc())
        .all()
    )
    return [s.to_dict() for s in sales]
