# backend/sales_api/routes/products.py
"""
Product and sale routes.

SECURITY: All routes require a bearer token.
- Update is limited to the product's owner or an ADMIN (checked in the service)
- Delete and recording sales require the ADMIN role
"""
from flask import Blueprint

from ..decorators import require_auth, require_role
from ..models import Product, Sale
from ..models.auth import ROLE_ADMIN
from ..pipeline import decode_json
from ..services import products_service, sales_service
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    product_rule_errors,
    sale_rule_errors,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "cost", "quantity"}),
    required_on_create=frozenset({"name", "cost", "quantity"}),
)

SALE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"quantity", "paid"}),
    required_on_create=frozenset({"quantity", "paid"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/v1/products")


@products_bp.get("")
@require_auth
def list_products(ctx):
    """All products with sold/revenue totals."""
    return products_service.list_products(), 200


@products_bp.post("")
@require_auth
def create_product(ctx):
    """
    Create a product owned by the caller.

    Body: {"name": str, "cost": int, "quantity": int}
    """
    patch = validate_payload(
        model=Product,
        payload=decode_json(),
        policy=PRODUCT_POLICY,
        partial=False,
        rules=product_rule_errors,
    )

    created = products_service.create_product(ctx.require_claims(), patch, utcnow())
    return created, 201


@products_bp.get("/<product_id>")
@require_auth
def retrieve_product(ctx, product_id: str):
    return products_service.retrieve_product(product_id), 200


@products_bp.put("/<product_id>")
@require_auth
def update_product(ctx, product_id: str):
    """
    Partial update: only the keys sent are changed.

    Body: any of {"name", "cost", "quantity"}
    """
    products_service.parse_id(product_id)

    update = validate_payload(
        model=Product,
        payload=decode_json(),
        policy=PRODUCT_POLICY,
        partial=True,
        rules=product_rule_errors,
    )

    products_service.update_product(ctx.require_claims(), product_id, update, utcnow())
    return "", 204


@products_bp.delete("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product(ctx, product_id: str):
    products_service.delete_product(product_id)
    return "", 204


@products_bp.post("/<product_id>/sales")
@require_auth
@require_role(ROLE_ADMIN)
def add_sale(ctx, product_id: str):
    """
    Record a sale. Body: {"quantity": int, "paid": int}
    """
    products_service.parse_id(product_id)

    new_sale = validate_payload(
        model=Sale,
        payload=decode_json(),
        policy=SALE_POLICY,
        partial=False,
        rules=sale_rule_errors,
    )

    sale = sales_service.add_sale(new_sale, product_id, utcnow())
    return sale, 201


@products_bp.get("/<product_id>/sales")
@require_auth
def list_sales(ctx, product_id: str):
    return sales_service.list_sales(product_id), 200
