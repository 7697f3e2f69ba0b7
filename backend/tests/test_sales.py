"""
Sales tests.

Verifies:
- Recording a sale requires ADMIN and an existing product
- Sales show up in the product's list and aggregates
- Stock quantity is tracked independently of sales
"""

import uuid
from datetime import datetime, timedelta

import pytest

from conftest import add_sale, create_product
from sales_api.errors import NotFoundError, ValidationFailureError
from sales_api.services import sales_service
from sales_api.validation import MAX_QUANTITY


class TestAddSale:

    def test_admin_records_sale(self, client, admin, product):
        resp = client.post(
            f"/v1/products/{product['id']}/sales",
            json={"quantity": 3, "paid": 150},
            headers=admin.headers,
        )
        assert resp.status_code == 201

        body = resp.get_json()
        assert uuid.UUID(body["id"])
        assert body["product_id"] == product["id"]
        assert body["quantity"] == 3
        assert body["paid"] == 150
        assert body["date_created"].endswith("Z")

    def test_aggregates_rise_with_each_sale(self, client, admin, user, product):
        add_sale(client, admin.headers, product["id"], 2, 100)
        first = client.get(f"/v1/products/{product['id']}", headers=user.headers).get_json()
        assert (first["sold"], first["revenue"]) == (2, 100)

        add_sale(client, admin.headers, product["id"], 5, 250)
        second = client.get(f"/v1/products/{product['id']}", headers=user.headers).get_json()
        assert (second["sold"], second["revenue"]) == (7, 350)
        assert second["quantity"] == product["quantity"]

    def test_plain_user_is_forbidden(self, client, user, product):
        # Owning the product does not grant the right to record sales
        resp = client.post(
            f"/v1/products/{product['id']}/sales",
            json={"quantity": 1, "paid": 10},
            headers=user.headers,
        )
        assert resp.status_code == 403

    def test_unknown_product_is_404(self, client, admin):
        resp = client.post(
            f"/v1/products/{uuid.uuid4()}/sales",
            json={"quantity": 1, "paid": 10},
            headers=admin.headers,
        )
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "product not found"}

    def test_malformed_product_id_is_400(self, client, admin):
        resp = client.post(
            "/v1/products/xyz/sales",
            json={"quantity": 1, "paid": 10},
            headers=admin.headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "id provided was not a valid UUID"

    @pytest.mark.parametrize(
        "payload,fields",
        [
            ({"quantity": 0, "paid": 10}, {"quantity"}),
            ({"quantity": 1, "paid": -1}, {"paid"}),
            ({"quantity": 0, "paid": -1}, {"quantity", "paid"}),
            ({"quantity": "2", "paid": 10}, {"quantity"}),
            ({"paid": 10}, {"quantity"}),
            ({"quantity": 1, "paid": 10, "product_id": "x"}, {"product_id"}),
        ],
    )
    def test_invalid_sale_rejected(self, client, admin, product, payload, fields):
        resp = client.post(
            f"/v1/products/{product['id']}/sales",
            json=payload,
            headers=admin.headers,
        )
        assert resp.status_code == 400
        assert {f["field"] for f in resp.get_json()["fields"]} == fields

    def test_quantity_has_an_upper_bound(self, client, admin, product):
        resp = client.post(
            f"/v1/products/{product['id']}/sales",
            json={"quantity": MAX_QUANTITY + 1, "paid": 10},
            headers=admin.headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["fields"] == [
            {"field": "quantity", "error": f"quantity cannot exceed {MAX_QUANTITY}"}
        ]

    def test_huge_sales_cannot_break_the_product_list(self, client, admin, user, product):
        for _ in range(3):
            resp = client.post(
                f"/v1/products/{product['id']}/sales",
                json={"quantity": 2**62, "paid": 1},
                headers=admin.headers,
            )
            assert resp.status_code == 400

        add_sale(client, admin.headers, product["id"], MAX_QUANTITY, 1)
        add_sale(client, admin.headers, product["id"], MAX_QUANTITY, 1)

        resp = client.get("/v1/products", headers=user.headers)
        assert resp.status_code == 200
        assert resp.get_json()[0]["sold"] == 2 * MAX_QUANTITY

        resp = client.get(f"/v1/products/{product['id']}", headers=user.headers)
        assert resp.status_code == 200

    def test_free_sale_allowed(self, client, admin, product):
        sale = add_sale(client, admin.headers, product["id"], 1, 0)
        assert sale["paid"] == 0


class TestListSales:

    def test_lists_sales_oldest_first(self, app, client, user, product):
        base = datetime(2030, 1, 1)
        with app.app_context():
            sales_service.add_sale({"quantity": 2, "paid": 20}, product["id"], base + timedelta(minutes=5))
            sales_service.add_sale({"quantity": 1, "paid": 10}, product["id"], base)

        resp = client.get(f"/v1/products/{product['id']}/sales", headers=user.headers)
        assert resp.status_code == 200

        body = resp.get_json()
        assert [s["quantity"] for s in body] == [1, 2]
        assert all(s["product_id"] == product["id"] for s in body)

    def test_only_this_products_sales(self, client, admin, user, product):
        other = create_product(client, user.headers, name="Other")
        add_sale(client, admin.headers, product["id"], 1, 10)
        add_sale(client, admin.headers, other["id"], 4, 40)

        body = client.get(f"/v1/products/{product['id']}/sales", headers=user.headers).get_json()
        assert [(s["quantity"], s["paid"]) for s in body] == [(1, 10)]

    def test_unknown_product_has_no_sales(self, client, user):
        resp = client.get(f"/v1/products/{uuid.uuid4()}/sales", headers=user.headers)
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_malformed_product_id_is_400(self, client, user):
        resp = client.get("/v1/products/1/sales", headers=user.headers)
        assert resp.status_code == 400


class TestSalesService:

    def test_add_sale_to_missing_product_raises(self, app):
        with app.app_context():
            with pytest.raises(NotFoundError):
                sales_service.add_sale({"quantity": 1, "paid": 1}, str(uuid.uuid4()), datetime(2030, 1, 1))

    def test_add_sale_applies_range_rules(self, app, product):
        with app.app_context():
            with pytest.raises(ValidationFailureError) as exc:
                sales_service.add_sale({"quantity": -3, "paid": 1}, product["id"], datetime(2030, 1, 1))

        assert exc.value.fields == [{"field": "quantity", "error": "quantity must be >= 1"}]
