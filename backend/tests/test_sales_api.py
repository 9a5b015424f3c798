"""
Sales API tests.

Verifies:
- Checkout over HTTP maps engine outcomes to status codes
- Shopkeepers only see their own sales, without costs or profit
- Returns over HTTP, including the double-return conflict
- Admin profit report
"""

from conftest import cart_line, reload
from shopflow.services import sales_service


def _cart(product, quantity):
    return {"items": [{
        "product_id": product.id,
        "name": product.name,
        "selling_price_cents": product.selling_price_cents,
        "quantity_in_cart": quantity,
        "stock_at_add": product.quantity,
    }]}


class TestCheckoutRoute:

    def test_checkout_created(self, client, shopkeeper_headers, make_product):
        soap = make_product(quantity=4, purchase_price_cents=10, selling_price_cents=20)

        response = client.post('/api/sales/checkout', headers=shopkeeper_headers, json=_cart(soap, 4))

        assert response.status_code == 201
        sale = response.json["sale"]
        assert sale["total_amount_cents"] == 80
        assert "total_profit_cents" not in sale
        assert "purchase_price_cents" not in sale["items"][0]
        assert reload(soap).quantity == 0

    def test_insufficient_stock_conflict(self, client, shopkeeper_headers, make_product):
        soap = make_product(name="Soap", quantity=4)

        response = client.post('/api/sales/checkout', headers=shopkeeper_headers, json=_cart(soap, 5))

        assert response.status_code == 409
        body = response.json
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available"] == 4
        assert body["message"] == "Not enough stock for Soap. Only 4 left."

    def test_empty_cart(self, client, shopkeeper_headers, db_session):
        response = client.post('/api/sales/checkout', headers=shopkeeper_headers, json={"items": []})
        assert response.status_code == 400
        assert response.json["error"] == "EMPTY_CART"

    def test_unknown_product(self, client, shopkeeper_headers, db_session):
        response = client.post('/api/sales/checkout', headers=shopkeeper_headers, json={"items": [{
            "product_id": "gone", "name": "Gone", "selling_price_cents": 10, "quantity_in_cart": 1,
        }]})
        assert response.status_code == 404
        assert response.json["error"] == "PRODUCT_NOT_FOUND"


class TestHistory:

    def test_shopkeeper_sees_only_own_sales(self, client, shopkeeper_headers, make_product, admin, shopkeeper):
        soap = make_product(quantity=10)
        sales_service.checkout([cart_line(soap, 1)], admin)
        mine = sales_service.checkout([cart_line(soap, 2)], shopkeeper)

        body = client.get('/api/sales', headers=shopkeeper_headers).json

        assert [s["id"] for s in body["items"]] == [mine]
        assert "total_profit_cents" not in body["items"][0]

    def test_admin_sees_all_with_profit(self, client, admin_headers, make_product, admin, shopkeeper):
        soap = make_product(quantity=10, purchase_price_cents=80, selling_price_cents=150)
        sales_service.checkout([cart_line(soap, 1)], admin)
        sales_service.checkout([cart_line(soap, 2)], shopkeeper)

        body = client.get('/api/sales', headers=admin_headers).json
        assert body["count"] == 2
        assert {s["total_profit_cents"] for s in body["items"]} == {70, 140}

        filtered = client.get('/api/sales?created_by_role=shopkeeper', headers=admin_headers).json
        assert filtered["count"] == 1
        assert filtered["items"][0]["created_by_role"] == "shopkeeper"

    def test_bad_date_range(self, client, admin_headers):
        response = client.get('/api/sales?start=2026-03-05&end=2026-03-01', headers=admin_headers)
        assert response.status_code == 400

    def test_shopkeeper_cannot_read_others_sale(self, client, shopkeeper_headers, make_product, admin):
        soap = make_product(quantity=10)
        other = sales_service.checkout([cart_line(soap, 1)], admin)

        assert client.get(f'/api/sales/{other}', headers=shopkeeper_headers).status_code == 404


class TestReturnRoute:

    def test_return_then_conflict(self, client, shopkeeper_headers, make_product, shopkeeper):
        soap = make_product(quantity=5)
        sale_id = sales_service.checkout([cart_line(soap, 3)], shopkeeper)

        first = client.post(f'/api/sales/{sale_id}/items/0/return', headers=shopkeeper_headers)
        assert first.status_code == 200
        assert first.json["item"]["returned"] is True
        assert reload(soap).quantity == 5

        second = client.post(f'/api/sales/{sale_id}/items/0/return', headers=shopkeeper_headers)
        assert second.status_code == 409
        assert second.json["error"] == "ALREADY_RETURNED"
        assert reload(soap).quantity == 5

    def test_unknown_sale(self, client, shopkeeper_headers):
        response = client.post('/api/sales/nope/items/0/return', headers=shopkeeper_headers)
        assert response.status_code == 404
        assert response.json["error"] == "SALE_NOT_FOUND"


class TestReports:

    def test_profit_report_excludes_returns(self, client, admin_headers, make_product, shopkeeper):
        soap = make_product(quantity=10, purchase_price_cents=6, selling_price_cents=10)
        sale_id = sales_service.checkout([cart_line(soap, 1), cart_line(soap, 1)], shopkeeper)
        client.post(f'/api/sales/{sale_id}/items/1/return', headers=admin_headers)

        body = client.get('/api/reports/profit', headers=admin_headers).json

        assert body["summary"]["revenue_cents"] == 10
        assert body["summary"]["profit_cents"] == 4
        assert body["timezone"] == "UTC"

    def test_stock_report(self, client, admin_headers, make_product):
        make_product(quantity=4, purchase_price_cents=10, selling_price_cents=20)
        body = client.get('/api/reports/stock', headers=admin_headers).json
        assert body["total_stock"] == 4
        assert body["total_selling_value_cents"] == 80

    def test_invalid_range(self, client, admin_headers):
        response = client.get('/api/reports/profit?start=bad', headers=admin_headers)
        assert response.status_code == 400
