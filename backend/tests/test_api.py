"""
HTTP surface tests: request parsing, status codes and response shapes for the
catalog, sale, dues, dashboard, image signing and health endpoints.
"""

import hashlib

import cloudinary.uploader
import pytest

from shopledger.models import Product, Transaction
from shopledger.services import sales_service


def _product_payload(**overrides):
    payload = {
        "name": "Linen Shirt",
        "price_cents": 100000,
        "category": "Men",
        "sub_category": "Shirts",
        "images": [{"url": "https://cdn.test/linen.jpg", "public_id": "shop-products/linen"}],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CATALOG
# =============================================================================


class TestProductsApi:

    def test_create_and_fetch(self, client, staff_headers):
        resp = client.post("/api/products", headers=staff_headers, json=_product_payload())

        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["stock_status"] == "IN_STOCK"
        assert product["sub_category"] == "shirts"

        detail = client.get(f"/api/products/{product['id']}")
        assert detail.status_code == 200
        assert detail.get_json()["product"]["name"] == "Linen Shirt"

    @pytest.mark.parametrize("overrides", [
        {"category": "Pets"},
        {"price_cents": -1},
        {"price_cents": "10.5"},
        {"images": []},
        {"images": [{"url": "https://cdn.test/a.jpg", "public_id": f"p{i}"} for i in range(6)]},
        {"name": ""},
    ])
    def test_invalid_product(self, client, staff_headers, overrides):
        resp = client.post("/api/products", headers=staff_headers, json=_product_payload(**overrides))
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_listing_filters_and_hides_sold(self, client, staff_headers, make_product):
        kept = make_product(price_cents=20000, category="Kids", sub_category="toys", name="Wooden Train")
        make_product(price_cents=90000, category="Women", sub_category="sarees", name="Silk Saree")
        sold = make_product(price_cents=30000, category="Kids", sub_category="toys", name="Kite")
        client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": sold.id})

        resp = client.get("/api/products?category=kids&sort=price_low")

        body = resp.get_json()
        assert [p["id"] for p in body["products"]] == [kept.id]
        assert body["pagination"]["total"] == 1
        assert body["pagination"]["has_next_page"] is False

        assert client.get(f"/api/products/{sold.id}").status_code == 404

    def test_search_and_price_range(self, client, db_session, make_product):
        make_product(price_cents=20000, name="Cotton Kurta")
        make_product(price_cents=80000, name="Cotton Blazer")

        body = client.get("/api/products?search=cotton&max_price_cents=50000").get_json()

        assert [p["name"] for p in body["products"]] == ["Cotton Kurta"]

    def test_invalid_sort(self, client, db_session):
        assert client.get("/api/products?sort=random").status_code == 400

    def test_search_treats_wildcards_literally(self, client, db_session, make_product):
        make_product(name="Shirt 100% cotton")
        make_product(name="Shirt 100 cotton")
        make_product(name="Plain_Tee")
        make_product(name="PlainXTee")

        percent = client.get("/api/products?search=100%25").get_json()
        underscore = client.get("/api/products?search=plain_").get_json()

        assert [p["name"] for p in percent["products"]] == ["Shirt 100% cotton"]
        assert [p["name"] for p in underscore["products"]] == ["Plain_Tee"]

    def test_delete_removes_images_from_storage(self, client, staff_headers, make_product, storage_destroy):
        product = make_product()
        product_id, public_id = product.id, product.images[0]["public_id"]

        resp = client.delete(f"/api/products/{product_id}", headers=staff_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["deleted_image_ids"] == [public_id]
        assert body["orphaned_image_ids"] == []
        assert storage_destroy == [public_id]
        assert client.delete(f"/api/products/{product_id}", headers=staff_headers).status_code == 404

    def test_delete_survives_storage_failure(self, client, db_session, staff_headers, make_product, monkeypatch):
        def _unreachable(public_id, **options):
            raise ConnectionError("storage unreachable")

        monkeypatch.setattr(cloudinary.uploader, "destroy", _unreachable)
        product = make_product()
        product_id, public_id = product.id, product.images[0]["public_id"]

        resp = client.delete(f"/api/products/{product_id}", headers=staff_headers)

        assert resp.status_code == 200
        assert resp.get_json()["orphaned_image_ids"] == [public_id]
        assert db_session.get(Product, product_id) is None

    def test_delete_without_storage_credentials(self, app, client, staff_headers, make_product, storage_destroy):
        product = make_product()
        product_id = product.id
        secret = app.config["CLOUDINARY_API_SECRET"]
        app.config["CLOUDINARY_API_SECRET"] = ""
        try:
            resp = client.delete(f"/api/products/{product_id}", headers=staff_headers)
        finally:
            app.config["CLOUDINARY_API_SECRET"] = secret

        assert resp.status_code == 200
        assert len(resp.get_json()["orphaned_image_ids"]) == 1
        assert storage_destroy == []


# =============================================================================
# SALES AND DUES OVER HTTP
# =============================================================================


class TestSaleAndDuesFlow:

    def test_partial_sale_then_full_collection(self, client, staff_headers, make_product):
        product = make_product(price_cents=100000)

        sale = client.post("/api/transactions/sale", headers=staff_headers, json={
            "product_id": product.id,
            "price_cents": 100000,
            "amount_paid_cents": 40000,
            "payment_method": "CASH",
            "customer": {"name": "Ravi Kumar", "phone_number": "9876543210"},
            "due_date": "2026-11-01",
        })
        assert sale.status_code == 201
        txn = sale.get_json()["transaction"]
        assert txn["payment_status"] == "DUE"
        assert txn["due_amount_cents"] == 60000
        assert txn["staff"]["staff_code"] == "S-01"

        dues = client.get("/api/dues?search_term=ravi", headers=staff_headers).get_json()
        assert [d["id"] for d in dues["dues"]] == [txn["id"]]

        collected = client.post(f"/api/dues/{txn['id']}/collect", headers=staff_headers, json={
            "amount_cents": 60000,
            "payment_method": "ONLINE",
        })
        assert collected.status_code == 200
        body = collected.get_json()["transaction"]
        assert body["payment_status"] == "PAID"
        assert body["payment_breakdown"] == {"cash": 40000, "online": 60000, "dues": 0}
        assert len(body["payment_records"]) == 2

        again = client.post(f"/api/dues/{txn['id']}/collect", headers=staff_headers, json={
            "amount_cents": 1,
            "payment_method": "CASH",
        })
        assert again.status_code == 409
        assert client.get(f"/api/dues/{txn['id']}", headers=staff_headers).status_code == 404

    def test_second_sale_of_same_product_conflicts(self, client, staff_headers, make_product):
        product = make_product()

        first = client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": product.id})
        second = client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": product.id})

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.get_json() == {
            "error": "Product is already sold",
            "details": {"product_id": product.id},
        }

    def test_split_sale_rounding_failure(self, client, staff_headers, make_product):
        product = make_product(price_cents=50000)

        resp = client.post("/api/transactions/sale", headers=staff_headers, json={
            "product_id": product.id,
            "price_cents": 50000,
            "payment_methods": [
                {"method": "CASH", "amount_cents": 20000},
                {"method": "ONLINE", "amount_cents": 29998},
            ],
        })

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Sum of payment methods must equal sale price"

    def test_unknown_product(self, client, staff_headers):
        resp = client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": 5555})
        assert resp.status_code == 404

    def test_missing_body(self, client, staff_headers):
        resp = client.post("/api/transactions/sale", headers=staff_headers)
        assert resp.status_code == 400

    def test_update_customer_details(self, client, staff_headers, make_product):
        product = make_product()
        txn = client.post("/api/transactions/sale", headers=staff_headers, json={
            "product_id": product.id,
            "amount_paid_cents": 0,
            "customer": {"name": "Ravi", "phone_number": "9876543210"},
            "due_date": "2026-11-01",
        }).get_json()["transaction"]

        resp = client.patch(
            f"/api/dues/{txn['id']}/customer-details",
            headers=staff_headers,
            json={"name": "Ravi K", "due_date": "2026-12-01"},
        )

        assert resp.status_code == 200
        body = resp.get_json()["transaction"]
        assert body["customer"] == {"name": "Ravi K", "phone_number": "9876543210"}
        assert body["due_date"] == "2026-12-01"

        bad = client.patch(
            f"/api/dues/{txn['id']}/customer-details",
            headers=staff_headers,
            json={"phone_number": "123"},
        )
        assert bad.status_code == 400
        assert bad.get_json()["error"] == "Phone number must be 10 digits"

    def test_statistics_and_overdue_endpoints(self, client, staff_headers, make_product):
        product = make_product(price_cents=100000)
        client.post("/api/transactions/sale", headers=staff_headers, json={
            "product_id": product.id,
            "amount_paid_cents": 0,
            "customer": {"name": "Ravi", "phone_number": "9876543210"},
            "due_date": "2020-01-01",
        })

        stats = client.get("/api/dues/statistics", headers=staff_headers).get_json()
        assert stats["total_outstanding_cents"] == 100000
        assert stats["status_breakdown"]["PENDING"]["count"] == 1

        overdue = client.get("/api/dues/overdue", headers=staff_headers).get_json()
        assert overdue["pagination"]["total"] == 1

        bad_range = client.get("/api/dues/statistics?start_date=yesterday", headers=staff_headers)
        assert bad_range.status_code == 400

    def test_expense_and_history(self, client, staff_headers, make_product):
        client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": make_product().id})
        expense = client.post(
            "/api/transactions/expense",
            headers=staff_headers,
            json={"amount_cents": 2500, "description": "Tea"},
        )
        assert expense.status_code == 201

        history = client.get("/api/transactions/history?filter=today&type=EXPENSE", headers=staff_headers)
        body = history.get_json()
        assert history.status_code == 200
        assert [t["type"] for t in body["transactions"]] == ["EXPENSE"]
        assert body["pagination"]["total_pages"] == 1

        unknown = client.get("/api/transactions/history?filter=decade", headers=staff_headers)
        assert unknown.status_code == 200
        assert unknown.get_json()["pagination"]["total"] == 2

    def test_stock_flip_missing_is_reported_as_500(self, client, db_session, staff_headers, make_product, monkeypatch):
        monkeypatch.setattr(sales_service, "mark_sold", lambda product_id: None)
        product = make_product()
        product_id = product.id

        resp = client.post("/api/transactions/sale", headers=staff_headers, json={"product_id": product_id})

        assert resp.status_code == 500
        body = resp.get_json()
        assert body["error"] == "Ledger inconsistency detected; manual reconciliation required"
        assert body["details"]["problems"] == [f"product {product_id} sold but still available"]
        assert db_session.get(Transaction, body["details"]["transaction_id"]) is not None


# =============================================================================
# DASHBOARD
# =============================================================================


class TestDashboardApi:

    def test_stats_reflect_ledger(self, client, owner_headers, make_product):
        client.post("/api/transactions/sale", headers=owner_headers, json={
            "product_id": make_product(price_cents=100000).id,
        })
        client.post("/api/transactions/expense", headers=owner_headers, json={
            "amount_cents": 30000, "description": "Rent share",
        })

        stats = client.get("/api/dashboard/stats?filter=today", headers=owner_headers).get_json()

        assert stats["total_revenue_cents"] == 100000
        assert stats["total_expenses_cents"] == 30000
        assert stats["net_profit_cents"] == 70000
        assert stats["total_sales_count"] == 1

    def test_sales_chart_has_seven_days(self, client, owner_headers, make_product):
        client.post("/api/transactions/sale", headers=owner_headers, json={
            "product_id": make_product(price_cents=12000).id,
        })

        series = client.get("/api/dashboard/sales-chart", headers=owner_headers).get_json()

        assert len(series) == 7
        assert series[-1]["sales_cents"] == 12000

    def test_category_chart(self, client, owner_headers, make_product):
        client.post("/api/transactions/sale", headers=owner_headers, json={
            "product_id": make_product(category="Kids").id,
        })

        data = client.get("/api/dashboard/category-chart?metric=count", headers=owner_headers).get_json()

        assert data == [{"name": "Kids", "value": 1}]

    def test_unknown_filter_means_all_time(self, client, owner_headers):
        unknown = client.get("/api/dashboard/stats?filter=forever", headers=owner_headers)
        everything = client.get("/api/dashboard/stats?filter=all", headers=owner_headers)

        assert unknown.status_code == 200
        assert unknown.get_json()["total_revenue_cents"] == everything.get_json()["total_revenue_cents"]


# =============================================================================
# IMAGE SIGNING AND HEALTH
# =============================================================================


class TestImagesAndHealth:

    def test_sign_upload(self, client, staff_headers):
        resp = client.get("/api/images/sign-upload", headers=staff_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["cloud_name"] == "demo-cloud"
        assert body["api_key"] == "123456789"
        assert body["folder"] == "shop-products"

        expected_payload = (
            f"allowed_formats={body['allowed_formats']}&folder=shop-products"
            f"&timestamp={body['timestamp']}&transformation={body['transformation']}"
        )
        assert body["signature"] == hashlib.sha1(f"{expected_payload}test-secret".encode()).hexdigest()

    def test_unconfigured_storage(self, app, client, staff_headers):
        secret = app.config["CLOUDINARY_API_SECRET"]
        app.config["CLOUDINARY_API_SECRET"] = ""
        try:
            resp = client.get("/api/images/sign-upload", headers=staff_headers)
        finally:
            app.config["CLOUDINARY_API_SECRET"] = secret

        assert resp.status_code == 503

    def test_health(self, client, owner):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["users"] == 1
