# Overview: Pytest coverage for the JSON API: payload validation and status-code mapping.

"""
API Route Tests

Drives the Flask test client against an in-memory database. Checks that
domain errors map to the documented status codes and that the error body
carries the details a client needs (e.g. which material is short).
"""

from decimal import Decimal

from restopos.services import sales_service
from restopos.services.concurrency import ConflictRetryExhaustedError


class TestSystemRoutes:
    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestMaterialRoutes:
    def test_create_and_get(self, client, db_session):
        resp = client.post("/api/materials", json={"name": "Flour", "unit": "kg", "stock": 10, "min_stock": 2})
        assert resp.status_code == 201
        material_id = resp.get_json()["id"]

        resp = client.get(f"/api/materials/{material_id}")
        assert resp.status_code == 200
        assert resp.get_json()["stock"] == 10
        assert resp.get_json()["status"] == "good"

    def test_create_requires_name_and_unit(self, client, db_session):
        resp = client.post("/api/materials", json={"name": "Flour"})
        assert resp.status_code == 400
        assert "unit" in resp.get_json()["error"]

    def test_negative_opening_stock_rejected(self, client, db_session):
        resp = client.post("/api/materials", json={"name": "Flour", "unit": "kg", "stock": -1})
        assert resp.status_code == 400

    def test_put_rejects_stock(self, client, db_session, make_material, stock_of):
        flour = make_material("Flour", 5)
        resp = client.put(f"/api/materials/{flour.id}", json={"stock": 500})
        assert resp.status_code == 400
        assert stock_of(flour.id) == Decimal("5")

    def test_put_edits_catalogue_fields(self, client, db_session, make_material):
        flour = make_material("Flour", 5)
        resp = client.put(f"/api/materials/{flour.id}", json={"unit": "gram", "min_stock": 1})
        assert resp.status_code == 200
        assert resp.get_json()["unit"] == "gram"

    def test_unknown_material_404(self, client, db_session):
        assert client.get("/api/materials/999").status_code == 404
        assert client.delete("/api/materials/999").status_code == 404

    def test_low_stock_list(self, client, db_session, make_material):
        make_material("Flour", 1, min_stock=2)
        make_material("Salt", 10, min_stock=2)
        resp = client.get("/api/materials/low-stock")
        assert [m["name"] for m in resp.get_json()["items"]] == ["Flour"]


class TestProductRoutes:
    def test_create_with_bom_and_availability(self, client, db_session, make_material):
        flour = make_material("Flour", 10)
        resp = client.post("/api/products", json={
            "name": "Bread",
            "price": 15000,
            "bom": [{"material_id": flour.id, "quantity": 2}],
        })
        assert resp.status_code == 201
        product_id = resp.get_json()["id"]

        resp = client.get(f"/api/products/{product_id}/availability")
        assert resp.get_json()["available_units"] == 5

    def test_bom_required(self, client, db_session):
        resp = client.post("/api/products", json={"name": "Bread", "price": 15000})
        assert resp.status_code == 400

    def test_price_must_be_positive(self, client, db_session, make_material):
        flour = make_material("Flour", 10)
        resp = client.post("/api/products", json={
            "name": "Bread",
            "price": 0,
            "bom": [{"material_id": flour.id, "quantity": 1}],
        })
        assert resp.status_code == 400

    def test_toggle_and_delete(self, client, db_session, make_material, make_product):
        flour = make_material("Flour", 10)
        bread = make_product("Bread", 15_000, [(flour, 1)])
        bread_id = bread.id

        resp = client.post(f"/api/products/{bread_id}/toggle-active")
        assert resp.get_json()["is_active"] is False

        assert client.delete(f"/api/products/{bread_id}").status_code == 200
        assert client.get(f"/api/products/{bread_id}").status_code == 404


class TestSaleRoutes:
    def test_submit_sale(self, client, db_session, make_material, make_product, stock_of):
        flour = make_material("Flour", 10)
        bread = make_product("Bread", 100_000, [(flour, 2)])

        resp = client.post("/api/sales", json={
            "items": [{"product_id": bread.id, "quantity": 2}],
            "payment_method": "cash",
            "cash_tendered": 250_000,
        })

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["receipt_number"] == "TRX-000001"
        assert sale["grand_total"] == 222_000
        assert sale["change_due"] == 28_000
        assert stock_of(flour.id) == Decimal("6")

        resp = client.get("/api/sales/TRX-000001")
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["lines"][0]["quantity"] == 2

    def test_insufficient_stock_409_with_details(self, client, db_session, make_material, make_product, stock_of):
        flour = make_material("Flour", 1)
        bread = make_product("Bread", 10_000, [(flour, 2)])

        resp = client.post("/api/sales", json={
            "items": [{"product_id": bread.id, "quantity": 1}],
            "payment_method": "qris",
        })

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["details"]["material_name"] == "Flour"
        assert body["details"]["required"] == 2
        assert body["details"]["available"] == 1
        assert stock_of(flour.id) == Decimal("1")

    def test_insufficient_cash_400(self, client, db_session, make_material, make_product):
        flour = make_material("Flour", 10)
        bread = make_product("Bread", 10_000, [(flour, 1)])

        resp = client.post("/api/sales", json={
            "items": [{"product_id": bread.id, "quantity": 1}],
            "payment_method": "cash",
            "cash_tendered": 5_000,
        })

        assert resp.status_code == 400
        assert resp.get_json()["details"]["grand_total"] == 11_100

    def test_empty_cart_400(self, client, db_session):
        resp = client.post("/api/sales", json={"items": [], "payment_method": "qris"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cart is empty"

    def test_missing_product_404(self, client, db_session):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": 4242, "quantity": 1}],
            "payment_method": "qris",
        })
        assert resp.status_code == 404

    def test_unknown_receipt_404(self, client, db_session):
        assert client.get("/api/sales/TRX-999999").status_code == 404

    def test_exhausted_retries_503(self, client, db_session, monkeypatch):
        def _always_conflict(*args, **kwargs):
            raise ConflictRetryExhaustedError(3)

        monkeypatch.setattr(sales_service, "submit_sale", _always_conflict)

        resp = client.post("/api/sales", json={
            "items": [{"product_id": 1, "quantity": 1}],
            "payment_method": "qris",
        })

        assert resp.status_code == 503
        assert resp.get_json()["details"]["attempts"] == 3

    def test_quote(self, client, db_session, make_material, make_product):
        flour = make_material("Flour", 10)
        bread = make_product("Bread", 100_000, [(flour, 1)])
        resp = client.post("/api/sales/quote", json={"items": [{"product_id": bread.id, "quantity": 1}]})
        assert resp.status_code == 200
        assert resp.get_json()["tax"] == 11_000


class TestStockInRoutes:
    def test_record_list_and_reverse(self, client, db_session, make_material, stock_of):
        flour = make_material("Flour", 0)

        resp = client.post("/api/stock-in", json={"material_id": flour.id, "quantity": 5, "unit_price": 12000})
        assert resp.status_code == 201
        stock_in_id = resp.get_json()["id"]
        assert stock_of(flour.id) == Decimal("5")

        resp = client.get("/api/stock-in?range=7days")
        assert resp.get_json()["stats"]["total_spent"] == 60_000

        resp = client.delete(f"/api/stock-in/{stock_in_id}")
        assert resp.status_code == 200
        assert stock_of(flour.id) == Decimal("0")

    def test_unit_price_required(self, client, db_session, make_material):
        flour = make_material("Flour", 0)
        resp = client.post("/api/stock-in", json={"material_id": flour.id, "quantity": 5})
        assert resp.status_code == 400

    def test_reversal_guard_409(self, client, db_session, make_material, make_product):
        flour = make_material("Flour", 0)
        bread = make_product("Bread", 10_000, [(flour, 1)])
        stock_in_id = client.post(
            "/api/stock-in", json={"material_id": flour.id, "quantity": 3, "unit_price": 1000}
        ).get_json()["id"]
        client.post("/api/sales", json={
            "items": [{"product_id": bread.id, "quantity": 2}],
            "payment_method": "card",
        })

        resp = client.delete(f"/api/stock-in/{stock_in_id}")
        assert resp.status_code == 409
        assert resp.get_json()["details"]["current_stock"] == 1

    def test_unknown_stock_in_404(self, client, db_session):
        assert client.delete("/api/stock-in/31337").status_code == 404


class TestReportAndCapitalRoutes:
    def test_capital_and_financial_summary(self, client, db_session):
        resp = client.post("/api/capital", json={"amount": 2_000_000, "entry_type": "initial"})
        assert resp.status_code == 201
        entry_id = resp.get_json()["id"]

        assert client.post("/api/capital", json={"amount": 0}).status_code == 400
        assert client.post("/api/capital", json={"amount": 10, "entry_type": "loan"}).status_code == 400

        resp = client.put(f"/api/capital/{entry_id}", json={"note": "opening"})
        assert resp.get_json()["note"] == "opening"

        resp = client.get("/api/reports/financial")
        assert resp.status_code == 200
        assert resp.get_json()["balance"] == 2_000_000

        assert client.delete(f"/api/capital/{entry_id}").status_code == 200
        assert client.get("/api/capital").get_json()["count"] == 0

    def test_sales_report_bad_range(self, client, db_session):
        assert client.get("/api/reports/sales?range=forever").status_code == 400
        assert client.get("/api/reports/sales?range=all").status_code == 200
