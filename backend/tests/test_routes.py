"""End-to-end API tests through the Flask test client (in-memory store)."""


def _create(client, url, body):
    response = client.post(url, json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def _seed(client):
    product = _create(client, "/api/products", {"name": "Widget", "sku": "W-1", "price": 6})
    supplier = _create(client, "/api/suppliers", {"name": "Acme", "credit_limit": 1000})
    return product["id"], supplier["id"]


def _purchase(client, product_id, supplier_id, quantity, unit_cost, **extra):
    body = {"product_id": product_id, "supplier_id": supplier_id, "quantity": quantity, "unit_cost": unit_cost}
    body.update(extra)
    return client.post("/api/purchase", json=body)


class TestCatalogRoutes:
    def test_product_crud(self, client):
        product = _create(client, "/api/products", {"name": "Widget", "default_cost": 2})

        assert client.get("/api/products").get_json() == [product]
        assert client.get(f"/api/products/{product['id']}").get_json()["name"] == "Widget"

        response = client.put(f"/api/products/{product['id']}", json={"price": 9.5})
        assert response.status_code == 200
        assert response.get_json()["price"] == 9.5

        response = client.delete(f"/api/products/{product['id']}")
        assert response.get_json() == {"ok": True}
        assert client.get("/api/products").get_json() == []

    def test_missing_name_is_400(self, client):
        response = client.post("/api/products", json={"sku": "X"})
        assert response.status_code == 400
        body = response.get_json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "name" in body["error"]

    def test_unknown_product_is_404(self, client):
        response = client.put("/api/products/nope", json={"name": "X"})
        assert response.status_code == 404
        assert response.get_json()["code"] == "NOT_FOUND"

    def test_supplier_crud(self, client):
        supplier = _create(client, "/api/suppliers", {"name": "Acme", "contact": "a@acme.test"})

        response = client.put(f"/api/suppliers/{supplier['id']}", json={"credit_limit": 250})
        assert response.get_json()["credit_limit"] == 250

        assert client.delete(f"/api/suppliers/{supplier['id']}").status_code == 200
        assert client.get(f"/api/suppliers/{supplier['id']}").status_code == 404


class TestLedgerRoutes:
    def test_fifo_scenario_over_http(self, client):
        product_id, supplier_id = _seed(client)
        assert _purchase(client, product_id, supplier_id, 10, 2, warehouse_id="main").status_code == 201
        assert _purchase(client, product_id, supplier_id, 5, 4, warehouse_id="main").status_code == 201

        response = client.post("/api/sale", json={
            "product_id": product_id, "warehouse_id": "main", "quantity": 12, "unit_price": 6,
        })

        assert response.status_code == 201
        tx = response.get_json()["tx"]
        assert tx["cogs"] == 28
        assert client.get("/api/balances").get_json() == {product_id: {"main": 3}}

        movements = client.get(f"/api/report/product/{product_id}").get_json()
        assert [m.get("remaining") for m in movements] == [0, 3, None]

    def test_average_scenario_over_http(self, client):
        product_id, supplier_id = _seed(client)
        _purchase(client, product_id, supplier_id, 10, 2)
        _purchase(client, product_id, supplier_id, 5, 4)

        response = client.post("/api/sale", json={
            "product_id": product_id, "quantity": 12, "unit_price": 6, "costing_method": "avg",
        })

        assert response.status_code == 201
        assert response.get_json()["tx"]["cogs"] == 32

    def test_insufficient_stock_reports_available(self, client):
        product_id, supplier_id = _seed(client)
        _purchase(client, product_id, supplier_id, 3, 2)

        response = client.post("/api/sale", json={"product_id": product_id, "quantity": 4, "unit_price": 6})

        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["data"]["available"] == 3
        assert client.get("/api/balances").get_json() == {product_id: {"default": 3}}

    def test_purchase_validation(self, client):
        product_id, supplier_id = _seed(client)

        assert _purchase(client, product_id, supplier_id, 0, 2).status_code == 400
        assert _purchase(client, product_id, supplier_id, True, 2).status_code == 400
        assert _purchase(client, "nope", supplier_id, 1, 2).status_code == 404
        response = client.post("/api/purchase", json={"product_id": product_id})
        assert response.status_code == 400

    def test_payables_flow(self, client):
        product_id, supplier_id = _seed(client)
        _purchase(client, product_id, supplier_id, 10, 3, reference="INV-9")

        payables = client.get("/api/payables").get_json()
        assert payables[supplier_id]["amount"] == 30
        assert payables[supplier_id]["invoices"][0]["reference"] == "INV-9"

        response = client.post("/api/payables/pay", json={"supplier_id": supplier_id, "amount": 50})
        assert response.status_code == 200
        assert response.get_json()["amount"] == 0

        response = client.post("/api/payables/pay", json={"supplier_id": "nobody", "amount": 5})
        assert response.status_code == 404

    def test_transactions_and_reports(self, client):
        product_id, supplier_id = _seed(client)
        _purchase(client, product_id, supplier_id, 10, 2)
        client.post("/api/sale", json={"product_id": product_id, "quantity": 4, "unit_price": 5})

        recent = client.get("/api/transactions?limit=1").get_json()
        assert [t["type"] for t in recent] == ["SALE"]

        pnl = client.get("/api/report/pnl").get_json()
        assert (pnl["revenue"], pnl["cogs"], pnl["purchases"], pnl["gross_profit"]) == (20, 8, 20, 12)

        empty = client.get("/api/report/pnl?from=0&to=1").get_json()
        assert empty["revenue"] == 0

        assert client.get("/api/report/pnl?from=yesterday").status_code == 400

        stats = client.get("/api/stats").get_json()
        assert stats["total_sales"] == 20
        assert stats["total_products"] == 1

        valuation = client.get("/api/report/valuation").get_json()
        assert valuation["total_value"] == 12

        check = client.get("/api/balances/check").get_json()
        assert check == {"consistent": True, "divergences": []}


class TestSystemRoutes:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["ok"] is True
        assert body["checks"]["storage"]["details"]["kind"] == "memory"

    def test_health_degraded_after_corrupt_read(self, app, client):
        ctx = app.extensions["stockbook"]
        ctx.store.documents["products"] = "not json"
        assert client.get("/api/products").get_json() == []

        body = client.get("/api/health").get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["storage"]["details"]["corrupt_reads"] == 1

    def test_unknown_api_route_is_json_404(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert "error" in response.get_json()


class TestRequestHandling:
    def test_body_must_be_a_json_object(self, client):
        response = client.post("/api/sale", json=[1, 2])
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_fields_are_rejected_by_the_service(self, client):
        product_id, supplier_id = _seed(client)

        response = _purchase(client, product_id, supplier_id, 1, 2, ctx="x")
        assert response.status_code == 400
        assert response.get_json()["data"] == {"field": "ctx"}

        response = client.put(f"/api/products/{product_id}", json={"product_id": "other"})
        assert response.status_code == 400

        response = client.post("/api/payables/pay", json={"supplier_id": supplier_id, "amount": 1, "memo": "x"})
        assert response.status_code == 400
        assert client.get("/api/transactions").get_json() == []

    def test_unexpected_failure_uses_the_app_error_body(self, client, monkeypatch):
        from stockbook.services import inventory_service

        async def broken(ctx, /, **fields):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(inventory_service, "record_sale", broken)

        response = client.post("/api/sale", json={"product_id": "p", "quantity": 1, "unit_price": 1})
        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}

    def test_lock_timeout_is_503(self, app, client):
        product_id, supplier_id = _seed(client)
        ctx = app.extensions["stockbook"]
        ctx.locks.retries = 0
        ctx.locks._held.add("payables")

        response = _purchase(client, product_id, supplier_id, 1, 2)

        assert response.status_code == 503
        assert response.get_json()["code"] == "LOCK_TIMEOUT"
        assert client.get("/api/balances").get_json() == {}


class TestCors:
    def test_allowed_origin_is_echoed(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_other_origins_get_no_cors_headers(self, client):
        response = client.get("/api/health", headers={"Origin": "https://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_allowlist_comes_from_config(self):
        from stockbook import create_app

        app = create_app({
            "TESTING": True,
            "STOCKBOOK_STORAGE": "memory",
            "STOCKBOOK_CORS_ORIGINS": ["https://shop.example"],
        })
        client = app.test_client()

        allowed = client.get("/api/version", headers={"Origin": "https://shop.example"})
        default = client.get("/api/version", headers={"Origin": "http://localhost:5173"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://shop.example"
        assert "Access-Control-Allow-Origin" not in default.headers
