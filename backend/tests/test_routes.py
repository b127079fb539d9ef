# Overview: Pytest coverage for the JSON API surface.

"""
HTTP API Tests

Services are covered in depth elsewhere; these tests pin the HTTP contract:
status codes, error codes and payload shapes.
"""

from pos_core.time_utils import utcnow


def _create_outlet(client, headers, code="DKR-01"):
    resp = client.post("/api/outlets", json={"code": code, "name": "Dakar Plateau"}, headers=headers)
    assert resp.status_code == 201
    return resp.get_json()["outlet"]["id"]


def _create_product(client, headers, name="Riz 25kg", sku="RIZ-25", price=450000):
    resp = client.post("/api/products", json={"name": name, "sku": sku, "price": price}, headers=headers)
    assert resp.status_code == 201
    return resp.get_json()["product"]["id"]


class TestIdentity:

    def test_writes_require_actor_header(self, client, db_session):
        resp = client.post("/api/outlets", json={"code": "X", "name": "X"})
        assert resp.status_code == 401

    def test_actor_header_must_be_integer(self, client, db_session):
        resp = client.post("/api/outlets", json={"code": "X", "name": "X"}, headers={"X-User-Id": "abc"})
        assert resp.status_code == 400


class TestCatalogRoutes:

    def test_create_and_list(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers, code="dkr-02")
        _create_product(client, actor_headers)

        outlets = client.get("/api/outlets").get_json()["outlets"]
        assert [(o["id"], o["code"]) for o in outlets] == [(outlet_id, "DKR-02")]
        products = client.get("/api/products").get_json()["products"]
        assert products[0]["sku"] == "RIZ-25"

    def test_duplicate_outlet_code(self, client, db_session, actor_headers):
        _create_outlet(client, actor_headers)
        resp = client.post("/api/outlets", json={"code": "DKR-01", "name": "Again"}, headers=actor_headers)

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_outlet_404(self, client, db_session):
        resp = client.get("/api/outlets/999999")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"


class TestSaleFlow:
    """Open -> receive -> sell -> summarize -> close over HTTP."""

    def test_full_day(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        product_id = _create_product(client, actor_headers)

        resp = client.post(
            "/api/inventory/receive",
            json={"outlet_id": outlet_id, "product_id": product_id, "quantity": 10},
            headers=actor_headers,
        )
        assert resp.status_code == 201

        resp = client.post(
            "/api/registers/sessions",
            json={"outlet_id": outlet_id, "opening_float": 50000},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        session = resp.get_json()["session"]
        assert session["opened_by_user_id"] == 7

        resp = client.post(
            "/api/sales",
            json={
                "outlet_id": outlet_id,
                "payment_method": "cash",
                "tax_rate": 0.18,
                "items": [{"product_id": product_id, "quantity": 2, "unit_price": 450000}],
            },
            headers=actor_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["receipt"]["total_ttc"] == 1062000
        assert body["order"]["number"] == f"CMD-{utcnow().year}-000001"
        assert body["order"]["created_by_user_id"] == 7
        assert len(body["order"]["lines"]) == 1
        order_id = body["order"]["id"]

        settlement = client.get(f"/api/sales/{order_id}/settlement").get_json()
        assert settlement["is_consistent"] is True

        stock = client.get(f"/api/inventory/{outlet_id}/{product_id}").get_json()
        assert stock["quantity_on_hand"] == 8
        assert stock["stock_level"]["quantity"] == 8

        summary = client.get(f"/api/registers/sessions/{session['id']}/summary").get_json()["summary"]
        assert summary["total_sales"] == 1062000
        assert summary["cash"] == 1062000
        assert summary["theoretical_balance_now"] == 1112000

        resp = client.post(
            f"/api/registers/sessions/{session['id']}/close",
            json={"closing_count": 1112000},
            headers=actor_headers,
        )
        assert resp.status_code == 200
        closed = resp.get_json()["session"]
        assert closed["theoretical_balance"] == 1112000
        assert closed["variance"] == 0
        assert closed["closed_by_user_id"] == 7

        resp = client.post(
            f"/api/registers/sessions/{session['id']}/close",
            json={"closing_count": 1112000},
            headers=actor_headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "SESSION_ALREADY_CLOSED"

        daily = client.get(f"/api/reports/daily?outlet_id={outlet_id}").get_json()
        assert daily["total_sales"] == 1062000
        assert daily["order_count"] == 1

    def test_sale_without_session(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        product_id = _create_product(client, actor_headers)

        resp = client.post(
            "/api/sales",
            json={
                "outlet_id": outlet_id,
                "payment_method": "CASH",
                "items": [{"product_id": product_id, "quantity": 1, "unit_price": 100}],
            },
            headers=actor_headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "OPEN_SESSION_REQUIRED"
        assert client.get(f"/api/sales?outlet_id={outlet_id}").get_json()["orders"] == []

    def test_insufficient_stock_details(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        product_id = _create_product(client, actor_headers)
        client.post(
            "/api/registers/sessions",
            json={"outlet_id": outlet_id, "opening_float": 0},
            headers=actor_headers,
        )

        resp = client.post(
            "/api/sales",
            json={
                "outlet_id": outlet_id,
                "payment_method": "CASH",
                "items": [{"product_id": product_id, "quantity": 100, "unit_price": 100}],
            },
            headers=actor_headers,
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["items"][0]["shortfall"] == 100

    def test_second_open_conflict(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        payload = {"outlet_id": outlet_id, "opening_float": 0}

        assert client.post("/api/registers/sessions", json=payload, headers=actor_headers).status_code == 201
        resp = client.post("/api/registers/sessions", json=payload, headers=actor_headers)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "SESSION_ALREADY_OPEN"

        current = client.get(f"/api/registers/outlets/{outlet_id}/current")
        assert current.status_code == 200

    def test_sale_entries_cannot_be_posted_manually(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        session_id = client.post(
            "/api/registers/sessions",
            json={"outlet_id": outlet_id, "opening_float": 0},
            headers=actor_headers,
        ).get_json()["session"]["id"]

        resp = client.post(
            f"/api/registers/sessions/{session_id}/entries",
            json={"entry_type": "SALE", "amount": 100, "payment_method": "CASH"},
            headers=actor_headers,
        )
        assert resp.status_code == 400

        resp = client.post(
            f"/api/registers/sessions/{session_id}/entries",
            json={"entry_type": "MANUAL_OUT", "amount": 100, "payment_method": "CASH", "reference_type": "EXPENSE"},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        entries = client.get(f"/api/registers/sessions/{session_id}/entries").get_json()["entries"]
        assert [e["entry_type"] for e in entries] == ["MANUAL_OUT"]

    def test_malformed_sale_payload(self, client, db_session, actor_headers):
        resp = client.post("/api/sales", json={"outlet_id": "one"}, headers=actor_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_oversized_price_is_validation_error(self, client, db_session, actor_headers):
        outlet_id = _create_outlet(client, actor_headers)
        product_id = _create_product(client, actor_headers)
        client.post(
            "/api/registers/sessions",
            json={"outlet_id": outlet_id, "opening_float": 0},
            headers=actor_headers,
        )

        resp = client.post(
            "/api/sales",
            json={
                "outlet_id": outlet_id,
                "payment_method": "CASH",
                "items": [{"product_id": product_id, "quantity": 1, "unit_price": 10**19}],
            },
            headers=actor_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_session_404(self, client, db_session, actor_headers):
        resp = client.post("/api/registers/sessions/999999/close", json={"closing_count": 0}, headers=actor_headers)
        assert resp.status_code == 404


class TestSystemRoutes:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"
