"""
HTTP surface tests.

Verifies:
- Requests without actor headers return 401, foreign operators 403
- Failure kinds map to 400/404/409 with {"error", "kind"} bodies
- The front-desk flow (open, order, close, pay debt) works end to end
"""

import pytest


# =============================================================================
# ACTOR HEADERS
# =============================================================================


class TestActorHeaders:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/tables"),
            ("POST", "/api/tables"),
            ("GET", "/api/customers"),
            ("POST", "/api/sessions"),
            ("GET", "/api/sessions/active"),
            ("GET", "/api/sessions/history"),
            ("GET", "/api/cashback/balance"),
            ("GET", "/api/cashback/settings"),
            ("POST", "/api/cashback/expire"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["kind"] == "authorization"

    def test_foreign_operator_forbidden(self, client, account_a, operator_b):
        headers = {"X-Account-Id": str(account_a.id), "X-Operator-Id": str(operator_b.id)}
        resp = client.get("/api/tables", headers=headers)
        assert resp.status_code == 403

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:

    def test_not_found(self, client, headers_a):
        resp = client.get("/api/customers/99999", headers=headers_a)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Customer not found", "kind": "not_found"}

    def test_other_accounts_row_is_not_found(self, client, headers_b, customer_a):
        resp = client.get(f"/api/customers/{customer_a.id}", headers=headers_b)
        assert resp.status_code == 404

    def test_validation(self, client, headers_a, table_a):
        resp = client.post(f"/api/tables/{table_a.id}/rate", json={"new_rate": -5}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"

    def test_precondition(self, client, headers_a, table_a, customer_a):
        body = {"table_id": table_a.id, "customer_id": customer_a.id}
        assert client.post("/api/sessions", json=body, headers=headers_a).status_code == 201

        resp = client.post("/api/sessions", json=body, headers=headers_a)
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "precondition"


# =============================================================================
# FRONT DESK FLOW
# =============================================================================


class TestFrontDeskFlow:

    def test_tables_and_customers(self, client, headers_a):
        resp = client.post("/api/tables", json={"name": "Pool 3", "hourly_rate": 40000}, headers=headers_a)
        assert resp.status_code == 201
        table_id = resp.get_json()["table"]["id"]

        resp = client.patch(f"/api/tables/{table_id}", json={"is_active": False}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["table"]["is_active"] is False

        resp = client.post("/api/customers", json={"name": "Timur"}, headers=headers_a)
        assert resp.status_code == 201

        tables = client.get("/api/tables", headers=headers_a).get_json()["tables"]
        customers = client.get("/api/customers", headers=headers_a).get_json()["customers"]
        assert [t["name"] for t in tables] == ["Pool 3"]
        assert [c["name"] for c in customers] == ["Timur"]

        assert client.delete(f"/api/tables/{table_id}", headers=headers_a).status_code == 200

    def test_open_order_close_and_pay(self, client, headers_a, table_a, customer_a):
        resp = client.post(
            "/api/sessions", json={"table_id": table_a.id, "customer_id": customer_a.id}, headers=headers_a
        )
        assert resp.status_code == 201
        session_id = resp.get_json()["session"]["id"]
        assert resp.get_json()["session"]["status"] == "active"

        resp = client.post(
            f"/api/sessions/{session_id}/orders",
            json={"item_name": "Cola", "quantity": 2, "unit_price": 5000},
            headers=headers_a,
        )
        assert resp.status_code == 201
        order_id = resp.get_json()["order_id"]

        orders = client.get(f"/api/sessions/{session_id}/orders", headers=headers_a).get_json()["orders"]
        assert [o["id"] for o in orders] == [order_id]

        resp = client.get(f"/api/sessions/{session_id}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["projection"]["additional_amount"] == 10000

        active = client.get("/api/sessions/active", headers=headers_a).get_json()["sessions"]
        assert [p["session"]["id"] for p in active] == [session_id]

        resp = client.post(
            f"/api/sessions/{session_id}/close",
            json={"paid_amount": 0, "payment_type": "debt"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        settlement = resp.get_json()["settlement"]
        assert settlement["paid_amount"] + settlement["cashback_used"] + settlement["debt_amount"] == settlement["total_amount"]
        assert resp.get_json()["session"]["status"] == "completed"

        # Completed sessions cannot take orders
        resp = client.delete(f"/api/orders/{order_id}", headers=headers_a)
        assert resp.status_code == 409

        history = client.get("/api/sessions/history", headers=headers_a).get_json()
        assert history["total"] == 1
        assert history["sessions"][0]["id"] == session_id

        resp = client.post(
            f"/api/customers/{customer_a.id}/debt-payments",
            json={"amount": settlement["debt_amount"], "tender": "card"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert resp.get_json()["remaining_debt"] == 0

    def test_rate_history(self, client, headers_a, table_a):
        resp = client.post(f"/api/tables/{table_a.id}/rate", json={"new_rate": 90000}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["rate_change"]["old_rate"] == 60000

        history = client.get(f"/api/tables/{table_a.id}/rate-history", headers=headers_a).get_json()["history"]
        assert [h["new_rate"] for h in history] == [90000]


# =============================================================================
# CASHBACK
# =============================================================================


class TestCashbackRoutes:

    def test_settings_defaults_and_partial_update(self, client, headers_a):
        resp = client.get("/api/cashback/settings", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["settings"]["percentage"] == 5

        resp = client.put("/api/cashback/settings", json={"percentage": 7}, headers=headers_a)
        assert resp.status_code == 200
        settings = resp.get_json()["settings"]
        assert settings["percentage"] == 7
        assert settings["max_usage_percent"] == 30

    def test_settings_validation(self, client, headers_a):
        resp = client.put("/api/cashback/settings", json={"max_usage_percent": 500}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation"

    def test_balance_history_and_expire(self, client, headers_a, customer_a):
        resp = client.get(f"/api/cashback/balance?customer_id={customer_a.id}", headers=headers_a)
        assert resp.get_json() == {"balance": 0, "total_earned": 0, "total_spent": 0}

        assert client.get("/api/cashback/history", headers=headers_a).get_json()["entries"] == []

        resp = client.post("/api/cashback/expire", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["expired"] == 0
