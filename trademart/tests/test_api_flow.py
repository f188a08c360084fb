"""
End-to-end tests over HTTP: RFQ to quote to order to QC to escrow release.
"""
from unittest.mock import patch

import pytest

from trademart.db.models import QCReport, UserRole
from trademart.tests.helpers import auth_headers


@pytest.fixture
def buyer_headers(buyer):
    return auth_headers(buyer)


@pytest.fixture
def supplier_headers(supplier):
    return auth_headers(supplier.user)


def _submit_quote(client, headers, rfq_id, price, lead_time=10):
    return client.post(
        "/api/quotes",
        json={"rfqId": rfq_id, "price": price, "leadTimeDays": lead_time, "notes": "Ex-works"},
        headers=headers,
    )


class TestAuth:

    def test_register_login_me(self, client):
        response = client.post("/api/auth/register", json={
            "email": "priya@buyer.example.com",
            "password": "orders2026",
            "name": "Priya",
            "role": "buyer",
        })
        assert response.status_code == 201
        assert response.json()["data"]["user"]["role"] == "buyer"

        response = client.post("/api/auth/login", json={"email": "priya@buyer.example.com", "password": "orders2026"})
        assert response.status_code == 200
        token = response.json()["data"]["accessToken"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "priya@buyer.example.com"

    def test_register_rejects_admin_role(self, client):
        response = client.post("/api/auth/register", json={
            "email": "root@example.com", "password": "password99", "name": "Root", "role": "admin",
        })
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "Role must be 'buyer' or 'supplier'" in response.json()["error"]

    def test_missing_token_is_401(self, client):
        response = client.get("/api/transactions")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestQuoteFlow:

    def test_accept_one_quote_then_sibling_conflicts(self, client, db, buyer_headers, make_supplier, rfq):
        s1 = make_supplier("S1 Steel")
        s2 = make_supplier("S2 Steel")

        q1 = _submit_quote(client, auth_headers(s1.user), rfq.id, 100)
        q2 = _submit_quote(client, auth_headers(s2.user), rfq.id, 90)
        assert q1.status_code == 201
        assert q2.status_code == 201

        response = client.patch(f"/api/quotes/{q1.json()['data']['id']}", json={"status": "accepted"}, headers=buyer_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transaction"]["amount"] == 100
        assert data["transaction"]["status"] == "held"
        assert data["order"]["status"] == "confirmed"
        assert data["quote"]["rfq"]["status"] == "closed"

        response = client.patch(f"/api/quotes/{q2.json()['data']['id']}", json={"status": "accepted"}, headers=buyer_headers)
        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_duplicate_quote_is_409(self, client, supplier_headers, rfq):
        assert _submit_quote(client, supplier_headers, rfq.id, 100).status_code == 201
        assert _submit_quote(client, supplier_headers, rfq.id, 95).status_code == 409

    def test_invalid_price_is_400(self, client, supplier_headers, rfq):
        response = _submit_quote(client, supplier_headers, rfq.id, 0)
        assert response.status_code == 400
        assert "Price" in response.json()["error"]

    def test_buyer_without_profile_cannot_quote(self, client, buyer_headers, rfq):
        assert _submit_quote(client, buyer_headers, rfq.id, 100).status_code == 403

    def test_bad_decision_value_is_400(self, client, buyer_headers, supplier_headers, rfq):
        quote_id = _submit_quote(client, supplier_headers, rfq.id, 100).json()["data"]["id"]
        response = client.patch(f"/api/quotes/{quote_id}", json={"status": "maybe"}, headers=buyer_headers)
        assert response.status_code == 400

    def test_buyer_quotes_grouped(self, client, buyer_headers, supplier_headers, rfq):
        _submit_quote(client, supplier_headers, rfq.id, 100)

        response = client.get("/api/quotes/buyer", headers=buyer_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalQuotes"] == 1
        assert data["quotesByRfq"][0]["rfq"]["id"] == rfq.id

        response = client.get("/api/quotes/supplier", headers=supplier_headers)
        assert [q["rfqId"] for q in response.json()["data"]] == [rfq.id]


class TestRFQs:

    def test_create_and_list(self, client, buyer_headers):
        response = client.post("/api/rfqs", json={
            "title": "Stainless fasteners",
            "description": "M6 bolts, 10k units",
            "category": "Hardware",
            "budget": 5000,
        }, headers=buyer_headers)
        assert response.status_code == 201
        assert response.json()["data"]["currency"] == "INR"

        response = client.get("/api/rfqs", params={"category": "Hardware"})
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert body["data"][0]["title"] == "Stainless fasteners"

    def test_supplier_cannot_create_rfq(self, client, supplier_headers):
        response = client.post("/api/rfqs", json={"title": "x", "description": "y"}, headers=supplier_headers)
        assert response.status_code == 403

    def test_supplier_sees_only_own_quote_on_rfq(self, client, make_supplier, rfq):
        s1 = make_supplier("Mine")
        s2 = make_supplier("Theirs")
        _submit_quote(client, auth_headers(s1.user), rfq.id, 100)
        _submit_quote(client, auth_headers(s2.user), rfq.id, 90)

        response = client.get(f"/api/rfqs/{rfq.id}", headers=auth_headers(s1.user))
        quotes = response.json()["data"]["quotes"]
        assert [q["supplierId"] for q in quotes] == [s1.id]


class TestSettlement:

    @pytest.fixture
    def order_id(self, client, buyer_headers, supplier_headers, rfq):
        quote_id = _submit_quote(client, supplier_headers, rfq.id, 100).json()["data"]["id"]
        response = client.patch(f"/api/quotes/{quote_id}", json={"status": "accepted"}, headers=buyer_headers)
        return response.json()["data"]["order"]["id"]

    @pytest.fixture
    def funded_escrow(self, client, buyer_headers, order_id):
        escrow_id = client.post("/api/escrow", json={"orderId": order_id}, headers=buyer_headers).json()["data"]["id"]
        response = client.post(
            f"/api/escrow/{escrow_id}/fund",
            json={"paymentMethod": "neft", "paymentReference": "NEFT-991"},
            headers=buyer_headers,
        )
        assert response.json()["data"]["status"] == "funded"
        return escrow_id

    def test_passing_qc_releases_escrow(self, client, buyer_headers, order_id, funded_escrow):
        response = client.post("/api/qc/reports", json={
            "orderId": order_id,
            "photos": ["https://cdn.example.com/qc/a.jpg"],
            "score": 85,
        }, headers=buyer_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "passed"
        assert data["orderStatus"] == "delivered"
        assert data["escrowRelease"] == "released"

        escrow = client.get("/api/escrow", params={"orderId": order_id}, headers=buyer_headers).json()["data"]
        assert escrow["status"] == "released"
        assert escrow["qcPassed"] is True
        assert escrow["releasedAt"] is not None

    def test_failing_qc_disputes_order(self, client, buyer_headers, order_id, funded_escrow):
        response = client.post("/api/qc/reports", json={
            "orderId": order_id,
            "videos": ["https://cdn.example.com/qc/a.mp4"],
            "score": 40,
        }, headers=buyer_headers)
        assert response.status_code == 201
        assert response.json()["data"]["orderStatus"] == "disputed"

        escrow = client.get("/api/escrow", params={"orderId": order_id}, headers=buyer_headers).json()["data"]
        assert escrow["status"] == "funded"

        order = client.get(f"/api/orders/{order_id}", headers=buyer_headers).json()["data"]
        assert order["status"] == "disputed"
        assert order["qcReports"][0]["score"] == 40

    def test_qc_without_evidence_is_400(self, client, db, buyer_headers, order_id):
        response = client.post("/api/qc/reports", json={"orderId": order_id, "score": 90}, headers=buyer_headers)
        assert response.status_code == 400
        assert db.query(QCReport).count() == 0

    def test_notifier_crash_still_returns_201(self, client, db, notifier, buyer_headers, order_id, funded_escrow):
        with patch.object(notifier.channel, "publish", side_effect=RuntimeError("queue down")):
            response = client.post("/api/qc/reports", json={
                "orderId": order_id,
                "photos": ["https://cdn.example.com/qc/a.jpg"],
                "score": 85,
            }, headers=buyer_headers)

        assert response.status_code == 201
        assert db.query(QCReport).count() == 1

    def test_qc_reports_listing(self, client, buyer_headers, make_user, order_id):
        for score in (30, 80):
            client.post("/api/qc/reports", json={
                "orderId": order_id, "photos": ["https://cdn.example.com/qc/a.jpg"], "score": score,
            }, headers=buyer_headers)

        response = client.get("/api/qc/reports", params={"orderId": order_id}, headers=buyer_headers)
        assert [r["score"] for r in response.json()["data"]] == [80, 30]

        outsider = make_user(UserRole.BUYER)
        response = client.get("/api/qc/reports", params={"orderId": order_id}, headers=auth_headers(outsider))
        assert response.status_code == 403

    def test_transactions_listing_and_release(self, client, buyer_headers, supplier_headers, order_id):
        response = client.get("/api/transactions", params={"page": 1, "limit": 10}, headers=buyer_headers)
        body = response.json()
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
        transaction_id = body["data"][0]["id"]

        assert client.patch(f"/api/transactions/{transaction_id}/release", headers=supplier_headers).status_code == 403

        response = client.patch(f"/api/transactions/{transaction_id}/release", headers=buyer_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "released"

        assert client.patch(f"/api/transactions/{transaction_id}/release", headers=buyer_headers).status_code == 409

    def test_orders_visible_to_both_parties(self, client, buyer_headers, supplier_headers, order_id):
        for headers in (buyer_headers, supplier_headers):
            orders = client.get("/api/orders", headers=headers).json()["data"]
            assert [o["id"] for o in orders] == [order_id]


class TestNotificationInbox:

    @pytest.fixture
    def inbox(self, db, buyer):
        from trademart.db.models import Notification
        rows = [
            Notification(user_id=buyer.id, type="quote_received", title=f"Quote {i}", message="m", data={}, read=False)
            for i in range(3)
        ]
        db.add_all(rows)
        db.commit()
        return [r.id for r in rows]

    def test_list_mark_and_delete(self, client, buyer_headers, inbox):
        body = client.get("/api/notifications", headers=buyer_headers).json()
        assert body["unreadCount"] == 3
        assert len(body["data"]) == 3

        response = client.post(f"/api/notifications/{inbox[0]}/read", headers=buyer_headers)
        assert response.json()["data"]["read"] is True

        body = client.get("/api/notifications", params={"unreadOnly": "true"}, headers=buyer_headers).json()
        assert body["unreadCount"] == 2
        assert len(body["data"]) == 2

        assert client.post("/api/notifications/read-all", headers=buyer_headers).json()["data"]["updated"] == 2

        assert client.delete(f"/api/notifications/{inbox[1]}", headers=buyer_headers).status_code == 200
        assert client.get("/api/notifications", headers=buyer_headers).json()["total"] == 2

    def test_cannot_touch_other_users_notifications(self, client, make_user, inbox):
        other = make_user(UserRole.BUYER)
        response = client.post(f"/api/notifications/{inbox[0]}/read", headers=auth_headers(other))
        assert response.status_code == 404


class TestAdminAndHealth:

    def test_audit_logs_admin_only(self, client, buyer_headers, make_user, supplier_headers, rfq):
        _submit_quote(client, supplier_headers, rfq.id, 100)

        assert client.get("/api/audit/logs", headers=buyer_headers).status_code == 403

        admin = make_user(UserRole.ADMIN)
        response = client.get("/api/audit/logs", params={"action": "submit_quote"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["data"]["database"] == "ok"
