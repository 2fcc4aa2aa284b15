"""Tests for operator analytics."""

from app.models.tables import ClickEvent

from tests.conftest import ADMIN_KEY, DARAZ_SECRET

AUTH = {"X-API-Key": ADMIN_KEY}


def _record_traffic(client, drain, fetch_all):
    client.get("/refer/abc123", headers={"CF-Connecting-IP": "203.0.113.9"}, follow_redirects=False)
    client.get("/refer/abc123", headers={"CF-Connecting-IP": "203.0.113.9"}, follow_redirects=False)
    client.get("/refer/abc123", headers={"CF-Connecting-IP": "198.51.100.4"}, follow_redirects=False)
    drain()
    click_id = fetch_all(ClickEvent)[0].id

    secret = {"secret": DARAZ_SECRET}
    client.post("/postback/daraz", params=secret,
                json={"order_id": "O-1", "commission": "120.50", "status": "approved", "subid1": str(click_id)})
    client.post("/postback/daraz", params=secret,
                json={"order_id": "O-2", "commission": "10", "status": "pending", "subid1": str(click_id)})
    client.post("/postback/daraz", params=secret,
                json={"order_id": "O-3", "commission": "7", "status": "approved", "sku": "SKU-43"})


def test_requires_key(client):
    assert client.get("/admin/analytics/overview").status_code == 401


def test_overview(client, drain, fetch_all):
    _record_traffic(client, drain, fetch_all)

    resp = client.get("/admin/analytics/overview", headers=AUTH)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_clicks"] == 3
    assert body["unique_visitors"] == 2
    assert body["conversions"] == {"approved": 2, "pending": 1}
    assert body["total_conversions"] == 3
    assert body["approved_commission_cents"] == 12750


def test_offer_breakdown(client, drain, fetch_all):
    _record_traffic(client, drain, fetch_all)

    body = client.get("/admin/analytics/offers/42", headers=AUTH).json()
    assert body["offer_id"] == 42
    assert body["vendor_name"] == "Daraz"
    assert body["total_clicks"] == 3
    assert body["conversions"] == {"approved": 1, "pending": 1}
    assert body["approved_commission_cents"] == 12050

    other = client.get("/admin/analytics/offers/43", headers=AUTH).json()
    assert other["total_clicks"] == 0
    assert other["conversions"] == {"approved": 1}


def test_unknown_offer_404(client):
    resp = client.get("/admin/analytics/offers/999", headers=AUTH)
    assert resp.status_code == 404
    assert resp.json() == {"status": "error", "message": "Product offer not found"}


def test_days_validated(client):
    assert client.get("/admin/analytics/overview?days=0", headers=AUTH).status_code == 400
