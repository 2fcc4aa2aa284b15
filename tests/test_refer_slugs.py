"""Tests for the operator referral slug API."""

import pytest

from tests.conftest import ADMIN_KEY

AUTH = {"X-API-Key": ADMIN_KEY}


class TestAuth:
    @pytest.mark.parametrize("headers", [{}, {"X-API-Key": "wrong"}])
    def test_requires_key(self, client, headers):
        assert client.get("/admin/refer-slugs", headers=headers).status_code == 401
        assert client.post("/admin/refer-slugs", headers=headers,
                           json={"public_slug": "new-one", "product_offer_id": 42}).status_code == 401
        assert client.delete("/admin/refer-slugs/1", headers=headers).status_code == 401

    def test_401_uses_error_envelope(self, client):
        resp = client.get("/admin/refer-slugs", headers={"X-API-Key": "wrong"})
        assert resp.json() == {"status": "error", "message": "Invalid API key."}


class TestCrud:
    def test_list(self, client):
        resp = client.get("/admin/refer-slugs", headers=AUTH)
        assert resp.status_code == 200
        slugs = {s["public_slug"]: s for s in resp.json()}
        assert set(slugs) == {"abc123", "old-link"}
        assert slugs["abc123"]["vendor_name"] == "Daraz"
        assert slugs["abc123"]["refer_url"].endswith("/refer/abc123")
        assert slugs["old-link"]["is_active"] is False

    def test_create_then_redirect(self, client):
        resp = client.post("/admin/refer-slugs", headers=AUTH,
                           json={"public_slug": "phone-deal", "product_offer_id": 43, "campaign_tag": "tihar"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["public_slug"] == "phone-deal"
        assert body["is_active"] is True
        assert body["campaign_tag"] == "tihar"

        redirect = client.get("/refer/phone-deal", follow_redirects=False)
        assert redirect.status_code == 302
        assert redirect.headers["location"] == "https://vendor.example/p/43?ref=y"

    def test_create_duplicate_active_409(self, client):
        resp = client.post("/admin/refer-slugs", headers=AUTH,
                           json={"public_slug": "abc123", "product_offer_id": 43})
        assert resp.status_code == 409
        assert resp.json() == {"status": "error", "message": "Public slug already exists"}

    def test_reuse_slug_of_deactivated_link(self, client):
        resp = client.post("/admin/refer-slugs", headers=AUTH,
                           json={"public_slug": "old-link", "product_offer_id": 43})
        assert resp.status_code == 201
        assert client.get("/refer/old-link", follow_redirects=False).status_code == 302

    def test_create_unknown_offer_400(self, client):
        resp = client.post("/admin/refer-slugs", headers=AUTH,
                           json={"public_slug": "ghost", "product_offer_id": 999})
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "message": "Product offer ID 999 not found."}

    @pytest.mark.parametrize("slug", ["ab", "has space", "semi;colon", "x" * 51])
    def test_create_invalid_slug_400(self, client, slug):
        resp = client.post("/admin/refer-slugs", headers=AUTH,
                           json={"public_slug": slug, "product_offer_id": 42})
        assert resp.status_code == 400

    def test_update(self, client):
        resp = client.put("/admin/refer-slugs/1", headers=AUTH,
                          json={"product_offer_id": 43, "campaign_tag": "moved"})
        assert resp.status_code == 200
        assert resp.json()["product_offer_id"] == 43
        assert client.get("/refer/abc123", follow_redirects=False).headers["location"] == \
            "https://vendor.example/p/43?ref=y"

    def test_update_empty_body_400(self, client):
        assert client.put("/admin/refer-slugs/1", headers=AUTH, json={}).status_code == 400

    def test_update_unknown_slug_404(self, client):
        assert client.put("/admin/refer-slugs/999", headers=AUTH,
                          json={"campaign_tag": "x"}).status_code == 404

    def test_oversized_slug_id_400(self, client):
        resp = client.put("/admin/refer-slugs/99999999999999999999", headers=AUTH,
                          json={"campaign_tag": "x"})
        assert resp.status_code == 400

    def test_reactivating_into_collision_409(self, client):
        client.post("/admin/refer-slugs", headers=AUTH,
                    json={"public_slug": "old-link", "product_offer_id": 43})
        resp = client.put("/admin/refer-slugs/2", headers=AUTH, json={"is_active": True})
        assert resp.status_code == 409

    def test_delete_deactivates(self, client):
        resp = client.delete("/admin/refer-slugs/1", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json() == {"status": "inactive", "id": 1}

        assert client.get("/refer/abc123", follow_redirects=False).status_code == 404
        listed = {s["id"]: s for s in client.get("/admin/refer-slugs", headers=AUTH).json()}
        assert listed[1]["is_active"] is False

    def test_delete_unknown_404(self, client):
        assert client.delete("/admin/refer-slugs/999", headers=AUTH).status_code == 404
