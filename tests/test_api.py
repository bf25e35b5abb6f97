"""HTTP tests for the rate card API using FastAPI TestClient.

The app is wired to the in-memory test service; no lifespan runs, so the
shared database stays open for the whole test.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ratecard.app import create_app
from ratecard.config import Settings

OWNER = {"X-Owner-ID": "owner-1", "X-Subscription-Tier": "pro"}
STRANGER = {"X-Owner-ID": "owner-2", "X-Subscription-Tier": "elite"}

METRICS = {
    "platforms": [{"platform": "instagram", "followers": 150000, "engagement_rate": 4.0}],
    "niche": "tech",
    "location": {"city": "Mumbai", "city_tier": "metro"},
    "experience": "beginner",
}


@pytest.fixture
def client(service, db_conn) -> TestClient:
    services = {
        "_settings": Settings(_env_file=None),  # type: ignore[call-arg]
        "db_conn": db_conn,
        "ratecard_service": service,
    }
    return TestClient(create_app(services))


@pytest.fixture
def card(client) -> dict:
    resp = client.post(
        "/rate-cards", json={"metrics": METRICS, "title": "Tech Reviews"}, headers=OWNER
    )
    assert resp.status_code == 201
    return resp.json()


class TestOwnerRoutes:
    def test_create_returns_priced_catalog(self, card):
        assert card["version"]["current"] == 1
        assert card["title"] == "Tech Reviews"
        reel = next(r for r in card["rates"] if r["deliverable_type"] == "reel")
        assert reel["chosen_price"] == "25000"
        assert "password_hash" not in card["sharing"]

    def test_missing_identity_is_unauthorized(self, client):
        resp = client.post("/rate-cards", json={"metrics": METRICS})
        assert resp.status_code == 401

    def test_unknown_tier_is_rejected(self, client):
        headers = {"X-Owner-ID": "owner-1", "X-Subscription-Tier": "platinum"}
        resp = client.post("/rate-cards", json={"metrics": METRICS}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["errors"][0]["field"] == "subscription_tier"

    def test_get_includes_effective_status(self, client, card):
        resp = client.get(f"/rate-cards/{card['id']}", headers=OWNER)
        assert resp.status_code == 200
        assert resp.json()["effective_status"] == "draft"

    def test_foreign_catalog_is_not_found(self, client, card):
        resp = client.get(f"/rate-cards/{card['id']}", headers=STRANGER)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RC4200"

    def test_list(self, client, card):
        resp = client.get("/rate-cards", params={"status": "draft"}, headers=OWNER)
        body = resp.json()
        assert body["total"] == 1
        assert body["catalogs"][0]["id"] == card["id"]
        assert "password_hash" not in body["catalogs"][0]["sharing"]

    def test_quota(self, client, card):
        for _ in range(2):
            client.post("/rate-cards", json={"metrics": METRICS}, headers=OWNER)
        resp = client.post("/rate-cards", json={"metrics": METRICS}, headers=OWNER)
        assert resp.status_code == 403
        assert resp.json()["error"] == {
            "code": "RC4101",
            "message": "Rate card limit reached for your plan",
            "details": {"tier": "pro", "limit": 3, "current": 3},
        }


class TestEditing:
    def test_update_rates_and_version_conflict(self, client, card):
        url = f"/rate-cards/{card['id']}/rates"
        rates = {"rates": [{"platform": "instagram", "deliverable_type": "reel",
                            "chosen_price": "30000"}]}

        first = client.put(url, json=rates, params={"expected_version": 1}, headers=OWNER)
        assert first.status_code == 200
        assert first.json()["version"]["current"] == 2

        stale = client.put(url, json=rates, params={"expected_version": 1}, headers=OWNER)
        assert stale.status_code == 409
        assert stale.json()["error"]["details"]["actual_version"] == 2
        assert stale.headers["Retry-After"] == "1"

    def test_float_price_is_rejected(self, client, card):
        rates = {"rates": [{"platform": "instagram", "deliverable_type": "reel",
                            "chosen_price": 100.5}]}
        resp = client.put(f"/rate-cards/{card['id']}/rates", json=rates, headers=OWNER)
        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["errors"][0]["field"] == "rates.0.chosen_price"

    def test_rates_must_be_a_list(self, client, card):
        resp = client.put(f"/rate-cards/{card['id']}/rates", json={"rates": {}}, headers=OWNER)
        assert resp.status_code == 400

    def test_package_lifecycle(self, client, card):
        package = {
            "name": "Starter",
            "items": [{"platform": "instagram", "deliverable_type": "reel", "quantity": 2}],
            "package_price": "45000",
        }
        created = client.post(f"/rate-cards/{card['id']}/packages", json=package, headers=OWNER)
        assert created.status_code == 201
        package_id = created.json()["packages"][-1]["id"]

        duplicate = client.post(
            f"/rate-cards/{card['id']}/packages", json=package, headers=OWNER
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "RC4304"

        updated = client.put(
            f"/rate-cards/{card['id']}/packages/{package_id}",
            json={"package_price": "40000"},
            headers=OWNER,
        )
        assert updated.json()["packages"][-1]["savings"]["percentage"] == 20

        deleted = client.delete(
            f"/rate-cards/{card['id']}/packages/{package_id}", headers=OWNER
        )
        assert all(p["id"] != package_id for p in deleted.json()["packages"])

    def test_terms_and_history_restore(self, client, card):
        terms = client.put(
            f"/rate-cards/{card['id']}/terms", json={"payment_terms": "net_15"}, headers=OWNER
        )
        assert terms.json()["terms"]["payment_terms"] == "net_15"

        history = client.get(f"/rate-cards/{card['id']}/history", headers=OWNER).json()
        assert history["total"] == 1
        entry = history["entries"][0]
        assert entry["change_type"] == "terms_update"

        restored = client.post(
            f"/rate-cards/{card['id']}/history/{entry['id']}/restore", headers=OWNER
        )
        assert restored.json()["terms"]["payment_terms"] == "50_50"
        assert restored.json()["version"]["current"] == 3

    def test_metrics_update(self, client, card):
        resp = client.put(
            f"/rate-cards/{card['id']}/metrics",
            json={"metrics": {**METRICS, "niche": "food"}, "reset_prices": True},
            headers=OWNER,
        )
        assert resp.status_code == 200
        assert resp.json()["metrics"]["niche"] == "food"


class TestPublicRoutes:
    def test_publish_and_view(self, client, card):
        published = client.post(f"/rate-cards/{card['id']}/publish", headers=OWNER).json()
        public_id = published["sharing"]["public_id"]

        resp = client.get(f"/card/{public_id}", headers={"User-Agent": "pytest"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Tech Reviews"
        assert "advisory" not in body

    def test_password_protected_card(self, client, card):
        public_id = client.post(
            f"/rate-cards/{card['id']}/publish", headers=OWNER
        ).json()["sharing"]["public_id"]
        sharing = client.put(
            f"/rate-cards/{card['id']}/sharing",
            json={"require_password": True, "password": "letmein"},
            headers=OWNER,
        )
        assert sharing.status_code == 200
        assert "password_hash" not in sharing.json()["sharing"]

        assert client.get(f"/card/{public_id}").status_code == 401
        assert client.get(
            f"/card/{public_id}", headers={"X-RateCard-Password": "letmein"}
        ).status_code == 200
        assert client.get(
            f"/card/{public_id}", params={"password": "letmein"}
        ).status_code == 200

    def test_unknown_card(self, client):
        assert client.get("/card/NOPE00").status_code == 404

    def test_delete(self, client, card):
        resp = client.delete(f"/rate-cards/{card['id']}", headers=OWNER)
        assert resp.json() == {"status": "deleted", "id": card["id"]}
        assert client.get(f"/rate-cards/{card['id']}", headers=OWNER).status_code == 404
