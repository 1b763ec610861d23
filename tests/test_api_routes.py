"""End-to-end tests for the HTTP routes against an in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from aviary.core.app_factory import create_app
from aviary.core.container import build_container
from aviary.utils.ttl_cache import CacheKeys

ALICE = {"X-User-Id": "alice"}


@pytest.fixture
def container(fake_store):
    return build_container(store=fake_store)


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


class TestSuggestions:
    def test_requires_user(self, client: TestClient) -> None:
        response = client.get("/v1/suggestions")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"

    def test_returns_ranked_suggestions(self, client: TestClient, fake_store) -> None:
        heard = datetime.now(timezone.utc) - timedelta(hours=2)
        fake_store.add_species(1, "alice", "Blue Jay", "common")
        fake_store.add_species(2, "alice", "Barred Owl", "rare")
        fake_store.add_detection("alice", "Blue Jay", 250, species_id=1, last_heard_at=heard)
        fake_store.add_detection("alice", "Barred Owl", 30, species_id=2)
        fake_store.add_photos("alice", 2, 1)

        response = client.get("/v1/suggestions", headers=ALICE)

        assert response.status_code == 200
        body = response.json()
        assert [s["id"] for s in body["suggestions"]] == [1, 2]
        assert body["top_suggestion"]["id"] == 1
        assert body["top_suggestion"]["score"] == 100
        assert body["suggestions"][1]["reason"] == "Frequent visitor (30 detections this year)"
        assert "generated_at" in body

    def test_empty_catalog(self, client: TestClient) -> None:
        body = client.get("/v1/suggestions", headers=ALICE).json()

        assert body["suggestions"] == []
        assert body["top_suggestion"] is None

    @pytest.mark.parametrize("limit", [0, 51])
    def test_limit_out_of_range_is_rejected(self, client: TestClient, limit: int) -> None:
        response = client.get("/v1/suggestions", params={"limit": limit}, headers=ALICE)

        assert response.status_code == 422

    def test_results_are_cached_per_user_and_limit(
        self, client: TestClient, container, fake_store
    ) -> None:
        fake_store.add_species(1, "alice", "Blue Jay")
        fake_store.add_detection("alice", "Blue Jay", 50, species_id=1)

        client.get("/v1/suggestions", params={"limit": 5}, headers=ALICE)
        fake_store.add_species(2, "alice", "Barred Owl")
        fake_store.add_detection("alice", "Barred Owl", 50, species_id=2)
        cached = client.get("/v1/suggestions", params={"limit": 5}, headers=ALICE).json()

        assert len(cached["suggestions"]) == 1
        assert container.cache.get(CacheKeys.suggestions("alice", 5)) is not None

    def test_linking_detections_refreshes_suggestions(self, client: TestClient, fake_store) -> None:
        fake_store.add_species(1, "alice", "Blue Jay")
        fake_store.add_detection("alice", "blue jay", 50)

        assert client.get("/v1/suggestions", headers=ALICE).json()["suggestions"] == []

        linked = client.post("/v1/species/1/detections/link", headers=ALICE)
        assert linked.status_code == 200
        assert linked.json() == {"linked": 1}

        body = client.get("/v1/suggestions", headers=ALICE).json()
        assert [s["id"] for s in body["suggestions"]] == [1]


class TestCapacity:
    def test_species_gallery_full(self, client: TestClient, fake_store) -> None:
        fake_store.add_species(1, "alice", "Blue Jay")
        fake_store.add_photos("alice", 1, 8)

        body = client.get("/v1/species/1/capacity", headers=ALICE).json()

        assert body["allowed"] is False
        assert body["current_count"] == 8
        assert body["limit"] == 8
        assert "swap" in body["error"]

    def test_species_gallery_swap(self, client: TestClient, fake_store) -> None:
        fake_store.add_species(1, "alice", "Blue Jay")
        fake_store.add_photos("alice", 1, 8)

        body = client.get(
            "/v1/species/1/capacity", params={"replace_photo_id": 3}, headers=ALICE
        ).json()

        assert body["allowed"] is True
        assert body["error"] is None

    def test_inbox(self, client: TestClient, fake_store) -> None:
        fake_store.add_photos("alice", None, 23)

        body = client.get("/v1/inbox/capacity", headers=ALICE).json()

        assert body == {"allowed": True, "current_count": 23, "limit": 24, "error": None}

    def test_link_unknown_species(self, client: TestClient) -> None:
        response = client.post("/v1/species/42/detections/link", headers=ALICE)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "species_not_found"

    def test_link_all_detections(self, client: TestClient, fake_store) -> None:
        fake_store.add_species(1, "alice", "Blue Jay")
        fake_store.add_species(2, "alice", "Barred Owl")
        fake_store.add_detection("alice", "blue jay", 50)
        fake_store.add_detection("alice", "BARRED OWL", 20)
        fake_store.add_detection("alice", "Mystery Bird", 20)

        response = client.post("/v1/detections/link", headers=ALICE)

        assert response.status_code == 200
        assert response.json() == {"linked": 2}


class TestRateLimiting:
    def test_headers_on_allowed_response(self, client: TestClient) -> None:
        response = client.get("/v1/inbox/capacity", headers=ALICE)

        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert "X-RateLimit-Reset" in response.headers

    def test_read_budget_exhausted(self, client: TestClient) -> None:
        for _ in range(100):
            assert client.get("/v1/inbox/capacity", headers=ALICE).status_code == 200

        response = client.get("/v1/inbox/capacity", headers=ALICE)

        assert response.status_code == 429
        assert response.json()["detail"] == "Too many requests. Please try again later."
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) >= 1

    def test_budgets_are_per_path(self, client: TestClient) -> None:
        for _ in range(20):
            client.post("/v1/species/1/detections/link", headers=ALICE)

        assert client.post("/v1/species/1/detections/link", headers=ALICE).status_code == 429
        assert client.get("/v1/inbox/capacity", headers=ALICE).status_code == 200

    def test_forwarded_clients_have_separate_budgets(self, client: TestClient) -> None:
        first = {**ALICE, "X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        second = {**ALICE, "X-Forwarded-For": "198.51.100.2"}
        for _ in range(20):
            client.post("/v1/species/1/detections/link", headers=first)

        assert client.post("/v1/species/1/detections/link", headers=first).status_code == 429
        assert client.post("/v1/species/1/detections/link", headers=second).status_code == 400


def test_health_reports_running_sweepers(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "sweepers": {"cache": True, "rate_limit": True},
    }


def test_sweepers_stop_on_shutdown(container) -> None:
    with TestClient(create_app(container)):
        assert all(s.is_running for s in container.sweepers)

    assert not any(s.is_running for s in container.sweepers)
