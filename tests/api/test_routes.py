"""
API tests for the recommendation endpoints.

Runs the real application in mock mode: the in-memory repository is
seeded from data/sample_seed.json, so requests go through routing,
authentication, dependency injection and serialization exactly as in
production, minus Snowflake.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import reset_mock_repository
from src.config.settings import get_settings
from src.main import create_app


SEED_PATH = Path(__file__).resolve().parents[2] / "data" / "sample_seed.json"
API_KEY = "test-key"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_MOCK_MODE", "true")
    monkeypatch.setenv("MOCK_SEED_PATH", str(SEED_PATH))
    monkeypatch.setenv("API_KEYS", API_KEY)
    get_settings.cache_clear()
    reset_mock_repository()

    yield TestClient(create_app())

    reset_mock_repository()
    get_settings.cache_clear()


def reference_payload(**overrides) -> dict:
    payload = {
        "resource": {
            "id": "res-premed",
            "type": "video",
            "grade": ["all"],
            "subject": ["biology"],
            "student_profile": ["all"],
            "tags": ["premed"],
            "view_count": 50,
            "average_rating": 4,
            "created_at": "2026-10-09T12:00:00",
        },
        "students": [{
            "id": "student-1",
            "grade": "11th",
            "interests": ["biology", "volunteering"],
            "academic_profile": "high-achieving",
        }],
        "current_module": 3,
        "evaluated_at": "2026-10-19T12:00:00",
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    """Health endpoints don't need an API key."""

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["details"]["mock_mode"] is True

    def test_readiness_in_mock_mode(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_readiness_without_snowflake_credentials(self, client, monkeypatch):
        """An unreachable store is reported as not ready, not as a server error."""
        monkeypatch.setenv("SNOWFLAKE_MOCK_MODE", "false")
        for name in (
            "SNOWFLAKE_ACCOUNT",
            "SNOWFLAKE_USER",
            "SNOWFLAKE_PASSWORD",
            "SNOWFLAKE_PRIVATE_KEY_PATH",
            "SNOWFLAKE_PRIVATE_KEY_BASE64",
        ):
            monkeypatch.setenv(name, "")
        get_settings.cache_clear()

        response = client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        checks = {check["name"]: check for check in body["checks"]}
        assert checks["configuration"]["ok"] is False
        assert checks["store"]["ok"] is False
        assert "password or a private key" in checks["store"]["error"]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthentication:
    """Every recommendation endpoint requires X-API-Key."""

    def test_missing_key_is_forbidden(self, client):
        response = client.get("/api/v1/coaches/coach-1/recommendations")
        assert response.status_code == 403

    def test_wrong_key_is_forbidden(self, client):
        response = client.get(
            "/api/v1/coaches/coach-1/recommendations",
            headers={"X-API-Key": "not-a-key"},
        )
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Coach Recommendations
# ---------------------------------------------------------------------------

class TestCoachRecommendations:
    """Tests for /api/v1/coaches/{coach_id}/recommendations."""

    def test_returns_ranked_resources(self, client):
        response = client.get("/api/v1/coaches/coach-1/recommendations", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        scores = [r["relevance_score"] for r in body["resources"]]
        assert body["total"] == len(body["resources"]) > 0
        assert scores == sorted(scores, reverse=True)
        assert all(0 <= s <= 100 for s in scores)
        assert "matching_criteria" in body["resources"][0]

    def test_unknown_coach_is_404(self, client):
        response = client.get("/api/v1/coaches/nobody/recommendations", headers=HEADERS)
        assert response.status_code == 404

    def test_coach_without_active_students_gets_default_list(self, client):
        response = client.get("/api/v1/coaches/coach-3/recommendations", headers=HEADERS)

        assert response.status_code == 200
        resources = response.json()["resources"]
        assert [r["resource_id"] for r in resources] == [
            "res-first-meeting",
            "res-deadline-tracker",
            "res-mock-interview",
        ]
        assert {r["relevance_score"] for r in resources} == {80}

    def test_type_filter(self, client):
        response = client.get(
            "/api/v1/coaches/coach-1/recommendations",
            params={"type": "template"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        types = {r["type"] for r in response.json()["resources"]}
        assert types == {"template"}

    def test_unknown_type_is_rejected(self, client):
        response = client.get(
            "/api/v1/coaches/coach-1/recommendations",
            params={"type": "podcast"},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_limit(self, client):
        response = client.get(
            "/api/v1/coaches/coach-1/recommendations",
            params={"limit": 2},
            headers=HEADERS,
        )
        assert response.json()["total"] == 2

    def test_shared_resources_hidden_unless_requested(self, client):
        client.post(
            "/api/v1/resources/res-premed-path/interactions",
            json={"coach_id": "coach-1"},
            headers=HEADERS,
        )

        default = client.get("/api/v1/coaches/coach-1/recommendations", headers=HEADERS)
        with_shared = client.get(
            "/api/v1/coaches/coach-1/recommendations",
            params={"include_shared": "true"},
            headers=HEADERS,
        )

        assert "res-premed-path" not in [r["resource_id"] for r in default.json()["resources"]]
        assert "res-premed-path" in [r["resource_id"] for r in with_shared.json()["resources"]]


class TestSimilarCoaches:
    """Tests for /api/v1/coaches/{coach_id}/similar-coaches."""

    def test_finds_coach_with_overlapping_roster(self, client):
        response = client.get("/api/v1/coaches/coach-1/similar-coaches", headers=HEADERS)

        assert response.status_code == 200
        coaches = response.json()["coaches"]
        assert [c["coach_id"] for c in coaches] == ["coach-2"]
        assert coaches[0]["similarity"] == pytest.approx(0.4)


class TestCollaborativeRecommendations:
    """Tests for /api/v1/coaches/{coach_id}/recommendations/collaborative."""

    def test_uses_similar_coach_ratings(self, client):
        client.post(
            "/api/v1/resources/res-stem-portfolio/interactions",
            json={"coach_id": "coach-2", "rating": 5},
            headers=HEADERS,
        )

        response = client.get(
            "/api/v1/coaches/coach-1/recommendations/collaborative", headers=HEADERS
        )

        assert response.status_code == 200
        resources = response.json()["resources"]
        assert [r["resource_id"] for r in resources] == ["res-stem-portfolio"]
        assert resources[0]["collaborative_score"] == pytest.approx(0.4)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

class TestResourceEndpoints:
    """Tests for /api/v1/resources."""

    def test_record_interaction(self, client):
        response = client.post(
            "/api/v1/resources/res-premed-path/interactions",
            json={"coach_id": "coach-1", "rating": 5},
            headers=HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["access_count"] == 1
        assert body["rating"] == 5

    def test_interaction_for_unknown_resource_is_404(self, client):
        response = client.post(
            "/api/v1/resources/missing/interactions",
            json={"coach_id": "coach-1"},
            headers=HEADERS,
        )
        assert response.status_code == 404

    def test_interaction_rating_out_of_range_is_422(self, client):
        response = client.post(
            "/api/v1/resources/res-premed-path/interactions",
            json={"coach_id": "coach-1", "rating": 7},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_trending_counts_recent_interactions(self, client):
        for coach_id in ("coach-1", "coach-2"):
            client.post(
                "/api/v1/resources/res-premed-path/interactions",
                json={"coach_id": coach_id},
                headers=HEADERS,
            )

        response = client.get("/api/v1/resources/trending", headers=HEADERS)

        assert response.status_code == 200
        resources = response.json()["resources"]
        assert resources[0]["resource_id"] == "res-premed-path"
        assert resources[0]["trending_score"] == 2

    def test_similar_resources(self, client):
        response = client.get("/api/v1/resources/res-essay-guide/similar", headers=HEADERS)

        assert response.status_code == 200
        ids = [r["resource_id"] for r in response.json()["resources"]]
        assert ids == ["res-first-meeting"]

    def test_similar_for_unknown_resource_is_404(self, client):
        response = client.get("/api/v1/resources/missing/similar", headers=HEADERS)
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestScoringEndpoint:
    """Tests for POST /api/v1/scoring/relevance."""

    def test_scores_reference_scenario(self, client):
        response = client.post(
            "/api/v1/scoring/relevance", json=reference_payload(), headers=HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["relevance_score"] == 69
        assert body["matching_criteria"]["student_match"] is True
        assert body["match_reasons"] == ["Suitable for all grades", "Covers interests: biology"]

    def test_empty_student_list_is_422(self, client):
        response = client.post(
            "/api/v1/scoring/relevance",
            json=reference_payload(students=[]),
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_requires_api_key(self, client):
        response = client.post("/api/v1/scoring/relevance", json=reference_payload())
        assert response.status_code == 403
