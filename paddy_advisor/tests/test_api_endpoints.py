"""API endpoint tests: FastAPI endpoints over the in-memory fact store.

Tests the HTTP layer: request/response shapes, status codes, error mapping.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from paddy_advisor.errors import StoreUnavailable
from paddy_advisor.fact_store import FactStore
from paddy_advisor import main
from paddy_advisor.main import app, get_store
from paddy_advisor.memory_store import InMemoryFactStore


@pytest.fixture
def store():
    return InMemoryFactStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def failing_client():
    broken = MagicMock(spec=FactStore)
    broken.create_session.side_effect = StoreUnavailable("connection refused")
    broken.get_disease_details.side_effect = StoreUnavailable("connection refused")
    broken.verify_connection.side_effect = StoreUnavailable("connection refused")
    app.dependency_overrides[get_store] = lambda: broken
    yield TestClient(app)
    app.dependency_overrides.clear()


def _submit(client, **overrides):
    body = {"disease": "Rice Blast", "budget": 100, "location": "Kandy", "controlMethod": "Spray"}
    body.update(overrides)
    return client.post("/submit-input", json={k: v for k, v in body.items() if v is not None})


# =============================================================================
# SUBMIT INPUT
# =============================================================================

class TestSubmitInput:
    def test_success_shape(self, client):
        resp = _submit(client)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["instance"].startswith("UserInput_")

    def test_budget_as_string(self, client):
        assert _submit(client, budget="100.50").status_code == 200

    def test_control_method_optional(self, client):
        body = {"disease": "Rice Blast", "budget": 100, "location": "Kandy"}
        assert client.post("/submit-input", json=body).status_code == 200

    @pytest.mark.parametrize("missing", ["disease", "budget", "location"])
    def test_missing_field_is_400(self, client, missing):
        body = {"disease": "Rice Blast", "budget": 100, "location": "Kandy"}
        del body[missing]
        resp = client.post("/submit-input", json=body)
        assert resp.status_code == 400
        assert resp.json()["kind"] == "InputError"
        assert missing in resp.json()["error"]

    @pytest.mark.parametrize("budget", ["abc", -5, "NaN"])
    def test_invalid_budget_is_400(self, client, budget):
        resp = _submit(client, budget=budget)
        assert resp.status_code == 400
        assert resp.json()["kind"] == "InvalidBudget"

    def test_unknown_disease_is_500(self, client, store):
        resp = _submit(client, disease="Leaf Curl")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Unknown disease: Leaf Curl", "kind": "UnknownDisease"}
        assert store.cleanup_stale_sessions(max_age_ms=-10 ** 12) == 0

    def test_unknown_location_is_500(self, client):
        resp = _submit(client, location="Atlantis")
        assert resp.status_code == 500
        assert resp.json()["kind"] == "UnknownLocation"

    def test_store_failure_is_500(self, failing_client):
        resp = _submit(failing_client)
        assert resp.status_code == 500
        assert resp.json()["kind"] == "StoreUnavailable"

    @pytest.mark.parametrize("field,value", [("disease", 123), ("location", ["Kandy"]), ("controlMethod", 5)])
    def test_wrong_field_type_is_400(self, client, field, value):
        resp = _submit(client, **{field: value})
        assert resp.status_code == 400
        assert resp.json()["kind"] == "InputError"
        assert field in resp.json()["error"]

    def test_malformed_json_is_400(self, client):
        resp = client.post("/submit-input", content="{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["kind"] == "InputError"

    def test_error_shape_is_documented(self):
        responses = app.openapi()["paths"]["/submit-input"]["post"]["responses"]
        assert responses["400"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert responses["500"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


# =============================================================================
# SESSION PROJECTIONS
# =============================================================================

class TestSessionProjections:
    def test_disease_details(self, client):
        user_id = _submit(client).json()["instance"]
        resp = client.get(f"/user/{user_id}/disease-details")
        assert resp.status_code == 200
        (row,) = resp.json()
        assert row["disease_name"] == "Rice Blast"
        assert "Airborne Spores" in row["primary_sources"]
        assert row["symptoms"][0]["affected_parts"] == ["Leaf"]

    def test_suitable_treatments(self, client):
        user_id = _submit(client).json()["instance"]
        rows = client.get(f"/user/{user_id}/r-treatments-suitable").json()
        assert {r["treatment"] for r in rows} == {"T_RB_Tricyclazole", "T_RB_Isoprothiolane", "T_RB_Azoxystrobin"}
        assert set(rows[0]) >= {"product_name", "priority", "is_affordable", "is_suitable", "instructions"}

    def test_general_treatments(self, client):
        user_id = _submit(client, controlMethod="cultural").json()["instance"]
        rows = client.get(f"/user/{user_id}/general-treatments").json()
        assert rows[0]["control_method_name"] == "Balanced nitrogen and field sanitation"
        assert rows[0]["environment_impact"] == "No environment impact"

    def test_unknown_user_is_empty(self, client):
        assert client.get("/user/UserInput_missing/disease-details").json() == []
        assert client.get("/user/UserInput_missing/r-treatments-suitable").json() == []

    def test_delete_user(self, client):
        user_id = _submit(client).json()["instance"]
        resp = client.delete(f"/user/{user_id}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "instance": user_id}
        assert client.get(f"/user/{user_id}/disease-details").json() == []

    def test_read_failure_is_500(self, failing_client):
        resp = failing_client.get("/user/UserInput_x/disease-details")
        assert resp.status_code == 500
        assert resp.json()["kind"] == "StoreUnavailable"


# =============================================================================
# BACKGROUND PROJECTIONS
# =============================================================================

class TestBackgroundProjections:
    def test_disease_agent_ignores_case(self, client):
        resp = client.get("/disease-agent/rice blast")
        assert resp.json() == [{"scientific_name": "Magnaporthe oryzae", "type": "Fungus"}]

    def test_disease_environment_exact_name(self, client):
        (row,) = client.get("/disease-environment/Rice Blast").json()
        assert row == {"temperature": "Optimal", "humidity": "High",
                       "soil_moisture": "High", "rainfall_pattern": "VeryHigh"}
        assert client.get("/disease-environment/rice blast").json() == []

    def test_general_guidelines(self, client):
        rows = client.get("/general-guidelines").json()
        assert len(rows) == 3
        assert set(rows[0]) == {"guideline_name", "description", "guideline"}


# =============================================================================
# HEALTH & VOCABULARY
# =============================================================================

class TestHealthAndVocabulary:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data == {"status": "healthy", "backend": "InMemoryFactStore", "connected": True}

    def test_health_degraded(self, failing_client):
        resp = failing_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["connected"] is False

    def test_vocabulary(self, client):
        data = client.get("/vocabulary").json()
        assert data["tenant"] == "sri_lanka"
        assert "Rice Blast" in data["diseases"]
        assert "Kandy" in data["locations"]


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestLifecycle:
    def test_startup_warms_store_and_shutdown_stops_cleanup(self, monkeypatch):
        store = MagicMock(spec=FactStore)
        monkeypatch.setattr(main, "_store", store)

        with TestClient(app):
            store.warmup.assert_called_once()
            task = main._cleanup_task
            assert task is not None
            assert not task.done()

        assert main._cleanup_task is None
        store.close.assert_called_once()
