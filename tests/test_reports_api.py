"""
API tests for the auth, profile and report endpoints.

The key-value store dependency is replaced by an in-memory store; tokens
are real JWTs obtained through the sign-in endpoint.
"""

import pytest
from fastapi.testclient import TestClient

from api.database.repositories.kv_store import get_kv_store
from api.main import app
from api.models.report_models import ReportStatus
from api.models.user_models import Role
from tests.factories import BASE_LAT, BASE_LNG, InMemoryKVStore, make_report, make_user

PASSWORD = "secret123"


@pytest.fixture
def store():
    kv = InMemoryKVStore()
    for user in (
        make_user(Role.USER, "Jan Burger", "jan@example.nl", PASSWORD),
        make_user(Role.WORKER, "Wim Werker", "wim@grofvuil.nl", PASSWORD),
        make_user(Role.ADMIN, "Anna Admin", "anna@grofvuil.nl", PASSWORD),
    ):
        kv.data[f"user:{user.id}"] = user.to_document()
        kv.data[f"user-email:{user.email}"] = {"id": user.id}
    return kv


@pytest.fixture
def client(store, mock_env_vars):
    """Test client backed by the in-memory store."""
    app.dependency_overrides[get_kv_store] = lambda: store

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def _token(client, email):
    response = client.post("/api/auth/signin", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["session"]["access_token"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def citizen_headers(client):
    return _auth(_token(client, "jan@example.nl"))


@pytest.fixture
def worker_headers(client):
    return _auth(_token(client, "wim@grofvuil.nl"))


@pytest.fixture
def admin_headers(client):
    return _auth(_token(client, "anna@grofvuil.nl"))


def _report_body(lat=BASE_LAT, lng=BASE_LNG, **extra):
    body = {
        "type": "Mattress",
        "description": "Old mattress next to the container",
        "location": {"lat": lat, "lng": lng},
        "address": "5, Stationsplein",
    }
    body.update(extra)
    return body


class TestHealth:
    """Test the health endpoint."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data
        assert "X-Request-ID" in response.headers


class TestAuthEndpoints:
    """Test sign-up, sign-in and the current user."""

    def test_signup_then_signin(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "New@Example.nl", "password": "welkom01", "name": "Nieuw"},
        )
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "new@example.nl"
        assert user["role"] == "user"
        assert "passwordHash" not in user

        response = client.post(
            "/api/auth/signin", json={"email": "new@example.nl", "password": "welkom01"}
        )
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["token_type"] == "bearer"
        assert session["access_token"]

    def test_signup_ignores_requested_role(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "mal@example.nl", "password": "welkom01", "name": "Mal", "role": "admin"},
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "user"

    def test_signup_duplicate_email(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "jan@example.nl", "password": "welkom01", "name": "Jan"},
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "http_exception"

    def test_signin_wrong_password(self, client):
        response = client.post(
            "/api/auth/signin", json={"email": "jan@example.nl", "password": "nope"}
        )
        assert response.status_code == 401

    def test_me(self, client, worker_headers):
        response = client.get("/api/auth/me", headers=worker_headers)
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "worker"

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers=_auth("not-a-jwt"))
        assert response.status_code == 401

    def test_update_profile(self, client, citizen_headers):
        response = client.patch(
            "/api/users/profile",
            json={"neighborhood": "Almere Buiten", "avatar": "bear"},
            headers=citizen_headers,
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["neighborhood"] == "Almere Buiten"
        assert user["avatar"] == "bear"
        assert user["name"] == "Jan Burger"


class TestReportEndpoints:
    """Test listing and submitting reports."""

    def test_list_is_public_and_wrapped(self, client, store):
        store.put_reports(make_report("a"))
        response = client.get("/api/reports")
        assert response.status_code == 200
        reports = response.json()["reports"]
        assert reports[0]["id"] == "report:a"
        assert reports[0]["userId"] == "user-id"
        assert reports[0]["createdAt"].endswith("Z")

    def test_anonymous_owner_is_hidden_from_the_public(self, client, store, citizen_headers, worker_headers):
        store.put_reports(make_report("anon", user_name="Anonymous User"))

        public = client.get("/api/reports").json()["reports"][0]
        owner = client.get("/api/reports", headers=citizen_headers).json()["reports"][0]
        staff = client.get("/api/reports", headers=worker_headers).json()["reports"][0]

        assert public["userId"] == ""
        assert owner["userId"] == "user-id"
        assert staff["userId"] == "user-id"

    def test_create_report(self, client, citizen_headers, store):
        response = client.post("/api/reports", json=_report_body(), headers=citizen_headers)
        assert response.status_code == 201
        report = response.json()["report"]
        assert report["status"] == "reported"
        assert report["userName"] == "Jan Burger"
        assert report["id"] in store.data

    def test_create_without_token_is_anonymous(self, client, store):
        response = client.post("/api/reports", json=_report_body())
        assert response.status_code == 201
        report = response.json()["report"]
        assert report["userId"].startswith("anon-")
        assert report["userName"] == "Anonymous User"
        assert report["id"] in store.data

    def test_submitters_without_account_share_rate_limit(self, client):
        for i in range(5):
            response = client.post("/api/reports", json=_report_body(lat=BASE_LAT + i * 0.001))
            assert response.status_code == 201
        response = client.post("/api/reports", json=_report_body(lat=BASE_LAT + 0.01))
        assert response.status_code == 429

    def test_photo_data_url_without_payload(self, client, citizen_headers):
        response = client.post(
            "/api/reports",
            json=_report_body(photo="data:image/png;base64"),
            headers=citizen_headers,
        )
        assert response.status_code == 400
        assert "payload" in response.json()["message"]

    def test_create_validates_body(self, client, citizen_headers):
        response = client.post(
            "/api/reports", json=_report_body(lat=120), headers=citizen_headers
        )
        assert response.status_code == 422
        assert response.json()["error_type"] == "validation_error"

    def test_blank_type_is_rejected(self, client, citizen_headers):
        response = client.post(
            "/api/reports", json=_report_body(type="   "), headers=citizen_headers
        )
        assert response.status_code == 422

    def test_duplicate_within_radius_is_rejected_server_side(self, client, citizen_headers):
        assert client.post("/api/reports", json=_report_body(), headers=citizen_headers).status_code == 201
        response = client.post(
            "/api/reports", json=_report_body(lat=BASE_LAT + 0.00003), headers=citizen_headers
        )
        assert response.status_code == 409

    def test_rate_limit_is_enforced_server_side(self, client, citizen_headers):
        for i in range(5):
            response = client.post(
                "/api/reports", json=_report_body(lat=BASE_LAT + i * 0.001), headers=citizen_headers
            )
            assert response.status_code == 201
        response = client.post(
            "/api/reports", json=_report_body(lat=BASE_LAT + 0.01), headers=citizen_headers
        )
        assert response.status_code == 429

    def test_my_reports(self, client, citizen_headers, store):
        store.put_reports(make_report("mine"), make_report("theirs", user_id="other"))
        response = client.get("/api/reports/mine", headers=citizen_headers)
        assert [r["id"] for r in response.json()["reports"]] == ["report:mine"]

    def test_nearby_filter(self, client, store):
        store.put_reports(make_report("near"), make_report("far", lat=BASE_LAT + 0.05))
        response = client.get(
            "/api/reports", params={"lat": BASE_LAT, "lng": BASE_LNG, "radius_km": 2}
        )
        reports = response.json()["reports"]
        assert [r["id"] for r in reports] == ["report:near"]
        assert reports[0]["distanceKm"] == 0

    def test_distance_sort_needs_reference_point(self, client):
        response = client.get("/api/reports", params={"sort": "distance"})
        assert response.status_code == 400


class TestStatusEndpoint:
    """Test role-gated status changes."""

    def test_worker_updates_status(self, client, worker_headers, store):
        store.put_reports(make_report("a"))
        response = client.patch(
            "/api/reports/report:a/status", json={"status": "in_progress"}, headers=worker_headers
        )
        assert response.status_code == 200
        report = response.json()["report"]
        assert report["status"] == "in_progress"
        assert report["updatedBy"] == "Wim Werker"
        assert report["updatedAt"]

    def test_encoded_id_is_accepted(self, client, worker_headers, store):
        store.put_reports(make_report("a"))
        response = client.patch(
            "/api/reports/report%3Aa/status", json={"status": "collected"}, headers=worker_headers
        )
        assert response.status_code == 200

    def test_citizen_is_forbidden(self, client, citizen_headers, store):
        store.put_reports(make_report("a"))
        response = client.patch(
            "/api/reports/report:a/status", json={"status": "collected"}, headers=citizen_headers
        )
        assert response.status_code == 403

    def test_without_token_is_unauthorized(self, client, store):
        store.put_reports(make_report("a"))
        response = client.patch("/api/reports/report:a/status", json={"status": "collected"})
        assert response.status_code == 401

    def test_backwards_is_conflict(self, client, worker_headers, store):
        store.put_reports(make_report("a", status=ReportStatus.COLLECTED))
        response = client.patch(
            "/api/reports/report:a/status", json={"status": "reported"}, headers=worker_headers
        )
        assert response.status_code == 409

    def test_unknown_status_value(self, client, worker_headers, store):
        store.put_reports(make_report("a"))
        response = client.patch(
            "/api/reports/report:a/status", json={"status": "gemeld"}, headers=worker_headers
        )
        assert response.status_code == 422

    def test_unknown_report(self, client, worker_headers):
        response = client.patch(
            "/api/reports/report:missing/status", json={"status": "collected"}, headers=worker_headers
        )
        assert response.status_code == 404


class TestAdminEndpoints:
    """Test delete, sample data and statistics."""

    def test_admin_deletes_by_full_id(self, client, admin_headers, store):
        store.put_reports(make_report("a"))
        response = client.delete("/api/reports/report:a", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert "report:a" not in store.data

    def test_admin_deletes_by_bare_id(self, client, admin_headers, store):
        store.put_reports(make_report("a"))
        assert client.delete("/api/reports/a", headers=admin_headers).status_code == 200
        assert "report:a" not in store.data

    def test_delete_missing_report(self, client, admin_headers):
        assert client.delete("/api/reports/report:missing", headers=admin_headers).status_code == 404

    def test_worker_cannot_delete(self, client, worker_headers, store):
        store.put_reports(make_report("a"))
        assert client.delete("/api/reports/report:a", headers=worker_headers).status_code == 403
        assert "report:a" in store.data

    def test_load_sample_data(self, client, admin_headers, store):
        sample = [
            {"type": "Sofa", "location": {"lat": BASE_LAT, "lng": BASE_LNG}, "address": "2, Markt"},
            {"id": "123-xyz", "type": "Fridge", "location": {"lat": BASE_LAT, "lng": BASE_LNG}},
        ]
        response = client.post(
            "/api/reports/load-sample-data", json={"sampleReports": sample}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 2}
        assert "report:123-xyz" in store.data

    def test_load_sample_data_empty(self, client, admin_headers):
        response = client.post(
            "/api/reports/load-sample-data", json={"sampleReports": []}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_load_sample_data_non_text_id(self, client, admin_headers, store):
        sample = [{"id": 5, "type": "Sofa", "location": {"lat": BASE_LAT, "lng": BASE_LNG}}]
        response = client.post(
            "/api/reports/load-sample-data", json={"sampleReports": sample}, headers=admin_headers
        )
        assert response.status_code == 400
        assert not any(key.startswith("report:") for key in store.data)

    def test_load_sample_data_requires_admin(self, client, worker_headers):
        response = client.post(
            "/api/reports/load-sample-data",
            json={"sampleReports": [{"type": "Sofa"}]},
            headers=worker_headers,
        )
        assert response.status_code == 403

    def test_statistics(self, client, admin_headers, store):
        store.put_reports(make_report("a"), make_report("b", address="4, Grote Markt"))
        response = client.get("/api/reports/statistics", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["totals"]["total"] == 2
        assert data["totals"]["inProgress"] == 0
        assert data["resolutionTime"] is None
        assert {h["street"] for h in data["hotspots"]} == {"Stationsplein", "Grote Markt"}

    def test_statistics_requires_admin(self, client, citizen_headers):
        assert client.get("/api/reports/statistics", headers=citizen_headers).status_code == 403
