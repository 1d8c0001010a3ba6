"""
Tests for grofvuil/client/api_client.py using httpx.MockTransport.
"""

import json

import httpx
import pytest

from grofvuil.client.api_client import ApiClient, ApiError


def _client(handler, token=None) -> ApiClient:
    return ApiClient("http://api.test/api/", token=token, transport=httpx.MockTransport(handler))


class TestApiClient:
    """Requests built by the client and how responses are decoded."""

    def test_sign_in_posts_credentials(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"user": {"id": "1"}, "session": {"access_token": "t"}})

        with _client(handler) as api:
            body = api.sign_in("jan@example.nl", "secret123")

        assert seen["url"] == "http://api.test/api/auth/signin"
        assert seen["body"] == {"email": "jan@example.nl", "password": "secret123"}
        assert seen["auth"] is None
        assert body["session"]["access_token"] == "t"

    def test_token_is_sent_as_bearer(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer abc"
            return httpx.Response(200, json={"user": {"id": "1", "name": "Jan"}})

        with _client(handler, token="abc") as api:
            assert api.me() == {"id": "1", "name": "Jan"}

    def test_list_reports_drops_empty_filters(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert dict(request.url.params) == {"status": "reported"}
            return httpx.Response(200, json={"reports": [{"id": "report:a"}]})

        with _client(handler) as api:
            assert api.list_reports(status="reported", search=None) == [{"id": "report:a"}]

    def test_report_id_is_url_encoded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.raw_path == b"/api/reports/report%3A123-abc/status"
            assert json.loads(request.content) == {"status": "collected"}
            return httpx.Response(200, json={"report": {"id": "report:123-abc"}})

        with _client(handler, token="abc") as api:
            assert api.update_status("report:123-abc", "collected")["id"] == "report:123-abc"

    def test_load_sample_data_returns_count(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"sampleReports": [{"type": "Sofa"}]}
            return httpx.Response(200, json={"success": True, "count": 1})

        with _client(handler, token="abc") as api:
            assert api.load_sample_data([{"type": "Sofa"}]) == 1

    def test_error_status_raises_api_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"status_code": 403, "message": "Worker or admin role required", "error_type": "http_exception"})

        with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                api.delete_report("report:a")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Worker or admin role required"

    def test_error_without_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                api.health()

        assert exc_info.value.message == "Bad gateway"

    def test_success_without_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>captive portal</html>")

        with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                api.list_reports()

        assert exc_info.value.status_code == 200
        assert exc_info.value.message == "Unexpected response from the server"

    def test_signup_sends_no_role(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert set(body) == {"email", "password", "name"}
            return httpx.Response(201, json={"user": {}, "session": {}})

        with _client(handler) as api:
            api.sign_up("jan@example.nl", "secret123", "Jan")

    def test_network_failure_is_not_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as api:
            with pytest.raises(httpx.ConnectError):
                api.list_reports()
