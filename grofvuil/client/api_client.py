"""
HTTP client for the Grofvuil API.

Every method returns the decoded JSON body. Responses with an error status
raise ApiError; network failures (httpx.TransportError) are left to the
caller, which decides whether to fall back to the local store.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """The API answered with an error status or a body that is not JSON."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body.get("error") or body)
    return str(body)


class ApiClient:
    """Thin wrapper around httpx.Client, one method per endpoint."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        response = self._client.request(method, path, headers=headers, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(response)
            logger.debug(f"{method} {path} failed: {response.status_code} {message}")
            raise ApiError(response.status_code, message) from e
        try:
            return response.json()
        except ValueError as e:
            logger.debug(f"{method} {path} returned a non-JSON body")
            raise ApiError(response.status_code, "Unexpected response from the server") from e

    # Auth

    def sign_up(self, email: str, password: str, name: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/auth/signup", json={"email": email, "password": password, "name": name}
        )

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/signin", json={"email": email, "password": password})

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")["user"]

    def update_profile(self, **fields) -> Dict[str, Any]:
        return self._request("PATCH", "/users/profile", json=fields)["user"]

    # Reports

    def list_reports(self, **filters) -> List[Dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/reports", params=params)["reports"]

    def my_reports(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/reports/mine")["reports"]

    def statistics(self) -> Dict[str, Any]:
        return self._request("GET", "/reports/statistics")

    def create_report(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/reports", json=payload)["report"]

    def update_status(self, report_id: str, status: str) -> Dict[str, Any]:
        return self._request(
            "PATCH", f"/reports/{quote(report_id, safe='')}/status", json={"status": status}
        )["report"]

    def delete_report(self, report_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/reports/{quote(report_id, safe='')}")

    def load_sample_data(self, reports: List[Dict[str, Any]]) -> int:
        return self._request(
            "POST", "/reports/load-sample-data", json={"sampleReports": reports}
        )["count"]

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")
