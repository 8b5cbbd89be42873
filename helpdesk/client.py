"""Small synchronous client for the helpdesk HTTP API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx


class APIError(RuntimeError):
    """Error returned by the helpdesk API or raised while reaching it."""

    def __init__(self, message: str, *, status_code: int | None = None, response: httpx.Response | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "Unknown server error"

    if isinstance(data, Mapping):
        for key in ("detail", "message"):
            detail = data.get(key)
            if isinstance(detail, str):
                return detail
            if isinstance(detail, list) and detail and isinstance(detail[0], Mapping) and "msg" in detail[0]:
                return str(detail[0]["msg"])
    return "The request could not be completed"


@dataclass(slots=True)
class HelpdeskAPIClient:
    """Thin wrapper around the ticket and auth endpoints.

    ``login`` stores the returned token and sends it as a bearer token on
    every later request.
    """

    base_url: str
    token: str | None = None
    timeout: float = 10.0
    transport: httpx.BaseTransport | None = field(default=None, repr=False)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        headers.update(kwargs.pop("headers", {}))

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise APIError(f"Request to the helpdesk API failed: {exc}") from exc

        if response.status_code >= 400:
            raise APIError(_extract_error_message(response), status_code=response.status_code, response=response)
        if not response.content:
            return None
        return response.json()

    def login(self, username: str, password: str) -> Mapping[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"username": username, "password": password})
        self.token = data["token"]
        return data

    def list_tickets(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Mapping[str, Any]:
        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        if status:
            params["status"] = status
        if search:
            params["search"] = search
        return self._request("GET", "/api/tickets", params=params)

    def get_ticket(self, ticket_id: str) -> Mapping[str, Any] | None:
        try:
            return self._request("GET", f"/api/tickets/{ticket_id}")
        except APIError as exc:
            if exc.status_code == 404:
                return None
            raise

    def create_ticket(self, *, name: str, email: str, description: str) -> Mapping[str, Any]:
        payload = {"name": name, "email": email, "description": description}
        return self._request("POST", "/api/tickets", json=payload)

    def update_ticket(
        self,
        ticket_id: str,
        *,
        status: str | None = None,
        resolution: str | None = None,
    ) -> Mapping[str, Any]:
        payload: dict[str, Any] = {}
        if status is not None:
            payload["status"] = status
        if resolution is not None:
            payload["resolution"] = resolution
        return self._request("PUT", f"/api/tickets/{ticket_id}", json=payload)
