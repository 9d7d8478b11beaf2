"""HTTP client used by the user interfaces to talk to the users API."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx

from .models import User


class APIError(Exception):
    """Raised when the users API rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class UsersAPIClient:
    """Async wrapper around the ``/users`` resource.

    A fresh :class:`httpx.AsyncClient` is opened per call so the client can be
    shared between requests served on different event loops.
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._transport = transport
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    async def list_users(self) -> List[User]:
        data = await self._request("GET", "/users", default_error="Failed to fetch users")
        if not isinstance(data, list):
            raise APIError("Users API returned an unexpected response payload")
        return [self._parse_user(item) for item in data]

    async def create_user(self, fields: Mapping[str, Any]) -> User:
        data = await self._request(
            "POST",
            "/users",
            json=dict(fields),
            default_error="Failed to create user",
        )
        return self._parse_user(data)

    async def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User:
        data = await self._request(
            "PUT",
            f"/users/{user_id}",
            json=dict(fields),
            default_error="Failed to update user",
        )
        return self._parse_user(data)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}", default_error="Failed to delete user")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        default_error: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as http:
                response = await http.request(method, path, json=json)
        except httpx.RequestError as exc:
            raise APIError(f"{default_error}: {exc}") from exc

        if response.status_code >= 400:
            try:
                parsed = response.json()
            except ValueError:
                parsed = None
            raise APIError(
                _extract_error_message(parsed, default_error),
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise APIError("Users API returned an invalid response") from exc

    @staticmethod
    def _parse_user(data: object) -> User:
        if not isinstance(data, dict):
            raise APIError("Users API returned an unexpected response payload")
        try:
            return User.from_payload(data)
        except ValueError as exc:
            raise APIError(str(exc)) from exc


__all__ = ["APIError", "UsersAPIClient"]
