"""
Thin async wrapper over the /auth endpoints. Every failure is translated into
the shared error taxonomy so callers only branch on exception type.
"""
from typing import Any, Optional

import httpx

from shared.errors import (
    AuthenticationError,
    NetworkError,
    ValidationError,
    classify_exception,
    classify_response,
)

from .schemas import AuthResponse, LoginCredentials, RegisterPayload, User


class AuthClient:
    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _request(self, method: str, url: str, token: Optional[str] = None, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self.http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise classify_exception(e) from e
        classify_response(resp)
        return resp

    @staticmethod
    def _body(resp: httpx.Response) -> Any:
        # A 2xx that is not JSON came from something other than the API (proxy, captive portal)
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(
                f"Unreadable response from {resp.request.url.path}", status_code=resp.status_code
            ) from e

    async def login(self, credentials: LoginCredentials) -> AuthResponse:
        resp = await self._request(
            "POST", "/auth/login", json=credentials.model_dump(exclude_none=True)
        )
        return AuthResponse.model_validate(self._body(resp))

    async def register(self, payload: RegisterPayload) -> AuthResponse:
        resp = await self._request("POST", "/auth/register", json=payload.model_dump())
        return AuthResponse.model_validate(self._body(resp))

    async def verify(self, token: str) -> dict:
        try:
            resp = await self._request("GET", "/auth/verify", token=token)
        except ValidationError as e:
            if e.status_code == 404:
                # Token decodes but the account behind it was deleted
                raise AuthenticationError(str(e), status_code=404) from e
            raise
        return self._body(resp)

    async def profile(self, token: str) -> User:
        resp = await self._request("GET", "/auth/profile", token=token)
        body = self._body(resp)
        return User.model_validate(body.get("user", body))
