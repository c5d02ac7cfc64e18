"""
Factory for the authenticated REST client.

Every request picks up the bearer token from local storage at send time, so
a login or logout is visible to the next call without rebuilding the client.
A 401 response hands control to the session layer through `on_unauthorized`.
"""
import logging
from typing import Awaitable, Callable, Optional

import httpx

from shared.storage import LocalStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


def build_api_client(
    base_url: str,
    storage: LocalStorage,
    on_unauthorized: Optional[Callable[[], Awaitable[None]]] = None,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:

    async def attach_token(request: httpx.Request) -> None:
        token = storage.get_item(TOKEN_KEY)
        if token and "Authorization" not in request.headers:
            request.headers["Authorization"] = f"Bearer {token}"

    async def inspect_response(response: httpx.Response) -> None:
        status = response.status_code
        if status == 401:
            logger.info("Session expired. Please log in again.")
            if on_unauthorized is not None:
                await on_unauthorized()
        elif status == 403:
            logger.warning(f"Access denied for {response.request.method} {response.request.url.path}")

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        event_hooks={"request": [attach_token], "response": [inspect_response]},
    )
