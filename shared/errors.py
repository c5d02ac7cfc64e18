"""
Error taxonomy shared by the session, shopping and notification layers.

AuthenticationError is fatal to a session (forced logout). NetworkError is
recoverable and retried. ValidationError stays local to the form that raised
it. StorageError is caught at load time and the data treated as absent.
"""
from typing import Optional

import httpx


class FarmConnectError(Exception):
    """Base class for every error raised by this package."""


class AuthenticationError(FarmConnectError):
    def __init__(self, message: str = "Authentication failed", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(FarmConnectError):
    def __init__(self, message: str = "Network error", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(FarmConnectError):
    def __init__(self, message: str, field: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.status_code = status_code


class StorageError(FarmConnectError):
    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("msg") or body.get("message") or body.get("detail") or body)
    return str(body)


def classify_response(response: httpx.Response) -> None:
    """Raise the taxonomy error matching a non-2xx response."""
    if response.is_success:
        return
    status = response.status_code
    if status in (401, 403):
        raise AuthenticationError(_detail(response), status_code=status)
    if status >= 500:
        raise NetworkError(_detail(response), status_code=status)
    # Remaining 4xx are input problems the caller has to fix
    raise ValidationError(_detail(response), status_code=status)


def classify_exception(exc: Exception) -> FarmConnectError:
    """Map a transport exception from httpx onto the taxonomy."""
    if isinstance(exc, FarmConnectError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"Request timed out: {exc}")
    if isinstance(exc, httpx.TransportError):
        return NetworkError(f"Network error: {exc}")
    return NetworkError(str(exc))
