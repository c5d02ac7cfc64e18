import time

import httpx
import pytest
from fastapi import FastAPI, Header, HTTPException, status
from jose import jwt

from shared.config.settings import Settings
from shared.events import EventBus
from shared.storage import MemoryStorage

BASE = "http://testserver"
SIGNING_KEY = "test-signing-key"

BUYER = {"_id": "u-buyer", "name": "Asha", "email": "asha@example.com", "role": "buyer"}


def make_token(sub: str = "u-buyer", iat: float | None = None, exp: float | None = None) -> str:
    claims = {"sub": sub, "iat": int(iat if iat is not None else time.time())}
    if exp is not None:
        claims["exp"] = int(exp)
    return jwt.encode(claims, SIGNING_KEY, algorithm="HS256")


def build_fake_backend() -> FastAPI:
    """In-process stand-in for the FarmConnect REST server."""
    app = FastAPI()
    app.state.valid_tokens = set()
    app.state.healthy = True
    app.state.notifications = [
        {"_id": "n1", "title": "Order shipped", "message": "On its way", "isRead": False, "data": {"orderId": "o1"}},
        {"_id": "n2", "title": "New crop", "message": "Tomatoes", "isRead": True, "data": {"productId": "p9"}},
    ]

    def require_token(authorization: str | None) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token")
        token = authorization.split(" ", 1)[1]
        if token not in app.state.valid_tokens:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is not valid")
        return token

    @app.get("/health")
    async def health():
        if not app.state.healthy:
            raise HTTPException(status_code=503, detail="down")
        return {"status": "OK"}

    @app.get("/wake-up")
    async def wake_up():
        return {"status": "awake"}

    @app.post("/api/auth/login")
    async def login(payload: dict):
        if payload.get("password") != "secret":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        token = make_token()
        app.state.valid_tokens.add(token)
        return {"token": token, "user": {**BUYER, "email": payload["email"]}}

    @app.post("/api/auth/register", status_code=201)
    async def register(payload: dict):
        token = make_token(sub="u-new")
        app.state.valid_tokens.add(token)
        user = {"_id": "u-new", "name": payload["name"], "email": payload["email"], "role": payload["role"]}
        return {"msg": "User registered successfully", "token": token, "user": user}

    @app.get("/api/auth/verify")
    async def verify(authorization: str | None = Header(default=None)):
        require_token(authorization)
        return {"valid": True, "user": BUYER}

    @app.get("/api/auth/profile")
    async def profile(authorization: str | None = Header(default=None)):
        require_token(authorization)
        return {"user": {**BUYER, "name": "Asha K."}}

    @app.get("/api/notifications")
    async def notifications(page: int = 1, limit: int = 20, authorization: str | None = Header(default=None)):
        require_token(authorization)
        items = app.state.notifications[(page - 1) * limit: page * limit]
        return {"notifications": items, "total": len(app.state.notifications), "page": page, "pages": 1}

    @app.get("/api/notifications/unread-count")
    async def unread_count(authorization: str | None = Header(default=None)):
        require_token(authorization)
        return {"count": sum(1 for n in app.state.notifications if not n["isRead"])}

    @app.patch("/api/notifications/{notification_id}/read")
    async def mark_read(notification_id: str, authorization: str | None = Header(default=None)):
        require_token(authorization)
        for n in app.state.notifications:
            if n["_id"] == notification_id:
                n["isRead"] = True
                return {"ok": True}
        raise HTTPException(status_code=404, detail="Notification not found")

    @app.patch("/api/notifications/mark-all-read")
    async def mark_all_read(authorization: str | None = Header(default=None)):
        require_token(authorization)
        for n in app.state.notifications:
            n["isRead"] = True
        return {"ok": True}

    @app.delete("/api/notifications/clear-read")
    async def clear_read(authorization: str | None = Header(default=None)):
        require_token(authorization)
        app.state.notifications = [n for n in app.state.notifications if not n["isRead"]]
        return {"ok": True}

    @app.delete("/api/notifications/{notification_id}")
    async def delete_notification(notification_id: str, authorization: str | None = Header(default=None)):
        require_token(authorization)
        app.state.notifications = [n for n in app.state.notifications if n["_id"] != notification_id]
        return {"ok": True}

    return app


@pytest.fixture
def settings():
    return Settings(
        api_url=f"{BASE}/api",
        health_url=f"{BASE}/health",
        socket_url=BASE,
        storage_url="sqlite://",
        verify_max_attempts=3,
        verify_base_delay=0.5,
        session_max_age_hours=24,
        session_refresh_hours=12,
        token_check_interval=0.01,
        health_interval=0.01,
        health_timeout=1,
        health_failure_threshold=2,
        health_max_recovery_attempts=3,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    """Collects every published event as (name, payload) tuples."""
    events = []

    def watch(name):
        bus.subscribe(name, lambda payload: events.append((name, payload)))

    from shared.events import Events
    for name in (
        Events.CART_UPDATED,
        Events.WISHLIST_UPDATED,
        Events.SHOW_NOTIFICATION,
        Events.GLOBAL_SEARCH,
        Events.AUTH_REDIRECT,
        Events.SERVER_RECOVERED,
        Events.NEW_NOTIFICATION,
    ):
        watch(name)
    return events


@pytest.fixture
def backend():
    return build_fake_backend()


@pytest.fixture
def backend_transport(backend):
    return httpx.ASGITransport(app=backend)


@pytest.fixture
def sleeps():
    """Replacement for asyncio.sleep that records the requested delays."""
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    fake_sleep.delays = delays
    return fake_sleep


class FakeSocket:
    """Stands in for socketio.AsyncClient."""

    def __init__(self):
        self.handlers = {}
        self.emitted = []
        self.connected = False
        self.url = None

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.url = url
        self.connected = True
        await self.handlers["connect"]()

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.connected = False

    async def deliver(self, event, payload):
        await self.handlers[event](payload)
