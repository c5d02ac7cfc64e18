import json

import httpx
import pytest

from conftest import BUYER, FakeSocket
from main import FarmConnectApp
from services.auth_service.state import SessionState
from shared.events import Events


@pytest.fixture
def socket():
    return FakeSocket()


@pytest.fixture
def app(settings, storage, backend_transport, socket):
    return FarmConnectApp(settings, storage, transport=backend_transport, socket_factory=lambda: socket)


async def test_start_restores_session_and_cart(app, storage, backend, socket):
    backend.state.valid_tokens.add("tok-1")
    storage.set_item("token", "tok-1")
    storage.set_item("user", json.dumps(BUYER))
    storage.set_item("cart", json.dumps([{"product_id": "p1", "price": 4, "quantity": 2}]))

    async with app:
        assert app.session.is_authenticated
        await app.session.verification
        assert app.session.state == SessionState.AUTHENTICATED
        assert app.shopping.cart_total() == 8
        assert socket.emitted == [("join", "u-buyer")]

    assert not socket.connected


async def test_start_without_session(app, socket):
    await app.start()
    try:
        assert app.session.state == SessionState.UNAUTHENTICATED
        assert socket.url is None
    finally:
        await app.close()


async def test_api_401_forces_logout(app, storage, backend, socket):
    await app.start()
    try:
        await app.session.authenticate({"email": "asha@example.com", "password": "secret"})
        await app.notifications.connect(app.session.user.id)
        redirects = []
        app.bus.subscribe(Events.AUTH_REDIRECT, redirects.append)

        backend.state.valid_tokens.clear()
        resp = await app.api.get("/auth/profile")

        assert resp.status_code == 401
        assert app.session.state == SessionState.REJECTED
        assert storage.get_item("token") is None
        assert redirects == [{"path": "/login", "reason": "unauthorized"}]
        assert not socket.connected
    finally:
        await app.close()


async def test_backend_recovery_confirms_pending_session(settings, storage, backend, socket):
    outage = {"down": True}
    backend.state.valid_tokens.add("tok-1")
    asgi = httpx.ASGITransport(app=backend)

    class FlakyTransport(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request):
            if outage["down"]:
                raise httpx.ConnectError("connection refused")
            return await asgi.handle_async_request(request)

    storage.set_item("token", "tok-1")
    storage.set_item("user", json.dumps(BUYER))
    settings.verify_base_delay = 0
    app = FarmConnectApp(settings, storage, transport=FlakyTransport(), socket_factory=lambda: socket)

    await app.session.initialize()
    await app.session.verification
    assert app.session.state == SessionState.PENDING_VERIFICATION

    await app.health.tick()
    outage["down"] = False
    await app.health.tick()

    assert app.session.state == SessionState.AUTHENTICATED
    await app.close()


async def test_expired_session_leaves_notification_room(app, settings, storage, backend, socket):
    settings.token_check_interval = 3600
    backend.state.valid_tokens.add("tok-1")
    storage.set_item("token", "tok-1")
    storage.set_item("user", json.dumps(BUYER))
    storage.set_item("tokenTimestamp", "1000")
    storage.set_item("rememberMe", "false")

    await app.start()
    try:
        await app.session.verification
        assert socket.connected

        await app.session.enforce_token_age()
        await app.bus.drain()

        assert app.session.state == SessionState.REJECTED
        assert not socket.connected
        assert not app.notifications.is_connected
    finally:
        await app.close()


async def test_logout_disconnects_notifications(app, socket):
    await app.start()
    try:
        await app.session.authenticate({"email": "asha@example.com", "password": "secret"})
        await app.notifications.connect(app.session.user.id)

        await app.logout()

        assert app.session.state == SessionState.UNAUTHENTICATED
        assert not socket.connected
    finally:
        await app.close()
