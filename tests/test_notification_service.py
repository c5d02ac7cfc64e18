import httpx
import pytest

from conftest import BASE, FakeSocket
from services.notification_service.schemas import Notification
from services.notification_service.service import NotificationService
from shared.events import Events
from shared.http import build_api_client


@pytest.fixture
def socket():
    return FakeSocket()


@pytest.fixture
def token(backend):
    backend.state.valid_tokens.add("tok-live")
    return "tok-live"


@pytest.fixture
def service(backend_transport, storage, bus, socket, token):
    storage.set_item("token", token)
    http = build_api_client(f"{BASE}/api", storage, transport=backend_transport)
    return NotificationService(http, bus, BASE, socket_factory=lambda: socket)


class TestSocket:

    async def test_connect_joins_user_room(self, service, socket):
        await service.connect("u-buyer")

        assert socket.url == BASE
        assert socket.emitted == [("join", "u-buyer")]
        assert service.is_connected

    async def test_incoming_notification_fans_out(self, service, socket, recorder):
        received = []
        service.add_listener("badge", received.append)
        await service.connect("u-buyer")

        await socket.deliver("newNotification", {"_id": "n5", "title": "Hi", "priority": "urgent", "data": {"orderId": "o9"}})

        assert [n.id for n in received] == ["n5"]
        published = [p for name, p in recorder if name == Events.NEW_NOTIFICATION]
        assert published[0].target_path == "/orders/o9"

    async def test_failing_listener_is_skipped(self, service, socket):
        received = []

        def broken(_):
            raise RuntimeError("listener crashed")

        service.add_listener("broken", broken)
        service.add_listener("ok", received.append)
        await service.connect("u-buyer")

        await socket.deliver("newNotification", {"_id": "n6"})

        assert len(received) == 1

    async def test_malformed_notification_is_dropped(self, service, recorder):
        assert await service.handle_new_notification({"title": "no id"}) is None
        assert not [p for name, p in recorder if name == Events.NEW_NOTIFICATION]

    async def test_remove_listener(self, service):
        received = []
        service.add_listener("x", received.append)
        service.remove_listener("x")

        await service.handle_new_notification({"_id": "n7"})

        assert received == []

    async def test_disconnect(self, service, socket):
        await service.connect("u-buyer")

        await service.disconnect()

        assert not socket.connected
        assert not service.is_connected


class TestRest:

    async def test_get_notifications(self, service):
        page = await service.get_notifications()

        assert page.total == 2
        assert page.notifications[0].id == "n1"
        assert page.notifications[1].is_read

    async def test_unread_count(self, service):
        assert await service.unread_count() == 1

    async def test_unread_count_defaults_to_zero_on_failure(self, bus, storage):
        def refuse(request):
            raise httpx.ConnectError("down")

        http = httpx.AsyncClient(base_url=f"{BASE}/api", transport=httpx.MockTransport(refuse))
        service = NotificationService(http, bus, BASE)

        assert await service.unread_count() == 0

    async def test_mark_as_read_emits_socket_event(self, service, socket):
        await service.connect("u-buyer")

        assert await service.mark_as_read("n1") is True
        assert ("notificationRead", "n1") in socket.emitted
        assert await service.unread_count() == 0

    async def test_mark_unknown_as_read_returns_false(self, service):
        assert await service.mark_as_read("missing") is False

    async def test_bulk_operations(self, service, backend):
        assert await service.mark_all_as_read() is True
        assert await service.clear_read() is True
        assert backend.state.notifications == []

    async def test_delete_notification(self, service, backend):
        assert await service.delete_notification("n2") is True
        assert [n["_id"] for n in backend.state.notifications] == ["n1"]

    async def test_rest_without_token_returns_false(self, backend_transport, bus, storage):
        http = build_api_client(f"{BASE}/api", storage, transport=backend_transport)
        service = NotificationService(http, bus, BASE)

        assert await service.mark_all_as_read() is False


def test_notification_target_paths():
    assert Notification.model_validate({"_id": 1, "data": {"productId": "p1"}}).target_path == "/products/p1"
    assert Notification.model_validate({"id": "2"}).target_path is None
