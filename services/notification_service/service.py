"""
Real-time notifications over socket.io plus the /notifications REST calls.

Incoming `newNotification` events fan out to registered listeners and to the
event bus. A listener that raises is logged and skipped.
"""
import inspect
import logging
from typing import Any, Callable, Dict, Optional

import httpx
import socketio

from shared.errors import FarmConnectError, classify_exception, classify_response
from shared.events import EventBus, Events

from .schemas import Notification, NotificationPage

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], Any]


class NotificationService:

    def __init__(
        self,
        http: httpx.AsyncClient,
        bus: EventBus,
        socket_url: str,
        socket_factory: Callable[[], Any] = socketio.AsyncClient,
    ):
        self.http = http
        self.bus = bus
        self.socket_url = socket_url
        self._socket_factory = socket_factory
        self.socket = None
        self.user_id: Optional[str] = None
        self.listeners: Dict[str, Listener] = {}

    # --- socket --------------------------------------------------------------

    async def connect(self, user_id: str):
        if self.socket is not None:
            await self.disconnect()

        self.user_id = str(user_id)
        sio = self._socket_factory()

        async def on_connect():
            logger.info("Connected to notification service")
            await sio.emit("join", self.user_id)

        async def on_disconnect():
            logger.info("Disconnected from notification service")

        async def on_new_notification(payload):
            await self.handle_new_notification(payload)

        async def on_connect_error(data):
            logger.error(f"Socket connection error: {data}")

        sio.on("connect", on_connect)
        sio.on("disconnect", on_disconnect)
        sio.on("newNotification", on_new_notification)
        sio.on("connect_error", on_connect_error)

        self.socket = sio
        await sio.connect(self.socket_url, transports=["websocket", "polling"], wait_timeout=20)
        return sio

    async def disconnect(self) -> None:
        if self.socket is not None:
            await self.socket.disconnect()
            self.socket = None

    @property
    def is_connected(self) -> bool:
        return bool(self.socket is not None and self.socket.connected)

    async def handle_new_notification(self, payload: Dict[str, Any]) -> Optional[Notification]:
        try:
            notification = Notification.model_validate(payload)
        except ValueError as e:
            logger.error(f"Dropping malformed notification {payload!r}: {e}")
            return None

        logger.info(f"New notification received: {notification.id}")
        for listener_id, callback in list(self.listeners.items()):
            try:
                result = callback(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in notification listener '{listener_id}': {e}")

        self.bus.publish(Events.NEW_NOTIFICATION, notification)
        return notification

    def add_listener(self, listener_id: str, callback: Listener) -> None:
        self.listeners[listener_id] = callback

    def remove_listener(self, listener_id: str) -> None:
        self.listeners.pop(listener_id, None)

    # --- REST ----------------------------------------------------------------

    async def _call(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise classify_exception(e) from e
        classify_response(resp)
        return resp

    async def get_notifications(self, page: int = 1, limit: int = 20) -> NotificationPage:
        resp = await self._call("GET", "/notifications", params={"page": page, "limit": limit})
        body = resp.json()
        if isinstance(body, list):
            return NotificationPage(notifications=body, total=len(body))
        return NotificationPage.model_validate(body)

    async def unread_count(self) -> int:
        try:
            resp = await self._call("GET", "/notifications/unread-count")
            return int(resp.json().get("count", 0))
        except (FarmConnectError, ValueError) as e:
            logger.error(f"Error fetching unread count: {e}")
            return 0

    async def mark_as_read(self, notification_id: str) -> bool:
        try:
            await self._call("PATCH", f"/notifications/{notification_id}/read")
        except FarmConnectError as e:
            logger.error(f"Error marking notification as read: {e}")
            return False
        if self.socket is not None:
            await self.socket.emit("notificationRead", notification_id)
        return True

    async def _best_effort(self, method: str, url: str, action: str) -> bool:
        try:
            await self._call(method, url)
            return True
        except FarmConnectError as e:
            logger.error(f"Error {action}: {e}")
            return False

    async def mark_all_as_read(self) -> bool:
        return await self._best_effort("PATCH", "/notifications/mark-all-read", "marking all notifications as read")

    async def delete_notification(self, notification_id: str) -> bool:
        return await self._best_effort("DELETE", f"/notifications/{notification_id}", "deleting notification")

    async def clear_read(self) -> bool:
        return await self._best_effort("DELETE", "/notifications/clear-read", "clearing read notifications")
