"""
Application container. Builds every client component explicitly and owns
their lifecycle: create with `FarmConnectApp(...)`, `await app.start()`,
`await app.close()` (or use it as an async context manager).
"""
import logging
from typing import Optional

import httpx
from socketio.exceptions import ConnectionError as SocketConnectionError

from shared.config.settings import Settings, get_settings
from shared.events import EventBus, Events
from shared.http import build_api_client
from shared.observability.setup import setup_observability
from shared.storage import LocalStorage, SqlStorage

from services.auth_service.client import AuthClient
from services.auth_service.repository import SessionRepository
from services.auth_service.service import SessionStore
from services.health_service.service import HealthMonitor
from services.notification_service.service import NotificationService
from services.shopping_service.repository import ShoppingRepository
from services.shopping_service.service import ShoppingStore

logger = logging.getLogger(__name__)


class FarmConnectApp:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[LocalStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        socket_factory=None,
        configure_logging: bool = False,
    ):
        self.settings = settings or get_settings()
        if configure_logging:
            setup_observability("farmconnect_client", self.settings.log_level, self.settings.otlp_endpoint)

        self.storage = storage if storage is not None else SqlStorage.from_url(self.settings.storage_url)
        self.bus = EventBus()

        self.api = build_api_client(
            self.settings.api_url,
            self.storage,
            on_unauthorized=self._on_unauthorized,
            timeout=self.settings.http_timeout,
            transport=transport,
        )
        # Liveness probes must not carry credentials or trigger logout hooks
        self.probe = httpx.AsyncClient(timeout=self.settings.health_timeout, transport=transport)

        self.session = SessionStore(SessionRepository(self.storage), AuthClient(self.api), self.bus, self.settings)
        self.shopping = ShoppingStore(ShoppingRepository(self.storage), self.bus)
        self.health = HealthMonitor(self.probe, self.bus, self.settings)
        self.health.on_recovered(self.session.on_backend_recovered)

        notification_kwargs = {"socket_factory": socket_factory} if socket_factory else {}
        self.notifications = NotificationService(self.api, self.bus, self.settings.socket_url, **notification_kwargs)
        # Every forced logout (401, expiry, failed refresh) leaves the user's notification room
        self.bus.subscribe(Events.AUTH_REDIRECT, self._on_auth_redirect)

    async def _on_unauthorized(self) -> None:
        await self.session.handle_unauthorized()
        await self.notifications.disconnect()

    async def _on_auth_redirect(self, payload) -> None:
        await self.notifications.disconnect()

    async def logout(self) -> None:
        self.session.logout()
        await self.notifications.disconnect()

    async def start(self) -> "FarmConnectApp":
        await self.session.initialize()
        self.shopping.load()
        self.session.start_maintenance()
        self.health.start()

        if self.session.user is not None:
            try:
                await self.notifications.connect(self.session.user.id)
            except SocketConnectionError as e:
                # Real-time updates are optional; REST keeps working without them
                logger.warning(f"Notification socket unavailable: {e}")
        return self

    async def close(self) -> None:
        await self.health.stop()
        await self.session.close()
        await self.notifications.disconnect()
        await self.bus.drain()
        await self.api.aclose()
        await self.probe.aclose()
        if isinstance(self.storage, SqlStorage):
            self.storage.dispose()

    async def __aenter__(self) -> "FarmConnectApp":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
