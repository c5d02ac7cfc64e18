"""
Best-effort backend liveness polling with passive recovery.

After a sustained outage the monitor shows a non-blocking notice, sends a
bounded number of wake-up pings and finally asks the user to start the
backend by hand. Probing continues after that so a later recovery is still
noticed and reported to the registered callbacks.
"""
import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from shared.config.settings import Settings
from shared.events import EventBus, Events
from shared.observability import farm_health_check_total

logger = logging.getLogger(__name__)

MANUAL_START_INSTRUCTIONS = (
    "Server auto-recovery failed. Start the FarmConnect server manually "
    "(run `npm start` in the project folder, or `node server.js` in server/). "
    "The app reconnects automatically once it is running."
)
RECOVERY_NOTICE = "Connection to the server was lost. Attempting to reconnect..."

RecoveryCallback = Callable[[], Any]


class HealthMonitor:

    def __init__(
        self,
        http: httpx.AsyncClient,
        bus: EventBus,
        settings: Settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.http = http
        self.bus = bus
        self.settings = settings
        self._sleep = sleep

        self.is_healthy: Optional[bool] = None
        self.consecutive_failures = 0
        self.retry_count = 0
        self.gave_up = False
        self._notice_shown = False
        self._callbacks: List[RecoveryCallback] = []
        self._task: Optional[asyncio.Task] = None

    def on_recovered(self, callback: RecoveryCallback) -> None:
        self._callbacks.append(callback)

    async def check_health(self) -> bool:
        try:
            resp = await self.http.get(self.settings.health_url, timeout=self.settings.health_timeout)
            healthy = resp.is_success
        except httpx.HTTPError as e:
            logger.debug(f"Server health check failed: {e}")
            healthy = False
        farm_health_check_total.labels(result="healthy" if healthy else "unhealthy").inc()
        return healthy

    async def ping_server(self) -> None:
        """Wake-up request; failure is expected while the server is down."""
        try:
            await self.http.get(f"{self.settings.server_url}/wake-up", timeout=self.settings.health_timeout)
        except httpx.HTTPError:
            pass

    async def tick(self) -> bool:
        healthy = await self.check_health()
        if healthy:
            was_down = self.is_healthy is False
            self.is_healthy = True
            self.consecutive_failures = 0
            self.retry_count = 0
            self.gave_up = False
            self._notice_shown = False
            if was_down:
                logger.info("Server is available again")
                await self._fire_recovered()
            return True

        self.is_healthy = False
        self.consecutive_failures += 1
        if self.consecutive_failures < self.settings.health_failure_threshold or self.gave_up:
            return False

        if not self._notice_shown:
            self._notice_shown = True
            self.bus.publish(Events.SHOW_NOTIFICATION, {"message": RECOVERY_NOTICE, "type": "warning"})

        max_attempts = self.settings.health_max_recovery_attempts
        if self.retry_count < max_attempts:
            self.retry_count += 1
            logger.info(f"Attempting server recovery... ({self.retry_count}/{max_attempts})")
            await self.ping_server()
        else:
            self.gave_up = True
            logger.error("Max recovery attempts reached")
            self.bus.publish(Events.SHOW_NOTIFICATION, {"message": MANUAL_START_INSTRUCTIONS, "type": "error"})
        return False

    async def _fire_recovered(self) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Recovery callback {callback!r} failed: {e}")
        self.bus.publish(Events.SERVER_RECOVERED, self.status())

    async def run(self) -> None:
        while True:
            await self.tick()
            await self._sleep(self.settings.health_interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    async def wait_for_server(self, max_retries: Optional[int] = None) -> bool:
        """Blocks until the backend answers or `max_retries` probes have failed."""
        max_retries = max_retries if max_retries is not None else self.settings.health_max_recovery_attempts
        for attempt in range(1, max_retries + 1):
            if await self.check_health():
                self.is_healthy = True
                return True
            logger.info(f"Retrying in {self.settings.health_interval}s... ({attempt}/{max_retries})")
            if attempt < max_retries:
                await self._sleep(self.settings.health_interval)
        self.is_healthy = False
        logger.error("Server is not available after maximum retries")
        return False

    def status(self) -> dict:
        return {
            "is_healthy": bool(self.is_healthy),
            "retry_count": self.retry_count,
            "max_recovery_attempts": self.settings.health_max_recovery_attempts,
            "gave_up": self.gave_up,
        }
