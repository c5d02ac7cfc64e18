"""
Client-side session lifecycle: restore, verify, login/logout and token-age
maintenance.

A restored session is trusted optimistically (pending_verification) and then
checked against /auth/verify. Auth rejections end the session immediately;
connectivity failures are retried and, once retries run out, leave the
optimistic session in place until the backend is reachable again.
"""
import asyncio
import contextlib
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError as SchemaError

from shared.config.settings import Settings
from shared.errors import AuthenticationError, FarmConnectError, StorageError, ValidationError
from shared.events import EventBus, Events
from shared.observability import farm_forced_logout_total, farm_token_validation_total
from shared.security import is_token_expired, token_issued_at

from .client import AuthClient
from .repository import SessionRepository
from .schemas import AuthResponse, LoginCredentials, RegisterPayload, SessionRecord, User
from .state import SessionState, VerificationOutcome, can_transition

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


class SessionStore:

    def __init__(
        self,
        repository: SessionRepository,
        auth_client: AuthClient,
        bus: EventBus,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.repository = repository
        self.auth_client = auth_client
        self.bus = bus
        self.settings = settings
        self._clock = clock
        self._sleep = sleep

        self.state = SessionState.UNAUTHENTICATED
        self.token: Optional[str] = None
        self.user: Optional[User] = None
        self.issued_at: Optional[float] = None
        self.last_verified_at: Optional[float] = None
        self.remember_me = False
        self.validation_attempts = 0

        self._inflight: Optional[asyncio.Task] = None
        self._maintenance: Optional[asyncio.Task] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state.is_authenticated

    def _set_state(self, target: SessionState) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {target.value}")
        if target != self.state:
            logger.info(f"Session state {self.state.value} -> {target.value}")
        self.state = target

    def _adopt(self, record: SessionRecord) -> None:
        self.token = record.token
        self.user = record.user
        self.issued_at = record.issued_at
        self.remember_me = record.remember_me

    def _forget(self) -> None:
        self.repository.clear()
        self.token = None
        self.user = None
        self.issued_at = None
        self.last_verified_at = None
        self.remember_me = False

    # --- startup -------------------------------------------------------------

    async def initialize(self) -> SessionState:
        """Restore a persisted session and kick off background verification."""
        try:
            record = self.repository.load()
        except StorageError as e:
            logger.error(f"Discarding persisted session: {e}")
            self._forget()
            self._set_state(SessionState.UNAUTHENTICATED)
            return self.state

        if record is None:
            self._set_state(SessionState.UNAUTHENTICATED)
            return self.state

        if not record.issued_at:
            # Older clients did not stamp the session; fall back to the token itself
            record.issued_at = token_issued_at(record.token) or self._clock()
            self.repository.touch(record.issued_at)

        self._adopt(record)
        self._set_state(SessionState.PENDING_VERIFICATION)
        self._start_validation()
        return self.state

    @property
    def verification(self) -> Optional[asyncio.Task]:
        """The validation task currently in flight, if any."""
        return self._inflight

    # --- verification --------------------------------------------------------

    def _start_validation(self) -> asyncio.Task:
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.get_running_loop().create_task(self._validate_with_retry())
        return self._inflight

    async def validate_token(self) -> VerificationOutcome:
        """Run (or join) the sequential retry loop against /auth/verify."""
        return await asyncio.shield(self._start_validation())

    async def _validate_with_retry(self) -> VerificationOutcome:
        token = self.token
        if not token:
            return VerificationOutcome.REJECTED

        max_attempts = max(1, self.settings.verify_max_attempts)
        for attempt in range(1, max_attempts + 1):
            self.validation_attempts += 1
            try:
                await self.auth_client.verify(token)
            except AuthenticationError as e:
                farm_token_validation_total.labels(outcome="rejected").inc()
                logger.warning(f"Token rejected by backend ({e.status_code}): {e}")
                if self.token == token:
                    self.force_logout("token_rejected")
                return VerificationOutcome.REJECTED
            except FarmConnectError as e:
                farm_token_validation_total.labels(outcome="network_error").inc()
                logger.warning(f"Token verification attempt {attempt}/{max_attempts} failed: {e}")
                if attempt < max_attempts:
                    await self._sleep(self.settings.verify_base_delay * attempt)
                continue

            farm_token_validation_total.labels(outcome="valid").inc()
            if self.token != token:
                # Session was replaced or ended while the call was in flight
                return VerificationOutcome.VALID
            self.last_verified_at = self._clock()
            self._set_state(SessionState.AUTHENTICATED)
            return VerificationOutcome.VALID

        logger.error(
            f"Token verification gave up after {max_attempts} attempts; keeping optimistic session"
        )
        return VerificationOutcome.UNREACHABLE

    async def on_backend_recovered(self) -> None:
        """Health monitor callback: confirm a session left unverified by an outage."""
        if self.state == SessionState.PENDING_VERIFICATION:
            logger.info("Backend recovered, re-validating pending session")
            await self.validate_token()

    # --- login / logout ------------------------------------------------------

    def login(self, data: AuthResponse | dict, remember_me: bool = False) -> User:
        try:
            response = data if isinstance(data, AuthResponse) else AuthResponse.model_validate(data)
        except SchemaError as e:
            raise ValidationError(f"Malformed login response: {e}") from e

        now = self._clock()
        record = SessionRecord(
            token=response.token,
            user=response.user,
            issued_at=now,
            remember_me=remember_me,
        )
        self.repository.save(record)
        self._adopt(record)
        self.last_verified_at = now
        self._set_state(SessionState.AUTHENTICATED)
        logger.info(f"User {record.user.id} logged in as {record.user.role}")
        return record.user

    async def authenticate(self, credentials: LoginCredentials | dict, remember_me: bool = False) -> User:
        try:
            creds = credentials if isinstance(credentials, LoginCredentials) else LoginCredentials.model_validate(credentials)
        except SchemaError as e:
            raise ValidationError(str(e)) from e
        response = await self.auth_client.login(creds)
        return self.login(response, remember_me=remember_me)

    async def register(self, payload: RegisterPayload | dict, remember_me: bool = False) -> User:
        try:
            data = payload if isinstance(payload, RegisterPayload) else RegisterPayload.model_validate(payload)
        except SchemaError as e:
            raise ValidationError(str(e)) from e
        response = await self.auth_client.register(data)
        return self.login(response, remember_me=remember_me)

    def logout(self) -> None:
        self._forget()
        self._set_state(SessionState.UNAUTHENTICATED)

    def force_logout(self, reason: str) -> None:
        """End the session and ask the UI to go back to the login screen."""
        if self.token is None and self.state in (SessionState.REJECTED, SessionState.UNAUTHENTICATED):
            self._forget()
            return
        self._forget()
        self._set_state(SessionState.REJECTED)
        farm_forced_logout_total.labels(reason=reason).inc()
        logger.warning(f"Session terminated: {reason}")
        self.bus.publish(Events.AUTH_REDIRECT, {"path": LOGIN_PATH, "reason": reason})

    async def handle_unauthorized(self) -> None:
        """Response hook for 401s seen by the shared API client."""
        self.force_logout("unauthorized")

    async def refresh_profile(self) -> User:
        if not self.token:
            raise AuthenticationError("Not logged in")
        try:
            user = await self.auth_client.profile(self.token)
        except AuthenticationError:
            self.force_logout("unauthorized")
            raise
        self.user = user
        self.repository.save_user(user)
        return user

    # --- token-age maintenance ----------------------------------------------

    async def enforce_token_age(self, now: Optional[float] = None) -> None:
        if not self.state.is_authenticated or not self.token:
            return
        if now is None:
            now = self._clock()

        if is_token_expired(self.token, now):
            self.force_logout("token_expired")
            return

        age = now - (self.issued_at or now)
        if not self.remember_me and age > self.settings.session_max_age_seconds:
            self.force_logout("session_expired")
            return

        last_verified = self.last_verified_at or self.issued_at or now
        if now - last_verified > self.settings.session_refresh_seconds:
            outcome = await self.validate_token()
            if outcome is not VerificationOutcome.VALID:
                self.force_logout("refresh_failed")

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.token_check_interval)
            try:
                await self.enforce_token_age()
            except Exception as e:
                logger.error(f"Token maintenance failed: {e}")

    def start_maintenance(self) -> None:
        if self._maintenance is None or self._maintenance.done():
            self._maintenance = asyncio.get_running_loop().create_task(self._maintenance_loop())

    async def close(self) -> None:
        for task in (self._maintenance, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._maintenance = None
        self._inflight = None
