import json
import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from shared.errors import StorageError
from shared.storage import LocalStorage

from .schemas import SessionRecord, User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"
TIMESTAMP_KEY = "tokenTimestamp"
REMEMBER_ME_KEY = "rememberMe"

SESSION_KEYS = (TOKEN_KEY, USER_KEY, TIMESTAMP_KEY, REMEMBER_ME_KEY)


class SessionRepository:
    """Persists the session under the same keys the web client used."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def save(self, record: SessionRecord) -> None:
        self.storage.set_item(TOKEN_KEY, record.token)
        self.storage.set_item(USER_KEY, record.user.model_dump_json())
        self.storage.set_item(TIMESTAMP_KEY, str(int(record.issued_at * 1000)))
        self.storage.set_item(REMEMBER_ME_KEY, "true" if record.remember_me else "false")

    def load(self) -> Optional[SessionRecord]:
        """
        Returns None when no session is stored. Raises StorageError when a
        session is stored but cannot be decoded.
        """
        token = self.storage.get_item(TOKEN_KEY)
        raw_user = self.storage.get_item(USER_KEY)
        if not token or not raw_user:
            return None

        try:
            user = User.model_validate(json.loads(raw_user))
        except (ValueError, SchemaError) as e:
            raise StorageError(USER_KEY, f"unreadable user record ({e})") from e

        return SessionRecord(
            token=token,
            user=user,
            issued_at=self._read_timestamp(),
            remember_me=self.storage.get_item(REMEMBER_ME_KEY) == "true",
        )

    def _read_timestamp(self) -> float:
        raw = self.storage.get_item(TIMESTAMP_KEY)
        if not raw:
            return 0.0
        try:
            return int(raw) / 1000
        except ValueError:
            logger.warning(f"Ignoring unreadable {TIMESTAMP_KEY} value {raw!r}")
            return 0.0

    def save_user(self, user: User) -> None:
        self.storage.set_item(USER_KEY, user.model_dump_json())

    def touch(self, issued_at: float) -> None:
        self.storage.set_item(TIMESTAMP_KEY, str(int(issued_at * 1000)))

    def clear(self) -> None:
        for key in SESSION_KEYS:
            self.storage.remove_item(key)
