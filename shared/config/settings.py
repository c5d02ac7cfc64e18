import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass
class Settings:
    api_url: str = "http://localhost:5001/api"
    health_url: str = "http://localhost:5001/health"
    socket_url: str = "http://localhost:5003"
    storage_url: str = "sqlite:///farmconnect.db"

    # Token verification retry loop
    verify_max_attempts: int = 3
    verify_base_delay: float = 1.0

    # Token-age policy
    session_max_age_hours: float = 24
    session_refresh_hours: float = 12
    token_check_interval: float = 300

    # Health polling
    health_interval: float = 3
    health_timeout: float = 3
    health_failure_threshold: int = 2
    health_max_recovery_attempts: int = 15

    http_timeout: float = 10.0
    otlp_endpoint: str | None = None
    log_level: str = "INFO"

    @property
    def session_max_age_seconds(self) -> float:
        return self.session_max_age_hours * 3600

    @property
    def session_refresh_seconds(self) -> float:
        return self.session_refresh_hours * 3600

    @property
    def server_url(self) -> str:
        """Backend origin, used for the wake-up ping."""
        return self.health_url.rsplit("/health", 1)[0]


def get_settings() -> Settings:
    return Settings(
        api_url=os.getenv("FARMCONNECT_API_URL", "http://localhost:5001/api"),
        health_url=os.getenv("FARMCONNECT_HEALTH_URL", "http://localhost:5001/health"),
        socket_url=os.getenv("FARMCONNECT_SOCKET_URL", "http://localhost:5003"),
        storage_url=os.getenv("FARMCONNECT_STORAGE_URL", "sqlite:///farmconnect.db"),
        verify_max_attempts=_env_int("VERIFY_MAX_ATTEMPTS", 3),
        verify_base_delay=_env_float("VERIFY_BASE_DELAY_SECONDS", 1.0),
        session_max_age_hours=_env_float("SESSION_MAX_AGE_HOURS", 24),
        session_refresh_hours=_env_float("SESSION_REFRESH_HOURS", 12),
        token_check_interval=_env_float("TOKEN_CHECK_INTERVAL_SECONDS", 300),
        health_interval=_env_float("HEALTH_INTERVAL_SECONDS", 3),
        health_timeout=_env_float("HEALTH_TIMEOUT_SECONDS", 3),
        health_failure_threshold=_env_int("HEALTH_FAILURE_THRESHOLD", 2),
        health_max_recovery_attempts=_env_int("HEALTH_MAX_RECOVERY_ATTEMPTS", 15),
        http_timeout=_env_float("HTTP_TIMEOUT_SECONDS", 10.0),
        otlp_endpoint=os.getenv("OTLP_ENDPOINT") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
