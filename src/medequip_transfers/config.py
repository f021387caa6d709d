"""Application settings."""

from enum import StrEnum

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendKind(StrEnum):
    """Available transfer RPC backends."""

    IN_MEMORY = "in_memory"
    POSTGREST = "postgrest"


class NotifierKind(StrEnum):
    """Available user notification adapters."""

    NOOP = "noop"
    LOGGING = "logging"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Medical Equipment Transfers"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    backend: BackendKind = BackendKind.IN_MEMORY
    backend_legacy_mode: bool = False
    rpc_base_url: str | None = None
    rpc_api_key: str | None = None
    rpc_jwt_secret: str | None = None
    rpc_timeout_seconds: float = 10.0
    session_secret: str = "change-me"
    session_algorithm: str = "HS256"
    notifier: NotifierKind = NotifierKind.LOGGING
    kanban_per_column_limit: int = 30
    kanban_poll_interval_seconds: float = 60.0
    legacy_batch_size: int = 5000
    capability_recheck_seconds: float = 300.0
    query_stale_seconds: float = 30.0
    counts_stale_seconds: float = 60.0
    query_retry_attempts: int = 2
    query_retry_base_delay_seconds: float = 0.5
    query_retry_max_delay_seconds: float = 5.0

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "Settings":
        """Ensure backend-specific settings and limits are valid."""

        if self.backend == BackendKind.POSTGREST:
            if not self.rpc_base_url:
                raise ValueError(
                    "MEDEQUIP_RPC_BASE_URL is required when MEDEQUIP_BACKEND=postgrest."
                )
            if not self.rpc_api_key:
                raise ValueError(
                    "MEDEQUIP_RPC_API_KEY is required when MEDEQUIP_BACKEND=postgrest."
                )
            if not self.rpc_jwt_secret:
                raise ValueError(
                    "MEDEQUIP_RPC_JWT_SECRET is required when MEDEQUIP_BACKEND=postgrest."
                )
        if self.rpc_timeout_seconds <= 0:
            raise ValueError("MEDEQUIP_RPC_TIMEOUT_SECONDS must be > 0.")
        if not self.session_secret:
            raise ValueError("MEDEQUIP_SESSION_SECRET cannot be empty.")
        if not 1 <= self.kanban_per_column_limit <= 500:
            raise ValueError("MEDEQUIP_KANBAN_PER_COLUMN_LIMIT must be between 1 and 500.")
        if self.kanban_poll_interval_seconds <= 0:
            raise ValueError("MEDEQUIP_KANBAN_POLL_INTERVAL_SECONDS must be > 0.")
        if self.legacy_batch_size < 1:
            raise ValueError("MEDEQUIP_LEGACY_BATCH_SIZE must be >= 1.")
        if self.capability_recheck_seconds < 0:
            raise ValueError("MEDEQUIP_CAPABILITY_RECHECK_SECONDS must be >= 0.")
        if self.query_stale_seconds < 0:
            raise ValueError("MEDEQUIP_QUERY_STALE_SECONDS must be >= 0.")
        if self.counts_stale_seconds < 0:
            raise ValueError("MEDEQUIP_COUNTS_STALE_SECONDS must be >= 0.")
        if self.query_retry_attempts < 0:
            raise ValueError("MEDEQUIP_QUERY_RETRY_ATTEMPTS must be >= 0.")
        if self.query_retry_max_delay_seconds < self.query_retry_base_delay_seconds:
            raise ValueError(
                "MEDEQUIP_QUERY_RETRY_MAX_DELAY_SECONDS must be >= "
                "MEDEQUIP_QUERY_RETRY_BASE_DELAY_SECONDS."
            )
        return self

    model_config = SettingsConfigDict(env_prefix="MEDEQUIP_", extra="ignore")


__all__ = ["BackendKind", "NotifierKind", "Settings"]
