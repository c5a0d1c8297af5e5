from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay.constants import ClientIDStrategy, EmptyTextPolicy, RelayMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)

    # Listener settings
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Relay behaviour
    RELAY_MODE: RelayMode = RelayMode.ENVELOPE
    WS_SUBPROTOCOL: str = "sample-protocol"
    CLIENT_ID_STRATEGY: ClientIDStrategy = ClientIDStrategy.UUID
    EMPTY_TEXT_POLICY: EmptyTextPolicy = EmptyTextPolicy.RELAY

    # Upper bound for a single peer write during fan-out
    BROADCAST_SEND_TIMEOUT_SECONDS: float = 5.0
    MAX_MESSAGE_SIZE_BYTES: int = 64 * 1024

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = "logs/relay.log"
    # Paths to exclude from access logs (e.g., /metrics, /health)
    LOG_EXCLUDED_PATHS: list[str] = ["/metrics", "/health"]
    ENVIRONMENT: str = "development"

    @field_validator("BROADCAST_SEND_TIMEOUT_SECONDS")
    @classmethod
    def validate_send_timeout(cls, v: float) -> float:
        """Reject non-positive per-peer write timeouts."""
        if v <= 0:
            raise ValueError("BROADCAST_SEND_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"PORT out of range: {v}")
        return v


app_settings = Settings()
