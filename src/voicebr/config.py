"""
Application configuration with environment-driven settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voicebr.shared.exceptions import ConfigurationError

VONAGE_CALLS_URL = "https://api.nexmo.com/v1/calls"


class Settings(BaseSettings):
    """Application settings loaded from VOICEBR_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEBR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "voicebr"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    # Voice platform
    application_id: str = Field(
        default="",
        description="Voice application identifier, carried in every signed token",
    )
    private_key: str = Field(
        default="",
        description="Inline PEM private key used to sign API tokens",
    )
    private_key_path: Path | None = Field(
        default=None,
        description="Path to the PEM private key, used when private_key is empty",
    )
    number: str = Field(
        default="",
        description="Outbound caller number used as 'from' in broadcast calls",
    )
    calls_url: str = Field(
        default=VONAGE_CALLS_URL,
        description="Voice API endpoint creating outbound calls",
    )
    external_origin: str = Field(
        default="http://localhost:8080",
        description="Externally reachable base URL used to build webhook URLs",
    )

    # Storage
    storage_root: Path = Field(default=Path("./data"))
    whitelist_filename: str = "whitelist.csv"
    broadcast_list_filename: str = "broadcast.csv"
    recording_format: str = "mp3"

    # Rate limits (requests per second)
    call_rate_per_second: float = Field(default=3.0, gt=0)
    get_rate_per_second: float = Field(default=15.0, gt=0)

    # Per-call deadline policy: max(min_batches, contacts // rate) * factor seconds
    call_deadline_factor: float = Field(default=2.0, gt=0)
    call_deadline_min_batches: int = Field(default=1, ge=1)

    # HTTP
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    shutdown_drain_seconds: float = Field(default=10.0, ge=0)

    # Prompts
    broadcast_greet_msg: str = "Parla pure"
    voice_name: str = "Carla"
    talk_level: float = Field(default=0.5, ge=-1, le=1)
    playback_intro_msg: str = "Messaggio registrato"
    playback_outro_msg: str = "Fine messaggio"

    @field_validator("external_origin", mode="before")
    @classmethod
    def strip_origin(cls, v: str) -> str:
        """Callback URLs are built as origin + path."""
        return v.strip().rstrip("/") if isinstance(v, str) else v

    def webhook_url(self, path: str) -> str:
        return f"{self.external_origin}{path}"

    def load_private_key(self) -> bytes:
        """Return the PEM signing key from the inline value or the key file."""
        if self.private_key.strip():
            return self.private_key.encode("utf-8")
        if self.private_key_path is None:
            raise ConfigurationError(
                "no private key configured: set VOICEBR_PRIVATE_KEY or VOICEBR_PRIVATE_KEY_PATH"
            )
        try:
            return self.private_key_path.read_bytes()
        except OSError as e:
            raise ConfigurationError(
                f"unable to read private key: {e}",
                {"path": str(self.private_key_path)},
            ) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
