"""
Application configuration settings using Pydantic Settings.
Supports environment variables and .env files for flexible deployment.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, description="API port")
    workers: int = Field(default=1, description="Number of workers")
    debug: bool = Field(default=False, description="Debug mode")
    cors_origins: list[str] = Field(
        default=["*"],
        description="CORS allowed origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


class GroqSettings(BaseSettings):
    """Groq LLM API settings."""

    model_config = SettingsConfigDict(env_prefix="GROQ_")

    api_key: str = Field(
        default="",
        description="Groq API key for LLM inference"
    )
    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible Groq endpoint"
    )
    model_id: str = Field(
        default="llama-3.1-8b-instant",
        description="Groq model to use"
    )
    timeout_seconds: float = Field(default=30.0, description="API timeout")


class LiveKitSettings(BaseSettings):
    """LiveKit server connection settings."""

    model_config = SettingsConfigDict(env_prefix="LIVEKIT_")

    url: str = Field(
        default="http://localhost:7880",
        description="LiveKit server HTTP(S) URL"
    )
    api_key: str = Field(default="devkey", description="LiveKit API key")
    api_secret: str = Field(default="secret", description="LiveKit API secret")
    token_ttl_seconds: int = Field(default=600, ge=1, description="Server token lifetime")
    participant_token_ttl_seconds: int = Field(
        default=21600,
        ge=1,
        description="Lifetime of participant join tokens"
    )
    timeout_seconds: float = Field(default=10.0, description="RoomService request timeout")
    empty_timeout_seconds: int = Field(
        default=300,
        description="Seconds an empty transfer room is kept alive by the server"
    )

    # Participant presence
    wait_for_presence: bool = Field(
        default=True,
        description="Wait for the receiving handler to appear in the transfer room"
    )
    presence_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long to wait for a participant to join"
    )
    presence_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Interval between participant list polls"
    )

    @property
    def ws_url(self) -> str:
        """Client signalling URL (http/https schemes mapped to ws/wss)."""
        url = self.url.rstrip("/")
        if url.startswith("https://"):
            return "wss://" + url[len("https://"):]
        if url.startswith("http://"):
            return "ws://" + url[len("http://"):]
        return url

    @property
    def http_url(self) -> str:
        """RoomService base URL (ws/wss schemes mapped to http/https)."""
        url = self.url.rstrip("/")
        if url.startswith("wss://"):
            return "https://" + url[len("wss://"):]
        if url.startswith("ws://"):
            return "http://" + url[len("ws://"):]
        return url


class AWSSettings(BaseSettings):
    """AWS-specific configuration."""

    model_config = SettingsConfigDict(env_prefix="AWS_")

    region: str = Field(default="us-east-1", description="AWS region for Polly")


class TTSSettings(BaseSettings):
    """TTS provider settings."""

    model_config = SettingsConfigDict(env_prefix="TTS_")

    provider: Literal["gtts", "polly"] = Field(
        default="gtts",
        description="TTS provider: gtts, polly"
    )
    language: str = Field(default="en", description="Speech language code")
    voice_id: str = Field(default="Joanna", description="Polly voice")
    cache_size: int = Field(default=200, ge=0, description="TTS cache size")


class TransferSettings(BaseSettings):
    """Warm transfer workflow settings."""

    model_config = SettingsConfigDict(env_prefix="TRANSFER_")

    room_prefix: str = Field(default="transfer_", description="Transfer room name prefix")
    default_second_handler_name: str = Field(
        default="Agent B",
        description="Receiving handler identity when none is supplied"
    )

    # Step timeouts
    briefing_timeout_seconds: float = Field(
        default=90.0,
        gt=0,
        description="Summary, script and opening generation together"
    )
    room_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Room creation, caller move and handler exit"
    )
    connect_timeout_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Receiving handler connection"
    )
    playback_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Speaking the handoff script"
    )


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Sub-settings
    api: APISettings = Field(default_factory=APISettings)
    groq: GroqSettings = Field(default_factory=GroqSettings)
    livekit: LiveKitSettings = Field(default_factory=LiveKitSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    tts: TTSSettings = Field(default_factory=TTSSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
