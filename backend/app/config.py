from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Parley Relay", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to")
    port: int = Field(default=3000, description="Port the HTTP server listens on")

    frontend_origin: str = Field(
        default="http://localhost:3000",
        description="Origin allowed to open the relay websocket and call the API",
    )
    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=list,
        description="Additional allowed CORS origins",
    )

    uploads_root: Path = Field(
        default=Path("uploads"),
        description="Directory holding the recordings/ and images/ upload folders",
    )

    external_ip_url: str = Field(
        default="https://api.ipify.org?format=json",
        description="Service queried by /api/ping-external",
    )
    external_request_timeout_seconds: float = Field(default=10.0)

    websocket_keepalive_timeout_seconds: float = Field(
        default=30,
        description="Idle time before the relay socket checks whether a ping is due",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25,
        description="Minimum spacing between keepalive pings on an idle socket",
    )

    relay_cleanup_on_disconnect: bool = Field(
        default=True,
        description="Drop presence entries when their websocket closes without signout",
    )
    relay_strict_call_target: bool = Field(
        default=False,
        description="Resolve outgoing calls by 'to' only instead of falling back to 'from'",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def allowed_origins(self) -> list[str]:
        origins = [self.frontend_origin.rstrip("/")]
        for origin in self.cors_origins:
            value = str(origin).rstrip("/")
            if value not in origins:
                origins.append(value)
        return origins

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return []
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("uploads_root", mode="before")
    @classmethod
    def resolve_uploads_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        return str(value).strip().upper() or "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
