from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Parley API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=None,
        description="Optional regular expression that matches allowed CORS origins",
    )

    db_user: str = Field(default="parley")
    db_password: str = Field(default="parley")
    db_host: str = Field(default="db")
    db_port: int = Field(default=3306)
    db_name: str = Field(default="parley")
    database_url_override: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full SQLAlchemy URL taking precedence over the DB_* parts",
    )

    jwt_secret_key: str = Field(default="changeme")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60)
    refresh_token_expire_minutes: int = Field(default=60 * 24 * 14)

    cache_url: str | None = Field(
        default=None,
        description="Redis URL for refresh tokens and rate limit counters",
    )

    api_rate_limit_requests: int = Field(default=100, description="Requests allowed per client per window")
    api_rate_limit_window_seconds: int = Field(default=60)
    trust_forwarded_for: bool = Field(
        default=False,
        description="Key rate limits on X-Forwarded-For; enable only behind a proxy that overwrites it",
    )

    chat_request_quota: int = Field(default=3, description="Requests a sender may issue to one receiver per window")
    chat_request_quota_window_days: int = Field(default=365)
    chat_request_message_max_length: int = Field(default=500)

    chat_history_default_limit: int = Field(default=50)
    chat_history_max_limit: int = Field(default=100)
    chat_message_max_length: int = Field(default=4000)

    typing_ttl_seconds: int = Field(default=5, description="Liveness window for typing indicators")
    call_ring_timeout_seconds: int = Field(default=60, description="Age after which a pending call is stale")

    media_root: Path = Field(default=Path("uploads"))
    media_base_url: str = Field(default="/media")
    max_upload_size: int = Field(
        default=10 * 1024 * 1024, description="Maximum upload size in bytes"
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+pymysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("media_root", mode="before")
    @classmethod
    def resolve_media_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()


@lru_cache
def get_settings() -> Settings:
    return Settings()
