from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Literal

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Agora Chat API", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=False, env="DEBUG", description="Enable debug mode")
    log_level: str = Field(default="INFO", env="LOG_LEVEL", description="Root logger level")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )

    database_url: str = Field(
        default="sqlite+pysqlite:///./data/chat.db",
        env="DATABASE_URL",
        description="SQLAlchemy URL of the durable store",
    )
    database_auto_create: bool = Field(
        default=True,
        env="DATABASE_AUTO_CREATE",
        description="Create missing tables on startup instead of relying on migrations only.",
    )

    jwt_secret_key: str = Field(default="changeme", env="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=15, env="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=7, env="REFRESH_TOKEN_EXPIRE_DAYS")

    chat_history_limit: int = Field(
        default=100,
        env="CHAT_HISTORY_LIMIT",
        description="Number of recent messages replayed to a client when it joins.",
    )
    chat_message_max_length: int = Field(default=500, env="CHAT_MESSAGE_MAX_LENGTH")
    chat_query_default_limit: int = Field(
        default=50,
        env="CHAT_QUERY_DEFAULT_LIMIT",
        description="Default page size for search and per-user message listings.",
    )
    stats_top_authors: int = Field(default=10, env="STATS_TOP_AUTHORS")
    mention_delivery: Literal["broadcast", "direct"] = Field(
        default="broadcast",
        env="MENTION_DELIVERY",
        description=(
            "How mention notices are delivered: to every connection (clients filter) "
            "or only to the mentioned user's connections."
        ),
    )
    presence_reset_on_startup: bool = Field(
        default=True,
        env="PRESENCE_RESET_ON_STARTUP",
        description="Mark every stored user offline when the process boots.",
    )

    websocket_keepalive_timeout_seconds: float = Field(
        default=30, env="WEBSOCKET_KEEPALIVE_TIMEOUT_SECONDS"
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=30, env="WEBSOCKET_KEEPALIVE_PING_INTERVAL_SECONDS"
    )

    media_root: Path = Field(default=Path("uploads"), env="MEDIA_ROOT")
    media_base_url: str = Field(default="/uploads", env="MEDIA_BASE_URL")
    max_upload_size: int = Field(
        default=5 * 1024 * 1024, env="MAX_UPLOAD_SIZE", description="Maximum upload size in bytes"
    )
    allowed_upload_types: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/gif",
            "image/webp",
            "video/mp4",
            "video/quicktime",
            "video/x-msvideo",
        ],
        env="ALLOWED_UPLOAD_TYPES",
    )
    attachment_sweep_interval_seconds: float = Field(
        default=300,
        env="ATTACHMENT_SWEEP_INTERVAL_SECONDS",
        description="Seconds between expired attachment sweeps; 0 disables the background task.",
    )

    giphy_api_key: str | None = Field(default=None, env="GIPHY_API_KEY")
    giphy_base_url: str = Field(default="https://api.giphy.com/v1/gifs", env="GIPHY_BASE_URL")
    giphy_rating: str = Field(default="g", env="GIPHY_RATING")
    giphy_timeout_seconds: float = Field(default=5.0, env="GIPHY_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("cors_origins", "allowed_upload_types", mode="before")
    @classmethod
    def split_comma_separated(cls, v: Any) -> Any:
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("media_root", mode="before")
    @classmethod
    def resolve_media_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> str:
        return str(value or "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
