from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000"]


def _parse_cors_origins(v: Any) -> List[str]:
    if v is None or v == "":
        return _DEFAULT_CORS.copy()
    if isinstance(v, list):
        return [x for x in v if isinstance(x, str) and x.strip()]
    s = str(v).strip()
    if s.startswith("["):
        import json
        try:
            out = json.loads(s)
        except ValueError:
            return _DEFAULT_CORS.copy()
        return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
    return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="imaginify", alias="MONGODB_DB_NAME")
    store_max_retries: int = Field(default=2, alias="STORE_MAX_RETRIES")
    store_retry_backoff: float = Field(default=0.2, alias="STORE_RETRY_BACKOFF")

    # Redis (page cache revalidation)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Identity provider webhook (HMAC-SHA256 shared secret)
    identity_webhook_secret: str = Field(default="", alias="IDENTITY_WEBHOOK_SECRET")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(self.cors_origins_raw)

    # Credits
    credits_per_transformation: int = Field(default=1, alias="CREDITS_PER_TRANSFORMATION")
    default_credit_balance: int = Field(default=10, alias="DEFAULT_CREDIT_BALANCE")
    default_plan_id: int = Field(default=1, alias="DEFAULT_PLAN_ID")
    allow_negative_balance: bool = Field(default=False, alias="ALLOW_NEGATIVE_BALANCE")


@lru_cache
def get_settings() -> Settings:
    return Settings()
