from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="buddyzone-api", validation_alias="APP_NAME")
    app_env: str = Field(default="dev", validation_alias="APP_ENV")
    app_port: int = Field(default=8000, validation_alias="APP_PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    secret_key: str = Field(default="change-me", validation_alias="SECRET_KEY")
    access_token_expire_minutes: int = Field(
        default=60,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    refresh_token_expire_days: int = Field(default=30, validation_alias="REFRESH_TOKEN_EXPIRE_DAYS")

    database_url: str = Field(validation_alias="DATABASE_URL")
    redis_url: str = Field(validation_alias="REDIS_URL")

    login_fail_threshold: int = Field(default=5, validation_alias="LOGIN_FAIL_THRESHOLD")
    login_fail_ttl_seconds: int = Field(default=900, validation_alias="LOGIN_FAIL_TTL_SECONDS")
    login_lock_ttl_seconds: int = Field(default=900, validation_alias="LOGIN_LOCK_TTL_SECONDS")

    reaction_preview_limit: int = Field(default=5, ge=1, validation_alias="REACTION_PREVIEW_LIMIT")
    comment_preview_limit: int = Field(default=3, ge=1, validation_alias="COMMENT_PREVIEW_LIMIT")
    reply_preview_limit: int = Field(default=3, ge=1, validation_alias="REPLY_PREVIEW_LIMIT")
    reaction_fetch_limit: int = Field(default=10, ge=1, validation_alias="REACTION_FETCH_LIMIT")


settings = Settings()
