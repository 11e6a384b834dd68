from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_SQLITE_PATH = BASE_DIR / "data" / "app.db"

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000,"
    "http://127.0.0.1:3000,"
    "http://localhost:5173,"
    "http://127.0.0.1:5173"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_SQLITE_PATH}",
        validation_alias="DATABASE_URL",
    )
    auth_secret_key: str = Field(
        default="change-me",
        validation_alias="AUTH_SECRET_KEY",
    )
    auth_algorithm: str = Field(
        default="HS256",
        validation_alias="AUTH_ALGORITHM",
    )
    auth_access_token_expire_minutes: int = Field(
        default=60 * 24,
        validation_alias="AUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    backend_cors_origins: str = Field(
        default=DEFAULT_CORS_ORIGINS,
        validation_alias="BACKEND_CORS_ORIGINS",
    )
    # Issue numbers are permanent identifiers unless a deployment opts in.
    issue_resequence_on_delete: bool = Field(
        default=False,
        validation_alias="ISSUE_RESEQUENCE_ON_DELETE",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.backend_cors_origins.split(",") if origin.strip()]


settings = Settings()
