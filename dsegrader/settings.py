"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_LOCAL_DATA_DIR = BASE_DIR / "data"
DEFAULT_SERVERLESS_DATA_DIR = Path("/tmp/dsegrader")


TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _is_truthy(value: str | None) -> bool:
    return bool(value and value.strip().lower() in TRUTHY_VALUES)


def _running_serverless() -> bool:
    return bool(os.getenv("VERCEL") or os.getenv("NETLIFY") or _is_truthy(os.getenv("DSEGRADER_SERVERLESS")))


def _default_data_dir() -> str:
    if _running_serverless():
        return str(DEFAULT_SERVERLESS_DATA_DIR)
    return str(DEFAULT_LOCAL_DATA_DIR)


class Settings(BaseSettings):
    """Runtime configuration for the DSE essay grader backend."""

    model_config = SettingsConfigDict(env_prefix="DSEGRADER_", extra="ignore")

    app_name: str = "DSE Essay Grader API"
    data_dir: str = Field(
        default_factory=_default_data_dir,
        validation_alias=AliasChoices("DSEGRADER_DATA_DIR", "DATA_DIR"),
    )
    sqlite_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DSEGRADER_SQLITE_PATH", "SQLITE_PATH"),
    )
    max_upload_mb: int = 10

    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("DSEGRADER_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    # LLM provider (OpenRouter speaks the OpenAI chat-completions protocol)
    openrouter_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("DSEGRADER_OPENROUTER_API_KEY", "OPENROUTER_API_KEY"),
    )
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "mistralai/mistral-small-3.1-24b-instruct:free"
    llm_timeout_seconds: float = 30.0
    llm_mock: bool = Field(
        default=False,
        validation_alias=AliasChoices("DSEGRADER_LLM_MOCK", "LLM_MOCK"),
    )
    app_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("DSEGRADER_APP_URL", "NEXT_PUBLIC_APP_URL"),
    )

    # Identity tokens
    jwt_secret: str = Field(
        default="dev-secret-change-me-before-deploying",
        validation_alias=AliasChoices("DSEGRADER_JWT_SECRET", "JWT_SECRET"),
    )

    # Feedback filtering
    max_suggestion_chars: int = 200

    # OCR
    ocr_provider: str = "stub"
    ocr_clean_with_llm: bool = False

    @model_validator(mode="after")
    def _set_sqlite_path(self) -> "Settings":
        if not self.sqlite_path:
            self.sqlite_path = str(Path(self.data_dir) / "dsegrader.db")
        return self

    @property
    def sqlite_url(self) -> str:
        return f"sqlite:///{self.sqlite_path}"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def llm_configured(self) -> bool:
        return self.llm_mock or bool(self.openrouter_api_key.strip())

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
