# survey_relay/config.py
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process configuration, loaded from the environment or a .env file.

    Built once in create_app() and handed to the relay; request handling
    never reads the environment itself.
    """
    # Server
    PORT: int = 3000
    APP_ENV: str = "development"  # 'development' or 'production'
    CORS_ORIGINS: str = "*"  # comma-separated
    STATIC_DIR: str = "public"
    LOG_LEVEL: str = "INFO"

    # Google service account (never sent to clients)
    GOOGLE_SERVICE_ACCOUNT_EMAIL: str = ""
    GOOGLE_PRIVATE_KEY: str = ""
    SPREADSHEET_ID: str = ""
    SHEET_NAME: str = "Sheet1"
    SHEETS_BACKEND: str = "google"  # 'google' or 'memory'

    # Survey definition used to check the column order at startup
    SURVEY_SCHEMA_PATH: Optional[str] = None

    # Fallback queue storage
    STORAGE_BACKEND: str = "local"  # 'local' or 's3'
    DATA_DIR: str = "data"
    S3_BUCKET: str = "survey-relay-fallback"
    AWS_REGION: str = "eu-central-1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("GOOGLE_PRIVATE_KEY")
    @classmethod
    def _unescape_newlines(cls, value: str) -> str:
        # keys pasted into .env usually carry literal "\n"
        return value.replace("\\n", "\n")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"
