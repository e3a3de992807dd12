from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings, read from the environment or a local `.env`.

    SECRET_KEY and MONGO_URI have no default; the app refuses to start
    without them.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    FLASK_ENV: str = "production"
    SECRET_KEY: str
    DEBUG: bool = False
    APP_NAME: str = "TutorHub"
    LOG_LEVEL: str = "INFO"

    # MongoDB; the database name is part of the URI
    MONGO_URI: str
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 2000

    # Bearer tokens and accounts
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 24
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_RESET_TTL_MINUTES: int = 60
    ADMIN_EMAIL: str = ""

    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    CORS_ORIGINS: str = "*"

    # Outgoing mail; BASE_URL builds the links inside it
    BASE_URL: str = ""
    MAIL_SERVER: str = ""
    MAIL_PORT: int = 587
    MAIL_USE_TLS: bool = True
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_DEFAULT_SENDER: str = "noreply@tutorhub.app"

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("ADMIN_EMAIL")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def jwt_signing_key(self) -> str:
        """JWT_SECRET when set, otherwise the Flask SECRET_KEY."""
        return self.JWT_SECRET or self.SECRET_KEY

    @property
    def cors_origins(self) -> Union[str, List[str]]:
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        if not origins or origins == ["*"]:
            return "*"
        return origins


def check_production_readiness(config: Settings) -> None:
    if config.FLASK_ENV != "production":
        return
    if len(config.SECRET_KEY) < 16:
        raise ValueError("CRITICAL: SECRET_KEY is too short for production.")
    if config.DEBUG:
        raise ValueError("CRITICAL: DEBUG mode must be disabled in production.")


settings = Settings()
check_production_readiness(settings)
