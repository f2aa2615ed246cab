from typing import Any, List
from pydantic import AnyHttpUrl, field_validator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application configuration settings.

    Loads values from environment variables or .env file.
    """
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "CharmCircle API"
    MAX_CIRCLE_MEMBERS: int = Field(default=10, ge=1, description="Upper bound on members the service lets into one circle")
    DEFAULT_ROUND_DURATION: int = Field(default=2_592_000, ge=0, description="Round length in seconds when the creator does not give one (30 days)")

    # DATABASE
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./charmcircle.db", description="Async SQLAlchemy connection URL")

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    # RATE LIMITING
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # LOGGING
    LOG_LEVEL: str = "INFO"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> Any:
        """
        Parses comma-separated string of CORS origins into a list.
        """
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()
