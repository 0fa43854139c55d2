from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./attendance.db"

    # Query defaults
    DEFAULT_LIST_LIMIT: int = 100
    MAX_LIST_LIMIT: int = 10_000
    DEFAULT_STATS_DAYS: int = 14
    MAX_STATS_DAYS: int = 3650

    # HTTP
    CORS_ORIGINS: list[str] = ["*"]
    STATIC_DIR: str = "public"
    WRITE_RATE_LIMIT: str = "120/minute"
    RATE_LIMIT_ENABLED: bool = True

    # App
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
