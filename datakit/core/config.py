from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "datakit"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = "change_me_datakit"
    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    CACHE_BACKEND: str = "redis"  # memory | redis
    CACHE_TTL_SECONDS: int = 300
    CACHE_PREFIX: str = "datakit"

    PER_PAGE_DEFAULT: int = 25
    PER_PAGE_MAX: int = 500

    # JSON list of view definitions registered at startup; empty disables it.
    VIEWS_CONFIG_PATH: str = ""
    MEDIA_ROOT: str = "./media"
    SITE_URL: str = "http://localhost:8000"
    DEFAULT_LOCALE: str = "en"  # en | ru

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
