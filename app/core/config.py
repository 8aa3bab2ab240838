from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "hymnal-api"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite+pysqlite:///./hymnal.db"
    REDIS_URL: str = ""

    JWT_SECRET: str = "change_me"
    JWT_TTL_MINUTES: int = 240

    CORS_ORIGINS: str = "http://localhost:3000"

    DEFAULT_PAGE_SIZE: int = 25
    MAX_PAGE_SIZE: int = 100
    LIST_CACHE_TTL_SECONDS: int = 300  # 0 disables list caching

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
