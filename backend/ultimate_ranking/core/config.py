from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Ultimate Frisbee Ranking"
    API_V1_STR: str = "/api/v1"
    SUPABASE_URL: str
    SUPABASE_KEY: str
    # When set, bearer tokens are verified against it
    SUPABASE_JWT_SECRET: Optional[str] = None
    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    LOG_LEVEL: str = "INFO"
    RANKING_CACHE_SIZE: int = 64

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")


settings = Settings()
