# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres in production, sqlite:/// for local runs)
      - JWT_SECRET (HS256 signing secret shared with the auth service)

    Optional:
      - COMMISSION_RATE / SERVICE_FEE (platform pricing)
      - DRIVER_FEE_SHARE / DRIVER_RATE_PER_KM / DEFAULT_DISTANCE_KM
        (driver earnings formula)
    """

    PROJECT_NAME: str = "Delivery Orders API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    # Platform pricing
    COMMISSION_RATE: float = 0.20
    SERVICE_FEE: float = 10.0

    # Driver earnings = delivery_fee * share + distance * rate
    DRIVER_FEE_SHARE: float = 0.7
    DRIVER_RATE_PER_KM: float = 5.0
    # Placeholder until real routing exists
    DEFAULT_DISTANCE_KM: float = 5.0

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
