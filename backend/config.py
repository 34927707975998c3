# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Literal
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_storefront.db"

    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    LOG_LEVEL: str = "INFO"

    FRONTEND_URL: str = "http://localhost:5173"

    # Carrier platform (checkout sessions + catalog sync)
    CARRIER_API_URL: str = "https://apiv2.shiprocket.in/v1/external"
    CARRIER_CHECKOUT_URL: str = "https://checkout-api.shiprocket.com/api/v1/access-token/checkout"
    CARRIER_API_KEY: str = ""
    CARRIER_API_SECRET: str = ""
    CARRIER_EMAIL: str = ""
    CARRIER_PASSWORD: str = ""
    CARRIER_TIMEOUT_SECONDS: float = 10.0
    # Cached login token is refreshed after this many seconds
    CARRIER_TOKEN_TTL_SECONDS: int = 55 * 60

    # Pricing, all amounts in minor currency units
    CURRENCY: str = "INR"
    TAX_POLICY: Literal["variant", "flat"] = "variant"
    FLAT_TAX_RATE: int = 18
    SHIPPING_FEE: int = 5000
    FREE_SHIPPING_THRESHOLD: int = 100000
    HOME_REGION: str = "IN"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
