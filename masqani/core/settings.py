import os
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

from .url_parser import parser

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "MASQANI POA HOUSING MARKETPLACE"
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./masqani.db"
    )
    SECRET_KEY: str = os.getenv("SECRET_KEY", "insecure-development-secret-change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")

    UPSTASH_REDIS_TOKEN: str | None = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    UPSTASH_REDIS_URL: str | None = os.getenv("UPSTASH_REDIS_REST_URL")

    CLOUDINARY_CLOUD_NAME: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_SECRET_KEY: str | None = os.getenv("CLOUDINARY_SECRET_KEY")

    # Ksh. Unlock and listing tables are independent of each other.
    UNLOCK_FEE_STANDARD: int = 50
    UNLOCK_FEE_AIRBNB: int = 100
    UNLOCK_FEE_BUSINESS: int = 50
    LISTING_FEE_STANDARD: int = 100
    LISTING_FEE_AIRBNB_MONTHLY: int = 300
    LISTING_FEE_BUSINESS: int = 150

    MIN_LISTING_PHOTOS: int = 8
    AIRBNB_SUBSCRIPTION_DAYS: int = 30
    MIN_PHONE_LENGTH: int = 9
    PHONE_DEFAULT_REGION: str = "KE"

    PAYMENT_TIMEOUT_SECONDS: float = 45.0
    TRANSACTION_LOCK_TTL: int = 900
    TRANSACTION_RETENTION_SECONDS: int = 3600
    SIMULATED_GATEWAY_SUCCESS_RATE: float = 0.9
    SIMULATED_GATEWAY_DELAY_SECONDS: float = 3.5

    LISTINGS_CACHE_KEY: str = "listings:snapshot"
    LISTINGS_CACHE_TTL: int = 3600

    ALLOWED_HOSTS_RAW: str = os.getenv("ALLOWED_HOSTS", "")
    OPERATOR_SUBJECTS_RAW: str = os.getenv("OPERATOR_SUBJECTS", "")

    @property
    def ALLOWED_HOSTS(self) -> List[str]:
        return parser.parse_url_list(self.ALLOWED_HOSTS_RAW, "ALLOWED_HOSTS")

    @property
    def OPERATOR_SUBJECTS(self) -> List[str]:
        return [s.strip() for s in self.OPERATOR_SUBJECTS_RAW.split(",") if s.strip()]

    @property
    def upstash_configured(self) -> bool:
        return bool(self.UPSTASH_REDIS_URL and self.UPSTASH_REDIS_TOKEN)

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


settings = Settings()
