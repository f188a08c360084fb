"""
Marketplace settings, read from the environment (and ``.env``).

Production safety checks run once the whole model is loaded: a deployment
with DEBUG off must carry a real signing key and database password, and may
not seed the demo accounts.
"""
import warnings
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

WEAK_SECRET_KEYS = frozenset({
    "your-secret-key-change-in-production",
    "change-me-in-production",
    "secret",
    "changeme",
})
WEAK_DB_PASSWORDS = frozenset({"trademart", "postgres", "password", "changeme", ""})
MIN_SECRET_KEY_LENGTH = 32


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "TradeMart"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = "your-secret-key-change-in-production"

    # Postgres parts; DATABASE_URL wins when set
    POSTGRES_USER: str = "trademart"
    POSTGRES_PASSWORD: str = "trademart"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "trademart"
    DATABASE_URL: Optional[str] = None

    REDIS_URL: str = "redis://redis:6379/0"
    # Seconds; bounds every enqueue made from a request
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, gt=0)

    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    DEFAULT_CURRENCY: str = "INR"
    # Inclusive: a score equal to the threshold passes
    QC_PASS_THRESHOLD: int = Field(default=70, ge=0, le=100)
    # RFQs opened from a product page stay open this long
    PRODUCT_QUOTE_EXPIRY_DAYS: int = Field(default=30, ge=1)

    NOTIFICATION_BACKEND: Literal["rq", "log"] = "rq"
    NOTIFICATION_QUEUE: str = "notifications"

    SEED_DEMO: bool = False
    ADMIN_BOOTSTRAP_EMAIL: Optional[str] = None
    ADMIN_BOOTSTRAP_PASSWORD: Optional[str] = None
    ALLOW_PUBLIC_REGISTRATION: bool = True

    @model_validator(mode="after")
    def assemble_db_url(self) -> "Settings":
        if not self.DATABASE_URL:
            self.DATABASE_URL = (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        return self

    @model_validator(mode="after")
    def check_production_safety(self) -> "Settings":
        """Refuse unsafe production settings; only warn about the key in DEBUG."""
        weak_key = self.SECRET_KEY in WEAK_SECRET_KEYS or len(self.SECRET_KEY) < MIN_SECRET_KEY_LENGTH
        if self.DEBUG:
            if weak_key:
                warnings.warn(
                    "SECRET_KEY is weak or default! Set a strong key before deploying.",
                    UserWarning,
                    stacklevel=2,
                )
            return self

        if weak_key:
            raise ValueError(
                "SECRET_KEY is weak or default. "
                "Generate a strong key with: openssl rand -hex 32"
            )
        if self.POSTGRES_PASSWORD in WEAK_DB_PASSWORDS:
            raise ValueError(
                "POSTGRES_PASSWORD is set to a default value. "
                "Set a strong database password for production."
            )
        if self.SEED_DEMO:
            raise ValueError(
                "SEED_DEMO=true is not allowed when DEBUG=false. "
                "Demo seeding creates predictable credentials."
            )
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
