"""
Application configuration with environment variables.
"""
import re
import secrets
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Medicine Registry"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_hex(32))

    # Ledger store
    DATABASE_URL: str = "sqlite:///./medicine_registry.db"
    DB_PREFLIGHT_RETRIES: int = 5
    DB_PREFLIGHT_DELAY: float = 2.0

    # Genesis administrator - the initializing caller of the registry
    ADMIN_ADDRESS: Optional[str] = None

    # JWT Settings (caller identity)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Audit feed
    AUDIT_POLL_MAX: int = 500

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Reject weak SECRET_KEY in production, warn in development."""
        weak_keys = {
            "your-secret-key-change-in-production",
            "change-me-in-production",
            "secret",
            "changeme",
        }
        is_weak = v in weak_keys or len(v) < 32
        if is_weak:
            debug = info.data.get("DEBUG", False)
            if not debug:
                raise ValueError(
                    "SECRET_KEY is weak or default. "
                    "Generate a strong key with: openssl rand -hex 32"
                )
            import warnings
            warnings.warn(
                "SECRET_KEY is weak or default! Set a strong key before deploying.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator('ADMIN_ADDRESS')
    @classmethod
    def validate_admin_address(cls, v: Optional[str]) -> Optional[str]:
        """The genesis administrator can never be the null identity."""
        if v is None:
            return v
        v = v.strip().lower()
        if not v or re.fullmatch(r"0x0+", v):
            raise ValueError("ADMIN_ADDRESS must not be the null address")
        return v


settings = Settings()
