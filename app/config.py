"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. The .env file is gitignored; .env.example provides a safe template.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from app.config import settings
    print(settings.DATABASE_URL)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Payment Gateway.

    Required fields (no defaults) MUST be set in .env or environment:
      - CARD_ENCRYPTION_KEY: Fernet key for encrypting card data at rest
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Payment Gateway"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local runs; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/gateway.db"

    # --- Card Encryption ---
    # REQUIRED: Fernet key for encrypting card numbers and CVVs at rest.
    # The same key seeds the HMAC used to fingerprint card numbers.
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    CARD_ENCRYPTION_KEY: str

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # JSON lines for log shippers; set False for human-readable local output
    LOG_JSON: bool = True

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    # --- Card simulation ---
    # Test card numbers whose actions are recorded with status "failed".
    # There is no card network behind the gateway, so these stand in for
    # issuer declines.
    AUTHORIZATION_FAILURE_CARDS: list[str] = ["4000000000000119"]
    CAPTURE_FAILURE_CARDS: list[str] = ["4000000000000259"]
    REFUND_FAILURE_CARDS: list[str] = ["4000000000003238"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
