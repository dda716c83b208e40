"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Database
    database_url: str = "postgresql+asyncpg://storefront:storefront_dev_password@db:5432/storefront"
    database_check_enabled: bool = False

    # Authentication
    otp_length: int = 6
    otp_ttl_seconds: int = 300
    otp_max_attempts: int = 5
    session_ttl_hours: int = 24 * 30
    bootstrap_admin_phones: list[str] = []

    # Media
    media_root: str = "./media"
    media_base_url: str = "http://localhost:8000/media"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Catalog
    product_code_prefix: str = "PR"
    product_page_size: int = 24
    max_product_images: int = 10
    listing_fee: int = 99
    currency_symbol: str = "₹"
    impression_throttle_minutes: int = 30

    # Chat
    messages_page_size: int = 50
    max_message_length: int = 4000
    presence_ttl_seconds: int = 30

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
