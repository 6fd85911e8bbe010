"""Centralised application settings loaded from environment / .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Fleet search
    h3_resolution: int = 9  # ~0.1 km² hexagons
    default_radius_m: float = 1_000.0
    lock_timeout_seconds: float = 5.0

    # Pricing
    currency: str = "USD"
    service_fee: float = 0.50  # shown in quotes only
    quote_minutes: int = 15

    # Rider flow
    unlock_attempts: int = 3  # QR re-prompts before giving up

    # API
    rate_limit: str = "100/minute"
    rate_limit_enabled: bool = True
    seed_mock_data: bool = True
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
