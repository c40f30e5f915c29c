"""
Configuration management for the storefront order service.

Values come from the environment or a local .env (pydantic-settings).
Secret values are never logged.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    app_url: str = "http://localhost:3000"

    # ── Auth (JWT, verification only) ───────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "storefront-api"
    jwt_access_ttl_minutes: int = 60

    # ── Razorpay ────────────────────────────────────────────────────
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    razorpay_api_base: str = "https://api.razorpay.com/v1"
    payment_currency: str = "INR"

    # ── Cash on delivery ────────────────────────────────────────────
    cod_code_ttl_minutes: int = 15
    cod_code_length: int = 6
    pending_cod_retention_hours: int = 24

    # ── Email (Resend) ──────────────────────────────────────────────
    resend_api_key: str = ""
    email_from: str = "Storefront <orders@example.com>"
    admin_email: str = ""
    email_pool_workers: int = 4
    email_timeout_seconds: float = 15.0

    # ── Delhivery ───────────────────────────────────────────────────
    delhivery_auth_token: str = ""
    delhivery_base_url: str = "https://track.delhivery.com"
    warehouse_pincode: str = "700001"
    warehouse_return_address: str = "Warehouse Address"
    warehouse_return_city: str = "Kolkata"
    warehouse_return_state: str = "West Bengal"
    warehouse_return_country: str = "India"
    warehouse_return_phone: str = "9999999999"
    seller_name: str = "Storefront"

    # ── Outbound HTTP ───────────────────────────────────────────────
    http_timeout_seconds: float = 10.0

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def validate_production_settings(self):
        """
        Fail fast in production on open CORS or a missing signing secret;
        elsewhere only warn about integrations that will not work.
        """
        required = {
            "JWT_SECRET": self.jwt_secret,
            "RAZORPAY_KEY_SECRET": self.razorpay_key_secret,
            "RAZORPAY_WEBHOOK_SECRET": self.razorpay_webhook_secret,
        }
        missing = [name for name, value in required.items() if not value]

        if self.environment == "production":
            if "*" in self.cors_origins_list:
                raise ValueError("CORS_ORIGINS may not be '*' in production; list the storefront origins.")
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
            logger.info("Production settings validated")
            return

        for name in missing:
            logger.warning(f"{name} not set; signed tokens or payments will be rejected")
        if not self.resend_api_key:
            logger.warning("RESEND_API_KEY not set; COD codes and confirmations cannot be emailed")
        if not self.delhivery_auth_token:
            logger.warning("DELHIVERY_AUTH_TOKEN not set; shipment creation is disabled")


settings = Settings()
