"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("homestay.config")


class Settings(BaseSettings):
    # Pricing (percent of the pre-discount subtotal)
    tax_percent: int = 12
    service_fee_percent: int = 5
    currency: str = "INR"

    # Storage: JSON file backing the key-value store. Empty = in-memory only.
    storage_path: str = ""

    # Listing catalog JSON. Empty = bundled sample data.
    listings_path: str = ""

    # Mock collaborators
    payment_latency_seconds: float = 0.0
    notification_latency_seconds: float = 0.0
    upi_payee: str = "villagestay@paytm"
    brand_name: str = "VillageStay"

    # Checkout rules
    reject_past_check_in: bool = True

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.tax_percent < 0 or self.service_fee_percent < 0:
            raise ValueError(
                "TAX_PERCENT and SERVICE_FEE_PERCENT must be zero or positive."
            )

        if self.payment_latency_seconds < 0 or self.notification_latency_seconds < 0:
            raise ValueError("Simulated latencies cannot be negative.")

        if not self.storage_path:
            warnings.append(
                "STORAGE_PATH not set. Bookings and favorites are kept in memory "
                "and lost on restart."
            )

        # Admin API key: warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()
