"""Gateway adapter configuration.

Settings load from ``SQUARE_*`` environment variables (or a ``.env`` file)
when the factory builds the adapter. The adapter gets the settings object at
construction; nothing in the billing core reads the environment.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SANDBOX_BASE_URL = "https://connect.squareupsandbox.com"
PRODUCTION_BASE_URL = "https://connect.squareup.com"
SQUARE_API_VERSION = "2024-07-17"


class GatewayConfig(BaseSettings):
    """Square credentials and endpoint settings."""

    model_config = SettingsConfigDict(
        env_prefix="SQUARE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    access_token: str = ""
    location_id: str = ""
    environment: Literal["sandbox", "production"] = "sandbox"
    webhook_signature_key: str = ""
    notification_url: str = ""
    currency: str = Field(default="USD", min_length=3, max_length=3)
    timeout: float = Field(default=10.0, gt=0)

    @field_validator("environment", mode="before")
    @classmethod
    def _lowercase_environment(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def base_url(self) -> str:
        return PRODUCTION_BASE_URL if self.environment == "production" else SANDBOX_BASE_URL

    def missing_settings(self) -> list[str]:
        """Credentials Square needs that are still unset; empty when usable."""
        missing = []
        if not self.access_token:
            missing.append("SQUARE_ACCESS_TOKEN")
        if not self.location_id:
            missing.append("SQUARE_LOCATION_ID")
        return missing
