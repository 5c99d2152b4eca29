# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Set

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..services.robokassa_signature import RobokassaCredentials


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


NON_PROD_SITE_MODES: Set[str] = {
    "local",
    "dev",
    "development",
    "int",
    "stg",
    "stage",
    "staging",
    "preview",
}
PROD_SITE_MODES: Set[str] = {"prod", "production", "beta", "live"}

DEFAULT_ROBOKASSA_BASE_URL = "https://auth.robokassa.ru/Merchant/Index.aspx"


def _classify_site_mode(raw_site_mode: str | None) -> tuple[str, bool, bool]:
    """Return normalized site mode with production/non-prod classification."""

    normalized = (raw_site_mode or "").strip().lower()
    is_prod = normalized in PROD_SITE_MODES
    is_non_prod = normalized in NON_PROD_SITE_MODES
    return normalized, is_prod, is_non_prod


class Settings(BaseSettings):
    site_mode: str = Field(default="local", alias="SITE_MODE")

    # Environment (derived from SITE_MODE)
    environment: str = (
        "production" if _classify_site_mode(os.getenv("SITE_MODE", "local"))[1] else "development"
    )

    database_url_raw: str = Field(
        default="sqlite:///./studio_booking.db",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
        description="SQLAlchemy URL of the primary database",
    )
    database_pool_size: int = Field(default=5, description="Persistent connections per worker")
    database_max_overflow: int = Field(default=5, description="Overflow connections per worker")
    database_pool_timeout: int = Field(default=5, description="Seconds to wait for a connection")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Robokassa configuration
    robokassa_merchant_login: str = Field(
        default="",
        alias="ROBOKASSA_MERCHANT_LOGIN",
        description="Merchant identifier issued by Robokassa",
    )
    robokassa_password1: SecretStr = Field(
        default=SecretStr(""),
        alias="ROBOKASSA_PASSWORD1",
        description="Shared secret for payment init and the browser SuccessURL redirect",
    )
    robokassa_password2: SecretStr = Field(
        default=SecretStr(""),
        alias="ROBOKASSA_PASSWORD2",
        description="Shared secret for the server-to-server ResultURL notification",
    )
    robokassa_base_url: str = Field(
        default=DEFAULT_ROBOKASSA_BASE_URL,
        alias="ROBOKASSA_BASE_URL",
        description="Robokassa checkout page",
    )
    robokassa_result_url: str = Field(default="", alias="ROBOKASSA_RESULT_URL")
    robokassa_success_url: str = Field(default="", alias="ROBOKASSA_SUCCESS_URL")
    robokassa_is_test: str = Field(
        default="1",
        alias="ROBOKASSA_IS_TEST",
        description="IsTest flag forwarded to the checkout page",
    )
    robokassa_trust_success_redirect: bool = Field(
        default=True,
        alias="ROBOKASSA_TRUST_SUCCESS_REDIRECT",
        description=(
            "When true a validated SuccessURL redirect settles the payment; "
            "when false it only marks the attempt pending until ResultURL arrives"
        ),
    )

    # Where the browser lands after the SuccessURL redirect (optional)
    frontend_payment_success_url: str = Field(default="", alias="FRONTEND_PAYMENT_SUCCESS_URL")
    frontend_payment_fail_url: str = Field(default="", alias="FRONTEND_PAYMENT_FAIL_URL")

    # Testing mode
    is_testing: bool = Field(default=False, description="Set by the test harness")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("robokassa_is_test", mode="before")
    @classmethod
    def _normalize_is_test(cls, value: object) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        normalized = str(value or "").strip()
        return normalized or "1"

    def get_database_url(self) -> str:
        """Get the database URL for the current process."""
        return self.database_url_raw

    def robokassa_credentials(self) -> RobokassaCredentials:
        """Build the credential bundle injected into the payment service."""
        return RobokassaCredentials(
            merchant_login=self.robokassa_merchant_login,
            password1=self.robokassa_password1.get_secret_value(),
            password2=self.robokassa_password2.get_secret_value(),
        )


settings = Settings()
logger.info(
    "[CONFIG] Robokassa configuration: site_mode=%s merchant_configured=%s is_test=%s",
    settings.site_mode,
    bool(settings.robokassa_merchant_login),
    settings.robokassa_is_test,
)
