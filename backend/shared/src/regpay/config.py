"""Application configuration using pydantic-settings.

Loads from environment variables / .env file exactly once. Components receive
the resulting Settings (or values resolved from it) through their
constructors instead of reading the environment themselves.
"""

import re
from functools import lru_cache
from typing import Any, Literal

import pydantic
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.enums import FeeType
from .models.errors import ConfigurationError
from .models.payment import Fee

# Active ISO 4217 codes (lowercase, as Stripe expects them)
ISO_4217_CURRENCIES: frozenset[str] = frozenset(
    """
    aed afn all amd ang aoa ars aud awg azn bam bbd bdt bgn bhd bif bmd bnd bob
    brl bsd btn bwp byn bzd cad cdf chf clp cny cop crc cup cve czk djf dkk dop
    dzd egp ern etb eur fjd fkp gbp gel ghs gip gmd gnf gtq gyd hkd hnl htg huf
    idr ils inr iqd irr isk jmd jod jpy kes kgs khr kmf kpw krw kwd kyd kzt lak
    lbp lkr lrd lsl lyd mad mdl mga mkd mmk mnt mop mru mur mvr mwk mxn myr mzn
    nad ngn nio nok npr nzd omr pab pen pgk php pkr pln pyg qar ron rsd rub rwf
    sar sbd scr sdg sek sgd shp sle sll sos srd ssp stn svc syp szl thb tjs tmt
    tnd top try ttd twd tzs uah ugx usd uyu uzs ves vnd vuv wst xaf xcd xof xpf
    yer zar zmw zwl
    """.split()
)

DEV_UI_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "https://localhost:3000",
    "https://127.0.0.1:3000",
)

_AMOUNT_PATTERN = re.compile(r"^\d+$")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "regpay"
    environment: Literal["development", "staging", "production"] = "development"
    port: int = 3500

    # Stripe
    stripe_secret_key: SecretStr
    stripe_webhook_secret: SecretStr
    stripe_timeout_seconds: float = 5.0
    stripe_max_network_retries: int = 1
    webhook_tolerance_seconds: int = 300

    # Fees (minor units). Validated by resolve_fee at startup.
    registration_fee_amount: int | str | None = None
    registration_fee_currency: str = "usd"
    profile_unlock_fee_amount: int | str | None = 499
    profile_unlock_fee_currency: str = "usd"

    # Browser client
    marketplace_root_url: str = "http://localhost:3000"
    allowed_origins: str = ""

    # Sharetribe
    sharetribe_integration_client_id: str
    sharetribe_integration_client_secret: SecretStr
    sharetribe_integration_api_url: str = "https://flex-integ-api.sharetribe.com"
    sharetribe_marketplace_api_url: str = "https://flex-api.sharetribe.com"
    profile_store_timeout_seconds: float = 5.0

    # Webhook event log
    dynamodb_table_prefix: str | None = None
    webhook_processing_stale_seconds: int = 300

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def table_prefix(self) -> str:
        return self.dynamodb_table_prefix or f"regpay-{self.environment}"

    @property
    def cors_origins(self) -> list[str]:
        """Allowed browser origins: marketplace root, local dev, then extras."""
        extra = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        origins: list[str] = []
        for origin in [self.marketplace_root_url.strip(), *DEV_UI_ORIGINS, *extra]:
            if origin and origin not in origins:
                origins.append(origin)
        return origins


def load_settings(**overrides: Any) -> Settings:
    """Build and validate Settings.

    Args:
        **overrides: Explicit values taking precedence over the environment.

    Returns:
        Validated Settings.

    Raises:
        ConfigurationError: If a required value is missing or malformed.
    """
    try:
        return Settings(**overrides)
    except pydantic.ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ConfigurationError(
            details={"fields": ", ".join(fields)},
            message=f"Invalid configuration: {', '.join(fields)}",
        ) from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()


def _parse_amount(raw: int | str | None, setting: str) -> int:
    if raw is None or isinstance(raw, bool):
        raise ConfigurationError(
            details={"setting": setting},
            message=f"{setting} is not configured",
        )
    if isinstance(raw, int):
        amount = raw
    else:
        text = str(raw).strip()
        if not _AMOUNT_PATTERN.match(text):
            raise ConfigurationError(
                details={"setting": setting},
                message=f"{setting} must be a positive integer in minor units",
            )
        amount = int(text)
    if amount <= 0:
        raise ConfigurationError(
            details={"setting": setting},
            message=f"{setting} must be a positive integer in minor units",
        )
    return amount


def _parse_currency(raw: str | None, setting: str) -> str:
    currency = (raw or "").strip()
    if currency not in ISO_4217_CURRENCIES:
        raise ConfigurationError(
            details={"setting": setting},
            message=f"{setting} must be a lowercase ISO 4217 code",
        )
    return currency


def resolve_fee(settings: Settings, fee_type: FeeType) -> Fee:
    """Resolve the authoritative amount and currency for a fee type.

    Args:
        settings: Validated application settings.
        fee_type: Which fee to resolve.

    Returns:
        Fee with a positive integer amount and lowercase ISO 4217 currency.

    Raises:
        ConfigurationError: If the amount is missing, non-numeric or not
            positive, or the currency is not a lowercase ISO 4217 code.
    """
    if fee_type is FeeType.REGISTRATION:
        raw_amount, raw_currency = (
            settings.registration_fee_amount,
            settings.registration_fee_currency,
        )
        prefix = "REGISTRATION_FEE"
    else:
        raw_amount, raw_currency = (
            settings.profile_unlock_fee_amount,
            settings.profile_unlock_fee_currency,
        )
        prefix = "PROFILE_UNLOCK_FEE"

    return Fee(
        fee_type=fee_type,
        amount=_parse_amount(raw_amount, f"{prefix}_AMOUNT"),
        currency=_parse_currency(raw_currency, f"{prefix}_CURRENCY"),
    )


def resolve_all_fees(settings: Settings) -> dict[FeeType, Fee]:
    """Resolve every fee type; called once at startup so bad config fails fast."""
    return {fee_type: resolve_fee(settings, fee_type) for fee_type in FeeType}
