"""Unit tests for settings loading and fee resolution.

Fees are resolved once at startup; every malformed value must surface as
ConfigurationError before the first request is served.
"""

import pytest

from regpay.config import load_settings, resolve_all_fees, resolve_fee
from regpay.models.enums import FeeType
from regpay.models.errors import ConfigurationError, ErrorCode


class TestResolveFee:
    """Tests for resolve_fee amount/currency validation."""

    def test_registration_fee_from_environment(self) -> None:
        fee = resolve_fee(load_settings(), FeeType.REGISTRATION)

        assert fee.amount == 1000
        assert fee.currency == "usd"
        assert fee.purpose == "registration_fee"

    @pytest.mark.parametrize("raw", ["1000", " 1000 ", 1000])
    def test_accepts_integer_amounts(self, raw: object) -> None:
        settings = load_settings(registration_fee_amount=raw)

        assert resolve_fee(settings, FeeType.REGISTRATION).amount == 1000

    @pytest.mark.parametrize("raw", ["10.00", "abc", "0", "-5", "", 0, -5])
    def test_rejects_malformed_amounts(self, raw: object) -> None:
        settings = load_settings(registration_fee_amount=raw)

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_fee(settings, FeeType.REGISTRATION)

        assert exc_info.value.details == {"setting": "REGISTRATION_FEE_AMOUNT"}

    def test_missing_amount_is_a_configuration_error(self) -> None:
        settings = load_settings(registration_fee_amount=None)

        with pytest.raises(ConfigurationError, match="not configured"):
            resolve_fee(settings, FeeType.REGISTRATION)

    @pytest.mark.parametrize("currency", ["USD", "dollars", "", "xyz"])
    def test_rejects_invalid_currency(self, currency: str) -> None:
        settings = load_settings(registration_fee_currency=currency)

        with pytest.raises(ConfigurationError):
            resolve_fee(settings, FeeType.REGISTRATION)

    def test_profile_unlock_fee_defaults(self) -> None:
        fee = resolve_fee(load_settings(), FeeType.PROFILE_UNLOCK)

        assert fee.amount == 499
        assert fee.currency == "usd"
        assert fee.purpose == "profile_unlock"

    def test_resolve_all_fees_covers_every_fee_type(self) -> None:
        fees = resolve_all_fees(load_settings(registration_fee_amount="2500", registration_fee_currency="eur"))

        assert set(fees) == set(FeeType)
        assert fees[FeeType.REGISTRATION].amount == 2500
        assert fees[FeeType.REGISTRATION].currency == "eur"

    def test_resolve_all_fees_fails_on_any_bad_fee(self) -> None:
        settings = load_settings(profile_unlock_fee_amount="free")

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_all_fees(settings)

        assert exc_info.value.details == {"setting": "PROFILE_UNLOCK_FEE_AMOUNT"}


class TestLoadSettings:
    """Tests for Settings construction."""

    def test_missing_required_secret_raises_configuration_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("STRIPE_SECRET_KEY")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert "stripe_secret_key" in exc_info.value.details["fields"]

    def test_invalid_environment_name(self) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(environment="qa")

    def test_secrets_are_not_in_repr(self) -> None:
        settings = load_settings()

        assert "sk_test_regpay1234" not in repr(settings)
        assert "integ-client-secret" not in repr(settings)

    def test_table_prefix_defaults_to_environment(self) -> None:
        settings = load_settings(dynamodb_table_prefix=None, environment="staging")

        assert settings.table_prefix == "regpay-staging"

    def test_cors_origins_deduplicated_in_order(self) -> None:
        settings = load_settings(
            marketplace_root_url="https://haulsaver.example",
            allowed_origins="https://admin.example, http://localhost:3000,,",
        )

        origins = settings.cors_origins
        assert origins[0] == "https://haulsaver.example"
        assert "https://admin.example" in origins
        assert origins.count("http://localhost:3000") == 1
        assert "" not in origins
