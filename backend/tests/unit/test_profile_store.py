"""Unit tests for SharetribeProfileStore and the paid-flag accessors."""

import datetime as dt
import json
from typing import Any

import httpx
import pytest

from regpay.models.enums import FeeType
from regpay.models.errors import ProfileStoreError
from regpay.models.payment import PaymentReference
from regpay.models.user import MarketplaceUser
from regpay.services.profile_store import SharetribeProfileStore, paid_metadata_keys, paid_status

REFERENCE = PaymentReference(intent_id="pi_1", amount=1000, currency="usd")


class TestMarkFeePaid:
    def test_writes_flag_timestamp_and_reference(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1", metadata={"carrierRating": 5})
        paid_at = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.UTC)

        written = profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE, paid_at=paid_at)

        assert written == {
            "registrationPaid": True,
            "registrationPaidAt": "2026-03-01T12:00:00+00:00",
            "registrationPayment": {
                "intentId": "pi_1",
                "amount": 1000,
                "currency": "usd",
                "status": "succeeded",
            },
        }
        # Partial merge: unrelated metadata is preserved
        assert sharetribe.metadata("u1")["carrierRating"] == 5
        assert sharetribe.metadata("u1")["registrationPaid"] is True

    def test_sends_partial_update_without_reading_first(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1")

        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)

        paths = [r.url.path for r in sharetribe.requests]
        assert "/v1/integration_api/users/show" not in paths
        body = json.loads(sharetribe.update_calls[0].content)
        assert body["id"] == "u1"
        assert set(body["metadata"]) == {
            "registrationPaid",
            "registrationPaidAt",
            "registrationPayment",
        }

    def test_repeated_marks_never_revert(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1")

        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)
        profile_store.mark_fee_paid(
            "u1", FeeType.REGISTRATION, PaymentReference(intent_id="pi_2", amount=1000, currency="usd")
        )

        for request in sharetribe.update_calls:
            assert json.loads(request.content)["metadata"]["registrationPaid"] is True
        metadata = sharetribe.metadata("u1")
        assert metadata["registrationPaid"] is True
        assert metadata["registrationPayment"]["intentId"] == "pi_2"

    def test_profile_unlock_keys(self, profile_store: SharetribeProfileStore, sharetribe: Any) -> None:
        sharetribe.add_user("u1")

        profile_store.mark_fee_paid("u1", FeeType.PROFILE_UNLOCK, REFERENCE)

        metadata = sharetribe.metadata("u1")
        assert metadata["profileUnlockPaid"] is True
        assert metadata["profileUnlockPayment"]["intentId"] == "pi_1"
        assert "registrationPaid" not in metadata

    def test_upstream_failure_raises(self, profile_store: SharetribeProfileStore, sharetribe: Any) -> None:
        sharetribe.add_user("u1")
        sharetribe.fail_updates = True

        with pytest.raises(ProfileStoreError) as exc_info:
            profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)

        assert exc_info.value.details == {"operation": "update_profile", "status": "503"}

    def test_unknown_user_raises(self, profile_store: SharetribeProfileStore) -> None:
        with pytest.raises(ProfileStoreError):
            profile_store.mark_fee_paid("ghost", FeeType.REGISTRATION, REFERENCE)

    def test_transport_error_raises(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = SharetribeProfileStore(
            "https://integ.sharetribe.test",
            "id",
            "secret",
            http_client=httpx.Client(transport=httpx.MockTransport(refuse)),
        )

        with pytest.raises(ProfileStoreError):
            store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)


class TestAccessToken:
    def test_token_is_reused(self, profile_store: SharetribeProfileStore, sharetribe: Any) -> None:
        sharetribe.add_user("u1")

        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)
        profile_store.mark_fee_paid("u1", FeeType.PROFILE_UNLOCK, REFERENCE)

        assert sharetribe.issued_tokens == ["integ-token-1"]

    def test_token_requested_with_client_credentials(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1")

        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)

        token_request = sharetribe.requests[0]
        form = dict(httpx.QueryParams(token_request.content.decode()))
        assert form == {
            "client_id": "integ-client-id",
            "client_secret": "integ-client-secret",
            "grant_type": "client_credentials",
            "scope": "integ",
        }

    def test_revoked_token_refreshed_once(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1")
        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)
        sharetribe.revoked_tokens.add("integ-token-1")

        profile_store.mark_fee_paid("u1", FeeType.PROFILE_UNLOCK, REFERENCE)

        assert sharetribe.issued_tokens == ["integ-token-1", "integ-token-2"]
        assert sharetribe.metadata("u1")["profileUnlockPaid"] is True

    def test_rejected_credentials_raise(self) -> None:
        def deny(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        store = SharetribeProfileStore(
            "https://integ.sharetribe.test",
            "id",
            "wrong",
            http_client=httpx.Client(transport=httpx.MockTransport(deny)),
        )

        with pytest.raises(ProfileStoreError) as exc_info:
            store.update_metadata("u1", {"registrationPaid": True})

        assert exc_info.value.details == {"operation": "auth_token", "status": "401"}

    def test_non_json_token_response_raises(self) -> None:
        def gateway_page(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>Bad gateway</html>")

        store = SharetribeProfileStore(
            "https://integ.sharetribe.test",
            "id",
            "secret",
            http_client=httpx.Client(transport=httpx.MockTransport(gateway_page)),
        )

        with pytest.raises(ProfileStoreError) as exc_info:
            store.update_metadata("u1", {"registrationPaid": True})

        assert exc_info.value.details == {"operation": "auth_token", "status": "invalid_body"}

    def test_non_json_update_response_raises(self) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/auth/token":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(200, text="OK")

        store = SharetribeProfileStore(
            "https://integ.sharetribe.test",
            "id",
            "secret",
            http_client=httpx.Client(transport=httpx.MockTransport(respond)),
        )

        with pytest.raises(ProfileStoreError) as exc_info:
            store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)

        assert exc_info.value.details == {"operation": "update_profile", "status": "invalid_body"}


class TestShowUserAndPaidStatus:
    def test_show_user_reads_profile_metadata(
        self, profile_store: SharetribeProfileStore, sharetribe: Any
    ) -> None:
        sharetribe.add_user("u1", email="carrier@example.com")
        profile_store.mark_fee_paid("u1", FeeType.REGISTRATION, REFERENCE)

        user = profile_store.show_user("u1")

        assert user.id == "u1"
        assert user.email == "carrier@example.com"
        status = paid_status(user, FeeType.REGISTRATION)
        assert status.paid is True
        assert status.paid_at is not None
        assert status.payment_reference == REFERENCE

    def test_paid_status_requires_literal_true(self) -> None:
        user = MarketplaceUser(id="u1", metadata={"registrationPaid": "true"})

        assert paid_status(user, FeeType.REGISTRATION).paid is False

    def test_unpaid_user(self) -> None:
        status = paid_status(MarketplaceUser(id="u1"), FeeType.PROFILE_UNLOCK)

        assert status.paid is False
        assert status.paid_at is None
        assert status.payment_reference is None

    def test_paid_metadata_keys(self) -> None:
        assert paid_metadata_keys(FeeType.REGISTRATION) == (
            "registrationPaid",
            "registrationPaidAt",
            "registrationPayment",
        )
        assert paid_metadata_keys(FeeType.PROFILE_UNLOCK) == (
            "profileUnlockPaid",
            "profileUnlockPaidAt",
            "profileUnlockPayment",
        )
