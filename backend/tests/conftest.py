"""Pytest configuration and fixtures for the registration payment gate tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (webhook event log)
- An in-memory Stripe Payment Intents client
- An httpx.MockTransport fake of the Sharetribe Integration and Marketplace APIs
- Real Stripe webhook signatures (HMAC-SHA256), so verification runs unmocked
- A FastAPI TestClient wired to all of the above
"""

import copy
import hashlib
import hmac
import json
import os
import time
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any, Generator

import boto3
import httpx
import pytest
import stripe
from moto import mock_aws

# === Environment Setup ===

# Set before any regpay import so Settings and the app module load cleanly
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_regpay1234")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret123")
os.environ.setdefault("REGISTRATION_FEE_AMOUNT", "1000")
os.environ.setdefault("REGISTRATION_FEE_CURRENCY", "usd")
os.environ.setdefault("SHARETRIBE_INTEGRATION_CLIENT_ID", "integ-client-id")
os.environ.setdefault("SHARETRIBE_INTEGRATION_CLIENT_SECRET", "integ-client-secret")
os.environ.setdefault("SHARETRIBE_INTEGRATION_API_URL", "https://integ.sharetribe.test")
os.environ.setdefault("SHARETRIBE_MARKETPLACE_API_URL", "https://api.sharetribe.test")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-regpay")

TEST_WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]
INTEG_API_URL = os.environ["SHARETRIBE_INTEGRATION_API_URL"]
MARKETPLACE_API_URL = os.environ["SHARETRIBE_MARKETPLACE_API_URL"]


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached settings and services before and after each test.

    This ensures tests using mock_aws get a fresh DynamoDB service inside
    the mock context rather than reusing one from a previous test.
    """
    from regpay.config import get_settings
    from regpay_api.dependencies import reset_services

    get_settings.cache_clear()
    reset_services()
    yield
    get_settings.cache_clear()
    reset_services()


# === Configuration Fixtures ===


@pytest.fixture
def settings() -> Any:
    """Settings loaded from the test environment."""
    from regpay.config import load_settings

    return load_settings()


@pytest.fixture
def fees(settings: Any) -> Any:
    """Fees resolved from the test environment (registration = 1000 usd)."""
    from regpay.config import resolve_all_fees

    return resolve_all_fees(settings)


# === DynamoDB Fixtures ===


@pytest.fixture
def dynamodb_table() -> Generator[Any, None, None]:
    """Create the webhook event table inside a moto mock."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        client.create_table(
            TableName=f"{TABLE_PREFIX}-webhook-events",
            KeySchema=[{"AttributeName": "event_id", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "event_id", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield client


@pytest.fixture
def event_store(dynamodb_table: Any) -> Any:
    """WebhookEventStore over the mocked table."""
    from regpay.services.dynamodb import DynamoDBService
    from regpay.services.webhook_events import WebhookEventStore

    return WebhookEventStore(DynamoDBService(TABLE_PREFIX), stale_seconds=300)


# === Stripe Fixtures ===


class FakePaymentIntents:
    """In-memory stand-in for ``StripeClient.payment_intents``.

    Honours idempotency keys the way Stripe does: a repeated key returns the
    intent created by the first request, and a repeated key with different
    parameters is rejected with ``IdempotencyError``.
    """

    def __init__(self) -> None:
        self.intents: dict[str, SimpleNamespace] = {}
        self.by_idempotency_key: dict[str, str] = {}
        self.params_by_key: dict[str, dict[str, Any]] = {}
        self.create_calls: list[dict[str, Any]] = []
        self.update_calls: list[dict[str, Any]] = []
        self.create_error: Exception | None = None

    def create(self, params: dict[str, Any], options: dict[str, Any] | None = None) -> SimpleNamespace:
        self.create_calls.append({"params": params, "options": options or {}})
        if self.create_error is not None:
            raise self.create_error

        key = (options or {}).get("idempotency_key")
        if key and key in self.by_idempotency_key:
            if self.params_by_key[key] != params:
                raise stripe.IdempotencyError(
                    "Keys for idempotent requests can only be used with the same parameters "
                    "they were first used with.",
                    code="idempotency_key_in_use",
                    http_status=400,
                )
            return self.intents[self.by_idempotency_key[key]]

        intent_id = f"pi_test_{len(self.intents) + 1:04d}"
        intent = SimpleNamespace(
            id=intent_id,
            object="payment_intent",
            client_secret=f"{intent_id}_secret_abc",
            status="requires_payment_method",
            amount=params["amount"],
            currency=params["currency"],
            metadata=dict(params.get("metadata") or {}),
            receipt_email=None,
            last_payment_error=None,
        )
        self.intents[intent_id] = intent
        if key:
            self.by_idempotency_key[key] = intent_id
            self.params_by_key[key] = copy.deepcopy(params)
        return intent

    def update(self, intent_id: str, params: dict[str, Any] | None = None) -> SimpleNamespace:
        self.update_calls.append({"intent_id": intent_id, "params": params or {}})
        intent = self.retrieve(intent_id)
        for name, value in (params or {}).items():
            setattr(intent, name, value)
        return intent

    def retrieve(self, intent_id: str, params: dict[str, Any] | None = None) -> SimpleNamespace:
        if intent_id not in self.intents:
            raise stripe.InvalidRequestError(
                f"No such payment_intent: '{intent_id}'",
                "intent",
                code="resource_missing",
                http_status=404,
            )
        return self.intents[intent_id]

    def succeed(self, intent_id: str) -> SimpleNamespace:
        """Simulate the browser confirming the payment."""
        intent = self.intents[intent_id]
        intent.status = "succeeded"
        return intent


@pytest.fixture
def fake_payment_intents() -> FakePaymentIntents:
    return FakePaymentIntents()


@pytest.fixture
def stripe_service(fake_payment_intents: FakePaymentIntents) -> Any:
    """StripeService with the in-memory Payment Intents client."""
    from regpay.services.stripe_service import StripeService

    return StripeService(
        secret_key="sk_test_regpay1234",
        webhook_secret=TEST_WEBHOOK_SECRET,
        client=SimpleNamespace(payment_intents=fake_payment_intents),  # type: ignore[arg-type]
    )


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    """Build a Stripe-Signature header for a payload.

    Usage:
        header = sign_payload(body)
        header = sign_payload(body, secret="whsec_other", timestamp=0)
    """

    def _sign(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        signed = f"{ts}.".encode() + payload
        digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def make_event() -> Callable[..., bytes]:
    """Build a raw Stripe event body.

    Usage:
        body = make_event("payment_intent.succeeded", user_id="u1")
    """

    def _make(
        event_type: str = "payment_intent.succeeded",
        *,
        event_id: str = "evt_test_0001",
        intent_id: str = "pi_test_0001",
        user_id: str | None = "u1",
        purpose: str | None = "registration_fee",
        amount: int = 1000,
        currency: str = "usd",
        status: str = "succeeded",
    ) -> bytes:
        metadata: dict[str, str] = {}
        if user_id is not None:
            metadata["userId"] = user_id
        if purpose is not None:
            metadata["purpose"] = purpose
        event = {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "livemode": False,
            "data": {
                "object": {
                    "id": intent_id,
                    "object": "payment_intent",
                    "amount": amount,
                    "amount_received": amount if status == "succeeded" else 0,
                    "currency": currency,
                    "status": status,
                    "metadata": metadata,
                }
            },
        }
        return json.dumps(event).encode()

    return _make


# === Sharetribe Fixtures ===


class FakeSharetribe:
    """Fake Sharetribe Integration + Marketplace APIs for httpx.MockTransport.

    Users live in ``users``; ``sessions`` maps marketplace access tokens to
    user ids. Every request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.sessions: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.issued_tokens: list[str] = []
        self.revoked_tokens: set[str] = set()
        self.fail_updates = False

    def add_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        banned: bool = False,
        metadata: dict[str, Any] | None = None,
        session_token: str | None = None,
    ) -> dict[str, Any]:
        user = {
            "id": user_id,
            "type": "user",
            "attributes": {
                "email": email or f"{user_id}@example.com",
                "banned": banned,
                "deleted": False,
                "profile": {"metadata": dict(metadata or {})},
            },
        }
        self.users[user_id] = user
        if session_token:
            self.sessions[session_token] = user_id
        return user

    def metadata(self, user_id: str) -> dict[str, Any]:
        return self.users[user_id]["attributes"]["profile"]["metadata"]

    @property
    def update_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/users/update_profile")]

    def _bearer(self, request: httpx.Request) -> str:
        return request.headers.get("Authorization", "").removeprefix("Bearer ").strip()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v1/auth/token":
            token = f"integ-token-{len(self.issued_tokens) + 1}"
            self.issued_tokens.append(token)
            return httpx.Response(200, json={"access_token": token, "expires_in": 3600})

        if path == "/v1/api/current_user/show":
            user_id = self.sessions.get(self._bearer(request))
            if user_id is None or user_id not in self.users:
                return httpx.Response(401, json={"errors": [{"status": 401}]})
            return httpx.Response(200, json={"data": {**self.users[user_id], "type": "currentUser"}})

        if path.startswith("/v1/integration_api/"):
            token = self._bearer(request)
            if token not in self.issued_tokens or token in self.revoked_tokens:
                return httpx.Response(401, json={"errors": [{"status": 401}]})

            if path == "/v1/integration_api/users/update_profile":
                if self.fail_updates:
                    return httpx.Response(503, json={"errors": [{"status": 503}]})
                body = json.loads(request.content)
                user = self.users.get(body["id"])
                if user is None:
                    return httpx.Response(404, json={"errors": [{"status": 404}]})
                user["attributes"]["profile"]["metadata"].update(body.get("metadata") or {})
                return httpx.Response(200, json={"data": user})

            if path == "/v1/integration_api/users/show":
                user = self.users.get(request.url.params.get("id", ""))
                if user is None:
                    return httpx.Response(404, json={"errors": [{"status": 404}]})
                return httpx.Response(200, json={"data": user})

        return httpx.Response(404)


@pytest.fixture
def sharetribe() -> FakeSharetribe:
    return FakeSharetribe()


@pytest.fixture
def profile_store(sharetribe: FakeSharetribe) -> Generator[Any, None, None]:
    """SharetribeProfileStore talking to the fake Integration API."""
    from regpay.services.profile_store import SharetribeProfileStore

    store = SharetribeProfileStore(
        base_url=INTEG_API_URL,
        client_id="integ-client-id",
        client_secret="integ-client-secret",
        http_client=httpx.Client(transport=httpx.MockTransport(sharetribe.handler)),
    )
    yield store
    store.close()


@pytest.fixture
def session_service(sharetribe: FakeSharetribe) -> Generator[Any, None, None]:
    """MarketplaceSessionService talking to the fake Marketplace API."""
    from regpay.services.marketplace_session import MarketplaceSessionService

    service = MarketplaceSessionService(
        base_url=MARKETPLACE_API_URL,
        http_client=httpx.Client(transport=httpx.MockTransport(sharetribe.handler)),
    )
    yield service
    service.close()


# === API Fixtures ===


@pytest.fixture
def app(
    dynamodb_table: Any,
    stripe_service: Any,
    profile_store: Any,
    session_service: Any,
) -> Generator[Any, None, None]:
    """FastAPI app with Stripe and Sharetribe replaced by the fakes."""
    from regpay_api.dependencies import (
        get_profile_store,
        get_session_service,
        get_stripe_service,
    )
    from regpay_api.main import create_app

    application = create_app()
    application.dependency_overrides[get_stripe_service] = lambda: stripe_service
    application.dependency_overrides[get_profile_store] = lambda: profile_store
    application.dependency_overrides[get_session_service] = lambda: session_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app: Any) -> Any:
    from fastapi.testclient import TestClient

    return TestClient(app)
