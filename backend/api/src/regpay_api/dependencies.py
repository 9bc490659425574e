"""FastAPI dependency injection providers for shared services.

Services holding network clients are created once and cached with
@lru_cache; the request-scoped services composed from them are built per
request through Depends, so a test can override any leaf provider with
``app.dependency_overrides`` and every consumer picks up the override.

Usage in routes:
    from regpay_api.dependencies import get_intent_issuer

    @router.post("/registration/intent")
    def create_intent(issuer: PaymentIntentIssuer = Depends(get_intent_issuer)):
        ...

Service Dependency Graph:
    Settings (get_settings)
        ├── fees (resolve_all_fees)
        ├── StripeService
        ├── SharetribeProfileStore
        ├── MarketplaceSessionService
        └── WebhookEventStore
                └── DynamoDBService (singleton via get_dynamodb_service)

    PaymentIntentIssuer  <- StripeService, fees
    WebhookHandler       <- StripeService, WebhookEventStore, SharetribeProfileStore, fees
    MarkPaidService      <- StripeService, SharetribeProfileStore

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from fastapi import Depends

from regpay.config import Settings, get_settings, resolve_all_fees
from regpay.models.enums import FeeType
from regpay.models.payment import Fee
from regpay.services.dynamodb import get_dynamodb_service
from regpay.services.intent_issuer import PaymentIntentIssuer
from regpay.services.mark_paid import MarkPaidService
from regpay.services.marketplace_session import MarketplaceSessionService
from regpay.services.profile_store import SharetribeProfileStore
from regpay.services.stripe_service import StripeService
from regpay.services.webhook_events import WebhookEventStore
from regpay.services.webhook_handler import WebhookHandler


@lru_cache
def get_fees() -> dict[FeeType, Fee]:
    """Get the fees resolved from configuration."""
    return resolve_all_fees(get_settings())


@lru_cache
def get_stripe_service() -> StripeService:
    """Get cached StripeService instance."""
    settings = get_settings()
    return StripeService(
        secret_key=settings.stripe_secret_key.get_secret_value(),
        webhook_secret=settings.stripe_webhook_secret.get_secret_value(),
        timeout_seconds=settings.stripe_timeout_seconds,
        max_network_retries=settings.stripe_max_network_retries,
        webhook_tolerance_seconds=settings.webhook_tolerance_seconds,
    )


@lru_cache
def get_profile_store() -> SharetribeProfileStore:
    """Get cached SharetribeProfileStore instance."""
    settings = get_settings()
    return SharetribeProfileStore(
        base_url=settings.sharetribe_integration_api_url,
        client_id=settings.sharetribe_integration_client_id,
        client_secret=settings.sharetribe_integration_client_secret.get_secret_value(),
        timeout_seconds=settings.profile_store_timeout_seconds,
    )


@lru_cache
def get_session_service() -> MarketplaceSessionService:
    """Get cached MarketplaceSessionService instance."""
    settings = get_settings()
    return MarketplaceSessionService(
        base_url=settings.sharetribe_marketplace_api_url,
        timeout_seconds=settings.profile_store_timeout_seconds,
    )


@lru_cache
def get_webhook_event_store() -> WebhookEventStore:
    """Get cached WebhookEventStore instance.

    Returns:
        WebhookEventStore configured with the DynamoDB singleton.
    """
    settings = get_settings()
    return WebhookEventStore(
        db=get_dynamodb_service(settings.table_prefix),
        stale_seconds=settings.webhook_processing_stale_seconds,
    )


def get_intent_issuer(
    settings: Settings = Depends(get_settings),
    stripe_service: StripeService = Depends(get_stripe_service),
    fees: dict[FeeType, Fee] = Depends(get_fees),
) -> PaymentIntentIssuer:
    return PaymentIntentIssuer(stripe_service, fees, settings.environment)


def get_webhook_handler(
    stripe_service: StripeService = Depends(get_stripe_service),
    event_store: WebhookEventStore = Depends(get_webhook_event_store),
    profile_store: SharetribeProfileStore = Depends(get_profile_store),
    fees: dict[FeeType, Fee] = Depends(get_fees),
) -> WebhookHandler:
    return WebhookHandler(stripe_service, event_store, profile_store, fees)


def get_mark_paid_service(
    stripe_service: StripeService = Depends(get_stripe_service),
    profile_store: SharetribeProfileStore = Depends(get_profile_store),
) -> MarkPaidService:
    return MarkPaidService(stripe_service, profile_store)


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the underlying DynamoDB singleton.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    from regpay.services.dynamodb import reset_dynamodb_service

    get_fees.cache_clear()
    get_stripe_service.cache_clear()
    get_profile_store.cache_clear()
    get_session_service.cache_clear()
    get_webhook_event_store.cache_clear()

    reset_dynamodb_service()
