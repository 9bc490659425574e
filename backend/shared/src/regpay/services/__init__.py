"""Backend services for the registration payment gate."""

from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .intent_issuer import PaymentIntentIssuer, build_idempotency_key
from .mark_paid import MarkPaidService
from .marketplace_session import MarketplaceSessionService, extract_bearer_token
from .profile_store import SharetribeProfileStore, paid_metadata_keys, paid_status
from .route_gate import (
    ROUTES,
    can_access,
    get_route,
    is_profile_unlock_paid,
    is_registration_paid,
)
from .stripe_service import StripeService, classify_stripe_error
from .webhook_events import WebhookEventStore
from .webhook_handler import WebhookHandler

__all__ = [
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "PaymentIntentIssuer",
    "build_idempotency_key",
    "MarkPaidService",
    "MarketplaceSessionService",
    "extract_bearer_token",
    "SharetribeProfileStore",
    "paid_metadata_keys",
    "paid_status",
    "ROUTES",
    "can_access",
    "get_route",
    "is_profile_unlock_paid",
    "is_registration_paid",
    "StripeService",
    "classify_stripe_error",
    "WebhookEventStore",
    "WebhookHandler",
]
