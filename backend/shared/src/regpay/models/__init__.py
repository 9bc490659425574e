"""Data models for the registration payment gate."""

from .enums import DenyReason, FeeType, PaymentIntentStatus, ProcessingResult
from .errors import (
    AuthenticationError,
    ConfigurationError,
    ErrorCode,
    ErrorResponse,
    NotFoundError,
    PaymentGateError,
    PaymentProcessorError,
    ProfileStoreError,
    SignatureVerificationError,
    ValidationError,
)
from .payment import (
    Fee,
    IntentSummary,
    IssuedIntent,
    PaymentIntentRequest,
    PaymentReference,
    UserPaidStatus,
)
from .routing import AccessDecision, RouteRequirements
from .user import MarketplaceUser
from .webhook_event import WebhookEventRecord, WebhookOutcome

__all__ = [
    # Enums
    "DenyReason",
    "FeeType",
    "PaymentIntentStatus",
    "ProcessingResult",
    # Errors
    "AuthenticationError",
    "ConfigurationError",
    "ErrorCode",
    "ErrorResponse",
    "NotFoundError",
    "PaymentGateError",
    "PaymentProcessorError",
    "ProfileStoreError",
    "SignatureVerificationError",
    "ValidationError",
    # Payment
    "Fee",
    "IntentSummary",
    "IssuedIntent",
    "PaymentIntentRequest",
    "PaymentReference",
    "UserPaidStatus",
    # Routing
    "AccessDecision",
    "RouteRequirements",
    # User
    "MarketplaceUser",
    # Webhooks
    "WebhookEventRecord",
    "WebhookOutcome",
]
