"""Standard error codes and exception hierarchy for the registration payment gate.

Every failure raised by the services carries an ErrorCode. The HTTP layer maps
codes to status codes (see regpay_api.exceptions); services never deal with
HTTP directly.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Stable error codes returned to clients."""

    # Request errors
    INVALID_REQUEST = "ERR_REG_001"
    MISSING_USER_ID = "ERR_REG_002"
    MISSING_PAYMENT_REFERENCE = "ERR_REG_003"
    PAYMENT_NOT_COMPLETED = "ERR_REG_004"
    INTENT_NOT_FOUND = "ERR_REG_005"
    UNKNOWN_ROUTE = "ERR_REG_006"
    IDEMPOTENCY_CONFLICT = "ERR_REG_007"

    # Session errors
    AUTH_REQUIRED = "ERR_AUTH_001"
    USER_MISMATCH = "ERR_AUTH_002"

    # Server configuration
    CONFIGURATION_ERROR = "ERR_CONFIG_001"

    # Stripe errors
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"
    STRIPE_UNAVAILABLE = "ERR_STRIPE_003"
    CARD_DECLINED = "ERR_STRIPE_004"

    # Marketplace profile errors
    PROFILE_UPDATE_FAILED = "ERR_PROFILE_001"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_REQUEST: "The request is invalid",
    ErrorCode.MISSING_USER_ID: "Missing userId",
    ErrorCode.MISSING_PAYMENT_REFERENCE: "Missing payment intent reference",
    ErrorCode.PAYMENT_NOT_COMPLETED: "Payment has not been completed for this user",
    ErrorCode.INTENT_NOT_FOUND: "Payment intent not found",
    ErrorCode.UNKNOWN_ROUTE: "Unknown route",
    ErrorCode.IDEMPOTENCY_CONFLICT: "Request conflicts with an earlier payment attempt",
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.USER_MISMATCH: "Session user does not match the target user",
    ErrorCode.CONFIGURATION_ERROR: "Payment service is not configured correctly",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Could not start payment",
    ErrorCode.STRIPE_UNAVAILABLE: "Payment provider is temporarily unavailable",
    ErrorCode.CARD_DECLINED: "Your card was declined",
    ErrorCode.PROFILE_UPDATE_FAILED: "Payment received, account activation is pending",
}

ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_REQUEST: "Check the request body and try again",
    ErrorCode.MISSING_USER_ID: "Sign in again and retry",
    ErrorCode.MISSING_PAYMENT_REFERENCE: "Include the payment intent id returned by the payment step",
    ErrorCode.PAYMENT_NOT_COMPLETED: "Complete the payment before activating the account",
    ErrorCode.INTENT_NOT_FOUND: "Verify the payment intent id",
    ErrorCode.UNKNOWN_ROUTE: "Verify the route name",
    ErrorCode.IDEMPOTENCY_CONFLICT: "Reload the payment page and try again",
    ErrorCode.AUTH_REQUIRED: "Sign in and try again",
    ErrorCode.USER_MISMATCH: "Sign in as the account being activated",
    ErrorCode.CONFIGURATION_ERROR: "Contact support",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Could not start payment, try again",
    ErrorCode.STRIPE_UNAVAILABLE: "Wait a moment and try again",
    ErrorCode.CARD_DECLINED: "Try a different card",
    ErrorCode.PROFILE_UPDATE_FAILED: "No need to pay again, activation will complete shortly",
}


class ErrorResponse(BaseModel):
    """JSON body returned for every handled error."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None


class PaymentGateError(Exception):
    """Base class for all payment gate failures.

    Subclasses fix the category; the code selects the message and the
    HTTP status the API layer responds with.
    """

    default_code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ):
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert this exception to the public error body."""
        return ErrorResponse(
            error_code=self.code,
            message=self.message,
            recovery=self.recovery,
            details=self.details,
        )


class ValidationError(PaymentGateError):
    """Bad or missing input."""

    default_code = ErrorCode.INVALID_REQUEST


class ConfigurationError(PaymentGateError):
    """Missing or invalid server configuration."""

    default_code = ErrorCode.CONFIGURATION_ERROR


class AuthenticationError(PaymentGateError):
    """No session, or the session does not match the target user."""

    default_code = ErrorCode.AUTH_REQUIRED


class SignatureVerificationError(PaymentGateError):
    """Webhook signature missing or invalid."""

    default_code = ErrorCode.INVALID_WEBHOOK_SIGNATURE


class PaymentProcessorError(PaymentGateError):
    """Stripe call failed or returned an unexpected state.

    ``retryable`` marks transient failures (timeouts, connection errors,
    rate limiting) where the client should simply try again.
    """

    default_code = ErrorCode.STRIPE_API_ERROR

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
        *,
        retryable: bool = False,
        stripe_error_code: Optional[str] = None,
    ):
        super().__init__(code, details, message)
        self.retryable = retryable
        self.stripe_error_code = stripe_error_code


class ProfileStoreError(PaymentGateError):
    """Marketplace profile update or lookup failed."""

    default_code = ErrorCode.PROFILE_UPDATE_FAILED


class NotFoundError(PaymentGateError):
    """Requested resource does not exist."""

    default_code = ErrorCode.INTENT_NOT_FOUND


# Decline reasons originate from the customer's own card issuer and are safe
# to show to that customer.
STRIPE_DECLINE_MESSAGES: dict[str, str] = {
    "card_declined": "Your card was declined. Please try a different card.",
    "expired_card": "Your card has expired. Please use a different card.",
    "insufficient_funds": "Your card has insufficient funds. Please try a different card.",
    "incorrect_cvc": "The security code (CVC) is incorrect. Please check and try again.",
    "incorrect_number": "The card number is incorrect. Please check and try again.",
    "invalid_expiry_month": "The expiration month is invalid. Please check and try again.",
    "invalid_expiry_year": "The expiration year is invalid. Please check and try again.",
    "processing_error": "A processing error occurred. Please try again.",
    "generic_decline": "Your card was declined. Please try a different card.",
}

STRIPE_RETRYABLE_ERRORS: set[str] = {
    "processing_error",
    "rate_limit",
    "lock_timeout",
    "api_connection_error",
}


def get_user_friendly_decline_message(
    stripe_error_code: Optional[str],
    default_message: str = "Payment could not be processed. Please try again.",
) -> str:
    """Get a customer-facing message for a Stripe decline code.

    Args:
        stripe_error_code: The Stripe error code (e.g., 'card_declined').
        default_message: Message to use if the code is unknown.

    Returns:
        User-friendly decline message.
    """
    if stripe_error_code and stripe_error_code in STRIPE_DECLINE_MESSAGES:
        return STRIPE_DECLINE_MESSAGES[stripe_error_code]
    return default_message


def is_stripe_error_retryable(stripe_error_code: Optional[str]) -> bool:
    """Check if a Stripe error code is transient and worth retrying."""
    return stripe_error_code in STRIPE_RETRYABLE_ERRORS if stripe_error_code else False
