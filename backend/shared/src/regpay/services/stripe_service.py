"""Stripe payment service for Payment Intents and webhook verification.

Provides integration with Stripe using the v8+ StripeClient pattern. All
Stripe exceptions are classified into the payment gate error taxonomy here,
so no caller ever sees (or echoes) raw Stripe error text.
"""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

import stripe
from stripe import StripeClient

from regpay.models.errors import (
    ConfigurationError,
    ErrorCode,
    NotFoundError,
    PaymentGateError,
    PaymentProcessorError,
    SignatureVerificationError,
    ValidationError,
    get_user_friendly_decline_message,
    is_stripe_error_retryable,
)
from regpay.models.payment import IntentSummary, IssuedIntent
from regpay.utils.logging import get_logger, log_payment_operation, mask_secret

logger = get_logger(__name__)


def _field(obj: Any, name: str) -> Any:
    """Read a field from a Stripe object or a plain mapping."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _metadata(obj: Any) -> dict[str, str]:
    metadata = _field(obj, "metadata") or {}
    return {str(k): str(v) for k, v in metadata.items()}


def classify_stripe_error(error: stripe.StripeError, operation: str) -> PaymentGateError:
    """Map a Stripe exception onto the payment gate taxonomy.

    Args:
        error: Exception raised by the Stripe SDK.
        operation: Operation name, for logging.

    Returns:
        ConfigurationError for bad keys, ValidationError for malformed or
        conflicting requests, NotFoundError for missing resources, and
        PaymentProcessorError for everything else.
    """
    error_code = getattr(error, "code", None)
    log_payment_operation(
        logger,
        operation,
        error=type(error).__name__,
        stripe_error_code=error_code,
        http_status=getattr(error, "http_status", None),
    )

    if isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
        return ConfigurationError(details={"provider": "stripe"})
    if isinstance(error, stripe.IdempotencyError):
        return ValidationError(code=ErrorCode.IDEMPOTENCY_CONFLICT)
    if isinstance(error, stripe.CardError):
        return PaymentProcessorError(
            code=ErrorCode.CARD_DECLINED,
            message=get_user_friendly_decline_message(error_code),
            retryable=is_stripe_error_retryable(error_code),
            stripe_error_code=error_code,
        )
    if isinstance(error, stripe.InvalidRequestError):
        if error_code == "resource_missing":
            return NotFoundError()
        return ValidationError(code=ErrorCode.INVALID_REQUEST)
    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError)):
        return PaymentProcessorError(
            code=ErrorCode.STRIPE_UNAVAILABLE,
            retryable=True,
            stripe_error_code=error_code,
        )
    if is_stripe_error_retryable(error_code):
        return PaymentProcessorError(
            code=ErrorCode.STRIPE_UNAVAILABLE,
            retryable=True,
            stripe_error_code=error_code,
        )
    return PaymentProcessorError(stripe_error_code=error_code)


class StripeService:
    """Service for Stripe payment operations.

    Handles:
    - Payment Intent creation with idempotency keys
    - Payment Intent lookup
    - Webhook signature validation

    Usage:
        stripe_svc = StripeService(secret_key="sk_...", webhook_secret="whsec_...")
        issued = stripe_svc.create_payment_intent(
            amount=1000,
            currency="usd",
            description="HaulSaver registration fee",
            metadata={"userId": "u1", "purpose": "registration_fee"},
            idempotency_key="registration_fee-...",
        )
    """

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        *,
        timeout_seconds: float = 5.0,
        max_network_retries: int = 1,
        webhook_tolerance_seconds: int = 300,
        client: StripeClient | None = None,
    ) -> None:
        """Initialize Stripe service.

        Args:
            secret_key: Stripe secret API key.
            webhook_secret: Webhook endpoint signing secret (whsec_...).
            timeout_seconds: Upper bound for each Stripe HTTP call.
            max_network_retries: Automatic retries on network failure. Safe
                because every create call carries an idempotency key.
            webhook_tolerance_seconds: Maximum age of a signed webhook.
            client: Pre-built client (tests).
        """
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._timeout_seconds = timeout_seconds
        self._max_network_retries = max_network_retries
        self._webhook_tolerance_seconds = webhook_tolerance_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            ConfigurationError: If no secret key is configured.
        """
        if self._client is None:
            if not self._secret_key:
                raise ConfigurationError(details={"setting": "STRIPE_SECRET_KEY"})
            self._client = StripeClient(
                self._secret_key,
                http_client=stripe.RequestsClient(timeout=self._timeout_seconds),
                max_network_retries=self._max_network_retries,
            )
            logger.info(
                "Stripe client initialized (key %s, timeout %.1fs)",
                mask_secret(self._secret_key),
                self._timeout_seconds,
            )
        return self._client

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str,
        receipt_email: str | None = None,
    ) -> IssuedIntent:
        """Create (or, for a repeated idempotency key, fetch) a Payment Intent.

        Args:
            amount: Amount in minor units.
            currency: Lowercase ISO 4217 code.
            description: Statement description.
            metadata: Metadata linking the intent to the marketplace user.
            idempotency_key: Key under which Stripe collapses duplicates.
            receipt_email: Optional address for the Stripe receipt. Applied
                with a separate update so the create parameters stay
                identical for every request under the same key.

        Returns:
            IssuedIntent with the client secret for the browser.

        Raises:
            PaymentGateError: Classified Stripe failure.
        """
        client = self._get_client()

        # Must depend only on the idempotency key inputs: Stripe rejects a
        # reused key whose parameters differ
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "description": description,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }

        try:
            intent = client.payment_intents.create(
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            raise classify_stripe_error(e, "create_payment_intent") from e

        log_payment_operation(
            logger,
            "create_payment_intent",
            user_id=metadata.get("userId"),
            intent_id=intent.id,
            purpose=metadata.get("purpose"),
            amount_cents=amount,
            currency=currency,
            status=intent.status,
        )
        if receipt_email and _field(intent, "receipt_email") != receipt_email:
            self.set_receipt_email(intent.id, receipt_email)
        return IssuedIntent(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
        )

    def set_receipt_email(self, intent_id: str, receipt_email: str) -> None:
        """Point the intent's Stripe receipt at ``receipt_email``.

        Receipts are a courtesy: a failed update is logged and the payment
        flow carries on with the intent as created.
        """
        client = self._get_client()
        try:
            client.payment_intents.update(intent_id, params={"receipt_email": receipt_email})
        except stripe.StripeError as e:
            logger.warning(
                "Could not set receipt email on %s: %s (%s)",
                intent_id,
                type(e).__name__,
                getattr(e, "code", None),
            )

    def retrieve_payment_intent(self, intent_id: str) -> IntentSummary:
        """Look up a Payment Intent.

        Args:
            intent_id: Stripe PaymentIntent ID (pi_xxx).

        Returns:
            IntentSummary without the client secret.

        Raises:
            NotFoundError: If Stripe has no such intent.
            PaymentGateError: Other classified Stripe failures.
        """
        client = self._get_client()
        try:
            intent = client.payment_intents.retrieve(intent_id)
        except stripe.StripeError as e:
            raise classify_stripe_error(e, "retrieve_payment_intent") from e

        metadata = _metadata(intent)
        last_error = _field(intent, "last_payment_error")
        return IntentSummary(
            id=_field(intent, "id"),
            status=_field(intent, "status"),
            amount=_field(intent, "amount"),
            currency=_field(intent, "currency"),
            purpose=metadata.get("purpose"),
            user_id=metadata.get("userId"),
            last_payment_error=_field(last_error, "message"),
        )

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify a webhook signature, then parse the event.

        The signature is checked over the raw bytes before any JSON parsing.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed event dictionary.

        Raises:
            SignatureVerificationError: If the signature is missing or invalid.
            ValidationError: If a correctly signed body is not a JSON object.
        """
        if not signature:
            logger.warning("Webhook request missing signature header")
            raise SignatureVerificationError(details={"message": "Missing signature header"})
        if not self._webhook_secret:
            raise ConfigurationError(details={"setting": "STRIPE_WEBHOOK_SECRET"})

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self._webhook_secret,
                self._webhook_tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning("Invalid webhook signature: %s", type(e).__name__)
            raise SignatureVerificationError() from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationError(details={"message": "Webhook body is not valid JSON"}) from e
        if not isinstance(event, dict):
            raise ValidationError(details={"message": "Webhook body is not an event object"})

        logger.info("Webhook signature verified for event: %s", event.get("id"))
        return event

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """Compute SHA-256 hash of a webhook payload for the audit log."""
        return hashlib.sha256(payload).hexdigest()
