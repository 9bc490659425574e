"""Webhook handler for processing Stripe events.

Provides business logic for handling webhook events separate from
HTTP routing concerns. This enables:
- Unit testing without HTTP overhead
- Reuse across different transport mechanisms (API Gateway, uvicorn)

Policy once a signature is valid: always acknowledge. The payment has
already succeeded at Stripe, so a failed profile update is recorded for
reconciliation instead of being bounced back to Stripe for redelivery.
"""

from typing import Any

from regpay.models.enums import FeeType, PaymentIntentStatus, ProcessingResult
from regpay.models.errors import ProfileStoreError, ValidationError
from regpay.models.payment import Fee, PaymentReference
from regpay.models.webhook_event import WebhookOutcome
from regpay.services.profile_store import SharetribeProfileStore
from regpay.services.stripe_service import StripeService
from regpay.services.webhook_events import WebhookEventStore
from regpay.utils.logging import get_logger, log_webhook_event

logger = get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class WebhookHandler:
    """Handler for processing Stripe webhook events.

    Verifies signatures, de-duplicates by event id, and marks users paid.
    """

    def __init__(
        self,
        stripe_service: StripeService,
        event_store: WebhookEventStore,
        profile_store: SharetribeProfileStore,
        fees: dict[FeeType, Fee],
    ) -> None:
        self._stripe = stripe_service
        self._events = event_store
        self._profiles = profile_store
        self._fees = fees

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        """Verify and process one webhook delivery.

        Args:
            raw_body: Unparsed request body.
            signature: Stripe-Signature header value.

        Returns:
            WebhookOutcome; every outcome maps to HTTP 200.

        Raises:
            SignatureVerificationError: Missing or invalid signature. Nothing
                has been read, stored or updated.
            ValidationError: Correctly signed body without an event id/type.
        """
        event = self._stripe.verify_webhook_signature(raw_body, signature)

        event_id = event.get("id")
        event_type = event.get("type")
        if not isinstance(event_id, str) or not event_id or not isinstance(event_type, str):
            raise ValidationError(details={"message": "Event id or type missing"})

        log_webhook_event(logger, event_type, event_id, result="received")

        payload_hash = StripeService.compute_payload_hash(raw_body)
        if not self._events.claim(event_id, event_type, payload_hash):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result=ProcessingResult.DUPLICATE,
                message="Event already processed",
            )

        intent = self._intent_object(event)
        if event_type == PAYMENT_SUCCEEDED:
            return self._handle_payment_succeeded(event_id, event_type, intent)

        if event_type == PAYMENT_FAILED:
            last_error = intent.get("last_payment_error") or {}
            log_webhook_event(
                logger,
                event_type,
                event_id,
                intent_id=intent.get("id"),
                result="skipped",
                decline_code=last_error.get("decline_code") or last_error.get("code"),
            )
        else:
            logger.info("Unhandled event type %s, skipping", event_type)

        return self._finish(
            event_id,
            event_type,
            ProcessingResult.SKIPPED,
            message=f"Event type '{event_type}' not handled",
            intent_id=intent.get("id"),
        )

    @staticmethod
    def _intent_object(event: dict[str, Any]) -> dict[str, Any]:
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    def _handle_payment_succeeded(
        self, event_id: str, event_type: str, intent: dict[str, Any]
    ) -> WebhookOutcome:
        """Mark the intent's user paid for the fee named in its metadata."""
        metadata = intent.get("metadata") if isinstance(intent.get("metadata"), dict) else {}
        intent_id = intent.get("id")
        purpose = metadata.get("purpose")
        user_id = str(metadata.get("userId") or "").strip()
        fee_type = FeeType.from_purpose(purpose)

        if fee_type is None or not user_id or not intent_id:
            logger.info(
                "payment_intent.succeeded %s is not a marketplace fee (purpose=%s), skipping",
                intent_id,
                purpose,
            )
            return self._finish(
                event_id,
                event_type,
                ProcessingResult.SKIPPED,
                message="Not a marketplace fee payment",
                intent_id=intent_id,
                purpose=purpose,
            )

        amount = intent.get("amount_received") or intent.get("amount")
        currency = intent.get("currency")
        fee = self._fees.get(fee_type)
        if fee is not None and (amount != fee.amount or currency != fee.currency):
            # Fee configuration changed after the intent was issued; honour it.
            logger.warning(
                "Intent %s paid %s %s, configured %s fee is %d %s",
                intent_id,
                amount,
                currency,
                fee_type.value,
                fee.amount,
                fee.currency,
            )

        reference = PaymentReference(
            intent_id=intent_id,
            amount=amount,
            currency=currency,
            status=intent.get("status") or PaymentIntentStatus.SUCCEEDED.value,
        )
        fields = {
            "user_id": user_id,
            "intent_id": intent_id,
            "purpose": purpose,
            "amount": amount,
            "currency": currency,
        }

        try:
            self._profiles.mark_fee_paid(user_id, fee_type, reference)
        except ProfileStoreError as e:
            log_webhook_event(
                logger,
                event_type,
                event_id,
                user_id=user_id,
                intent_id=intent_id,
                result="error",
                error=str(e),
                reconcile_required=True,
            )
            return self._finish(
                event_id,
                event_type,
                ProcessingResult.ERROR,
                message="Profile update failed, recorded for reconciliation",
                error_message=str(e),
                **fields,
            )
        except Exception as e:
            logger.exception("Unexpected error applying webhook %s", event_id)
            return self._finish(
                event_id,
                event_type,
                ProcessingResult.ERROR,
                message="Profile update failed, recorded for reconciliation",
                error_message=type(e).__name__,
                **fields,
            )

        log_webhook_event(
            logger,
            event_type,
            event_id,
            user_id=user_id,
            intent_id=intent_id,
            result="success",
        )
        return self._finish(event_id, event_type, ProcessingResult.SUCCESS, **fields)

    def reconcile_failed(self, *, dry_run: bool = False) -> dict[str, ProcessingResult]:
        """Re-apply profile updates for events recorded in ``error``.

        Args:
            dry_run: List what would be re-applied without writing.

        Returns:
            Mapping of event id to its result after this pass.
        """
        results: dict[str, ProcessingResult] = {}
        for record in self._events.list_failed():
            fee_type = FeeType.from_purpose(record.purpose)
            if fee_type is None or not record.user_id or not record.intent_id:
                logger.warning("Cannot reconcile event %s: incomplete record", record.event_id)
                results[record.event_id] = ProcessingResult.ERROR
                continue
            if dry_run:
                logger.info(
                    "Would mark %s paid for user %s (event %s)",
                    fee_type.profile_flag,
                    record.user_id,
                    record.event_id,
                )
                results[record.event_id] = ProcessingResult.ERROR
                continue

            reference = PaymentReference(
                intent_id=record.intent_id,
                amount=record.amount,
                currency=record.currency,
            )
            try:
                self._profiles.mark_fee_paid(record.user_id, fee_type, reference)
            except ProfileStoreError as e:
                logger.error("Reconciliation of event %s failed again: %s", record.event_id, e)
                results[record.event_id] = ProcessingResult.ERROR
                continue

            self._events.complete(
                record.event_id,
                ProcessingResult.SUCCESS,
                user_id=record.user_id,
                intent_id=record.intent_id,
            )
            log_webhook_event(
                logger,
                record.event_type,
                record.event_id,
                user_id=record.user_id,
                intent_id=record.intent_id,
                result="success",
                reconciled=True,
            )
            results[record.event_id] = ProcessingResult.SUCCESS
        return results

    def _finish(
        self,
        event_id: str,
        event_type: str,
        result: ProcessingResult,
        *,
        message: str | None = None,
        error_message: str | None = None,
        **fields: Any,
    ) -> WebhookOutcome:
        self._events.complete(event_id, result, error_message=error_message, **fields)
        return WebhookOutcome(
            event_id=event_id,
            event_type=event_type,
            processing_result=result,
            message=message,
        )
