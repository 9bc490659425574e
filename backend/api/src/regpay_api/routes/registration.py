"""Registration fee endpoints.

Provides REST endpoints for:
- Creating (or reusing) the registration fee Payment Intent (public)
- Receiving Stripe webhook events (signature verified)
- Client-asserted payment completion (marketplace session required)
- Read-only Payment Intent lookup (public)

The webhook endpoint serves every fee type; the intent metadata names the
fee being paid.
"""

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from regpay.models.enums import FeeType
from regpay.models.errors import ErrorResponse
from regpay.models.payment import PaymentIntentRequest
from regpay.models.user import MarketplaceUser
from regpay.services.intent_issuer import PaymentIntentIssuer
from regpay.services.mark_paid import MarkPaidService
from regpay.services.webhook_handler import WebhookHandler
from regpay.utils.logging import get_logger
from regpay_api.dependencies import get_intent_issuer, get_mark_paid_service, get_webhook_handler
from regpay_api.models.registration import (
    IntentRequest,
    IntentResponse,
    IntentStatusResponse,
    MarkPaidRequest,
    MarkPaidResponse,
    WebhookResponse,
)
from regpay_api.security import get_session_user

logger = get_logger(__name__)

router = APIRouter(tags=["registration"])

SIGNATURE_HEADERS = ("Stripe-Signature", "X-Signature")

INTENT_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"description": "Missing userId or conflicting request", "model": ErrorResponse},
    500: {"description": "Payment service misconfigured", "model": ErrorResponse},
    502: {"description": "Stripe rejected the request", "model": ErrorResponse},
    503: {"description": "Stripe unavailable, retry", "model": ErrorResponse},
}

MARK_PAID_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"description": "Missing ids or payment not completed", "model": ErrorResponse},
    401: {"description": "No marketplace session", "model": ErrorResponse},
    403: {"description": "Session belongs to a different user", "model": ErrorResponse},
    404: {"description": "Payment intent not found", "model": ErrorResponse},
    503: {"description": "Profile could not be updated, retry", "model": ErrorResponse},
}


def create_fee_intent(
    fee_type: FeeType, body: IntentRequest, issuer: PaymentIntentIssuer
) -> IntentResponse:
    """Issue the intent for ``fee_type``; shared by every fee router."""
    issued = issuer.create_or_reuse_intent(
        PaymentIntentRequest(user_id=body.user_id, email=body.email),
        fee_type,
    )
    return IntentResponse(client_secret=issued.client_secret, payment_intent_id=issued.intent_id)


def mark_fee_paid(
    fee_type: FeeType,
    body: MarkPaidRequest,
    session_user: MarketplaceUser | None,
    service: MarkPaidService,
) -> MarkPaidResponse:
    """Apply a mark-paid assertion for ``fee_type``; shared by every fee router."""
    reference = service.mark_paid(session_user, body.user_id, body.intent_id, fee_type)
    return MarkPaidResponse(intent_id=reference.intent_id)


@router.post(
    "/registration/intent",
    summary="Create registration payment intent",
    description="""
Create, or return the existing, Stripe Payment Intent for the registration fee.

**Public endpoint.** The amount and currency come from server configuration;
any amount in the request body is ignored.

**Idempotent**: the same user gets the same intent back on every call.
""",
    response_model=IntentResponse,
    responses=INTENT_RESPONSES,
)
def create_registration_intent(
    body: IntentRequest,
    issuer: PaymentIntentIssuer = Depends(get_intent_issuer),
) -> IntentResponse:
    return create_fee_intent(FeeType.REGISTRATION, body, issuer)


@router.get(
    "/registration/intent/{intent_id}",
    summary="Get payment intent status",
    description="Read-only Payment Intent lookup. Never returns the client secret.",
    response_model=IntentStatusResponse,
    responses={
        404: {"description": "Payment intent not found", "model": ErrorResponse},
    },
)
def get_intent_status(
    intent_id: str,
    issuer: PaymentIntentIssuer = Depends(get_intent_issuer),
) -> IntentStatusResponse:
    summary = issuer.lookup_intent(intent_id)
    return IntentStatusResponse(
        id=summary.id,
        status=summary.status,
        amount=summary.amount,
        currency=summary.currency,
        purpose=summary.purpose,
        last_payment_error=summary.last_payment_error,
    )


@router.post(
    "/registration/mark-paid",
    summary="Confirm registration payment",
    description="""
Mark the calling user's registration as paid after the browser confirmed
the payment.

**Requires a marketplace session** (``Authorization: Bearer <token>``) that
belongs to ``userId``. The intent is re-checked with Stripe before the
profile is updated.
""",
    response_model=MarkPaidResponse,
    responses=MARK_PAID_RESPONSES,
)
def mark_registration_paid(
    body: MarkPaidRequest,
    session_user: MarketplaceUser | None = Depends(get_session_user),
    service: MarkPaidService = Depends(get_mark_paid_service),
) -> MarkPaidResponse:
    return mark_fee_paid(FeeType.REGISTRATION, body, session_user, service)


@router.post(
    "/registration/webhook",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- payment_intent.succeeded: marks the user paid for the fee in the intent metadata
- payment_intent.payment_failed: logged, no state change

**No authentication required** - signature is verified using the Stripe
webhook secret before the body is parsed.

**Idempotent**: Duplicate events (same event id) return 200 with 'duplicate' result.
""",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Invalid signature or malformed event", "model": ErrorResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if request.headers.get(h)),
        None,
    )
    # Signature is computed over the exact bytes Stripe sent
    payload = await request.body()

    outcome = await run_in_threadpool(handler.handle_webhook, payload, signature)
    return WebhookResponse(
        received=outcome.received,
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processing_result=outcome.processing_result.value,
        message=outcome.message,
    )
