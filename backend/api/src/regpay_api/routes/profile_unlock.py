"""Profile unlock fee endpoints.

Same contract as the registration endpoints, charged at the profile unlock
fee. Payment confirmation arrives through the shared Stripe webhook.
"""

from fastapi import APIRouter, Depends

from regpay.models.enums import FeeType
from regpay.models.user import MarketplaceUser
from regpay.services.intent_issuer import PaymentIntentIssuer
from regpay.services.mark_paid import MarkPaidService
from regpay_api.dependencies import get_intent_issuer, get_mark_paid_service
from regpay_api.models.registration import (
    IntentRequest,
    IntentResponse,
    MarkPaidRequest,
    MarkPaidResponse,
)
from regpay_api.routes.registration import (
    INTENT_RESPONSES,
    MARK_PAID_RESPONSES,
    create_fee_intent,
    mark_fee_paid,
)
from regpay_api.security import get_session_user

router = APIRouter(tags=["profile-unlock"])


@router.post(
    "/profile-unlock/intent",
    summary="Create profile unlock payment intent",
    response_model=IntentResponse,
    responses=INTENT_RESPONSES,
)
def create_profile_unlock_intent(
    body: IntentRequest,
    issuer: PaymentIntentIssuer = Depends(get_intent_issuer),
) -> IntentResponse:
    return create_fee_intent(FeeType.PROFILE_UNLOCK, body, issuer)


@router.post(
    "/profile-unlock/mark-paid",
    summary="Confirm profile unlock payment",
    response_model=MarkPaidResponse,
    responses=MARK_PAID_RESPONSES,
)
def mark_profile_unlock_paid(
    body: MarkPaidRequest,
    session_user: MarketplaceUser | None = Depends(get_session_user),
    service: MarkPaidService = Depends(get_mark_paid_service),
) -> MarkPaidResponse:
    return mark_fee_paid(FeeType.PROFILE_UNLOCK, body, session_user, service)
