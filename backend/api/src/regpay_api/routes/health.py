"""Health check endpoint."""

from fastapi import APIRouter, Depends

from regpay import __version__
from regpay.config import Settings, get_settings
from regpay.models.enums import FeeType
from regpay.models.payment import Fee
from regpay.services.stripe_service import StripeService
from regpay_api.dependencies import get_fees, get_stripe_service
from regpay_api.models.common import FeeInfo, HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    summary="Service health",
    description="Configuration summary for operators. Secrets are never included.",
    response_model=HealthResponse,
)
def health_check(
    settings: Settings = Depends(get_settings),
    fees: dict[FeeType, Fee] = Depends(get_fees),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> HealthResponse:
    return HealthResponse(
        version=__version__,
        environment=settings.environment,
        stripe_configured=stripe_service.configured,
        fees={
            fee_type.value: FeeInfo(amount=fee.amount, currency=fee.currency, purpose=fee.purpose)
            for fee_type, fee in fees.items()
        },
    )
