"""Payment Intent issuer.

Creates or reuses the Stripe Payment Intent for one user and fee. The
idempotency key is a pure function of (purpose, environment, user, amount,
currency), so a double-submitted form, a re-rendered payment page or a
retry after a timeout all resolve to the same intent on Stripe's side. No
local locking or persistence is involved.
"""

import hashlib

from regpay.models.enums import FeeType
from regpay.models.errors import ConfigurationError, ErrorCode, ValidationError
from regpay.models.payment import Fee, IntentSummary, IssuedIntent, PaymentIntentRequest
from regpay.services.stripe_service import StripeService
from regpay.utils.logging import get_logger

logger = get_logger(__name__)


def build_idempotency_key(
    purpose: str,
    environment: str,
    user_id: str,
    amount: int,
    currency: str,
) -> str:
    """Derive the Stripe idempotency key for one payment attempt.

    Identical inputs always produce the identical key. The inputs are hashed
    so the key stays well under Stripe's 255 character limit.
    """
    raw = ":".join([purpose, environment, user_id, str(amount), currency])
    return f"{purpose}-{hashlib.sha256(raw.encode('utf-8')).hexdigest()}"


class PaymentIntentIssuer:
    """Issues Payment Intents for configured fees."""

    def __init__(
        self,
        stripe_service: StripeService,
        fees: dict[FeeType, Fee],
        environment: str,
    ) -> None:
        """Initialize the issuer.

        Args:
            stripe_service: Stripe gateway.
            fees: Fees resolved from configuration at startup.
            environment: Deployment environment, part of every idempotency key.
        """
        self._stripe = stripe_service
        self._fees = fees
        self._environment = environment

    def fee_for(self, fee_type: FeeType) -> Fee:
        try:
            return self._fees[fee_type]
        except KeyError:
            raise ConfigurationError(details={"fee_type": fee_type.value}) from None

    def create_or_reuse_intent(
        self,
        request: PaymentIntentRequest,
        fee_type: FeeType = FeeType.REGISTRATION,
    ) -> IssuedIntent:
        """Return the client secret for the user's intent for this fee.

        Args:
            request: Identifies the payer; any amount the client might send is
                not part of this model and is never consulted.
            fee_type: Which fee is being paid.

        Returns:
            IssuedIntent. Repeated calls with the same user and fee in the
            same environment return the same intent id.

        Raises:
            ValidationError: If userId is missing or blank.
            PaymentGateError: Classified Stripe failure.
        """
        user_id = (request.user_id or "").strip()
        if not user_id:
            raise ValidationError(code=ErrorCode.MISSING_USER_ID)

        fee = self.fee_for(fee_type)
        email = (request.email or "").strip().lower() or None
        idempotency_key = build_idempotency_key(
            fee.purpose, self._environment, user_id, fee.amount, fee.currency
        )

        logger.info(
            "Requesting %s intent for user %s (%d %s)",
            fee.purpose,
            user_id,
            fee.amount,
            fee.currency,
        )

        return self._stripe.create_payment_intent(
            amount=fee.amount,
            currency=fee.currency,
            description=fee.description,
            metadata={
                "userId": user_id,
                "purpose": fee.purpose,
                "feeType": fee.fee_type.value,
                "environment": self._environment,
            },
            idempotency_key=idempotency_key,
            receipt_email=email,
        )

    def lookup_intent(self, intent_id: str) -> IntentSummary:
        """Read-only lookup of an intent, for debugging payment issues."""
        intent_id = (intent_id or "").strip()
        if not intent_id:
            raise ValidationError(code=ErrorCode.MISSING_PAYMENT_REFERENCE)
        return self._stripe.retrieve_payment_intent(intent_id)
