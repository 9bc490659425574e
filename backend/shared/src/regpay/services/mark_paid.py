"""Client-asserted payment completion.

Fallback for flows where the Stripe webhook cannot reach the service (local
development, misconfigured endpoints). The client's claim is never taken at
face value: the session must belong to the user being activated, and the
referenced intent is re-read from Stripe and must have succeeded for that
same user and fee.
"""

from regpay.models.enums import FeeType, PaymentIntentStatus
from regpay.models.errors import AuthenticationError, ErrorCode, ValidationError
from regpay.models.payment import PaymentReference
from regpay.models.user import MarketplaceUser
from regpay.services.profile_store import SharetribeProfileStore
from regpay.services.stripe_service import StripeService
from regpay.utils.logging import get_logger, log_payment_operation

logger = get_logger(__name__)


class MarkPaidService:
    """Applies a client's payment-completion assertion."""

    def __init__(
        self,
        stripe_service: StripeService,
        profile_store: SharetribeProfileStore,
    ) -> None:
        self._stripe = stripe_service
        self._profiles = profile_store

    def mark_paid(
        self,
        session_user: MarketplaceUser | None,
        user_id: str | None,
        intent_id: str | None,
        fee_type: FeeType = FeeType.REGISTRATION,
    ) -> PaymentReference:
        """Mark ``user_id`` paid for ``fee_type``.

        Args:
            session_user: User owning the request's session, if any.
            user_id: User the client wants to activate.
            intent_id: Payment Intent the client confirmed.
            fee_type: Fee being asserted.

        Returns:
            The payment reference written to the profile.

        Raises:
            AuthenticationError: No session, or the session belongs to a
                different user.
            ValidationError: Missing ids, or the intent has not succeeded for
                this user and fee.
            ProfileStoreError: The profile could not be updated.
        """
        if session_user is None:
            raise AuthenticationError(code=ErrorCode.AUTH_REQUIRED)

        user_id = (user_id or "").strip()
        if not user_id:
            raise ValidationError(code=ErrorCode.MISSING_USER_ID)
        if session_user.id != user_id:
            logger.warning(
                "Session user %s attempted to mark user %s paid", session_user.id, user_id
            )
            raise AuthenticationError(code=ErrorCode.USER_MISMATCH)

        intent_id = (intent_id or "").strip()
        if not intent_id:
            raise ValidationError(code=ErrorCode.MISSING_PAYMENT_REFERENCE)

        intent = self._stripe.retrieve_payment_intent(intent_id)
        if (
            intent.status != PaymentIntentStatus.SUCCEEDED.value
            or intent.user_id != user_id
            or intent.purpose != fee_type.purpose
        ):
            log_payment_operation(
                logger,
                "mark_paid_rejected",
                user_id=user_id,
                intent_id=intent_id,
                purpose=intent.purpose,
                status=intent.status,
            )
            raise ValidationError(code=ErrorCode.PAYMENT_NOT_COMPLETED)

        reference = PaymentReference(
            intent_id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )
        self._profiles.mark_fee_paid(user_id, fee_type, reference)
        log_payment_operation(
            logger,
            "mark_paid",
            user_id=user_id,
            intent_id=intent.id,
            purpose=fee_type.purpose,
            amount_cents=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )
        return reference
