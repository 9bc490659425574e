"""Enumeration types for the registration payment gate."""

from enum import Enum


class FeeType(str, Enum):
    """Gated features that require a one-time fee.

    Each fee type owns exactly one payment workflow: a Stripe Payment Intent
    tagged with ``purpose`` in its metadata, and one boolean flag in the
    user's profile metadata.
    """

    REGISTRATION = "registration"
    PROFILE_UNLOCK = "profile-unlock"

    @property
    def purpose(self) -> str:
        """Metadata tag linking a Payment Intent back to this fee."""
        return _PURPOSES[self]

    @property
    def profile_flag(self) -> str:
        """Boolean field in profile metadata set once the fee is paid."""
        return _PROFILE_FLAGS[self]

    @property
    def description(self) -> str:
        """Statement description shown on the customer's receipt."""
        return _DESCRIPTIONS[self]

    @classmethod
    def from_purpose(cls, purpose: str | None) -> "FeeType | None":
        """Find the fee type for a metadata purpose tag, if any."""
        for fee_type, tag in _PURPOSES.items():
            if tag == purpose:
                return fee_type
        return None


_PURPOSES: dict[FeeType, str] = {
    FeeType.REGISTRATION: "registration_fee",
    FeeType.PROFILE_UNLOCK: "profile_unlock",
}

_PROFILE_FLAGS: dict[FeeType, str] = {
    FeeType.REGISTRATION: "registrationPaid",
    FeeType.PROFILE_UNLOCK: "profileUnlockPaid",
}

_DESCRIPTIONS: dict[FeeType, str] = {
    FeeType.REGISTRATION: "HaulSaver registration fee",
    FeeType.PROFILE_UNLOCK: "HaulSaver one-time profile setup unlock",
}


class PaymentIntentStatus(str, Enum):
    """Stripe Payment Intent lifecycle states."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


class ProcessingResult(str, Enum):
    """Outcome recorded for a webhook event."""

    PROCESSING = "processing"
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    ERROR = "error"


class DenyReason(str, Enum):
    """Why the route gate refused access."""

    NEEDS_AUTH = "needs-auth"
    BANNED = "banned"
    NEEDS_PAYMENT = "needs-payment"
    NEEDS_PROFILE_UNLOCK = "needs-profile-unlock"
