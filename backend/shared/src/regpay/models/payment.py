"""Payment models for fee collection.

Amounts are integers in minor currency units (cents). Stripe is the system of
record for the intents themselves; these models only describe what flows in
and out of the services.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import FeeType, PaymentIntentStatus


class Fee(BaseModel):
    """A fee resolved from configuration."""

    model_config = ConfigDict(frozen=True)

    fee_type: FeeType
    amount: int = Field(..., ge=1, description="Amount in minor units")
    currency: str = Field(..., description="Lowercase ISO 4217 code", examples=["usd"])

    @property
    def purpose(self) -> str:
        return self.fee_type.purpose

    @property
    def description(self) -> str:
        return self.fee_type.description


class PaymentIntentRequest(BaseModel):
    """Client request to start paying a fee.

    Only identifies the payer. Amount and currency are never taken from here.
    """

    user_id: str | None = None
    email: str | None = None


class IssuedIntent(BaseModel):
    """Values the client needs to confirm a payment with Stripe."""

    intent_id: str
    client_secret: str = Field(..., repr=False)
    status: str


class IntentSummary(BaseModel):
    """Read-only view of a Payment Intent, safe to return to clients."""

    id: str
    status: str
    amount: int | None = None
    currency: str | None = None
    purpose: str | None = None
    user_id: str | None = None
    last_payment_error: str | None = None


class PaymentReference(BaseModel):
    """Audit trail written next to a paid flag."""

    intent_id: str
    amount: int | None = None
    currency: str | None = None
    status: str = PaymentIntentStatus.SUCCEEDED.value

    def to_metadata(self) -> dict[str, object]:
        """Render in the camelCase shape stored on the marketplace profile."""
        return {
            "intentId": self.intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
        }


class UserPaidStatus(BaseModel):
    """Paid-state fields of one fee as stored on the user profile."""

    fee_type: FeeType
    paid: bool = False
    paid_at: datetime | None = None
    payment_reference: PaymentReference | None = None
