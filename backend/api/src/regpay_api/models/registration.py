"""API models for the fee payment endpoints.

Amounts never appear in requests: the server charges the configured fee.
"""

from pydantic import ConfigDict, Field

from regpay_api.models.common import CamelModel


class IntentRequest(CamelModel):
    """Request to start paying a fee.

    Unknown fields (including any client-supplied amount) are ignored.
    """

    user_id: str | None = Field(default=None, description="Marketplace user ID", examples=["u1"])
    email: str | None = Field(default=None, description="Receipt email (optional)")


class IntentResponse(CamelModel):
    """Values the browser needs to confirm the payment with Stripe."""

    client_secret: str = Field(..., description="Payment Intent client secret")
    payment_intent_id: str = Field(..., examples=["pi_3ABC123"])


class PaymentConfirmation(CamelModel):
    intent_id: str | None = None


class MarkPaidRequest(CamelModel):
    """Client assertion that a payment completed.

    The intent id is accepted either as ``payment.intentId`` or as a flat
    ``paymentIntentId``.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"userId": "u1", "payment": {"intentId": "pi_3ABC123"}},
                {"userId": "u1", "paymentIntentId": "pi_3ABC123"},
            ]
        },
    )

    user_id: str | None = None
    payment: PaymentConfirmation | None = None
    payment_intent_id: str | None = None

    @property
    def intent_id(self) -> str | None:
        if self.payment is not None and self.payment.intent_id:
            return self.payment.intent_id
        return self.payment_intent_id


class MarkPaidResponse(CamelModel):
    ok: bool = True
    intent_id: str


class IntentStatusResponse(CamelModel):
    """Read-only Payment Intent view for debugging failed payments."""

    id: str
    status: str
    amount: int | None = None
    currency: str | None = None
    purpose: str | None = None
    last_payment_error: str | None = None


class WebhookResponse(CamelModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str = Field(
        ..., description="success, duplicate, skipped or error", examples=["success"]
    )
    message: str | None = None
