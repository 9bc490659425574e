"""Webhook event models for idempotency and auditing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import ProcessingResult


class WebhookEventRecord(BaseModel):
    """Log of a received Stripe webhook event.

    Used for:
    - Idempotency: each event id is applied at most once
    - Reconciliation: events whose profile update failed stay in ``error``
    - Auditing: track all verified deliveries
    """

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["payment_intent.succeeded"],
    )
    claimed_at: datetime = Field(..., description="When processing started")
    processed_at: datetime | None = Field(
        default=None,
        description="When processing finished",
    )
    payload_hash: str = Field(
        ...,
        description="SHA-256 hash of the raw payload",
    )
    processing_result: ProcessingResult = Field(default=ProcessingResult.PROCESSING)
    user_id: str | None = Field(default=None, description="Marketplace user from metadata")
    intent_id: str | None = Field(default=None, description="Payment Intent ID (pi_xxx)")
    purpose: str | None = Field(default=None, description="Fee purpose tag from metadata")
    amount: int | None = None
    currency: str | None = None
    error_message: str | None = None


class WebhookOutcome(BaseModel):
    """What the webhook endpoint reports back to Stripe."""

    model_config = ConfigDict(frozen=True)

    received: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processing_result: ProcessingResult
    message: str | None = None
