"""Webhook event log backed by DynamoDB.

Each verified Stripe event id moves through:

    unseen -> processing -> success | skipped | error

``claim`` is a conditional write, so of two concurrent deliveries of the same
event exactly one proceeds. A claim stuck in ``processing`` (the worker died
mid-event) becomes claimable again after ``stale_seconds``. Events that end
in ``error`` are kept for reconciliation.
"""

import datetime as dt
from typing import Any

from boto3.dynamodb.conditions import Attr

from regpay.models.enums import ProcessingResult
from regpay.models.webhook_event import WebhookEventRecord
from regpay.services.dynamodb import DynamoDBService
from regpay.utils.logging import get_logger

logger = get_logger(__name__)


def _parse_timestamp(value: Any) -> dt.datetime | None:
    if not value:
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return dt.datetime.fromisoformat(text)


class WebhookEventStore:
    """Idempotency and audit log for Stripe webhook events."""

    TABLE = "webhook-events"

    def __init__(self, db: DynamoDBService, stale_seconds: int = 300) -> None:
        self._db = db
        self._stale_seconds = stale_seconds

    def claim(self, event_id: str, event_type: str, payload_hash: str) -> bool:
        """Start processing an event unless it was already taken.

        Args:
            event_id: Stripe event ID
            event_type: Stripe event type
            payload_hash: SHA-256 hash of the raw payload

        Returns:
            True if this caller owns the event now, False for a duplicate
        """
        now = dt.datetime.now(dt.UTC)
        stale_before = now - dt.timedelta(seconds=self._stale_seconds)
        item: dict[str, Any] = {
            "event_id": event_id,
            "event_type": event_type,
            "payload_hash": payload_hash,
            "processing_result": ProcessingResult.PROCESSING.value,
            "claimed_at": now.isoformat(),
        }
        claimed = self._db.put_item(
            self.TABLE,
            item,
            condition_expression=(
                "attribute_not_exists(event_id) OR "
                "(processing_result = :processing AND claimed_at < :stale_before)"
            ),
            expression_attribute_values={
                ":processing": ProcessingResult.PROCESSING.value,
                ":stale_before": stale_before.isoformat(),
            },
        )
        if not claimed:
            logger.info("Webhook event %s already claimed", event_id)
        return claimed

    def complete(
        self,
        event_id: str,
        result: ProcessingResult,
        *,
        user_id: str | None = None,
        intent_id: str | None = None,
        purpose: str | None = None,
        amount: int | None = None,
        currency: str | None = None,
        error_message: str | None = None,
    ) -> None:
        """Record the final outcome of a claimed event.

        Args:
            event_id: Stripe event ID
            result: success, skipped or error
            user_id: Marketplace user from metadata (if any)
            intent_id: Payment Intent ID (if any)
            purpose: Fee purpose tag (if any)
            amount: Amount in minor units (if any)
            currency: Currency code (if any)
            error_message: Error details when result is error
        """
        values: dict[str, Any] = {
            ":result": result.value,
            ":processed_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        assignments = ["processing_result = :result", "processed_at = :processed_at"]
        optional = {
            "user_id": user_id,
            "intent_id": intent_id,
            "purpose": purpose,
            "amount": amount,
            "currency": currency,
            "error_message": error_message,
        }
        names: dict[str, str] = {}
        for name, value in optional.items():
            if value is not None:
                # Aliased so attribute names never collide with reserved words
                assignments.append(f"#{name} = :{name}")
                names[f"#{name}"] = name
                values[f":{name}"] = value

        update_expression = "SET " + ", ".join(assignments)
        if error_message is None:
            update_expression += " REMOVE error_message"

        self._db.update_item(
            self.TABLE,
            {"event_id": event_id},
            update_expression,
            values,
            names or None,
        )

    def get(self, event_id: str) -> WebhookEventRecord | None:
        """Fetch one event record."""
        item = self._db.get_item(self.TABLE, {"event_id": event_id})
        return self._to_record(item) if item else None

    def list_failed(self) -> list[WebhookEventRecord]:
        """Events whose side effects could not be applied."""
        items = self._db.scan(
            self.TABLE,
            filter_expression=Attr("processing_result").eq(ProcessingResult.ERROR.value),
        )
        records = [self._to_record(item) for item in items]
        return sorted(records, key=lambda r: r.claimed_at)

    @staticmethod
    def _to_record(item: dict[str, Any]) -> WebhookEventRecord:
        amount = item.get("amount")
        return WebhookEventRecord(
            event_id=item["event_id"],
            event_type=item["event_type"],
            payload_hash=item.get("payload_hash", ""),
            claimed_at=_parse_timestamp(item.get("claimed_at")) or dt.datetime.now(dt.UTC),
            processed_at=_parse_timestamp(item.get("processed_at")),
            processing_result=ProcessingResult(item["processing_result"]),
            user_id=item.get("user_id"),
            intent_id=item.get("intent_id"),
            purpose=item.get("purpose"),
            amount=int(amount) if amount is not None else None,
            currency=item.get("currency"),
            error_message=item.get("error_message"),
        )
