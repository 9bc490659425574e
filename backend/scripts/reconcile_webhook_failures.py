#!/usr/bin/env python3
"""
Re-apply paid flags for webhook events whose profile update failed.

The webhook always acknowledges Stripe once a signature is valid, so a
Sharetribe outage leaves events in the ``error`` state instead of being
redelivered. This script retries the profile update for each of them and
marks the event ``success`` when it goes through.

Reads the same environment (.env) as the API.

Usage:
    uv run python scripts/reconcile_webhook_failures.py --dry-run
    uv run python scripts/reconcile_webhook_failures.py
"""

import argparse
import sys

from regpay.config import get_settings, resolve_all_fees
from regpay.models.enums import ProcessingResult
from regpay.services.dynamodb import get_dynamodb_service
from regpay.services.profile_store import SharetribeProfileStore
from regpay.services.stripe_service import StripeService
from regpay.services.webhook_events import WebhookEventStore
from regpay.services.webhook_handler import WebhookHandler
from regpay.utils.logging import configure_logging


def build_handler() -> tuple[WebhookHandler, SharetribeProfileStore]:
    settings = get_settings()
    configure_logging(settings)

    profile_store = SharetribeProfileStore(
        base_url=settings.sharetribe_integration_api_url,
        client_id=settings.sharetribe_integration_client_id,
        client_secret=settings.sharetribe_integration_client_secret.get_secret_value(),
        timeout_seconds=settings.profile_store_timeout_seconds,
    )
    handler = WebhookHandler(
        stripe_service=StripeService(
            secret_key=settings.stripe_secret_key.get_secret_value(),
            webhook_secret=settings.stripe_webhook_secret.get_secret_value(),
        ),
        event_store=WebhookEventStore(
            db=get_dynamodb_service(settings.table_prefix),
            stale_seconds=settings.webhook_processing_stale_seconds,
        ),
        profile_store=profile_store,
        fees=resolve_all_fees(settings),
    )
    return handler, profile_store


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Retry profile updates for failed Stripe webhook events"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the events that would be re-applied without writing",
    )
    args = parser.parse_args()

    handler, profile_store = build_handler()
    try:
        results = handler.reconcile_failed(dry_run=args.dry_run)
    finally:
        profile_store.close()

    action = "[DRY RUN] " if args.dry_run else ""
    print(f"\n{'='*60}")
    print(f"{action}Webhook reconciliation")
    print(f"{'='*60}")
    for event_id, result in results.items():
        print(f"  {event_id}: {result.value}")

    failed = sum(1 for r in results.values() if r is ProcessingResult.ERROR)
    print(f"\n  Events examined: {len(results)}")
    if not args.dry_run:
        print(f"  Still failing: {failed}")
    print()

    return 1 if failed and not args.dry_run else 0


if __name__ == "__main__":
    sys.exit(main())
