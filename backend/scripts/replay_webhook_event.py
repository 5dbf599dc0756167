#!/usr/bin/env python3
"""
Replay a stored Stripe webhook event.

Re-runs dispatch for an event already in the stripe-webhook-events table,
using the raw event stored when it was received. The audit row is updated
exactly as for a live delivery. Use it after fixing whatever made the
original delivery end in 'error'.

Usage:
    uv run python scripts/replay_webhook_event.py --env dev --event-id evt_123
    uv run python scripts/replay_webhook_event.py --env dev --event-id evt_123 --dry-run
    uv run python scripts/replay_webhook_event.py --env prod --event-id evt_123 --force
"""

import argparse
import json
import sys

import boto3

from parking_core.models import ReconciliationError
from parking_core.services.dynamodb import DynamoDBService
from parking_core.services.webhook_events import WebhookEventLog
from parking_core.services.webhook_handler import WebhookHandler
from parking_core.utils.logging import configure_logging, set_correlation_id


def print_event_row(log: WebhookEventLog, event_id: str) -> bool:
    """Print the audit row for an event. Returns False if it does not exist."""
    record = log.get(event_id)
    if record is None:
        print(f"  ❌ Event {event_id} not found in stripe-webhook-events")
        return False

    print(f"  Event:      {record.stripe_event_id}")
    print(f"  Type:       {record.event_type}")
    print(f"  Status:     {record.status.value}")
    print(f"  Result:     {record.processing_result.value if record.processing_result else '-'}")
    print(f"  PI:         {record.payment_intent_id or '-'}")
    print(f"  Received:   {record.received_at.isoformat()}")
    if record.error_message:
        print(f"  Error:      {record.error_message}")

    event = json.loads(record.raw_event)
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    metadata = obj.get("metadata") if isinstance(obj, dict) else None
    if metadata:
        print(f"  Metadata:   {json.dumps(metadata, sort_keys=True)}")
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Replay a stored Stripe webhook event through the reconciliation workflow"
    )
    parser.add_argument(
        "--env",
        required=True,
        choices=["dev", "prod"],
        help="Environment whose tables to use",
    )
    parser.add_argument(
        "--event-id",
        required=True,
        help="Stripe event ID (evt_...)",
    )
    parser.add_argument(
        "--region",
        default="me-central-1",
        help="AWS region (default: me-central-1)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the stored event without replaying it",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt (required for prod)",
    )

    args = parser.parse_args(argv)

    configure_logging("INFO")
    set_correlation_id(f"replay-{args.event_id}")
    boto3.setup_default_session(region_name=args.region)

    db = DynamoDBService(environment=args.env)

    action = "[DRY RUN] " if args.dry_run else ""
    print(f"\n{'='*60}")
    print(f"{action}Replaying {args.event_id} in {args.env}")
    print(f"{'='*60}")

    if not print_event_row(WebhookEventLog(db), args.event_id):
        return 1

    if args.dry_run:
        print()
        return 0

    # Replays can confirm bookings and send emails
    if args.env == "prod" and not args.force:
        print("\n⚠️  WARNING: replaying against PRODUCTION bookings.")
        response = input("    Type 'REPLAY' to confirm: ")
        if response != "REPLAY":
            print("Aborted.")
            return 1

    try:
        outcome = WebhookHandler(db=db).replay(args.event_id)
    except ReconciliationError as e:
        reason = (e.details or {}).get("reason", e.message)
        print(f"\n  ❌ Replay failed: {reason}")
        print(f"     {e.recovery}")
        return 1

    print(f"\n  ✅ Replayed: result={outcome.processing_result.value}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
