#!/usr/bin/env python3
"""Send due-date and overdue notifications for active loans.

Usage:
    # Start the backend first:
    uvicorn bookswap.web.app:create_app --factory --port 8080

    # Remind borrowers whose books are due within two days, flag overdue ones:
    python3 scripts/send_due_reminders.py loans.yml --days 2

    # Preview without calling the API:
    python3 scripts/send_due_reminders.py loans.yml --dry-run

The loans file lists approved, not yet returned borrows::

    loans:
      - borrower_id: u2
        book_title: Dune
        due_date: 2026-03-01
        book_id: b1
        request_id: 3f1c...

Run it once a day from cron or any scheduler. Each run sends one notification
per matching loan, so running it twice on the same day notifies twice.
"""

from __future__ import annotations

import argparse
import os
import sys
from datetime import date, timedelta
from pathlib import Path

import httpx
import yaml

DEFAULT_BASE_URL = "http://localhost:8080"


def load_loans(path: Path) -> list[dict]:
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}
    loans = data.get("loans", [])
    for loan in loans:
        if isinstance(loan.get("due_date"), str):
            loan["due_date"] = date.fromisoformat(loan["due_date"])
    return loans


def classify(loan: dict, today: date, days: int) -> str | None:
    """Return ``"overdue"``, ``"due-date"`` or None for a loan."""
    due: date = loan["due_date"]
    if due < today:
        return "overdue"
    if due <= today + timedelta(days=days):
        return "due-date"
    return None


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Send due-date and overdue notifications for active loans"
    )
    parser.add_argument("loans", type=Path, help="YAML file of active loans")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Backend base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=2,
        help="Remind when a book is due within this many days (default: 2)",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("BOOKSWAP_SCHEDULER_TOKEN"),
        help="Scheduler token (default: $BOOKSWAP_SCHEDULER_TOKEN)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print, do not send")
    args = parser.parse_args()

    loans = load_loans(args.loans)
    today = date.today()
    headers = {"X-Scheduler-Token": args.token} if args.token else {}

    sent = failed = 0
    with httpx.Client(base_url=args.base_url, timeout=30.0, headers=headers) as client:
        for loan in loans:
            kind = classify(loan, today, args.days)
            if kind is None:
                continue
            body = {
                "borrower_id": loan["borrower_id"],
                "book_title": loan["book_title"],
                "due_date": loan["due_date"].isoformat(),
                "book_id": loan.get("book_id"),
                "request_id": loan.get("request_id"),
            }
            if args.dry_run:
                print(f"  would send {kind} to {body['borrower_id']}: {body['book_title']}")
                continue
            try:
                resp = client.post(f"/api/notifications/trigger/{kind}", json=body)
            except httpx.ConnectError:
                print(f"\nERROR: Cannot connect to {args.base_url}")
                sys.exit(1)
            if resp.status_code >= 400:
                print(f"  FAILED {kind} for {body['borrower_id']} -> {resp.status_code}: {resp.text[:200]}")
                failed += 1
            else:
                sent += 1

    print(f"Sent {sent} notification(s), {failed} failed.")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
