"""
Run one reminder sweep outside the API process (cron, k8s CronJob).

Usage:
    python -m eventflow.scripts.send_reminders
    python -m eventflow.scripts.send_reminders --dry-run
"""

import argparse
import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

from eventflow.core.logging import get_logger, setup_logging
from eventflow.db.session import UnitOfWork, engine
from eventflow.services.notification_service import BackgroundNotifier
from eventflow.services.reminder_service import WINDOWS, list_due, run_reminder_sweep

logger = get_logger("eventflow.reminders")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send 24h and 1h event reminders for confirmed bookings.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List due bookings without sending or marking anything.",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Pretend the sweep runs at this ISO timestamp (UTC if naive).",
    )
    return parser


async def _dry_run(now: datetime) -> dict:
    due = {}
    async with UnitOfWork() as uow:
        for kind in WINDOWS:
            bookings = await list_due(uow, kind, now)
            due[kind.value] = [b.id for b in bookings]
    return due


async def main(argv: Optional[list] = None) -> dict:
    args = build_parser().parse_args(argv)
    setup_logging()

    now = args.now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        if args.dry_run:
            result = await _dry_run(now)
        else:
            notifier = BackgroundNotifier()
            result = await run_reminder_sweep(notifier, now)
            await notifier.drain()
    finally:
        await engine.dispose()

    print(json.dumps({"now": now.isoformat(), "dryRun": args.dry_run, "result": result}))
    return result


if __name__ == "__main__":
    asyncio.run(main())
