"""
Academic Deadline — Reminder service entry point.

`python main.py` starts the reminder scheduler and runs until interrupted.
`python main.py --once deadline|digest|sweep` runs a single tick and exits.
"""

import argparse
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger("main")


def build_scheduler():
    from src.adapters.email_notifier import EmailNotifier
    from src.core.scheduler import ReminderScheduler
    from src.data.db import TaskDB, UserDB
    from src.data.ledger import ReminderLedger

    return ReminderScheduler(
        users=UserDB(),
        tasks=TaskDB(),
        ledger=ReminderLedger(),
        notifier=EmailNotifier(),
    )


async def _run_once(job: str) -> None:
    scheduler = build_scheduler()
    runners = {
        "deadline": scheduler.run_deadline_check,
        "digest": scheduler.run_digest_check,
        "sweep": scheduler.run_retention_sweep,
    }
    result = await runners[job]()
    logger.info("Job '%s' finished: %s", job, result)


async def _serve() -> None:
    scheduler = build_scheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Academic deadline email reminders")
    parser.add_argument(
        "--once",
        choices=("deadline", "digest", "sweep"),
        help="run one tick of the given job and exit",
    )
    args = parser.parse_args()

    try:
        asyncio.run(_run_once(args.once) if args.once else _serve())
    except KeyboardInterrupt:
        logger.info("Reminder service stopped")


if __name__ == "__main__":
    main()
