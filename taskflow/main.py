from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from datetime import timedelta

from taskflow.config import SETTINGS
from taskflow.domain.errors import StaleTemplateError, TemplateInactiveError, TemplateNotFoundError
from taskflow.infra.db import init_db
from taskflow.infra.logging import setup_logging
from taskflow.infra.repository import TemplateRepository
from taskflow.services.recurring_service import RecurringTaskService
from taskflow.services.scheduler import RecurringTaskScheduler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskflow", description="Recurring task generation")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("run", help="run the daily scheduler until interrupted")
    commands.add_parser("run-once", help="generate tasks for every due template and exit")

    generate = commands.add_parser("generate", help="generate tasks for one template now")
    generate.add_argument("template_id", type=int)
    generate.add_argument("--user", required=True, dest="user_id")
    return parser


async def _run_scheduler(service: RecurringTaskService) -> None:
    scheduler = RecurringTaskScheduler(
        service,
        run_at=SETTINGS.scheduler_run_at,
        period=timedelta(hours=SETTINGS.scheduler_period_hours),
    )
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_requested.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop_requested.set))

    runner = scheduler.start()
    stopper = asyncio.create_task(stop_requested.wait())
    await asyncio.wait({runner, stopper}, return_when=asyncio.FIRST_COMPLETED)
    logger.info("Shutting down scheduler")
    await scheduler.stop()
    stopper.cancel()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        init_db()
    except Exception:  # noqa: BLE001
        logger.exception("Database is not reachable")
        return 1

    service = RecurringTaskService(TemplateRepository())

    if args.command == "run":
        asyncio.run(_run_scheduler(service))
        return 0

    if args.command == "run-once":
        summary = service.generate_all_due()
        print(
            f"Processed {summary.templates_processed} templates, "
            f"created {summary.instances_created} tasks, "
            f"{len(summary.failed_template_ids)} failed"
        )
        return 1 if summary.failed_template_ids else 0

    try:
        result = service.generate_now(args.template_id, args.user_id)
    except (TemplateNotFoundError, TemplateInactiveError) as exc:
        print(f"Template not found or inactive: {exc}", file=sys.stderr)
        return 1
    except StaleTemplateError as exc:
        print(f"{exc}; try again", file=sys.stderr)
        return 1
    print(f"Generated {len(result.instances)} tasks, next due {result.template.next_due_date}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
