"""CLI entrypoint for the ProductWatch agent."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from productwatch.config import Settings, load_settings
from productwatch.db import Database, resolve_sqlite_path
from productwatch.fetcher import ResilientFetcher
from productwatch.notifications import NotificationDispatcher, SendGridEmailSender
from productwatch.processor import EventProcessor
from productwatch.rules import RuleEvaluator
from productwatch.runner import WatchNotFoundError, WatchRunner, WatchScheduler

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def json_object(value: str) -> dict:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"invalid JSON: {exc}") from None
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ProductWatch monitoring agent")
    parser.add_argument("--init", action="store_true", help="initialize storage and exit")
    parser.add_argument("--add-watch", metavar="URL", help="create (or find) a watch for URL")
    parser.add_argument("--tenant", help="tenant id for --add-watch, --add-rule and --add-webhook")
    parser.add_argument("--product", help="product id for --add-watch")
    parser.add_argument(
        "--frequency",
        type=int,
        help="check cadence in seconds for --add-watch",
    )
    parser.add_argument(
        "--add-rule",
        metavar="EVENT_TYPE",
        help="create a notification rule for EVENT_TYPE (or 'any')",
    )
    parser.add_argument(
        "--action",
        type=json_object,
        metavar="JSON",
        help='rule action for --add-rule, e.g. \'{"type": "email", "to": "ops@example.com"}\'',
    )
    parser.add_argument(
        "--condition",
        type=json_object,
        metavar="JSON",
        help='rule condition for --add-rule, e.g. \'{"price_pct_change": 5}\'',
    )
    parser.add_argument("--rule-name", help="display name for --add-rule")
    parser.add_argument("--delete-rule", type=int, metavar="RULE_ID", help="delete a rule")
    parser.add_argument(
        "--add-webhook",
        metavar="URL",
        help="store a webhook endpoint whose id rules can reference as webhook_id",
    )
    parser.add_argument("--secret", help="signing secret for --add-webhook")
    parser.add_argument(
        "--check",
        type=int,
        metavar="WATCH_ID",
        help="check one watch now and print the result",
    )
    parser.add_argument(
        "--poll-watches",
        action="store_true",
        help="check every due watch once",
    )
    parser.add_argument(
        "--process-events",
        action="store_true",
        help="process one batch of pending events",
    )
    parser.add_argument(
        "--loop",
        choices=("watches", "events"),
        help="run the watch scheduler or the event processor until interrupted",
    )
    parser.add_argument(
        "--export-events",
        metavar="PATH",
        help="write recent events to an .xlsx file",
    )
    parser.add_argument(
        "--database-url",
        help="database location (overrides DATABASE_URL env var)",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def build_runner(database: Database, settings: Settings) -> WatchRunner:
    return WatchRunner(
        database=database,
        fetcher=ResilientFetcher(timeout=settings.fetch_timeout),
    )


def build_processor(database: Database, settings: Settings) -> EventProcessor:
    dispatcher = NotificationDispatcher(
        database=database,
        email_sender=SendGridEmailSender(
            api_key=settings.sendgrid_api_key,
            from_email=settings.notification_from_email,
        ),
    )
    return EventProcessor(
        database=database,
        evaluator=RuleEvaluator(database=database),
        dispatcher=dispatcher,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    settings = load_settings()
    database_url = args.database_url or settings.database_url
    database = Database(path=resolve_sqlite_path(database_url))
    runner = build_runner(database, settings)

    if args.init:
        runner.init()
        return 0

    actions = (
        args.add_watch,
        args.add_rule,
        args.delete_rule is not None,
        args.add_webhook,
        args.check is not None,
        args.poll_watches,
        args.process_events,
        args.loop,
        args.export_events,
    )
    if not any(actions):
        parser.print_help()
        return 1
    if args.add_rule and args.action is None:
        parser.error("--add-rule requires --action")

    database.initialize()

    if args.add_watch:
        watch = database.create_watch(
            args.add_watch,
            tenant_id=args.tenant,
            product_id=args.product,
            frequency_seconds=args.frequency,
        )
        logger.info("Watch %s monitors %s", watch.id, watch.source_url)
        print(json.dumps({"id": watch.id, "source_url": watch.source_url}))

    if args.add_webhook:
        webhook = database.insert_webhook(
            args.add_webhook,
            secret=args.secret,
            tenant_id=args.tenant,
        )
        logger.info("Webhook %s posts to %s", webhook.id, webhook.url)
        print(json.dumps({"id": webhook.id, "url": webhook.url}))

    if args.add_rule:
        try:
            rule = database.insert_rule(
                args.add_rule,
                args.action,
                condition=args.condition,
                tenant_id=args.tenant,
                name=args.rule_name,
            )
        except ValueError as exc:
            logger.error("Invalid rule: %s", exc)
            return 1
        logger.info("Rule %s fires on %s", rule.id, rule.event_type)
        print(json.dumps(rule.to_dict(), ensure_ascii=False))

    if args.delete_rule is not None:
        if not database.delete_rule(args.delete_rule):
            logger.error("Rule %s not found", args.delete_rule)
            return 1
        logger.info("Deleted rule %s", args.delete_rule)

    if args.check is not None:
        try:
            result = runner.run_watch_once(args.check)
        except WatchNotFoundError as exc:
            logger.error("%s", exc)
            return 1
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))

    if args.poll_watches:
        scheduler = WatchScheduler(runner=runner, max_workers=settings.watch_concurrency)
        results = scheduler.poll_once()
        logger.info(
            "Checked %d watch(es): %d changed, %d failed",
            len(results),
            sum(1 for result in results if result.changed),
            sum(1 for result in results if not result.ok),
        )

    if args.process_events:
        processor = build_processor(database, settings)
        summary = processor.process_pending(limit=settings.event_batch_size)
        logger.info("Processed %d event(s)", summary.processed)

    if args.export_events:
        export_path = Path(args.export_events)
        count = database.export_events_to_xlsx(export_path)
        logger.info("Exported %d event(s) to %s", count, export_path)

    if args.loop == "watches":
        scheduler = WatchScheduler(runner=runner, max_workers=settings.watch_concurrency)
        scheduler.run_forever(interval=settings.watch_poll_interval)
    elif args.loop == "events":
        processor = build_processor(database, settings)
        processor.run_forever(
            interval=settings.event_poll_interval,
            limit=settings.event_batch_size,
        )
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
