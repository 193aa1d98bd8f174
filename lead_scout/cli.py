#!/usr/bin/env python
"""
Lead Scout CLI - run the pipeline by hand.

Usage:
    python -m lead_scout.cli init-db             # Apply schema.sql
    python -m lead_scout.cli scout [--dry-run]   # One scout run over all alerts
    python -m lead_scout.cli process-lead <id>   # Classify one lead
    python -m lead_scout.cli notify-lead <id>    # Notify for one ready lead
    python -m lead_scout.cli draft-reply <id>    # Generate a reply draft
"""

import argparse
import json
import logging
import sys
from uuid import UUID

from lead_scout.ai_client import get_openai_client
from lead_scout.config import ScoutConfig, load_env_file
from lead_scout.db.connection import get_connection, init_db
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.settings_store import SettingsStore
from lead_scout.lead_processor import LeadProcessor
from lead_scout.logging_utils import configure_safe_logging
from lead_scout.notification_service import NotificationService
from lead_scout.notifications import NotificationDispatcher
from lead_scout.reply_drafter import draft_reply_for_lead
from lead_scout.scout import build_scout

logger = logging.getLogger(__name__)


def cmd_init_db(args, config: ScoutConfig) -> int:
    init_db(config.database_url)
    print("Schema applied.")
    return 0


def cmd_scout(args, config: ScoutConfig) -> int:
    if args.max is not None:
        config.max_posts_per_run = args.max

    with get_connection(config.database_url) as conn:
        report = build_scout(conn, config, dry_run=args.dry_run).run()

    print(json.dumps(report.to_response(), indent=2))
    return 0 if report.success else 1


def cmd_process_lead(args, config: ScoutConfig) -> int:
    with get_connection(config.database_url) as conn:
        processor = LeadProcessor(
            LeadStore(conn), SettingsStore(conn), get_openai_client(config), config
        )
        outcome = processor.process(args.lead_id)

    print(json.dumps({"success": outcome.success, "stage": outcome.stage, "result": outcome.result}, indent=2, default=str))
    return 0 if outcome.success else 1


def cmd_notify_lead(args, config: ScoutConfig) -> int:
    with get_connection(config.database_url) as conn:
        service = NotificationService(
            LeadStore(conn), SettingsStore(conn), NotificationDispatcher(config), config
        )
        outcome = service.notify(args.lead_id)

    print(f"sent={outcome.sent} failed={outcome.failed} skipped={outcome.skipped} reason={outcome.reason}")
    return 0 if outcome.success else 1


def cmd_draft_reply(args, config: ScoutConfig) -> int:
    with get_connection(config.database_url) as conn:
        lead_store = LeadStore(conn)
        lead = lead_store.get_lead(args.lead_id)
        if lead is None:
            print(f"Lead {args.lead_id} not found", file=sys.stderr)
            return 1

        settings = None
        if lead.subscription_id is not None:
            settings = SettingsStore(conn).get_settings_for_subscription(lead.subscription_id)
        product_context = settings.business_context if settings else ""

        draft = draft_reply_for_lead(
            lead_store, args.lead_id, product_context, get_openai_client(config), config
        )

    if draft is None:
        print("Could not generate a reply draft", file=sys.stderr)
        return 1
    print(draft)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lead Scout CLI - run the Reddit lead pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m lead_scout.cli init-db
  python -m lead_scout.cli scout --dry-run
  python -m lead_scout.cli scout --max 5
  python -m lead_scout.cli process-lead 3f1c...
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")
    subparsers.required = True

    p_init = subparsers.add_parser("init-db", help="Apply the database schema")
    p_init.set_defaults(func=cmd_init_db)

    p_scout = subparsers.add_parser("scout", help="Run one scout pass over all active alerts")
    p_scout.add_argument("--dry-run", action="store_true", help="Match posts but don't store leads")
    p_scout.add_argument("--max", type=int, help="Override the per-run lead cap (0 = no cap)")
    p_scout.set_defaults(func=cmd_scout)

    p_process = subparsers.add_parser("process-lead", help="Classify one lead")
    p_process.add_argument("lead_id", type=UUID, help="Lead ID")
    p_process.set_defaults(func=cmd_process_lead)

    p_notify = subparsers.add_parser("notify-lead", help="Send notifications for one ready lead")
    p_notify.add_argument("lead_id", type=UUID, help="Lead ID")
    p_notify.set_defaults(func=cmd_notify_lead)

    p_draft = subparsers.add_parser("draft-reply", help="Generate a reply draft for one lead")
    p_draft.add_argument("lead_id", type=UUID, help="Lead ID")
    p_draft.set_defaults(func=cmd_draft_reply)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    load_env_file()
    configure_safe_logging(logging.DEBUG if args.verbose else logging.INFO)
    config = ScoutConfig.from_env()

    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
