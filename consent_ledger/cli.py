#!/usr/bin/env python3
"""
Consent Ledger Command Line
===========================
Inspect a persisted notification journal by replaying it.

Usage:
    consent-ledger summary --jsonl journal.jsonl --admin admin
    consent-ledger records --sqlite ledger.db --admin admin --subject alice
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from consent_ledger.config.config_loader import get_ledger_config
from consent_ledger.core.exceptions import ConsentLedgerError
from consent_ledger.core.utils import setup_logging
from consent_ledger.governance.notifications import JsonlJournal
from consent_ledger.governance.persistence import LedgerDB
from consent_ledger.governance.registry import DataRegistry, replay


def _load_registry(args: argparse.Namespace) -> DataRegistry:
    administrator = args.admin or get_ledger_config().administrator
    if not administrator:
        raise ConsentLedgerError(
            "No administrator given (use --admin or CONSENT_LEDGER_ADMINISTRATOR)"
        )

    if args.jsonl:
        notifications = list(JsonlJournal(args.jsonl).read())
    else:
        db = LedgerDB(args.sqlite)
        try:
            notifications = db.read()
        finally:
            db.close()

    return replay(notifications, administrator)


def _summarize(registry: DataRegistry) -> Dict[str, Any]:
    subjects = registry.records.subjects()
    records = 0
    redacted = 0
    for subject in subjects:
        for index in range(registry.records.count(subject)):
            records += 1
            redacted += registry.records.get(subject, index).redacted

    return {
        "notifications": len(registry.notifier),
        "verified_organizations": len(registry.principals.verified_organizations()),
        "subjects_with_records": len(subjects),
        "records": records,
        "redacted_records": redacted,
    }


def cmd_summary(args: argparse.Namespace) -> None:
    with _load_registry(args) as registry:
        summary = _summarize(registry)
    print(json.dumps(summary, indent=2))


def cmd_records(args: argparse.Namespace) -> None:
    subject = args.subject
    with _load_registry(args) as registry:
        # The subject always has access to its own records.
        for index in range(registry.get_record_count(subject, subject)):
            record = registry.get_record_at(subject, subject, index)
            print(json.dumps({"index": index, **record.model_dump(mode="json")}))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="consent-ledger",
        description="Inspect a consent ledger notification journal",
    )
    parser.add_argument(
        "--log-level",
        help="Log level (default: logging.level from configuration)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        help="Log format (default: logging.format from configuration)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file (default: logging.file)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_source(sub: argparse.ArgumentParser) -> None:
        source = sub.add_mutually_exclusive_group(required=True)
        source.add_argument("--jsonl", help="JSON-lines journal file")
        source.add_argument("--sqlite", help="SQLite journal database")
        sub.add_argument(
            "--admin",
            help="Administrator principal (default: from configuration)",
        )

    summary = subparsers.add_parser("summary", help="Replay and print counts")
    add_source(summary)
    summary.set_defaults(func=cmd_summary)

    records = subparsers.add_parser("records", help="List a subject's records")
    add_source(records)
    records.add_argument("--subject", required=True, help="Subject principal")
    records.set_defaults(func=cmd_records)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the consent-ledger command."""
    args = build_parser().parse_args(argv)

    try:
        log_config = get_ledger_config().logging
        setup_logging(
            level=args.log_level or log_config.level,
            log_format=args.log_format or log_config.format,
            log_file=args.log_file or log_config.file,
        )
        args.func(args)
    except ConsentLedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
