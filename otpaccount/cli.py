#!/usr/bin/env python3
"""Command line front end for the OTP Account Service."""

from __future__ import annotations

import argparse
import getpass
import json
import sqlite3
import sys
import time
from datetime import datetime
from pathlib import Path
from textwrap import dedent
from typing import List, Optional

from otpaccount import __version__
from otpaccount.auth.enrollment import EnrollmentArtifact
from otpaccount.auth.storage import EncryptedFileStore
from otpaccount.delivery import ConsoleDeliveryChannel, SMTPDeliveryChannel
from otpaccount.errors import OTPAccountError
from otpaccount.service import AccountService
from otpaccount.utils.config import Config
from otpaccount.utils.logger import AuditLogger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RETRY = 2

DEFAULT_EVENT_LIMIT = 20

_MISSING = object()


def open_audit_logger(config: Config) -> Optional[AuditLogger]:
    """Return the audit logger for this config dir, or None if auditing is disabled."""
    if not config.get('audit.enabled', True):
        return None
    return AuditLogger(db_path=config.config_dir / "events.db",
                       retention_days=int(config.get('audit.retention_days', 90)))


def build_service(config: Config) -> AccountService:
    """Wire an AccountService from the config and the environment."""
    settings = config.to_settings()

    store = EncryptedFileStore(config_dir=config.config_dir, passphrase=config.store_passphrase())

    if config.get('delivery.channel') == 'smtp':
        delivery = SMTPDeliveryChannel(config.to_smtp_settings(), sender=settings.mail_sender,
                                       sender_name=settings.service_name)
    else:
        delivery = ConsoleDeliveryChannel()

    return AccountService(store, delivery, settings, audit=open_audit_logger(config))


def _show_artifact(artifact: EnrollmentArtifact, png_path: Optional[Path]):
    print(
        dedent(
            """
            1. Install Google Authenticator (or any TOTP app) on your phone.
            2. Add a new account by scanning the QR code or opening the URI below.
            """
        ).strip()
    )
    print(f"\nURI: {artifact.uri}\n")
    if png_path:
        artifact.save_png(png_path)
        print(f"QR code written to {png_path}")
    else:
        artifact.print_ascii()


def _print_events(events: List[dict]):
    if not events:
        print("No events.")
        return
    for event in events:
        when = datetime.fromtimestamp(event['timestamp']).strftime("%Y-%m-%d %H:%M:%S")
        status = {1: "ok", 0: "FAIL"}.get(event['success'], "-")
        print(f"{when}  {event['action']:<22} {status:<4} {event['identifier'] or ''}")


def _run_events(config: Config, args) -> int:
    audit = open_audit_logger(config)
    if audit is None:
        print("Audit logging is disabled.", file=sys.stderr)
        return EXIT_FAILED

    if args.stats:
        stats = audit.get_statistics()
        print(f"Total events:         {stats['total_events']}")
        print(f"Accounts seen:        {stats['unique_accounts']}")
        print(f"Failed logins (24h):  {stats['failed_auth_24h']}")
        for action, count in sorted(stats['by_action'].items()):
            print(f"  {action:<22} {count}")
        return EXIT_OK

    if args.csv:
        if not audit.export_to_csv(args.csv, limit=args.limit):
            return EXIT_FAILED
        print(f"✓ Events exported to {args.csv}")
        return EXIT_OK

    if args.failed:
        events = audit.get_failed_auth_attempts(hours=args.since or 24)
    elif args.account:
        events = audit.get_account_history(args.account.strip().lower())
    elif args.since:
        now = time.time()
        events = audit.get_events_by_date_range(now - args.since * 3600, now)
    else:
        events = audit.get_recent_events(args.limit or DEFAULT_EVENT_LIMIT)

    _print_events(events[:args.limit] if args.limit else events)
    return EXIT_OK


def _parse_value(raw: str):
    """Interpret a command line value as JSON, falling back to a plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _run_config(config: Config, args) -> int:
    if args.config_command == "show":
        print(json.dumps(config.config, indent=2))

    elif args.config_command == "get":
        value = config.get(args.key, _MISSING)
        if value is _MISSING:
            print(f"✗ No setting named {args.key}", file=sys.stderr)
            return EXIT_FAILED
        print(json.dumps(value, indent=2))

    elif args.config_command == "set":
        if not config.set(args.key, _parse_value(args.value)):
            return EXIT_FAILED
        print(f"✓ {args.key} updated.")

    elif args.config_command == "reset":
        if not config.reset_to_defaults():
            return EXIT_FAILED
        print("✓ Configuration reset to defaults.")

    elif args.config_command == "export":
        if not config.export_config(args.path):
            return EXIT_FAILED
        print(f"✓ Configuration exported to {args.path}")

    elif args.config_command == "import":
        if not config.import_config(args.path):
            return EXIT_FAILED
        print(f"✓ Configuration imported from {args.path}")

    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otpaccount", description="OTP account registration and recovery")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Directory holding config.json, the account store and the audit log")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="Register an e-mail address")
    register.add_argument("identifier")
    register.add_argument("--png", type=Path, default=None, help="Write the QR code to a PNG file")

    authenticate = sub.add_parser("authenticate", help="Exchange a one-time code for a session token")
    authenticate.add_argument("identifier")
    authenticate.add_argument("code")

    send_code = sub.add_parser("send-code", help="E-mail the current one-time code")
    send_code.add_argument("identifier")

    request_reset = sub.add_parser("request-reset", help="E-mail a recovery token (administrators only)")
    request_reset.add_argument("identifier")

    complete_reset = sub.add_parser("complete-reset", help="Rotate the secret using a recovery token")
    complete_reset.add_argument("identifier")
    complete_reset.add_argument("token")
    complete_reset.add_argument("--png", type=Path, default=None, help="Write the QR code to a PNG file")

    events = sub.add_parser("events", help="Show or export audit events")
    events.add_argument("--limit", type=int, default=None,
                        help=f"Maximum number of events (default {DEFAULT_EVENT_LIMIT} when listing)")
    events.add_argument("--since", type=float, default=None, metavar="HOURS",
                        help="Only events from the last HOURS hours")
    view = events.add_mutually_exclusive_group()
    view.add_argument("--account", default=None, help="History of one identifier")
    view.add_argument("--failed", action="store_true", help="Failed logins (last 24 hours unless --since)")
    view.add_argument("--stats", action="store_true", help="Summary statistics")
    view.add_argument("--csv", type=Path, default=None, metavar="PATH", help="Export events to a CSV file")

    config = sub.add_parser("config", help="Inspect or change config.json")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Print the whole configuration")
    config_get = config_sub.add_parser("get", help="Print one setting")
    config_get.add_argument("key", help="Dotted key, e.g. otp.valid_window")
    config_set = config_sub.add_parser("set", help="Change one setting")
    config_set.add_argument("key", help="Dotted key, e.g. otp.valid_window")
    config_set.add_argument("value", help="JSON value; anything else is stored as a string")
    config_sub.add_parser("reset", help="Restore the default configuration")
    config_export = config_sub.add_parser("export", help="Write the configuration to a file")
    config_export.add_argument("path", type=Path)
    config_import = config_sub.add_parser("import", help="Load the configuration from a file")
    config_import.add_argument("path", type=Path)

    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = Config(config_dir=args.config_dir)

        if args.command == "config":
            return _run_config(config, args)

        if args.command == "events":
            return _run_events(config, args)

        service = build_service(config)

        if args.command == "register":
            _show_artifact(service.register(args.identifier), args.png)
            print("\n✓ Account registered.")

        elif args.command == "authenticate":
            print(service.authenticate(args.identifier, args.code))

        elif args.command == "send-code":
            service.send_code(args.identifier)
            print("✓ If the account exists, a code has been sent.")

        elif args.command == "request-reset":
            credential = getpass.getpass("Administrator secret: ")
            service.request_reset(args.identifier, credential)
            print("✓ Recovery token sent.")

        elif args.command == "complete-reset":
            _show_artifact(service.complete_reset(args.identifier, args.token), args.png)
            print("\n✓ Secret rotated. Previous codes no longer work.")

    except OTPAccountError as e:
        print(f"✗ {e} ({e.code})", file=sys.stderr)
        return EXIT_RETRY if e.retryable else EXIT_FAILED
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_FAILED
    except (OSError, sqlite3.Error) as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_FAILED

    return EXIT_OK


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    raise SystemExit(main())
