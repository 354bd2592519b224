"""
Booking Lifecycle — CLI

Usage:
    # Print the provisioning request for the configured booking
    python -m confirm.cli build

    # Print the reservation name the booking check will look up
    python -m confirm.cli booking-name

    # Send the request and validate the acknowledgment
    python -m confirm.cli run --checks ack

    # Full life cycle against a fixture platform
    python -m confirm.cli run --checks ack,booking,workorder \\
        --fixtures fixtures/lab.yaml --parallel

Exit codes: 0 all checks passed, 1 a check failed, 2 bad configuration.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime

from confirm.cases import ValidateAcknowledgment, ValidateBooking, ValidateWorkOrder
from confirm.codec import build_request
from confirm.config import LifecycleSettings, load_config
from confirm.logging import CheckLogger, configure_logging
from confirm.outcome import ConfirmError
from confirm.params import BookingParameters
from confirm.reservation import booking_name
from confirm.suite import BookingSuite
from confirm.transport import ConfirmationTransport


CHECK_NAMES = ("ack", "booking", "workorder")


def _settings_and_params(args) -> tuple[LifecycleSettings, BookingParameters]:
    cfg = load_config(base_path=args.config, env=args.env)
    settings = LifecycleSettings.from_config(cfg)
    booking = dict(settings.booking)
    for field_name in ("endpoint", "chain_id", "work_order", "job_name"):
        value = getattr(args, field_name, None)
        if value:
            booking[field_name] = value
    return settings, BookingParameters.from_mapping(booking)


def cmd_build(args) -> int:
    settings, params = _settings_and_params(args)
    print(build_request(params, datetime.now(), settings.request_defaults))
    return 0


def cmd_booking_name(args) -> int:
    _, params = _settings_and_params(args)
    print(booking_name(params.chain_id, params.work_order, params.job_name))
    return 0


def cmd_run(args) -> int:
    settings, params = _settings_and_params(args)
    checks = [c.strip() for c in args.checks.split(",") if c.strip()]
    unknown = [c for c in checks if c not in CHECK_NAMES]
    if unknown:
        raise ConfirmError(f"unknown checks: {', '.join(unknown)} (choose from {', '.join(CHECK_NAMES)})")

    platform = None
    if {"booking", "workorder"} & set(checks):
        if not args.fixtures:
            raise ConfirmError("--fixtures is required for the booking and workorder checks")
        from fixtures.platform import load_platform
        platform = load_platform(args.fixtures)

    run_log = CheckLogger(test_name=settings.test_name)
    suite = BookingSuite(settings.test_name, settings.test_description)

    if "ack" in checks:
        transport = ConfirmationTransport(
            prefix=settings.transport_prefix,
            timeout_seconds=settings.transport_timeout_seconds,
        )
        transport.headers["User-Agent"] = settings.user_agent or transport.headers["User-Agent"]
        suite.add_check(ValidateAcknowledgment(
            params, transport.send,
            defaults=settings.request_defaults,
            logger=run_log,
        ))
    if "booking" in checks:
        suite.add_check(ValidateBooking(params, platform, logger=run_log))
    if "workorder" in checks:
        settle = settings.settle_seconds if args.settle_seconds is None else args.settle_seconds
        suite.add_check(ValidateWorkOrder(
            params, platform,
            settle_seconds=settle,
            margin_seconds=settings.margin_seconds,
            logger=run_log,
        ))

    run_log.log("Execute Test")
    suite.execute(parallel=args.parallel, deadline_seconds=args.deadline)
    summary = suite.summary()

    print(f"\n{'═' * 70}", file=sys.stderr)
    print(f"  {suite.name}: {'PASSED' if suite.passed else 'FAILED'}", file=sys.stderr)
    print(f"{'─' * 70}", file=sys.stderr)
    for outcome in suite.outcomes:
        marker = "✓" if outcome.passed else "✗"
        line = f"  {marker} {outcome.name} [{outcome.verdict.value}]"
        if outcome.reason:
            line += f" — {outcome.reason}"
        print(line, file=sys.stderr)
    print(f"{'═' * 70}\n", file=sys.stderr)

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    return 0 if suite.passed else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booking-lifecycle",
        description="Booking life cycle regression checks",
    )
    parser.add_argument("--config", default="lifecycle_config.yaml", help="Base YAML config")
    parser.add_argument("--env", default="", help="Config overlay profile (config/<env>.yaml)")
    parser.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show tracebacks on errors")
    parser.add_argument("--endpoint", help="Override booking.endpoint")
    parser.add_argument("--chain-id", dest="chain_id", help="Override booking.chain_id")
    parser.add_argument("--work-order", dest="work_order", help="Override booking.work_order")
    parser.add_argument("--job-name", dest="job_name", help="Override booking.job_name")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("build", help="Print the provisioning request document")
    sub.add_parser("booking-name", help="Print the derived reservation name")

    p_run = sub.add_parser("run", help="Run life cycle checks")
    p_run.add_argument("--checks", default="ack", help="Comma list of: ack, booking, workorder")
    p_run.add_argument("--fixtures", help="YAML fixture platform for booking/workorder checks")
    p_run.add_argument("--parallel", action="store_true", help="Run checks concurrently")
    p_run.add_argument("--deadline", type=float, default=None, help="Per-run deadline in seconds")
    p_run.add_argument("--settle-seconds", type=float, default=None, help="Override polling.settle_seconds")
    p_run.add_argument("--json", action="store_true", help="Print the summary as JSON on stdout")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    commands = {
        "build": cmd_build,
        "booking-name": cmd_booking_name,
        "run": cmd_run,
    }
    try:
        configure_logging(level=args.log_level)
        return commands[args.command](args)
    except ConfirmError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
