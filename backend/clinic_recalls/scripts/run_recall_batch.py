from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone

from clinic_recalls.core.settings import settings, validate_settings
from clinic_recalls.db.session import SessionLocal
from clinic_recalls.services.dispatch_cycle import run_dispatch_cycle
from clinic_recalls.services.email import ResendEmailTransport
from clinic_recalls.services.error_reporting import ErrorReporter
from clinic_recalls.services.sms import ClickSendSmsTransport


def _parse_now(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run one recall and appointment reminder dispatch pass."
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Maximum records selected per pass (defaults to DISPATCH_BATCH_SIZE).",
    )
    parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="ISO timestamp to treat as the current time (naive values are UTC).",
    )
    parser.add_argument(
        "--skip-enqueue",
        action="store_true",
        help="Dispatch existing due records without scheduling new ones.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    validate_settings(settings)

    db = SessionLocal()
    try:
        result = run_dispatch_cycle(
            db,
            settings=settings,
            email_transport=ResendEmailTransport.from_settings(settings),
            sms_transport=ClickSendSmsTransport.from_settings(settings, session_factory=SessionLocal),
            reporter=ErrorReporter(SessionLocal),
            now=args.now,
            batch_size=args.batch_size,
            enqueue=not args.skip_enqueue,
        )
    finally:
        db.close()

    print(json.dumps(result, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
