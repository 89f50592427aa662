import argparse
import sys
from typing import Optional, Sequence

import structlog

from config import get_settings
from exceptions import PaymentEngineError
from logging_config import configure_logging
from models import DuplicatePolicy
from services import PaymentEngine, log_outcome
from storage import read_records, write_accounts

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments",
        description="Apply a CSV of transactions and print the resulting client accounts as CSV.",
    )
    parser.add_argument("path", help="CSV file with type,client,tx,amount columns")
    parser.add_argument(
        "--duplicate-policy",
        choices=[policy.value for policy in DuplicatePolicy],
        default=None,
        help="How to treat a reused transaction id (default: from settings)",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Skip malformed rows instead of aborting",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level for stderr diagnostics (default: from settings)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    args = build_parser().parse_args(argv)

    configure_logging(args.log_level or settings.log_level, settings.log_format)

    policy = DuplicatePolicy(args.duplicate_policy or settings.duplicate_tx_policy)
    strict = settings.strict_parsing and not args.lenient
    engine = PaymentEngine(duplicate_policy=policy)

    try:
        with open(args.path, newline="", encoding="utf-8") as handle:
            summary = engine.process_all(read_records(handle, strict=strict), observer=log_outcome)
    except (PaymentEngineError, OSError) as e:
        logger.error("Processing failed", path=args.path, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    write_accounts(engine.snapshots(), sys.stdout)
    logger.info(
        "Processing completed",
        path=args.path,
        processed=summary.processed,
        applied=summary.applied,
        ignored=summary.ignored,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
