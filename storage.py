import csv
import io
from typing import Dict, Iterable, Iterator, List, TextIO

import structlog
from pydantic import ValidationError

from exceptions import RecordParseError
from models import AccountSnapshot, Record, parse_record

logger = structlog.get_logger()

RECORD_FIELDS = ("type", "client", "tx", "amount")
REQUIRED_RECORD_FIELDS = ("type", "client", "tx")
ACCOUNT_FIELDS = ("client", "available", "held", "total", "locked")


def read_records(stream: TextIO, strict: bool = True) -> Iterator[Record]:
    """Yield records from a ``type,client,tx,amount`` CSV stream in file order.

    Whitespace around headers and values is ignored, as is an empty amount.
    In strict mode a malformed row raises ``RecordParseError``; otherwise it
    is logged and skipped.
    """
    reader = csv.DictReader(stream, skipinitialspace=True)
    if reader.fieldnames is None:
        return
    reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]

    missing = [name for name in REQUIRED_RECORD_FIELDS if name not in reader.fieldnames]
    if missing:
        raise RecordParseError(1, f"missing columns: {', '.join(missing)}")

    for row in reader:
        try:
            yield parse_record(_clean_row(row))
        except ValidationError as e:
            message = _describe(e)
            if strict:
                raise RecordParseError(reader.line_num, message) from e
            logger.warning("Skipping malformed record", line=reader.line_num, error=message)


def _clean_row(row: Dict) -> Dict[str, str]:
    # Extra columns land under the None key; missing ones come back as None.
    return {
        key: value.strip()
        for key, value in row.items()
        if key in RECORD_FIELDS and value is not None and value.strip() != ""
    }


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def write_accounts(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> int:
    """Write account snapshots as CSV. Returns the number of rows written."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(ACCOUNT_FIELDS)
    rows = 0
    for snapshot in snapshots:
        writer.writerow(_account_row(snapshot))
        rows += 1
    return rows


def _account_row(snapshot: AccountSnapshot) -> List[str]:
    return [
        str(snapshot.client),
        str(snapshot.available),
        str(snapshot.held),
        str(snapshot.total),
        "true" if snapshot.locked else "false",
    ]


def format_accounts(snapshots: Iterable[AccountSnapshot]) -> str:
    buffer = io.StringIO()
    write_accounts(snapshots, buffer)
    return buffer.getvalue()
