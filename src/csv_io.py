import csv
import logging
from typing import Callable, Dict, Iterable, Iterator, Optional, TextIO

from models import Amount, ClientAccount, Transaction, TransactionType

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("type", "client", "tx")
OUTPUT_COLUMNS = ["client", "available", "held", "total", "locked"]

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class MalformedInputError(Exception):
    """The input as a whole cannot be read as a transaction file."""


def read_transactions(
    filepath: str,
    on_malformed: Optional[Callable[[Dict[str, Optional[str]]], None]] = None,
) -> Iterator[Transaction]:
    """
    Lazily yield transactions from a CSV file.

    Bad rows are logged, passed to on_malformed and skipped. A missing file
    (OSError) or a header without the required columns (MalformedInputError)
    propagates to the caller.
    """
    with open(filepath, "r", newline="") as f:
        yield from parse_rows(f, on_malformed)


def parse_rows(
    stream: Iterable[str],
    on_malformed: Optional[Callable[[Dict[str, Optional[str]]], None]] = None,
) -> Iterator[Transaction]:
    reader = csv.DictReader(stream)
    header = [name.strip() for name in reader.fieldnames or []]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise MalformedInputError(f"input header {header} is missing columns {missing}")
    reader.fieldnames = header

    for row in reader:
        transaction = parse_row(row)
        if transaction is not None:
            yield transaction
        elif on_malformed is not None:
            on_malformed(row)


def parse_row(row: Dict[str, Optional[str]]) -> Optional[Transaction]:
    """Parse CSV row into Transaction, or None if the row is unusable."""
    try:
        # DictReader puts surplus values under the None key.
        if None in row:
            raise ValueError(f"too many fields: {row[None]}")
        normalized = {k: (v or "").strip() for k, v in row.items()}

        transaction_type = TransactionType(normalized["type"].lower())
        client_id = int(normalized["client"])
        transaction_id = int(normalized["tx"])

        if not 0 <= client_id <= MAX_CLIENT_ID:
            raise ValueError(f"client id {client_id} out of range")
        if not 0 <= transaction_id <= MAX_TRANSACTION_ID:
            raise ValueError(f"tx id {transaction_id} out of range")

        amount = None
        amount_str = normalized.get("amount", "")
        if amount_str:
            amount = Amount.parse(amount_str)

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Failed to parse row {row}: {e}")
        return None


def write_accounts(accounts: Iterable[ClientAccount], stream: TextIO) -> None:
    """Write the account summary as CSV, ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_COLUMNS)
    for account in sorted(accounts, key=lambda a: a.client_id):
        writer.writerow([
            account.client_id,
            str(account.available),
            str(account.held),
            str(account.total),
            str(account.locked).lower(),
        ])
