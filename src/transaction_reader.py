import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterator, Optional

from models import (
    Chargeback,
    Deposit,
    Dispute,
    InvalidTransactionError,
    Resolve,
    Transaction,
    TransactionType,
    Withdrawal,
)

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

InvalidRowHandler = Callable[[int, Dict[str, Optional[str]], InvalidTransactionError], None]


def _parse_id(name: str, raw: str, maximum: int) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidTransactionError(f"{name} must be an unsigned integer, got {raw!r}")
    value = int(raw)
    if value > maximum:
        raise InvalidTransactionError(f"{name} {value} out of range (max {maximum})")
    return value


def _parse_amount(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise InvalidTransactionError(f"amount is not a decimal number: {raw!r}") from None


def parse_transaction(row: Dict[str, Optional[str]]) -> Transaction:
    """
    Build a Transaction from a CSV row.

    Keys and values are whitespace-trimmed. Deposits and withdrawals require an
    amount; dispute, resolve and chargeback rows must leave it blank.

    Raises:
        InvalidTransactionError: the row does not describe a valid transaction.
    """
    if None in row:
        raise InvalidTransactionError("row has more fields than the header")

    normalized = {k.strip(): (v or "").strip() for k, v in row.items()}

    try:
        transaction_type_str = normalized["type"]
        client_str = normalized["client"]
        transaction_id_str = normalized["tx"]
    except KeyError as e:
        raise InvalidTransactionError(f"missing column {e.args[0]!r}") from None

    try:
        transaction_type = TransactionType(transaction_type_str.lower())
    except ValueError:
        raise InvalidTransactionError(f"unknown transaction type {transaction_type_str!r}") from None

    client_id = _parse_id("client", client_str, MAX_CLIENT_ID)
    transaction_id = _parse_id("tx", transaction_id_str, MAX_TRANSACTION_ID)
    amount_str = normalized.get("amount", "")

    match transaction_type:
        case TransactionType.DEPOSIT | TransactionType.WITHDRAWAL:
            if not amount_str:
                raise InvalidTransactionError(f"{transaction_type.value} tx {transaction_id}: amount not specified")
            variant = Deposit if transaction_type is TransactionType.DEPOSIT else Withdrawal
            return variant(client_id=client_id, transaction_id=transaction_id, amount=_parse_amount(amount_str))
        case TransactionType.DISPUTE:
            variant = Dispute
        case TransactionType.RESOLVE:
            variant = Resolve
        case TransactionType.CHARGEBACK:
            variant = Chargeback

    if amount_str:
        raise InvalidTransactionError(
            f"{transaction_type.value} tx {transaction_id}: amount must not be specified"
        )
    return variant(client_id=client_id, transaction_id=transaction_id)


def log_invalid_row(line_number: int, row: Dict[str, Optional[str]], error: InvalidTransactionError) -> None:
    logger.warning(f"Skipping line {line_number} {row}: {error}")


class TransactionReader:
    """
    Lazily reads transactions from a CSV file with a `type, client, tx, amount` header.
    Single pass: rows are parsed as they are read, never all at once.
    Malformed rows are handed to on_invalid and dropped.
    """

    def __init__(self, filepath: str, on_invalid: InvalidRowHandler = log_invalid_row):
        self._filepath = filepath
        self._on_invalid = on_invalid

    def __iter__(self) -> Iterator[Transaction]:
        return self.iter_transactions()

    def iter_transactions(self) -> Iterator[Transaction]:
        with open(self._filepath, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                try:
                    transaction = parse_transaction(row)
                except InvalidTransactionError as e:
                    self._on_invalid(reader.line_num, row, e)
                    continue
                yield transaction
