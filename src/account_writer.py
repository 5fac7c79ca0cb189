import csv
from decimal import Decimal
from typing import Iterable, TextIO

from models import AMOUNT_QUANTUM, LEDGER_CONTEXT, AccountSnapshot

HEADER = ["client", "available", "held", "total", "locked"]


def format_amount(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    quantized = value.quantize(AMOUNT_QUANTUM, context=LEDGER_CONTEXT)
    if quantized.is_zero():
        quantized = abs(quantized)
    return f"{quantized:f}"


def write_accounts(accounts: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(HEADER)
    for account in accounts:
        writer.writerow(
            [
                account.client_id,
                format_amount(account.available),
                format_amount(account.held),
                format_amount(account.total),
                str(account.locked).lower(),
            ]
        )
