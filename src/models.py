import threading
from collections import Counter
from dataclasses import dataclass
from decimal import Context, Decimal, Inexact, InvalidOperation, Overflow
from enum import Enum
from typing import Dict, NamedTuple, Union

AMOUNT_PLACES = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)  # 0.0001

# Amounts stay below 10**24, so a single amount needs at most 28 digits.
MAX_AMOUNT_DIGITS = 28 - AMOUNT_PLACES

# Balance arithmetic refuses to round: anything inexact raises.
LEDGER_CONTEXT = Context(prec=38, traps=[Inexact, InvalidOperation, Overflow])


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeState(Enum):
    NONE = "none"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"


class RejectionReason(Enum):
    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    ACCOUNT_LOCKED = "account_locked"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    INVALID_DISPUTE_STATE = "invalid_dispute_state"


class InvalidTransactionError(ValueError):
    """Raised when a transaction record cannot be built from its fields."""


class LedgerInvariantError(RuntimeError):
    """Raised when an applied transaction leaves an account in an impossible state."""


class ProcessingHaltedError(Exception):
    """Raised by the engine when a rejection matches the configured halt policy."""

    def __init__(self, transaction: "Transaction", reason: RejectionReason):
        super().__init__(f"{transaction!r} rejected: {reason.value}")
        self.transaction = transaction
        self.reason = reason


def _check_id(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidTransactionError(f"{name} must be a non-negative integer, got {value!r}")


def _check_amount(value: Decimal) -> None:
    if not isinstance(value, Decimal) or not value.is_finite():
        raise InvalidTransactionError(f"amount must be a finite Decimal, got {value!r}")
    if value <= 0:
        raise InvalidTransactionError(f"amount must be positive, got {value}")
    if value.adjusted() >= MAX_AMOUNT_DIGITS:
        raise InvalidTransactionError(f"amount out of range (must be below 1E+{MAX_AMOUNT_DIGITS}): {value}")
    if value != value.quantize(AMOUNT_QUANTUM):
        raise InvalidTransactionError(f"amount has more than {AMOUNT_PLACES} decimal places: {value}")


@dataclass(frozen=True)
class _Record:
    client_id: int
    transaction_id: int

    transaction_type = None  # overridden per variant

    def __post_init__(self):
        _check_id("client_id", self.client_id)
        _check_id("transaction_id", self.transaction_id)

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id})"


@dataclass(frozen=True, repr=False)
class _AmountRecord(_Record):
    amount: Decimal

    def __post_init__(self):
        super().__post_init__()
        _check_amount(self.amount)

    def __repr__(self) -> str:
        return (
            f"Transaction({self.transaction_type.value}, client={self.client_id}, "
            f"tx={self.transaction_id}, amount={self.amount})"
        )


@dataclass(frozen=True, repr=False)
class Deposit(_AmountRecord):
    transaction_type = TransactionType.DEPOSIT


@dataclass(frozen=True, repr=False)
class Withdrawal(_AmountRecord):
    transaction_type = TransactionType.WITHDRAWAL


@dataclass(frozen=True, repr=False)
class Dispute(_Record):
    transaction_type = TransactionType.DISPUTE


@dataclass(frozen=True, repr=False)
class Resolve(_Record):
    transaction_type = TransactionType.RESOLVE


@dataclass(frozen=True, repr=False)
class Chargeback(_Record):
    transaction_type = TransactionType.CHARGEBACK


Transaction = Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback]


def _exact_add(a: Decimal, b: Decimal) -> Decimal:
    try:
        return LEDGER_CONTEXT.add(a, b)
    except (Inexact, Overflow):
        raise LedgerInvariantError(f"balance out of range: {a} + {b}") from None


def _exact_subtract(a: Decimal, b: Decimal) -> Decimal:
    try:
        return LEDGER_CONTEXT.subtract(a, b)
    except (Inexact, Overflow):
        raise LedgerInvariantError(f"balance out of range: {a} - {b}") from None


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return _exact_add(self.available, self.held)

    def credit(self, amount: Decimal) -> None:
        self.available = _exact_add(self.available, amount)

    def debit(self, amount: Decimal) -> None:
        self.available = _exact_subtract(self.available, amount)

    def hold(self, amount: Decimal) -> None:
        available = _exact_subtract(self.available, amount)
        self.held = _exact_add(self.held, amount)
        self.available = available

    def release_hold(self, amount: Decimal) -> None:
        held = _exact_subtract(self.held, amount)
        self.available = _exact_add(self.available, amount)
        self.held = held

    def remove_held(self, amount: Decimal) -> None:
        self.held = _exact_subtract(self.held, amount)

    def lock(self) -> None:
        self.locked = True


@dataclass
class DepositRecord:
    """A deposit remembered for later dispute, resolve and chargeback lookups."""

    transaction_id: int
    client_id: int
    amount: Decimal
    dispute_state: DisputeState = DisputeState.NONE


class AccountSnapshot(NamedTuple):
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool

    @classmethod
    def of(cls, account: ClientAccount) -> "AccountSnapshot":
        return cls(account.client_id, account.available, account.held, account.total, account.locked)


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.rejected = 0
        self.malformed = 0
        self.rejections_by_reason: Dict[RejectionReason, int] = Counter()

    def record_success(self):
        with self._lock:
            self.processed += 1

    def record_rejection(self, reason: RejectionReason):
        with self._lock:
            self.rejected += 1
            self.rejections_by_reason[reason] += 1

    def record_malformed(self):
        with self._lock:
            self.malformed += 1

    def merge(self, other: "ProcessingStats") -> None:
        with self._lock:
            self.processed += other.processed
            self.rejected += other.rejected
            self.malformed += other.malformed
            self.rejections_by_reason.update(other.rejections_by_reason)

    def __repr__(self) -> str:
        return f"ProcessingStats(processed={self.processed}, rejected={self.rejected}, malformed={self.malformed})"
