import logging
from typing import Dict, Iterable, List, Optional

from config import EngineConfig
from ledger import Ledger
from models import (
    AccountSnapshot,
    ClientAccount,
    InvalidTransactionError,
    ProcessingHaltedError,
    ProcessingStats,
    RejectionReason,
    Transaction,
)
from state_manager import StateManager
from transaction_reader import TransactionReader

logger = logging.getLogger(__name__)


def report_invalid_row(
    config: EngineConfig,
    stats: ProcessingStats,
    line_number: int,
    row: Dict[str, Optional[str]],
    error: InvalidTransactionError,
) -> None:
    """
    Count a malformed row, then skip it or abort the run per config.halt_on_malformed.

    Raises:
        InvalidTransactionError: halt_on_malformed is set.
    """
    stats.record_malformed()
    if config.halt_on_malformed:
        raise InvalidTransactionError(f"line {line_number}: {error}") from error
    logger.warning(f"Skipping line {line_number} {row}: {error}")


class PaymentsEngine:
    """
    Feeds transactions, in order, into a single ledger.

    Rejections are row-local: they are counted and logged, and processing moves
    on to the next record, unless the reason is listed in config.halt_on.
    """

    def __init__(self, config: Optional[EngineConfig] = None, state: Optional[StateManager] = None):
        self._config = config or EngineConfig()
        self._state = state if state is not None else StateManager()
        self._ledger = Ledger(self._state)
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    @property
    def state(self) -> StateManager:
        return self._state

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        reader = TransactionReader(filepath, on_invalid=self.handle_invalid_row)
        return self.process_transactions(reader)

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        for transaction in transactions:
            self.apply(transaction)

        logger.info(
            f"Processed: {self._stats.processed}, "
            f"Rejected: {self._stats.rejected}, "
            f"Malformed: {self._stats.malformed}"
        )
        return self._state.get_all_accounts()

    def apply(self, transaction: Transaction) -> Optional[RejectionReason]:
        """
        Apply one transaction and run the rejection policy on the result.

        Raises:
            ProcessingHaltedError: the rejection reason is in config.halt_on.
        """
        reason = self._ledger.apply(transaction)
        if reason is None:
            self._stats.record_success()
            return None

        self._stats.record_rejection(reason)
        if reason in self._config.halt_on:
            raise ProcessingHaltedError(transaction, reason)
        return reason

    def handle_invalid_row(self, line_number: int, row: Dict[str, Optional[str]], error: InvalidTransactionError) -> None:
        report_invalid_row(self._config, self._stats, line_number, row, error)

    def snapshot(self) -> List[AccountSnapshot]:
        return self._state.snapshot()
