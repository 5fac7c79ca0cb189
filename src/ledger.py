import logging
from decimal import Decimal
from typing import Optional, Tuple, Union

from models import (
    Chargeback,
    ClientAccount,
    Deposit,
    DepositRecord,
    Dispute,
    DisputeState,
    LedgerInvariantError,
    RejectionReason,
    Resolve,
    Transaction,
    Withdrawal,
)
from state_manager import StateManager

logger = logging.getLogger(__name__)

# Dispute states from which a new dispute may be raised.
DISPUTABLE_STATES = frozenset({DisputeState.NONE, DisputeState.RESOLVED})


class Ledger:
    """
    Applies transactions against an owned StateManager, strictly in arrival order.

    apply() returns None when the transaction was applied, otherwise the
    RejectionReason. A rejected transaction leaves balances and dispute states
    untouched. Deposits and withdrawals create the client account on first
    sight, even when rejected; dispute, resolve and chargeback never do.
    """

    def __init__(self, state: Optional[StateManager] = None):
        self._state = state if state is not None else StateManager()

    @property
    def state(self) -> StateManager:
        return self._state

    def apply(self, transaction: Transaction) -> Optional[RejectionReason]:
        match transaction:
            case Deposit():
                handler, opens_account = self._handle_deposit, True
            case Withdrawal():
                handler, opens_account = self._handle_withdrawal, True
            case Dispute():
                handler, opens_account = self._handle_dispute, False
            case Resolve():
                handler, opens_account = self._handle_resolve, False
            case Chargeback():
                handler, opens_account = self._handle_chargeback, False
            case _:
                raise TypeError(f"Unsupported transaction: {transaction!r}")

        if opens_account:
            account = self._state.get_or_create_account(transaction.client_id)
        else:
            account = self._state.get_account(transaction.client_id)

        if account is None:
            # No deposit can exist for a client that was never seen.
            reason = RejectionReason.UNKNOWN_TRANSACTION
        else:
            reason = handler(account, transaction)

        if reason is None:
            self._check_invariants(account)
        else:
            logger.info(f"{transaction!r} rejected: {reason.value}")
        return reason

    def _handle_deposit(self, account: ClientAccount, transaction: Deposit) -> Optional[RejectionReason]:
        if self._state.has_transaction(transaction.transaction_id):
            return RejectionReason.DUPLICATE_TRANSACTION_ID

        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED

        account.credit(transaction.amount)
        self._state.store_deposit(
            DepositRecord(
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
                amount=transaction.amount,
            )
        )
        return None

    def _handle_withdrawal(self, account: ClientAccount, transaction: Withdrawal) -> Optional[RejectionReason]:
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED

        if transaction.amount > account.available:
            return RejectionReason.INSUFFICIENT_FUNDS

        account.debit(transaction.amount)
        return None

    def _handle_dispute(self, account: ClientAccount, transaction: Dispute) -> Optional[RejectionReason]:
        # Locked accounts still accept disputes.
        deposit, reason = self._lookup_deposit(transaction)
        if reason is not None:
            return reason

        if deposit.dispute_state not in DISPUTABLE_STATES:
            return RejectionReason.INVALID_DISPUTE_STATE

        account.hold(deposit.amount)
        deposit.dispute_state = DisputeState.DISPUTED
        return None

    def _handle_resolve(self, account: ClientAccount, transaction: Resolve) -> Optional[RejectionReason]:
        deposit, reason = self._lookup_disputed_deposit(transaction)
        if reason is not None:
            return reason

        account.release_hold(deposit.amount)
        deposit.dispute_state = DisputeState.RESOLVED
        return None

    def _handle_chargeback(self, account: ClientAccount, transaction: Chargeback) -> Optional[RejectionReason]:
        deposit, reason = self._lookup_disputed_deposit(transaction)
        if reason is not None:
            return reason

        account.remove_held(deposit.amount)
        account.lock()
        deposit.dispute_state = DisputeState.CHARGED_BACK
        return None

    def _lookup_deposit(
        self, transaction: Union[Dispute, Resolve, Chargeback]
    ) -> Tuple[Optional[DepositRecord], Optional[RejectionReason]]:
        """
        Find the deposit a dispute-family transaction refers to.

        Withdrawals are never recorded, so disputing one reports UNKNOWN_TRANSACTION.
        A deposit owned by another client is reported the same way.
        """
        deposit = self._state.get_deposit(transaction.transaction_id)

        if deposit is None:
            return None, RejectionReason.UNKNOWN_TRANSACTION

        if deposit.client_id != transaction.client_id:
            logger.warning(
                f"{transaction!r}: client mismatch (tx {deposit.transaction_id} belongs to client {deposit.client_id})"
            )
            return None, RejectionReason.UNKNOWN_TRANSACTION

        return deposit, None

    def _lookup_disputed_deposit(
        self, transaction: Union[Resolve, Chargeback]
    ) -> Tuple[Optional[DepositRecord], Optional[RejectionReason]]:
        deposit, reason = self._lookup_deposit(transaction)
        if reason is not None:
            return None, reason

        if deposit.dispute_state is not DisputeState.DISPUTED:
            return None, RejectionReason.INVALID_DISPUTE_STATE

        return deposit, None

    @staticmethod
    def _check_invariants(account: ClientAccount) -> None:
        if account.held < Decimal("0"):
            raise LedgerInvariantError(f"Client {account.client_id}: held funds went negative ({account.held})")
