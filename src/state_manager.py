from typing import Dict, List, Optional

from models import AccountSnapshot, ClientAccount, DepositRecord


class StateManager:
    """
    Owned ledger state: client accounts and the deposits that may still be disputed.
    Not thread-safe. Each ledger (or shard) owns exactly one instance.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self._deposits: Dict[int, DepositRecord] = {}

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = self._accounts[client_id] = ClientAccount(client_id=client_id)
        return account

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def store_deposit(self, deposit: DepositRecord) -> None:
        """Store deposit for future dispute lookups."""
        self._deposits[deposit.transaction_id] = deposit

    def get_deposit(self, transaction_id: int) -> Optional[DepositRecord]:
        """Retrieve stored deposit by transaction ID."""
        return self._deposits.get(transaction_id)

    def has_transaction(self, transaction_id: int) -> bool:
        return transaction_id in self._deposits

    @property
    def account_count(self) -> int:
        return len(self._accounts)

    @property
    def deposit_count(self) -> int:
        return len(self._deposits)

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)

    def snapshot(self) -> List[AccountSnapshot]:
        """Read-only view of every account, ordered by client id."""
        return [AccountSnapshot.of(self._accounts[client_id]) for client_id in sorted(self._accounts)]
