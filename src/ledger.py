import threading
from dataclasses import replace
from typing import Dict, List, Optional

from models import ClientAccount, TransactionRecord


class DuplicateTransactionIdError(Exception):
    def __init__(self, transaction_id: int):
        super().__init__(f"transaction id {transaction_id} already recorded")
        self.transaction_id = transaction_id


class Ledger:
    """
    Client accounts plus the history of applied deposits/withdrawals.
    Safe to share between shard workers as long as each client is only
    ever mutated from one thread.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self._transactions: Dict[int, TransactionRecord] = {}

        # Protects insertion into both dicts. Per-client mutation is
        # serialized by the caller (one shard per client).
        self._lock = threading.Lock()

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        with self._lock:
            if client_id not in self._accounts:
                self._accounts[client_id] = ClientAccount(client_id=client_id)
            return self._accounts[client_id]

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def record_transaction(self, record: TransactionRecord) -> None:
        """
        Store an applied deposit/withdrawal for future dispute lookups.

        Raises:
            DuplicateTransactionIdError: the id was already used by any client.
        """
        with self._lock:
            if record.transaction_id in self._transactions:
                raise DuplicateTransactionIdError(record.transaction_id)
            self._transactions[record.transaction_id] = record

    def find_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:
        return self._transactions.get(transaction_id)

    def snapshot(self) -> List[ClientAccount]:
        """Copies of every account, in no particular order."""
        with self._lock:
            return [replace(account) for account in self._accounts.values()]
