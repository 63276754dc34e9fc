import logging
from typing import Optional, Tuple

from ledger import DuplicateTransactionIdError, Ledger
from models import (
    ZERO,
    ClientAccount,
    DisputeStatus,
    ProcessingResult,
    Transaction,
    TransactionRecord,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions to a ledger, one at a time.
    Returns a ProcessingResult per record and never raises for bad input.
    Caller must serialize all transactions of a given client.
    """

    def __init__(self, ledger: Ledger):
        self._ledger = ledger

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        Returns:
            SUCCESS: applied to the account
            anything else: rejected, ledger unchanged (no account is created
            for a client whose records were all rejected)
        """
        account = self._ledger.get_account(transaction.client_id)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(transaction)
            case _:
                logger.warning(f"Unrecognized transaction type for tx {transaction.transaction_id}: {transaction.transaction_type}")
                return ProcessingResult.MALFORMED_RECORD

    def _handle_deposit(self, account: Optional[ClientAccount], transaction: Transaction) -> ProcessingResult:
        rejection = self._check_movement(account, transaction)
        if rejection is not None:
            return rejection

        rejection = self._record(transaction)
        if rejection is not None:
            return rejection

        if account is None:
            account = self._ledger.get_or_create_account(transaction.client_id)
        account.credit(transaction.amount)
        return ProcessingResult.SUCCESS

    def _handle_withdrawal(self, account: Optional[ClientAccount], transaction: Transaction) -> ProcessingResult:
        rejection = self._check_movement(account, transaction)
        if rejection is not None:
            return rejection

        available = account.available if account is not None else ZERO
        if available < transaction.amount:
            logger.info(f"Withdrawal tx {transaction.transaction_id}: insufficient funds (available {available}, requested {transaction.amount})")
            return ProcessingResult.INSUFFICIENT_FUNDS

        rejection = self._record(transaction)
        if rejection is not None:
            return rejection

        account.debit(transaction.amount)
        return ProcessingResult.SUCCESS

    def _handle_dispute(self, transaction: Transaction) -> ProcessingResult:
        original, rejection = self._find_referenced(transaction, DisputeStatus.NORMAL)
        if rejection is not None:
            return rejection
        account = self._ledger.get_account(original.client_id)

        # Withdrawals are held the same way as deposits; available may go negative.
        account.hold(original.amount)
        original.dispute_status = DisputeStatus.DISPUTED
        return ProcessingResult.SUCCESS

    def _handle_resolve(self, transaction: Transaction) -> ProcessingResult:
        original, rejection = self._find_referenced(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection
        account = self._ledger.get_account(original.client_id)

        account.release_hold(original.amount)
        original.dispute_status = DisputeStatus.NORMAL
        return ProcessingResult.SUCCESS

    def _handle_chargeback(self, transaction: Transaction) -> ProcessingResult:
        original, rejection = self._find_referenced(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection
        account = self._ledger.get_account(original.client_id)

        account.remove_held(original.amount)
        account.locked = True
        original.dispute_status = DisputeStatus.CHARGED_BACK
        logger.info(f"Chargeback tx {transaction.transaction_id}: client {account.client_id} locked")
        return ProcessingResult.SUCCESS

    def _check_movement(self, account: Optional[ClientAccount], transaction: Transaction) -> Optional[ProcessingResult]:
        """Shared validation for deposits and withdrawals."""
        kind = transaction.transaction_type.value.capitalize()

        if transaction.amount is None or transaction.amount <= ZERO:
            logger.warning(f"{kind} tx {transaction.transaction_id}: invalid amount {transaction.amount}")
            return ProcessingResult.INVALID_AMOUNT

        if account is not None and account.locked:
            logger.warning(f"{kind} tx {transaction.transaction_id}: client {account.client_id} is locked")
            return ProcessingResult.ACCOUNT_LOCKED

        return None

    def _record(self, transaction: Transaction) -> Optional[ProcessingResult]:
        record = TransactionRecord(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            amount=transaction.amount,
            kind=transaction.transaction_type,
        )
        try:
            self._ledger.record_transaction(record)
        except DuplicateTransactionIdError as e:
            logger.warning(f"{transaction.transaction_type.value.capitalize()} tx {transaction.transaction_id}: {e}, skipping")
            return ProcessingResult.DUPLICATE_TRANSACTION
        return None

    def _find_referenced(
        self, transaction: Transaction, expected_status: DisputeStatus
    ) -> Tuple[Optional[TransactionRecord], Optional[ProcessingResult]]:
        """Look up the record a dispute/resolve/chargeback points at."""
        kind = transaction.transaction_type.value.capitalize()
        original = self._ledger.find_transaction(transaction.transaction_id)

        if original is None:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: transaction not found")
            return None, ProcessingResult.TRANSACTION_NOT_FOUND

        if original.client_id != transaction.client_id:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: client mismatch (owner {original.client_id}, got {transaction.client_id})")
            return None, ProcessingResult.CLIENT_MISMATCH

        if original.dispute_status is not expected_status:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: transaction is {original.dispute_status.value}, expected {expected_status.value}")
            return None, ProcessingResult.INVALID_DISPUTE_STATE

        return original, None
