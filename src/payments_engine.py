import logging
import threading
from typing import Dict, Iterable, List, Optional

from csv_io import read_transactions
from ledger import Ledger
from message_queue import ShardQueue
from models import ClientAccount, ProcessingResult, ProcessingStats, Transaction
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Drives a stream of transactions through the processor.

    With one worker everything runs on the calling thread in input order.
    With more, a publisher thread shards records by client id onto one queue
    per worker, so each client's records are still applied in input order.
    """

    def __init__(self, num_workers: int = 1, ledger: Optional[Ledger] = None):
        self._num_workers = max(1, num_workers)
        self._ledger = ledger if ledger is not None else Ledger()
        self._processor = TransactionProcessor(self._ledger)
        self._stats = ProcessingStats()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        transactions = read_transactions(
            filepath,
            on_malformed=lambda row: self._stats.record(ProcessingResult.MALFORMED_RECORD),
        )
        return self.process(transactions)

    def process(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        if self._num_workers == 1:
            for transaction in transactions:
                self._apply(transaction)
        else:
            self._process_sharded(transactions)

        logger.info(f"Processing complete: {self._stats.processed} accepted, {self._stats.failed} rejected")
        for result, count in self._stats.rejections().items():
            logger.info(f"  {result.value}: {count}")

        return {account.client_id: account for account in self._ledger.snapshot()}

    def _apply(self, transaction: Transaction) -> None:
        result = self._processor.process_transaction(transaction)
        self._stats.record(result)

    def _process_sharded(self, transactions: Iterable[Transaction]) -> None:
        logger.info(f"Starting sharded processing with {self._num_workers} workers")
        queues = [ShardQueue(shard) for shard in range(self._num_workers)]
        publisher_errors: List[BaseException] = []

        publisher_thread = threading.Thread(
            target=self._publish_transactions, args=(transactions, queues, publisher_errors)
        )
        publisher_thread.start()

        consumer_threads = []
        for queue in queues:
            consumer_thread = threading.Thread(target=self._consume_transactions, args=(queue,))
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        publisher_thread.join()
        for consumer_thread in consumer_threads:
            consumer_thread.join()

        if publisher_errors:
            raise publisher_errors[0]

    def _publish_transactions(
        self, transactions: Iterable[Transaction], queues: List[ShardQueue], errors: List[BaseException]
    ) -> None:
        """Route every transaction to the queue owning its client."""
        try:
            for transaction in transactions:
                queues[transaction.client_id % len(queues)].publish(transaction)
        except Exception as e:
            # Re-raised on the calling thread once workers drain.
            errors.append(e)
        finally:
            for queue in queues:
                queue.close()

    def _consume_transactions(self, queue: ShardQueue) -> None:
        """Worker loop: apply the shard's transactions in publish order."""
        for transaction in queue:
            self._apply(transaction)
        logger.debug(f"Shard {queue.shard} drained")
