import logging
import threading
from typing import Dict, Iterable, List, Optional

from config import EngineConfig
from message_queue import ShardQueue
from models import AccountSnapshot, ClientAccount, InvalidTransactionError, ProcessingStats, Transaction
from payments_engine import PaymentsEngine, report_invalid_row
from transaction_reader import TransactionReader

logger = logging.getLogger(__name__)


class ShardedPaymentsEngine:
    """
    Partitions clients across independent ledgers, one worker thread per shard.

    Each shard owns its queue, its state and its ledger; nothing is shared between
    shards, so the only synchronization is the queue hand-off. Transactions for a
    client always land on the same shard, which keeps per-client ordering. There
    is no global ordering, and duplicate transaction ids are only detected within
    a shard.
    """

    QUEUE_MAXSIZE = 1024

    def __init__(self, num_shards: int = 4, config: Optional[EngineConfig] = None):
        if num_shards < 1:
            raise ValueError(f"num_shards must be at least 1, got {num_shards}")
        self._config = config or EngineConfig(num_shards=num_shards)
        self._num_shards = num_shards
        self._shards = [PaymentsEngine(self._config) for _ in range(num_shards)]
        self._queues = [ShardQueue(maxsize=self.QUEUE_MAXSIZE) for _ in range(num_shards)]
        self._halted = threading.Event()
        self._errors: List[BaseException] = []
        self._errors_lock = threading.Lock()
        # Malformed rows are counted here, before they are routed to any shard.
        self._reader_stats = ProcessingStats()

    def shard_for(self, client_id: int) -> int:
        return hash(client_id) % self._num_shards

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        reader = TransactionReader(filepath, on_invalid=self._handle_invalid_row)
        return self.process_transactions(reader)

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        logger.info(f"Starting {self._num_shards} shard workers")

        workers = []
        for shard_id in range(self._num_shards):
            worker = threading.Thread(target=self._consume_transactions, args=(shard_id,), name=f"shard-{shard_id}")
            worker.start()
            workers.append(worker)

        try:
            for transaction in transactions:
                if self._halted.is_set():
                    break
                self._queues[self.shard_for(transaction.client_id)].publish_message(transaction)
        finally:
            for queue in self._queues:
                queue.shutdown()
            for worker in workers:
                worker.join()

        if self._errors:
            raise self._errors[0]

        stats = self.stats
        logger.info(f"Processed: {stats.processed}, Rejected: {stats.rejected}, Malformed: {stats.malformed}")
        return self.get_all_accounts()

    def _handle_invalid_row(self, line_number: int, row: Dict[str, Optional[str]], error: InvalidTransactionError) -> None:
        report_invalid_row(self._config, self._reader_stats, line_number, row, error)

    def _consume_transactions(self, shard_id: int) -> None:
        """Worker loop: exclusive owner of one shard's ledger."""
        queue = self._queues[shard_id]
        shard = self._shards[shard_id]
        while True:
            transaction = queue.consume_message()
            if transaction is None:
                if queue.is_shutdown() and queue.is_empty():
                    break
                continue

            # Keep draining after a halt so the publisher never blocks on a full queue.
            if self._halted.is_set():
                continue

            try:
                shard.apply(transaction)
            except Exception as e:
                logger.error(f"Shard {shard_id} halted on {transaction!r}: {e}")
                with self._errors_lock:
                    self._errors.append(e)
                self._halted.set()

    @property
    def stats(self) -> ProcessingStats:
        stats = ProcessingStats()
        stats.merge(self._reader_stats)
        for shard in self._shards:
            stats.merge(shard.stats)
        return stats

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        accounts: Dict[int, ClientAccount] = {}
        for shard in self._shards:
            accounts.update(shard.state.get_all_accounts())
        return accounts

    def snapshot(self) -> List[AccountSnapshot]:
        snapshots = [snapshot for shard in self._shards for snapshot in shard.snapshot()]
        return sorted(snapshots, key=lambda snapshot: snapshot.client_id)
