import sys
import os
import threading
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from message_queue import ShardQueue
from models import Deposit


def make_transaction(client_id: int, transaction_id: int) -> Deposit:
    return Deposit(
        client_id=client_id,
        transaction_id=transaction_id,
        amount=Decimal("100"),
    )


class TestShardQueue:
    def test_publish_consume(self):
        queue = ShardQueue()
        transaction = make_transaction(1, 1)
        queue.publish_message(transaction)
        result = queue.consume_message()
        assert result == transaction

    def test_consume_empty_returns_none(self):
        queue = ShardQueue()
        result = queue.consume_message(timeout=0.01)
        assert result is None

    def test_fifo_order(self):
        queue = ShardQueue()
        transactions = [make_transaction(1, tx) for tx in range(5)]
        for transaction in transactions:
            queue.publish_message(transaction)

        assert [queue.consume_message() for _ in transactions] == transactions

    def test_is_empty_and_size(self):
        queue = ShardQueue()
        assert queue.is_empty()
        queue.publish_message(make_transaction(1, 1))
        assert not queue.is_empty()
        assert queue.size() == 1
        queue.consume_message()
        assert queue.is_empty()

    def test_shutdown(self):
        queue = ShardQueue()
        assert not queue.is_shutdown()
        queue.shutdown()
        assert queue.is_shutdown()

    def test_bounded_queue_blocks_until_consumed(self):
        queue = ShardQueue(maxsize=1)
        queue.publish_message(make_transaction(1, 1))
        published = threading.Event()

        def publish():
            queue.publish_message(make_transaction(1, 2))
            published.set()

        publisher = threading.Thread(target=publish)
        publisher.start()
        assert not published.wait(timeout=0.05)

        assert queue.consume_message().transaction_id == 1
        publisher.join(timeout=1)
        assert published.is_set()
        assert queue.consume_message().transaction_id == 2
