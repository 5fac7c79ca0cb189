import threading
from queue import Queue, Empty
from typing import Optional

from models import Transaction


class ShardQueue:
    """
    Thread-safe FIFO feeding a single shard worker.
    All synchronization is internal - callers never need to lock.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self, maxsize: int = 0):
        self._queue: Queue[Transaction] = Queue(maxsize=maxsize)
        self._shutdown_event = threading.Event()

    def publish_message(self, message: Transaction) -> None:
        """Add message to the queue, blocking while a bounded queue is full. Thread-safe."""
        self._queue.put(message)

    def consume_message(self, timeout: float = DEFAULT_TIMEOUT) -> Optional[Transaction]:
        """
        Get next message from the queue.
        Returns None if queue is empty after timeout.
        Thread-safe.
        """
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def is_empty(self) -> bool:
        return self._queue.empty()

    def size(self) -> int:
        """Return approximate queue size."""
        return self._queue.qsize()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        """Check if shutdown has been signaled."""
        return self._shutdown_event.is_set()
